"""
Versioned migrations for stored student documents.

Each migration upgrades a raw document in place to its `version` and is
applied at most once per document, tracked by `schema_version`. They run
when a repository is opened, never on the read path.
"""

import logging
from typing import Any, Callable, Iterable, NamedTuple

from ecograder.progression.calculator import xp_threshold

logger = logging.getLogger(__name__)

Document = dict[str, Any]

LEGACY_PROGRESSION_FIELDS = ("current_xp", "level", "next_level_xp", "badges")


class Migration(NamedTuple):
    version: int
    description: str
    apply: Callable[[Document], None]


def _nest_progression(doc: Document) -> None:
    """Move flat legacy XP fields under `progression` and repair bad values."""
    progression = doc.get("progression")
    if not isinstance(progression, dict):
        progression = {}

    for name in LEGACY_PROGRESSION_FIELDS:
        if name in doc:
            progression.setdefault(name, doc.pop(name))

    # Old records stored a badge count instead of a list.
    if not isinstance(progression.get("badges"), (list, tuple)):
        progression["badges"] = []

    doc["progression"] = progression

    if not isinstance(doc.get("game_points"), int) or isinstance(doc.get("game_points"), bool):
        doc["game_points"] = 0


def _normalize_threshold(doc: Document) -> None:
    """Recompute the stored next-level threshold from the level."""
    progression = doc.setdefault("progression", {})
    level = progression.get("level") or 1
    if not isinstance(level, int) or level < 1:
        level = 1
    progression["level"] = level
    progression["next_level_xp"] = xp_threshold(level)


DEFAULT_MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "nest legacy progression fields", _nest_progression),
    Migration(2, "normalize next level threshold", _normalize_threshold),
)

CURRENT_SCHEMA_VERSION = DEFAULT_MIGRATIONS[-1].version


def migrate_document(doc: Document, migrations: Iterable[Migration] = DEFAULT_MIGRATIONS) -> bool:
    """
    Bring one document up to date.

    Returns:
        True if any migration was applied.
    """
    current = doc.get("schema_version") or 0
    changed = False
    for migration in sorted(migrations, key=lambda m: m.version):
        if migration.version <= current:
            continue
        migration.apply(doc)
        doc["schema_version"] = migration.version
        changed = True
        logger.debug(
            "Applied migration %d (%s) to %s", migration.version, migration.description, doc.get("id")
        )
    return changed


def run_migrations(
    documents: Iterable[Document], migrations: Iterable[Migration] = DEFAULT_MIGRATIONS
) -> int:
    """Migrate documents in place and return how many changed."""
    migrations = tuple(migrations)
    return sum(1 for doc in documents if migrate_document(doc, migrations))
