"""
EcoGrader - AI grading and XP progression for an eco learning platform.

This package grades free-text student submissions with an LLM oracle
behind deterministic scoring guardrails, and turns grades and activities
into points, levels and badges.
"""

__version__ = "1.0.0"
__author__ = "EcoGrader Team"
