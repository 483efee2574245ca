"""Contextual-bandit next-action recommender for personal task backlogs."""

__version__ = "1.0.0"
