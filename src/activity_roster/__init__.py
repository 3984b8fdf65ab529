"""Optimistic mutation cache for capacity-limited shared activities."""

__version__ = "0.1.0"
