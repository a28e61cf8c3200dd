"""Merit points and rating engine."""

__version__ = "1.0.0"
