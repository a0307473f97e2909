"""Background job system that turns new housing listings into subscriber alerts."""

__version__ = "0.1.0"
