"""articlecast: read news articles aloud."""

__version__ = "0.1.0"
