"""Generate static websites for books and collections written in Markdown."""

__version__ = "0.9.0"