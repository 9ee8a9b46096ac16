"""corrigo: lint, fix, and format-check Python sources."""

__version__ = "0.1.0"
