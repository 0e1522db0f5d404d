"""PageFlow: collaborative block-based page editor."""

__version__ = "1.0.0"
