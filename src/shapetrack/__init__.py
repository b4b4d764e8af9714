"""Progress tracking for the tactile-shape learning program."""

__version__ = "0.1.0"
