"""Static documentation site generator with cross-repository link resolution."""

__version__ = "0.1.0"
