"""Export a project source tree into size-bounded text bundles."""

__version__ = "0.1.0"
