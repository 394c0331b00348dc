"""Buildspace: workspace manager and sandboxed command execution engine."""

__version__ = "0.1.0"
