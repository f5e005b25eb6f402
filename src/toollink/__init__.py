"""ToolLink client-side access control."""

__version__ = "0.1.0"
