"""Birthday announcement and role-lifecycle scheduling."""

__version__ = "0.3.0"
