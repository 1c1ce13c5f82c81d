"""Tools for the Stunts DOS game: DOS memory and file services, MZ executable patching and resource unpacking."""

__version__ = "0.1.0"