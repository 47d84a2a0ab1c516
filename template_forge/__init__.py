"""Template resolution and project generation for editor installs."""

__version__ = "0.1.0"
