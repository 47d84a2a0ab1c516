"""Application state: prefs, editor installs, registered projects, user packages."""

from .app_context import AppContext, Prefs, Project, UserCache, load_prefs, load_user_cache, save_prefs, save_user_cache
from .editors import EditorInstall, discover_editors, read_editor_catalog

__all__ = [
    "AppContext",
    "Prefs",
    "Project",
    "UserCache",
    "load_prefs",
    "save_prefs",
    "load_user_cache",
    "save_user_cache",
    "EditorInstall",
    "discover_editors",
    "read_editor_catalog",
]
