"""Explicit application state shared by the command layer and generators."""

from __future__ import annotations

import json
import logging
import sys
import threading
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..config import Settings
from ..errors import NotFoundError
from ..templates.models import EditorCatalog, MinimalPackage, PackageType
from ..templates.package_cache import EditorVersionPackageCache
from ..templates.resolver import DependencyResolver
from .editors import EditorInstall, discover_editors, read_editor_catalog

logger = logging.getLogger(__name__)

PREFS_FILE = "prefs.json"
PROJECTS_FILE = "projects.json"
USER_CACHE_FILE = "user_cache.json"


def _default_editors_path() -> Path:
    if sys.platform == "win32":
        return Path("C:/Program Files/Unity/Hub/Editor")
    if sys.platform == "darwin":
        return Path("/Applications/Unity/Hub/Editor")
    return Path.home() / "Unity" / "Hub" / "Editor"


def _default_appdata_path() -> Path:
    if sys.platform == "win32":
        return Path.home() / "AppData" / "Roaming" / "UnityHub"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "UnityHub"
    return Path.home() / ".config" / "UnityHub"


class Prefs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_project_path: Optional[Path] = Field(default_factory=lambda: Path.home() / "Documents", alias="newProjectPath")
    hub_path: Optional[Path] = Field(default=None, alias="hubPath")
    hub_editors_path: Optional[Path] = Field(default_factory=_default_editors_path, alias="hubEditorsPath")
    hub_appdata_path: Optional[Path] = Field(default_factory=_default_appdata_path, alias="hubAppdataPath")


class Project(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: Path
    editor_version: str = Field(alias="editorVersion")


class UserCache(BaseModel):
    """Packages the user added by hand. Local entries are named by the path
    of their ``package.json``."""

    model_config = ConfigDict(populate_by_name=True)

    last_editor_version: Optional[str] = Field(default=None, alias="lastEditorVersion")
    git_packages: List[MinimalPackage] = Field(default_factory=list, alias="gitPackages")
    local_packages: List[MinimalPackage] = Field(default_factory=list, alias="localPackages")

    def prune_local_packages(self) -> List[MinimalPackage]:
        """Drop local packages whose descriptor is gone; return what was dropped."""

        gone = [p for p in self.local_packages if not Path(p.name).exists()]
        if gone:
            self.local_packages = [p for p in self.local_packages if p not in gone]
        return gone


_projects_adapter = TypeAdapter(List[Project])


def load_prefs(path: Path) -> Prefs:
    """Load prefs; a missing or invalid file is replaced by defaults on disk."""

    try:
        return Prefs.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.info("Prefs at %s unusable (%s); writing defaults", path, e)
    prefs = Prefs()
    save_prefs(path, prefs)
    return prefs


def save_prefs(path: Path, prefs: Prefs) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(prefs.model_dump_json(by_alias=True, indent=2), encoding="utf-8")


def load_projects(path: Path) -> List[Project]:
    try:
        return _projects_adapter.validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.info("Project list at %s unusable (%s); starting empty", path, e)
        return []


def save_projects(path: Path, projects: List[Project]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = [p.model_dump(mode="json", by_alias=True) for p in projects]
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def load_user_cache(path: Path) -> UserCache:
    try:
        return UserCache.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.info("User cache at %s unusable (%s); starting empty", path, e)
        return UserCache()


def save_user_cache(path: Path, cache: UserCache) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(cache.model_dump_json(by_alias=True, indent=2), encoding="utf-8")


class AppContext:
    """Prefs, editor installs, known projects and the user package cache,
    each behind its own lock.

    Locks are held only while reading or replacing a value, never across a
    generator run. With ``persist=False`` nothing touches the config dir.
    """

    def __init__(
        self,
        settings: Settings,
        prefs: Optional[Prefs] = None,
        editors: Optional[List[EditorInstall]] = None,
        projects: Optional[List[Project]] = None,
        user_cache: Optional[UserCache] = None,
        persist: bool = False,
    ):
        self.settings = settings
        self.persist = persist
        self._prefs = prefs or Prefs()
        self._editors = list(editors or [])
        self._projects = list(projects or [])
        self._user_cache = user_cache or UserCache()
        self._prefs_lock = threading.Lock()
        self._editors_lock = threading.Lock()
        self._projects_lock = threading.Lock()
        self._user_cache_lock = threading.Lock()

    @classmethod
    def load(cls, settings: Settings) -> "AppContext":
        config_dir = Path(settings.paths.config_dir)
        prefs = load_prefs(config_dir / PREFS_FILE)
        projects = load_projects(config_dir / PROJECTS_FILE)
        user_cache = load_user_cache(config_dir / USER_CACHE_FILE)
        editors = discover_editors(prefs.hub_editors_path) if prefs.hub_editors_path else []
        logger.info("Loaded %d editor installs and %d projects", len(editors), len(projects))
        return cls(settings, prefs=prefs, editors=editors, projects=projects, user_cache=user_cache, persist=True)

    @property
    def cache_dir(self) -> Path:
        return Path(self.settings.paths.cache_dir)

    @property
    def prefs(self) -> Prefs:
        with self._prefs_lock:
            return self._prefs.model_copy()

    def set_prefs(self, prefs: Prefs) -> None:
        with self._prefs_lock:
            self._prefs = prefs
            if self.persist:
                save_prefs(Path(self.settings.paths.config_dir) / PREFS_FILE, prefs)

    @property
    def templates_dir(self) -> Path:
        """``<appdata>/Templates``, where user templates and their registries live."""

        appdata = self.prefs.hub_appdata_path
        if appdata is None:
            raise NotFoundError("Hub appdata path is not configured")
        return Path(appdata) / "Templates"

    def editors(self) -> List[EditorInstall]:
        with self._editors_lock:
            return list(self._editors)

    def refresh_editors(self) -> List[EditorInstall]:
        editors_path = self.prefs.hub_editors_path
        found = discover_editors(editors_path) if editors_path else []
        with self._editors_lock:
            self._editors = found
        return list(found)

    def find_editor(self, version: str) -> EditorInstall:
        for editor in self.editors():
            if editor.version == version:
                return editor
        raise NotFoundError(f"Editor {version} is not installed")

    def projects(self) -> List[Project]:
        with self._projects_lock:
            return list(self._projects)

    def add_project(self, project: Project) -> None:
        with self._projects_lock:
            self._projects = [p for p in self._projects if Path(p.path) != Path(project.path)]
            self._projects.append(project)
            if self.persist:
                save_projects(Path(self.settings.paths.config_dir) / PROJECTS_FILE, self._projects)
        logger.info("Registered project %s (%s)", project.path, project.editor_version)

    def user_cache(self) -> UserCache:
        """Snapshot of the user cache with stale local packages pruned."""

        with self._user_cache_lock:
            gone = self._user_cache.prune_local_packages()
            if gone:
                logger.info("Pruned %d local packages with missing descriptors", len(gone))
                self._save_user_cache()
            return self._user_cache.model_copy(deep=True)

    def set_last_editor_version(self, version: Optional[str]) -> None:
        with self._user_cache_lock:
            self._user_cache.last_editor_version = version
            self._save_user_cache()

    def add_git_package(self, package: MinimalPackage) -> None:
        package = package.model_copy(update={"type": PackageType.GIT})
        with self._user_cache_lock:
            cache = self._user_cache
            cache.git_packages = [p for p in cache.git_packages if p.name != package.name]
            cache.git_packages.append(package)
            self._save_user_cache()

    def remove_git_package(self, package: MinimalPackage) -> None:
        with self._user_cache_lock:
            cache = self._user_cache
            cache.git_packages = [
                p for p in cache.git_packages if not (p.name == package.name and p.version == package.version)
            ]
            self._save_user_cache()

    def add_local_package(self, package: MinimalPackage) -> None:
        package = package.model_copy(update={"type": PackageType.LOCAL})
        with self._user_cache_lock:
            cache = self._user_cache
            cache.local_packages = [p for p in cache.local_packages if p.name != package.name]
            cache.local_packages.append(package)
            self._save_user_cache()

    def remove_local_package(self, package: MinimalPackage) -> None:
        with self._user_cache_lock:
            cache = self._user_cache
            cache.local_packages = [p for p in cache.local_packages if p.name != package.name]
            self._save_user_cache()

    def _save_user_cache(self) -> None:
        # caller holds _user_cache_lock
        if self.persist:
            save_user_cache(Path(self.settings.paths.config_dir) / USER_CACHE_FILE, self._user_cache)

    def package_cache(self) -> EditorVersionPackageCache:
        return EditorVersionPackageCache(self.cache_dir)

    def read_editor_catalog(self, editor_version: str) -> EditorCatalog:
        return read_editor_catalog(self.find_editor(editor_version))

    def resolver(self) -> DependencyResolver:
        return DependencyResolver(self.package_cache(), self.read_editor_catalog)
