from __future__ import annotations

import json
import logging
import re
import shutil
from pathlib import Path
from typing import Collection, Iterable, Mapping, Optional, Sequence

from ..packaging.archive import normalize_member_name
from ..templates.manifest_writer import LOCK_FILE, MANIFEST_FILE
from ..templates.models import EditorVersionPackageList
from .models import CopyFailure, CopyReport

logger = logging.getLogger(__name__)

GITIGNORE = """# Unity
Library/
Temp/
Obj/
Build/
Builds/
Logs/
UserSettings/
MemoryCaptures/
.vs/
.idea/
*.csproj
*.sln
*.user
*.tmp
"""

MANIFEST_REL = f"Packages/{MANIFEST_FILE}"


def is_selected(key: str, selected: Optional[Sequence[str]]) -> bool:
    """``None`` selects everything; otherwise exact paths or directory prefixes."""

    if selected is None:
        return True
    for s in selected:
        s = normalize_member_name(s)
        if key == s or key.startswith(s + "/"):
            return True
    return False


def _under(rel: str, prefixes: Iterable[str]) -> bool:
    return any(rel == p or rel.startswith(p + "/") for p in prefixes)


class ProjectStructureGenerator:
    def copy_tree(
        self,
        src_root: str | Path,
        dst_root: str | Path,
        selected: Optional[Sequence[str]] = None,
        key_prefix: str = "",
        always: Collection[str] = (MANIFEST_REL,),
        skip: Collection[str] = ("Library",),
        report: Optional[CopyReport] = None,
    ) -> CopyReport:
        """Copy files below ``src_root`` into ``dst_root`` keeping relative paths.

        A file is copied when ``key_prefix + rel`` is selected or ``rel`` is in
        ``always``. Paths under ``skip`` are ignored. Failures are logged and
        collected, never raised.
        """

        src_root = Path(src_root)
        dst_root = Path(dst_root)
        report = report or CopyReport()
        dst_root.mkdir(parents=True, exist_ok=True)

        for path in sorted(src_root.rglob("*")):
            rel = path.relative_to(src_root).as_posix()
            if _under(rel, skip):
                continue
            key = key_prefix + rel
            dest = dst_root / rel
            if path.is_dir():
                if is_selected(key, selected):
                    dest.mkdir(parents=True, exist_ok=True)
                continue
            if rel not in always and not is_selected(key, selected):
                report.skipped.append(rel)
                continue
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(path, dest)
                report.copied.append(rel)
            except OSError as e:
                logger.warning("Failed to copy %s to %s: %s", path, dest, e)
                report.failures.append(CopyFailure(source=str(path), destination=str(dest), error=str(e)))
        return report

    def create_template_scaffold(self, package_root: str | Path) -> Path:
        """``ProjectData~/{Assets,Packages,ProjectSettings}`` plus an empty manifest."""

        data_root = Path(package_root) / "ProjectData~"
        for p in [data_root / "Assets", data_root / "Packages", data_root / "ProjectSettings"]:
            p.mkdir(parents=True, exist_ok=True)
        manifest = data_root / "Packages" / MANIFEST_FILE
        if not manifest.exists():
            manifest.write_text(json.dumps({"dependencies": {}}, indent=2), encoding="utf-8")
        return data_root

    def write_project_version(self, project_path: str | Path, editor_version: str) -> Path:
        path = Path(project_path) / "ProjectSettings" / "ProjectVersion.txt"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"m_EditorVersion: {editor_version}", encoding="utf-8")
        return path

    def write_gitignore(self, project_path: str | Path, gitignore_template: Optional[str | Path] = None) -> None:
        gitignore = Path(project_path) / ".gitignore"
        if gitignore.exists():
            return
        if gitignore_template and Path(gitignore_template).exists():
            shutil.copy2(gitignore_template, gitignore)
        else:
            gitignore.write_text(GITIGNORE, encoding="utf-8")

    def apply_project_settings(self, project_path: str | Path, company_name: str, product_name: str) -> bool:
        """Rewrite ``companyName``/``productName`` in ProjectSettings.asset if present."""

        asset = Path(project_path) / "ProjectSettings" / "ProjectSettings.asset"
        if not asset.is_file():
            return False
        text = asset.read_text(encoding="utf-8")
        text = re.sub(r"^(\s*companyName:).*$", lambda m: f"{m.group(1)} {company_name}", text, flags=re.M)
        text = re.sub(r"^(\s*productName:).*$", lambda m: f"{m.group(1)} {product_name}", text, flags=re.M)
        asset.write_text(text, encoding="utf-8")
        return True

    def synthesize_lock(
        self,
        packages_dir: str | Path,
        dependencies: Mapping[str, str],
        cache: EditorVersionPackageList,
    ) -> Optional[Path]:
        """Write ``packages-lock.json`` from cached lock entries of ``dependencies``.

        Returns ``None`` and writes nothing when no entry is known.
        """

        entries = {name: cache.packages[name].dump() for name in dependencies if name in cache.packages}
        if not entries:
            logger.debug("No cached lock entries for %s, skipping lock file", packages_dir)
            return None
        path = Path(packages_dir) / LOCK_FILE
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"dependencies": entries}, indent=2), encoding="utf-8")
        return path
