from __future__ import annotations

import logging
import shutil
import tarfile
import zlib
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator

from ..errors import InvalidArchiveError, InvalidFormatError

logger = logging.getLogger(__name__)

PACKAGE_ROOT = "package"
PACKAGE_JSON = "package/package.json"
PROJECT_DATA_ROOT = "package/ProjectData~"
TEMPLATE_MANIFEST = "package/ProjectData~/Packages/manifest.json"
TEMPLATE_LOCK = "package/ProjectData~/Packages/packages-lock.json"

# Raised by gzip/tar/zlib on truncated or corrupt input
_ARCHIVE_ERRORS = (OSError, EOFError, tarfile.TarError, zlib.error)


def normalize_member_name(name: str) -> str:
    name = name.replace("\\", "/")
    while name.startswith("./"):
        name = name[2:]
    return name.rstrip("/")


@dataclass(frozen=True)
class ArchiveEntry:
    path: str
    is_dir: bool
    size: int = 0


class TemplateArchive:
    """
    Read access to a gzip-compressed tar template. Every read streams the
    archive from the start, nothing is written to disk except by
    ``extract_all``.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        if not self.path.is_file():
            raise InvalidArchiveError("Template archive not found", path=self.path)

    @contextmanager
    def _open(self) -> Iterator[tarfile.TarFile]:
        try:
            tar = tarfile.open(self.path, mode="r|gz")
        except _ARCHIVE_ERRORS as e:
            raise InvalidArchiveError(f"Invalid template archive: {e}", path=self.path) from e
        try:
            yield tar
        finally:
            tar.close()

    def iter_entries(self) -> Iterator[ArchiveEntry]:
        with self._open() as tar:
            try:
                for member in tar:
                    yield ArchiveEntry(
                        path=normalize_member_name(member.name),
                        is_dir=member.isdir(),
                        size=member.size,
                    )
            except _ARCHIVE_ERRORS as e:
                raise InvalidArchiveError(f"Invalid template archive: {e}", path=self.path) from e

    def read_texts(self, names: Iterable[str]) -> Dict[str, str]:
        """Return the decoded content of the requested entries that exist.

        Stops reading once every requested entry has been seen.
        """

        wanted = {normalize_member_name(n) for n in names}
        found: Dict[str, str] = {}
        if not wanted:
            return found
        with self._open() as tar:
            try:
                for member in tar:
                    name = normalize_member_name(member.name)
                    if name not in wanted or not member.isfile():
                        continue
                    handle = tar.extractfile(member)
                    if handle is None:
                        continue
                    data = handle.read()
                    try:
                        found[name] = data.decode("utf-8-sig")
                    except UnicodeDecodeError as e:
                        raise InvalidFormatError(f"Entry {name} is not UTF-8 text", path=self.path) from e
                    if len(found) == len(wanted):
                        break
            except _ARCHIVE_ERRORS as e:
                raise InvalidArchiveError(f"Invalid template archive: {e}", path=self.path) from e
        return found

    def read_text(self, name: str) -> str | None:
        return self.read_texts([name]).get(normalize_member_name(name))

    def extract_all(self, target: str | Path) -> Path:
        target = Path(target)
        if target.exists():
            shutil.rmtree(target)
        target.mkdir(parents=True, exist_ok=True)
        logger.debug("Extracting %s into %s", self.path, target)
        with self._open() as tar:
            try:
                tar.extractall(target, filter="data")
            except _ARCHIVE_ERRORS as e:
                raise InvalidArchiveError(f"Failed to extract template archive: {e}", path=self.path) from e
        return target


def create_archive(source_dir: str | Path, output_path: str | Path, arcname: str = PACKAGE_ROOT) -> Path:
    """Compress ``source_dir`` into a ``.tgz`` whose single root is ``arcname``."""

    src = Path(source_dir).resolve()
    out = Path(output_path).resolve()
    out.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(out, "w:gz") as tar:
        tar.add(src, arcname=arcname)
    logger.info("Wrote template archive %s", out)
    return out
