"""
artifacts.py

Responsibility: Make sure the build outputs exist before anything is published.

Layout under the dist directory:
- `<AppName>.dmg`  primary artifact, mandatory
- `<AppName>.app`  application bundle directory, optional
- `<AppName>.zip`  archive of the bundle, produced here when the bundle exists
"""

from __future__ import annotations

import logging
import os
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from publisher.errors import ArtifactMissing
from publisher.shell import CommandError, Runner

logger = logging.getLogger(__name__)

BuildInvoker = Callable[[], None]


@dataclass(frozen=True)
class ArtifactSet:
    bundle_path: Path
    archive_path: Path | None = None

    def files(self) -> list[Path]:
        """Artifacts eligible for upload, primary first."""
        out = [self.bundle_path]
        if self.archive_path is not None:
            out.append(self.archive_path)
        return out


def _present(path: Path) -> bool:
    return path.is_file() and path.stat().st_size > 0


def zip_app_bundle(app_dir: Path, zip_path: Path) -> Path:
    """
    Zip `app_dir` keeping the bundle directory itself as the archive root.

    Symlinks inside the bundle (framework `Versions/Current` links) are stored
    as links rather than followed. Entries are written in sorted order.
    """
    parent = app_dir.parent
    tmp_path = zip_path.with_name(zip_path.name + ".partial")
    try:
        with zipfile.ZipFile(tmp_path, "w", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False) as zf:
            for root, dirs, filenames in os.walk(app_dir):
                root_path = Path(root)
                links = [d for d in dirs if (root_path / d).is_symlink()]
                dirs[:] = sorted(d for d in dirs if d not in links)
                zf.write(root_path, root_path.relative_to(parent).as_posix() + "/")
                for name in sorted(filenames + links):
                    src = root_path / name
                    arcname = src.relative_to(parent).as_posix()
                    if src.is_symlink():
                        info = zipfile.ZipInfo(arcname)
                        info.create_system = 3
                        info.external_attr = 0o120777 << 16
                        zf.writestr(info, os.readlink(src))
                    else:
                        zf.write(src, arcname)
        tmp_path.replace(zip_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return zip_path


def script_build_invoker(command: tuple[str, ...], *, cwd: Path, timeout: float | None = None) -> BuildInvoker:
    """
    Build collaborator that runs the project's build script.

    A failing build is logged, not raised: the artifact re-check decides.
    """
    runner = Runner(timeout=timeout)

    def invoke() -> None:
        try:
            proc = runner.run(command, cwd=cwd)
        except CommandError as e:
            logger.error("Build command failed: %s", e)
            return
        if proc.stdout:
            logger.debug("%s", proc.stdout.rstrip())

    return invoke


class ArtifactLocator:
    def __init__(self, dist_dir: Path, app_name: str) -> None:
        self.dist_dir = dist_dir
        self.app_name = app_name

    @property
    def dmg_path(self) -> Path:
        return self.dist_dir / f"{self.app_name}.dmg"

    @property
    def app_path(self) -> Path:
        return self.dist_dir / f"{self.app_name}.app"

    @property
    def zip_path(self) -> Path:
        return self.dist_dir / f"{self.app_name}.zip"

    def ensure(self, build_invoker: BuildInvoker) -> ArtifactSet:
        """
        Return the artifacts to publish, building at most once.

        Raises `ArtifactMissing` if the DMG is absent or empty after the build.
        """
        if not _present(self.dmg_path):
            logger.info("Artifacts not found. Running build ...")
            build_invoker()
        if not _present(self.dmg_path):
            raise ArtifactMissing(f"DMG not found at {self.dmg_path}")

        logger.info("Zipping .app for release")
        if not self.app_path.is_dir():
            logger.warning(".app not found at %s (continuing with DMG only)", self.app_path)
            return ArtifactSet(bundle_path=self.dmg_path)

        try:
            archive = zip_app_bundle(self.app_path, self.zip_path)
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            logger.warning("Could not zip %s (%s); continuing with DMG only", self.app_path, e)
            return ArtifactSet(bundle_path=self.dmg_path)
        return ArtifactSet(bundle_path=self.dmg_path, archive_path=archive)
