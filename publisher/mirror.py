"""
mirror.py

Responsibility: Mirror the project tree and artifacts into the target repository.

Flow inside a scratch workspace:
1) clone the target repo with an authenticated remote
2) find the default branch from origin/HEAD (fallback: `main`) and check it out
3) replace `<clone>/<mirror_dir>/` with a fresh copy of the project tree
4) add artifacts to `<clone>/<releases_dir>/` (kept across runs)
5) commit + push only if the staged tree differs from HEAD
6) always create an annotated tag and push it

Git failures become `RepoMirrorFailure`, including an already existing tag.
"""

from __future__ import annotations

import contextlib
import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from publisher.artifacts import ArtifactSet
from publisher.errors import RepoMirrorFailure
from publisher.shell import CommandError, Runner
from publisher.version import ReleaseIdentity

logger = logging.getLogger(__name__)

FALLBACK_BRANCH = "main"
CLONE_DIRNAME = "repo"


@dataclass(frozen=True)
class MirrorResult:
    branch: str
    pushed: bool


@contextlib.contextmanager
def scratch_workspace(prefix: str = "release-publisher-") -> Iterator[Path]:
    """
    Temporary directory removed on every exit path, including KeyboardInterrupt
    and SystemExit raised from a signal handler.
    """
    tmp = tempfile.TemporaryDirectory(prefix=prefix)
    try:
        yield Path(tmp.name)
    finally:
        tmp.cleanup()


def copy_tree(src: Path, dst: Path, *, exclude: Iterable[str] = ()) -> None:
    """
    Make `dst` an exact copy of `src`: anything already in `dst` is removed first.

    `exclude` names top-level entries of `src` that are not copied. Symlinks
    are copied as links.
    """
    src = src.resolve()
    skipped = set(exclude)

    def _ignore(directory: str, names: list[str]) -> list[str]:
        if Path(directory).resolve() != src:
            return []
        return [n for n in names if n in skipped]

    if dst.is_symlink() or dst.is_file():
        dst.unlink()
    elif dst.exists():
        shutil.rmtree(dst)
    shutil.copytree(src, dst, symlinks=True, ignore=_ignore)


class RepoMirror:
    def __init__(
        self,
        remote_url: str,
        *,
        runner: Runner,
        repo_slug: str,
        author_name: str,
        author_email: str,
        mirror_dir: str,
        releases_dir: str = "releases",
        exclude: Iterable[str] = (".git",),
    ) -> None:
        self._remote_url = remote_url
        self._runner = runner
        self._slug = repo_slug
        self._author_name = author_name
        self._author_email = author_email
        self._mirror_dir = mirror_dir
        self._releases_dir = releases_dir
        self._exclude = tuple(exclude)

    def _git(self, *args: str, cwd: Path, step: str) -> str:
        try:
            return self._runner.run(["git", *args], cwd=cwd).stdout
        except CommandError as e:
            raise RepoMirrorFailure(f"{step} failed for {self._slug}: {e}") from e

    def _default_branch(self, repo: Path) -> str:
        proc = self._runner.run(
            ["git", "symbolic-ref", "--quiet", "--short", "refs/remotes/origin/HEAD"],
            cwd=repo,
            check=False,
        )
        head = proc.stdout.strip() if proc.returncode == 0 else ""
        branch = head[len("origin/") :] if head.startswith("origin/") else head
        return branch or FALLBACK_BRANCH

    def _checkout(self, repo: Path, branch: str) -> None:
        proc = self._runner.run(["git", "checkout", branch], cwd=repo, check=False)
        if proc.returncode != 0:
            self._git("checkout", "-b", branch, cwd=repo, step=f"git checkout -b {branch}")

    def _has_staged_changes(self, repo: Path) -> bool:
        proc = self._runner.run(["git", "diff", "--cached", "--quiet"], cwd=repo, check=False)
        if proc.returncode not in (0, 1):
            raise RepoMirrorFailure(f"git diff failed for {self._slug}: {self._runner.redact(proc.stdout).strip()}")
        return proc.returncode == 1

    def _target(self, repo: Path, subdir: str) -> Path:
        """Resolve `subdir` and require it to sit strictly inside the clone, outside `.git`."""
        root = repo.resolve()
        target = (repo / subdir).resolve()
        if target == root or root not in target.parents or target.relative_to(root).parts[0] == ".git":
            raise RepoMirrorFailure(f"Refusing to write {subdir!r} outside the clone of {self._slug}")
        return target

    def mirror(
        self,
        workspace_root: Path,
        identity: ReleaseIdentity,
        artifacts: ArtifactSet,
        project_tree: Path,
        *,
        commit_message: str,
        tag_message: str,
    ) -> MirrorResult:
        repo = workspace_root / CLONE_DIRNAME
        mirror_target = self._target(repo, self._mirror_dir)
        releases = self._target(repo, self._releases_dir)

        logger.info("Cloning %s", self._runner.redact(self._remote_url))
        self._git("clone", self._remote_url, CLONE_DIRNAME, cwd=workspace_root, step="git clone")

        self._git("config", "user.name", self._author_name, cwd=repo, step="git config")
        self._git("config", "user.email", self._author_email, cwd=repo, step="git config")

        branch = self._default_branch(repo)
        logger.info("Copying project into repo (branch: %s)", branch)
        self._checkout(repo, branch)
        try:
            copy_tree(project_tree, mirror_target, exclude=self._exclude)
            releases.mkdir(parents=True, exist_ok=True)
            for path in artifacts.files():
                if path.is_file():
                    shutil.copy2(path, releases / path.name)
        except OSError as e:
            raise RepoMirrorFailure(f"copy failed for {self._slug}: {e}") from e

        logger.info("Committing code and artifacts")
        self._git("add", "-A", "--", self._mirror_dir, self._releases_dir, cwd=repo, step="git add")
        pushed = False
        if self._has_staged_changes(repo):
            self._git("commit", "-m", commit_message, cwd=repo, step="git commit")
            self._git("push", "origin", branch, cwd=repo, step=f"git push {branch}")
            pushed = True
        else:
            logger.info("No file changes to commit. Continuing.")

        logger.info("Tagging %s", identity.tag)
        self._git("tag", "-a", identity.tag, "-m", tag_message, cwd=repo, step=f"git tag {identity.tag}")
        self._git(
            "push",
            "origin",
            f"refs/tags/{identity.tag}",
            cwd=repo,
            step=f"git push tag {identity.tag}",
        )
        return MirrorResult(branch=branch, pushed=pushed)
