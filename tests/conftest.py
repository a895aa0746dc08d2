from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path
from typing import Any

import pytest

from publisher.github_client import GitHubError, RemoteRelease

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


class FakeResponse:
    def __init__(self, status_code: int, payload: Any = None, text: str | None = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; replies from a queue and records calls."""

    def __init__(self, responses: list[FakeResponse]) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.responses.pop(0)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        data = kwargs.get("data")
        body = data.read() if hasattr(data, "read") else data
        self.calls.append({"method": "POST", "url": url, **kwargs, "body": body})
        return self.responses.pop(0)


class FakeGitHub:
    """GitHubClient double driven by flags instead of HTTP."""

    repo_slug = "owner/name"

    def __init__(
        self,
        *,
        create_status: int | None = None,
        existing: RemoteRelease | None = None,
        failing_assets: tuple[str, ...] = (),
    ) -> None:
        self.create_status = create_status
        self.existing = existing
        self.failing_assets = failing_assets
        self.calls: list[tuple[str, Any]] = []

    def create_release(self, *, tag: str, name: str, body: str) -> RemoteRelease:
        self.calls.append(("create", tag))
        if self.create_status is not None:
            raise GitHubError(
                f"GitHub API error {self.create_status} POST /repos/owner/name/releases: Validation Failed",
                status_code=self.create_status,
                body='{"message": "Validation Failed"}',
            )
        return RemoteRelease(id=1, tag_name=tag, html_url=f"https://github.com/owner/name/releases/tag/{tag}")

    def get_release_by_tag(self, tag: str) -> RemoteRelease:
        self.calls.append(("fetch", tag))
        if self.existing is None:
            raise GitHubError(
                "GitHub API error 404 GET /repos/owner/name/releases/tags/x: Not Found",
                status_code=404,
                body='{"message": "Not Found"}',
            )
        return self.existing

    def upload_asset(self, release: RemoteRelease, path: Path) -> dict[str, Any]:
        self.calls.append(("upload", (release.id, path.name)))
        if path.name in self.failing_assets:
            raise GitHubError(f"GitHub API error 500 POST assets?name={path.name}: boom", status_code=500)
        return {"name": path.name}


def git(*args: str, cwd: Path) -> str:
    proc = subprocess.run(["git", *args], cwd=str(cwd), check=True, capture_output=True, text=True)
    return proc.stdout


@pytest.fixture
def bare_remote(tmp_path: Path) -> Path:
    """A bare repository with one commit on `main`, usable as a clone URL."""
    remote = tmp_path / "remote.git"
    remote.mkdir()
    git("init", "--bare", cwd=remote)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=remote)

    seed = tmp_path / "seed"
    git("clone", str(remote), str(seed), cwd=tmp_path)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=seed)
    (seed / "README.md").write_text("target repo\n", encoding="utf-8")
    git("add", "README.md", cwd=seed)
    git("-c", "user.name=seed", "-c", "user.email=seed@example.invalid", "commit", "-m", "seed", cwd=seed)
    git("push", "origin", "main", cwd=seed)
    return remote


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A minimal project tree with Info.plist, a build script and a built DMG + .app."""
    root = tmp_path / "NativeMacBrowser"
    (root / "Sources").mkdir(parents=True)
    (root / "Sources" / "main.swift").write_text("print(\"hi\")\n", encoding="utf-8")
    (root / "build.sh").write_text("#!/bin/bash\nexit 0\n", encoding="utf-8")
    (root / "Info.plist").write_text(
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">\n'
        '<plist version="1.0"><dict>'
        "<key>CFBundleShortVersionString</key><string>2.3</string>"
        "<key>CFBundleVersion</key><string>7</string>"
        "</dict></plist>\n",
        encoding="utf-8",
    )
    dist = root / "dist"
    (dist / "NativeMacBrowser.app" / "Contents" / "MacOS").mkdir(parents=True)
    (dist / "NativeMacBrowser.app" / "Contents" / "MacOS" / "NativeMacBrowser").write_bytes(b"\x7fELF")
    (dist / "NativeMacBrowser.dmg").write_bytes(b"dmg-bytes")
    return root
