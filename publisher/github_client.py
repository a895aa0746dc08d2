"""
github_client.py

Responsibility: Isolate all direct GitHub REST API interaction.

This module must be the only place that:
- Constructs GitHub REST endpoints (api.github.com and uploads.github.com)
- Sends HTTP requests
- Decodes GitHub API responses / error payloads into typed values

Release creation policy (create vs. fetch fallback) lives in `release.py`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import quote

import requests

from publisher.errors import PublishError

UPLOADS_BASE = "https://uploads.github.com"


class GitHubError(PublishError):
    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ReleaseDecodeError(GitHubError):
    pass


@dataclass(frozen=True)
class RemoteRelease:
    id: int
    tag_name: str
    html_url: str = ""
    upload_url: str = ""

    @classmethod
    def from_payload(cls, data: Any) -> RemoteRelease:
        """
        Decode a release object. A payload without an integer `id` is rejected.
        """
        if not isinstance(data, dict):
            raise ReleaseDecodeError(f"Expected a release object, got {type(data).__name__}")
        release_id = data.get("id")
        if isinstance(release_id, bool) or not isinstance(release_id, int):
            raise ReleaseDecodeError(f"Release payload has no valid id: {data.get('message', data)}")
        return cls(
            id=release_id,
            tag_name=str(data.get("tag_name") or ""),
            html_url=str(data.get("html_url") or ""),
            upload_url=str(data.get("upload_url") or ""),
        )


class GitHubClient:
    def __init__(
        self,
        token: str,
        repo_slug: str,
        *,
        api_base: str = "https://api.github.com",
        session: requests.Session | None = None,
        timeout: float = 30.0,
        upload_timeout: float = 300.0,
    ) -> None:
        if not token.strip():
            raise GitHubError("GitHub token is required.")
        self._token = token
        self._slug = repo_slug
        self._api_base = api_base.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout
        self._upload_timeout = upload_timeout

    @property
    def repo_slug(self) -> str:
        return self._slug

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "release-publisher",
        }

    def _raise_for_status(self, r: requests.Response, method: str, path: str) -> None:
        if r.status_code < 400:
            return
        try:
            payload = r.json()
        except ValueError:
            payload = {"message": r.text}
        message = payload.get("message", payload) if isinstance(payload, dict) else payload
        raise GitHubError(
            f"GitHub API error {r.status_code} {method} {path}: {message}",
            status_code=r.status_code,
            body=r.text,
        )

    def _request(self, method: str, path: str, *, json_body: dict[str, Any] | None = None) -> Any:
        url = f"{self._api_base}{path}"
        try:
            r = self._session.request(method, url, headers=self._headers(), json=json_body, timeout=self._timeout)
        except requests.RequestException as e:
            raise GitHubError(f"GitHub API request failed {method} {path}: {e}") from e
        self._raise_for_status(r, method, path)
        if r.status_code == 204:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise ReleaseDecodeError(f"GitHub API returned non-JSON for {method} {path}", body=r.text) from e

    def create_release(self, *, tag: str, name: str, body: str) -> RemoteRelease:
        """
        Create a published (non-draft, non-prerelease) release for `tag`.
        """
        data = self._request(
            "POST",
            f"/repos/{self._slug}/releases",
            json_body={
                "tag_name": tag,
                "name": name,
                "body": body,
                "draft": False,
                "prerelease": False,
            },
        )
        return RemoteRelease.from_payload(data)

    def get_release_by_tag(self, tag: str) -> RemoteRelease:
        data = self._request("GET", f"/repos/{self._slug}/releases/tags/{quote(tag, safe='')}")
        return RemoteRelease.from_payload(data)

    def _upload_endpoint(self, release: RemoteRelease) -> str:
        if release.upload_url:
            # Hypermedia form: ".../assets{?name,label}"
            return release.upload_url.split("{", 1)[0]
        return f"{UPLOADS_BASE}/repos/{self._slug}/releases/{release.id}/assets"

    def upload_asset(self, release: RemoteRelease, path: Path) -> dict[str, Any]:
        """
        Upload `path` as a release asset named after the file.
        """
        url = self._upload_endpoint(release)
        headers = {**self._headers(), "Content-Type": "application/octet-stream"}
        label = f"assets?name={path.name}"
        try:
            with path.open("rb") as fh:
                r = self._session.post(
                    url,
                    headers=headers,
                    params={"name": path.name},
                    data=fh,
                    timeout=self._upload_timeout,
                )
        except (OSError, requests.RequestException) as e:
            raise GitHubError(f"Upload request failed for {path.name}: {e}") from e
        self._raise_for_status(r, "POST", label)
        try:
            return r.json()
        except ValueError:
            return {}
