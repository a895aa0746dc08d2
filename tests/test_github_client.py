from __future__ import annotations

from pathlib import Path

import pytest
import requests

from conftest import FakeResponse, FakeSession
from publisher.github_client import GitHubClient, GitHubError, ReleaseDecodeError, RemoteRelease

RELEASE = {
    "id": 42,
    "tag_name": "v1",
    "html_url": "https://github.com/o/r/releases/tag/v1",
    "upload_url": "https://uploads.github.com/repos/o/r/releases/42/assets{?name,label}",
}


def _client(session: FakeSession) -> GitHubClient:
    return GitHubClient("tok", "o/r", session=session)  # type: ignore[arg-type]


def test_requires_token() -> None:
    with pytest.raises(GitHubError):
        GitHubClient("  ", "o/r")


def test_create_release_sends_policy_fields() -> None:
    session = FakeSession([FakeResponse(201, RELEASE)])

    release = _client(session).create_release(tag="v1", name="App 1", body="notes")

    assert release == RemoteRelease(
        id=42,
        tag_name="v1",
        html_url=RELEASE["html_url"],
        upload_url=RELEASE["upload_url"],
    )
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://api.github.com/repos/o/r/releases"
    assert call["json"] == {"tag_name": "v1", "name": "App 1", "body": "notes", "draft": False, "prerelease": False}
    assert call["headers"]["Authorization"] == "Bearer tok"
    assert call["headers"]["Accept"] == "application/vnd.github+json"


def test_error_status_carries_code_and_body() -> None:
    payload = {"message": "Validation Failed", "errors": [{"code": "already_exists"}]}
    session = FakeSession([FakeResponse(422, payload)])

    with pytest.raises(GitHubError) as exc:
        _client(session).create_release(tag="v1", name="n", body="b")

    assert exc.value.status_code == 422
    assert "already_exists" in exc.value.body
    assert "Validation Failed" in str(exc.value)


def test_non_json_error_body() -> None:
    session = FakeSession([FakeResponse(502, None, text="<html>Bad Gateway</html>")])

    with pytest.raises(GitHubError, match="Bad Gateway"):
        _client(session).get_release_by_tag("v1")


def test_get_release_by_tag_quotes_tag() -> None:
    session = FakeSession([FakeResponse(200, {**RELEASE, "tag_name": "a/b"})])

    _client(session).get_release_by_tag("a/b")

    assert session.calls[0]["url"] == "https://api.github.com/repos/o/r/releases/tags/a%2Fb"
    assert session.calls[0]["method"] == "GET"


@pytest.mark.parametrize("payload", [{}, {"id": "42"}, {"id": True}, [RELEASE]])
def test_success_without_valid_id_is_a_decode_error(payload: object) -> None:
    session = FakeSession([FakeResponse(200, payload)])

    with pytest.raises(ReleaseDecodeError):
        _client(session).get_release_by_tag("v1")


def test_transport_error_is_wrapped() -> None:
    class Exploding(FakeSession):
        def request(self, method: str, url: str, **kwargs: object) -> FakeResponse:
            raise requests.ConnectionError("connection reset")

    with pytest.raises(GitHubError, match="connection reset"):
        _client(Exploding([])).create_release(tag="v1", name="n", body="b")


def test_upload_posts_raw_bytes_to_hypermedia_url(tmp_path: Path) -> None:
    asset = tmp_path / "App.dmg"
    asset.write_bytes(b"\x00\x01binary")
    session = FakeSession([FakeResponse(201, {"name": "App.dmg"})])

    _client(session).upload_asset(RemoteRelease.from_payload(RELEASE), asset)

    call = session.calls[0]
    assert call["url"] == "https://uploads.github.com/repos/o/r/releases/42/assets"
    assert call["params"] == {"name": "App.dmg"}
    assert call["headers"]["Content-Type"] == "application/octet-stream"
    assert call["body"] == b"\x00\x01binary"


def test_upload_without_upload_url_uses_release_id(tmp_path: Path) -> None:
    asset = tmp_path / "App.zip"
    asset.write_bytes(b"zip")
    session = FakeSession([FakeResponse(201, {})])

    _client(session).upload_asset(RemoteRelease(id=7, tag_name="v1"), asset)

    assert session.calls[0]["url"] == "https://uploads.github.com/repos/o/r/releases/7/assets"


def test_upload_failure_raises(tmp_path: Path) -> None:
    asset = tmp_path / "App.zip"
    asset.write_bytes(b"zip")
    session = FakeSession([FakeResponse(422, {"message": "already_exists"})])

    with pytest.raises(GitHubError) as exc:
        _client(session).upload_asset(RemoteRelease(id=7, tag_name="v1"), asset)
    assert exc.value.status_code == 422
