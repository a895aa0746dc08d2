"""
release.py

Responsibility: Acquire the GitHub release for a tag and attach the artifacts.

Acquisition is an idempotent upsert:
1) try to create the release
2) if creation fails (typically 422, the tag already has a release from an
   earlier interrupted run), fetch the existing release by tag
3) if that fails too, raise `ReleaseUnresolvable`

Existing releases are never modified. Asset uploads are independent: a failed
upload is logged and skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from publisher.artifacts import ArtifactSet
from publisher.errors import AssetUploadFailure, ReleaseUnresolvable
from publisher.github_client import GitHubClient, GitHubError, RemoteRelease
from publisher.version import ReleaseIdentity

logger = logging.getLogger(__name__)


@dataclass
class PublishOutcome:
    release: RemoteRelease
    created: bool
    uploaded: list[str] = field(default_factory=list)
    failed: list[AssetUploadFailure] = field(default_factory=list)


class ReleasePublisher:
    def __init__(self, client: GitHubClient) -> None:
        self._client = client

    def acquire(self, identity: ReleaseIdentity, body: str) -> tuple[RemoteRelease, bool]:
        """
        Return (release, created). `created` is False when an existing release was reused.
        """
        logger.info("Creating GitHub release")
        try:
            return self._client.create_release(tag=identity.tag, name=identity.display_name, body=body), True
        except GitHubError as create_err:
            logger.warning(
                "Release creation failed (%s), attempting to fetch existing release by tag %s",
                create_err,
                identity.tag,
            )
            last = create_err

        try:
            return self._client.get_release_by_tag(identity.tag), False
        except GitHubError as fetch_err:
            body_text = fetch_err.body or last.body
            raise ReleaseUnresolvable(
                f"Could not get a release ID for tag {identity.tag} in {self._client.repo_slug}.\n"
                f"Create: {last}\nFetch: {fetch_err}\nResponse was:\n{body_text}"
            ) from fetch_err

    def upload(self, release: RemoteRelease, paths: list[Path]) -> tuple[list[str], list[AssetUploadFailure]]:
        logger.info("Uploading assets to release %s", release.id)
        uploaded: list[str] = []
        failed: list[AssetUploadFailure] = []
        for path in paths:
            if not path.is_file():
                continue
            logger.info("Uploading %s ...", path.name)
            try:
                self._client.upload_asset(release, path)
            except GitHubError as e:
                failure = AssetUploadFailure(path.name, str(e))
                logger.warning("%s", failure)
                failed.append(failure)
                continue
            uploaded.append(path.name)
        return uploaded, failed

    def publish(self, identity: ReleaseIdentity, artifacts: ArtifactSet, *, body: str) -> PublishOutcome:
        release, created = self.acquire(identity, body)
        uploaded, failed = self.upload(release, artifacts.files())
        return PublishOutcome(release=release, created=created, uploaded=uploaded, failed=failed)
