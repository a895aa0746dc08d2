"""
pipeline.py

Responsibility: Sequence one publish run.

Stages, strictly in order, each consuming the previous stage's output:
1) resolve the release identity
2) ensure the artifacts exist
3) mirror the project + artifacts into the target repo and push the tag
4) create-or-fetch the GitHub release and upload the artifacts

The first fatal error stops the run; nothing after it is attempted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from publisher.artifacts import ArtifactLocator, BuildInvoker, script_build_invoker
from publisher.config import PublishConfig
from publisher.github_client import GitHubClient
from publisher.mirror import MirrorResult, RepoMirror, scratch_workspace
from publisher.release import ReleasePublisher
from publisher.shell import Runner
from publisher.templates import render_release_texts
from publisher.version import Overrides, ReleaseIdentity, VersionResolver

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    identity: ReleaseIdentity
    repo_url: str
    mirror: MirrorResult
    release_id: int
    release_url: str = ""
    uploaded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def summary_lines(self) -> list[str]:
        lines = ["Publish complete.", f"Repo: {self.repo_url}"]
        if self.release_url:
            lines.append(f"Release: {self.release_url}")
        if self.uploaded:
            lines.append(f"Uploaded: {', '.join(self.uploaded)}")
        if self.failed:
            lines.append(f"Failed uploads: {', '.join(self.failed)}")
        return lines


class Pipeline:
    """
    One publish run built from a `PublishConfig`.

    Collaborators default to the real implementations; tests pass fakes.
    """

    def __init__(
        self,
        config: PublishConfig,
        *,
        github: GitHubClient | None = None,
        mirror: RepoMirror | None = None,
        build_invoker: BuildInvoker | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config
        self._github = github
        self._mirror = mirror
        self._build_invoker = build_invoker
        self._clock = clock

    def _client(self) -> GitHubClient:
        if self._github is None:
            self._github = GitHubClient(
                self.config.token,
                self.config.repo_slug,
                api_base=self.config.api_base,
                timeout=self.config.timeouts.api,
                upload_timeout=self.config.timeouts.upload,
            )
        return self._github

    def _repo_mirror(self) -> RepoMirror:
        if self._mirror is None:
            cfg = self.config
            self._mirror = RepoMirror(
                cfg.remote_url(),
                runner=Runner(secrets=(cfg.token,), env={"GIT_TERMINAL_PROMPT": "0"}),
                repo_slug=cfg.repo_slug,
                author_name=cfg.author_name,
                author_email=cfg.author_email,
                mirror_dir=cfg.mirror_subdir,
                releases_dir=cfg.releases_dir,
                exclude=cfg.exclude,
            )
        return self._mirror

    def _builder(self) -> BuildInvoker:
        if self._build_invoker is None:
            self._build_invoker = script_build_invoker(
                self.config.build_command,
                cwd=self.config.project_dir,
                timeout=self.config.timeouts.build,
            )
        return self._build_invoker

    def run(self) -> PublishResult:
        cfg = self.config

        logger.info("Resolving release identity from %s", cfg.metadata)
        identity = VersionResolver(cfg.app_name, clock=self._clock).resolve(
            cfg.metadata,
            Overrides(tag=cfg.tag_override, name=cfg.name_override),
        )
        logger.info("Release %s (%s)", identity.tag, identity.display_name)

        logger.info("Ensuring build artifacts exist")
        artifacts = ArtifactLocator(cfg.dist, cfg.app_name).ensure(self._builder())

        texts = render_release_texts(
            {
                "app_name": cfg.app_name,
                "version": identity.version,
                "build_number": identity.build_number,
                "tag": identity.tag,
                "name": identity.display_name,
                "assets": [p.name for p in artifacts.files()],
            },
            cfg.templates,
        )

        logger.info("Preparing temporary workspace")
        with scratch_workspace() as workspace:
            mirrored = self._repo_mirror().mirror(
                workspace,
                identity,
                artifacts,
                cfg.project_dir,
                commit_message=texts.commit_message,
                tag_message=texts.tag_message,
            )
            outcome = ReleasePublisher(self._client()).publish(identity, artifacts, body=texts.release_body)

        return PublishResult(
            identity=identity,
            repo_url=cfg.repo_url,
            mirror=mirrored,
            release_id=outcome.release.id,
            release_url=outcome.release.html_url,
            uploaded=outcome.uploaded,
            failed=[f.asset_name for f in outcome.failed],
        )
