"""
errors.py

Responsibility: The error taxonomy shared by every pipeline stage.

Fatal errors abort the remaining stages and surface through `cli.main()` as a
non-zero exit. `AssetUploadFailure` is the one recoverable kind: the release
publisher logs it and moves on to the next asset.
"""

from __future__ import annotations


class PublishError(RuntimeError):
    pass


class ConfigMissing(PublishError):
    """A required setting (the auth token) was not provided."""


class ConfigError(PublishError):
    """A setting was provided but is malformed."""


class ArtifactMissing(PublishError):
    pass


class RepoMirrorFailure(PublishError):
    pass


class ReleaseUnresolvable(PublishError):
    pass


class AssetUploadFailure(PublishError):
    def __init__(self, asset_name: str, message: str) -> None:
        super().__init__(f"Upload of {asset_name} failed: {message}")
        self.asset_name = asset_name
