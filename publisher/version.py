"""
version.py

Responsibility: Derive the release identity (tag + display name) from app metadata.

Reading metadata never fails the run: a missing, unreadable or incomplete
source falls back to version "1.0" and build "1".
"""

from __future__ import annotations

import json
import logging
import plistlib
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import yaml

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.0"
DEFAULT_BUILD_NUMBER = "1"
VERSION_KEY = "CFBundleShortVersionString"
BUILD_KEY = "CFBundleVersion"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


@dataclass(frozen=True)
class ReleaseIdentity:
    version: str
    build_number: str
    timestamp: str
    tag: str
    display_name: str


@dataclass(frozen=True)
class Overrides:
    tag: str | None = None
    name: str | None = None


def _load_metadata(path: Path) -> dict[str, Any]:
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    elif suffix == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
    else:
        with path.open("rb") as fh:
            data = plistlib.load(fh)
    return data if isinstance(data, dict) else {}


def read_metadata(path: str | Path) -> tuple[str, str]:
    """
    Return (version, build_number) from an Info.plist or an equivalent YAML/JSON file.
    """
    p = Path(path)
    try:
        data = _load_metadata(p)
    except Exception as e:  # noqa: BLE001 - plistlib also raises AttributeError/TypeError on bad values
        logger.warning("Could not read metadata from %s (%s); using defaults", p, e)
        data = {}

    def pick(key: str, default: str) -> str:
        value = data.get(key)
        if value is None or isinstance(value, (dict, list)):
            return default
        text = str(value).strip()
        return text or default

    return pick(VERSION_KEY, DEFAULT_VERSION), pick(BUILD_KEY, DEFAULT_BUILD_NUMBER)


def resolve(
    version: str,
    build_number: str,
    *,
    app_name: str,
    timestamp: str,
    overrides: Overrides | None = None,
) -> ReleaseIdentity:
    """
    Build a `ReleaseIdentity`. Overrides are used verbatim when set.
    """
    ov = overrides or Overrides()
    tag = ov.tag or f"v{version}-b{build_number}-{timestamp}"
    name = ov.name or f"{app_name} {version} (build {build_number})"
    return ReleaseIdentity(
        version=version,
        build_number=build_number,
        timestamp=timestamp,
        tag=tag,
        display_name=name,
    )


class VersionResolver:
    def __init__(self, app_name: str, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self._app_name = app_name
        self._clock = clock

    def resolve(self, metadata_source: str | Path, overrides: Overrides | None = None) -> ReleaseIdentity:
        version, build_number = read_metadata(metadata_source)
        return resolve(
            version,
            build_number,
            app_name=self._app_name,
            timestamp=self._clock().strftime(TIMESTAMP_FORMAT),
            overrides=overrides,
        )
