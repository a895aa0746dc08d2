"""
templates.py

Responsibility: Render the human-readable texts attached to a release.

Three texts are rendered with Jinja2 from the release context:
- `commit_message`: message of the mirror commit
- `tag_message`: annotation of the release tag
- `release_body`: body of the GitHub release

Defaults can be replaced per project through the `templates:` section of
`publish.yaml`. Undefined variables are errors, not empty strings.

This module does NOT know about git, GitHub, or the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from jinja2 import Environment, StrictUndefined, TemplateError

from publisher.errors import PublishError

DEFAULT_TEMPLATES: dict[str, str] = {
    "commit_message": "Add {{ app_name }} app, build scripts, and release artifacts ({{ tag }})",
    "tag_message": "Release {{ name }}",
    "release_body": (
        "Automated release for {{ app_name }} {{ version }} (build {{ build_number }}).\n"
        "\n"
        "{% if assets %}Assets:\n"
        "{% for asset in assets %}- {{ asset }}\n{% endfor %}"
        "{% else %}No assets attached.\n{% endif %}"
    ),
}


class RenderError(PublishError):
    pass


@dataclass(frozen=True)
class ReleaseTexts:
    commit_message: str
    tag_message: str
    release_body: str


def _environment() -> Environment:
    return Environment(
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=False,
    )


def render_text(name: str, source: str, context: Mapping[str, Any]) -> str:
    try:
        return _environment().from_string(source).render(**context).strip()
    except TemplateError as e:
        raise RenderError(f"Failed rendering {name} template: {e}") from e


def render_release_texts(context: Mapping[str, Any], overrides: Mapping[str, str] | None = None) -> ReleaseTexts:
    """
    Render all three texts, preferring `overrides` over the defaults.

    Expected context keys: app_name, version, build_number, tag, name, assets.
    """
    sources = {**DEFAULT_TEMPLATES, **(overrides or {})}
    rendered = {key: render_text(key, sources[key], context) for key in DEFAULT_TEMPLATES}
    return ReleaseTexts(**rendered)
