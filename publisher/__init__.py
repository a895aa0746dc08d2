"""
publisher package

This package publishes the NativeMacBrowser build as a tagged GitHub release.

Key responsibilities are split across modules:
- `config.py`: resolve flags, environment and `publish.yaml` into one `PublishConfig`
- `version.py`: read app metadata and derive the release tag / display name
- `artifacts.py`: ensure the DMG exists (building once if needed) and zip the .app
- `mirror.py`: clone the target repo, copy the project in, commit, tag, push
- `github_client.py`: isolated GitHub REST API interactions (releases / assets)
- `release.py`: create-or-fetch the release and upload assets
- `templates.py`: Jinja2 texts for the commit, the tag and the release body
- `pipeline.py`: stage sequencing for one run
- `cli.py`: CLI entrypoint (parse -> configure -> run -> summarize)
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
