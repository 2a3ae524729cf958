from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

DEFAULT_API_URL = "https://api.github.com"

logger = logging.getLogger(__name__)


def is_windows_runner(runner_os: str | None) -> bool:
    return (runner_os or "").lower() == "windows"


def _load_event(event_path: str | None) -> dict[str, Any]:
    if not event_path:
        return {}
    try:
        data = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Could not read event payload %s: %s", event_path, e)
        return {}
    return data if isinstance(data, dict) else {}


@dataclass(frozen=True)
class CIContext:
    """Everything the action needs from the runner environment."""

    runner_os: str = ""
    ref: str = ""
    repository: str = ""
    api_url: str = DEFAULT_API_URL
    pr_number: int | None = None
    output_file: Path | None = None
    workspace: Path | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> CIContext:
        event = _load_event(environ.get("GITHUB_EVENT_PATH"))
        pr = event.get("pull_request") or {}
        number = pr.get("number") if isinstance(pr, dict) else None
        output_file = environ.get("GITHUB_OUTPUT")
        workspace = environ.get("GITHUB_WORKSPACE")
        return cls(
            runner_os=environ.get("RUNNER_OS", ""),
            ref=environ.get("GITHUB_REF", ""),
            repository=environ.get("GITHUB_REPOSITORY", ""),
            api_url=environ.get("GITHUB_API_URL") or DEFAULT_API_URL,
            pr_number=number if isinstance(number, int) else None,
            output_file=Path(output_file) if output_file else None,
            workspace=Path(workspace) if workspace else None,
        )

    @property
    def is_windows(self) -> bool:
        return is_windows_runner(self.runner_os)

    @property
    def is_pull_request(self) -> bool:
        # refs/pull/<n>/merge
        return self.ref.find("pull") >= 1

    @property
    def owner_repo(self) -> tuple[str, str]:
        owner, _, repo = self.repository.partition("/")
        if not owner or not repo:
            raise ValueError(f"GITHUB_REPOSITORY 格式应为 owner/repo: {self.repository!r}")
        return owner, repo
