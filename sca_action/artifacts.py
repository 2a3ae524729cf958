from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Iterable

ARTIFACT_NAME = "Veracode Agent Based SCA Results"

logger = logging.getLogger(__name__)


def _timestamp_compact() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def _slug(s: str) -> str:
    s = s.strip().replace(" ", "-")
    out = []
    for ch in s:
        if ch.isalnum() or ch in "._-":
            out.append(ch)
        else:
            out.append("_")
    return "".join(out) or "results"


def archive_results(
    files: Iterable[str | Path],
    results_dir: Path,
    *,
    name: str = ARTIFACT_NAME,
    root: Path | None = None,
) -> list[Path]:
    """归档结果文件到 results/<name>/<timestamp>/ 下。

    缺失或无法复制的文件只记录日志并跳过（与 continueOnError 一致）。
    """
    root = (root or Path.cwd()).resolve()
    out_dir = results_dir.resolve() / _slug(name) / _timestamp_compact()

    archived: list[Path] = []
    for f in files:
        src = Path(f)
        if not src.is_absolute():
            src = root / src
        if not src.is_file():
            logger.warning("Artifact file not found, skipping: %s", src)
            continue
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
            dst = out_dir / src.name
            shutil.copy2(src, dst)
        except OSError as e:
            logger.error("Could not archive %s: %s", src, e)
            continue
        archived.append(dst)

    if archived:
        logger.info("Stored %d result file(s) as artifact in %s", len(archived), out_dir)
    return archived
