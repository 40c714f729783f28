"""CLI I/O helpers for rendering and atomic output writing."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Literal

import yaml  # type: ignore[import-untyped]

OutputFormat = Literal["yaml", "json"]


def render_payload(payload: dict[str, Any], output_format: OutputFormat) -> str:
    """Serialize a nodeinfo or inventory mapping for output."""

    if output_format == "json":
        return json.dumps(payload, ensure_ascii=False, indent=2) + "\n"
    return yaml.safe_dump(
        payload, allow_unicode=True, sort_keys=False, default_flow_style=False
    )


def write_text_atomic(path: Path, text: str) -> None:
    """Write text via a temporary file in the target directory + replace."""

    path.parent.mkdir(parents=True, exist_ok=True)

    fd, raw_tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path = Path(raw_tmp_path)

    try:
        tmp_path.write_text(text, encoding="utf-8")
        tmp_path.replace(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise
