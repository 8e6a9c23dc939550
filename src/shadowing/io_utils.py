"""
Subprocess and file helpers.
"""

import json
import logging
import subprocess
from pathlib import Path

from .models import Segment

logger = logging.getLogger("shadowing")


def run(cmd: list[str], *, check: bool = True, timeout: float | None = None) -> str:
    """Run a command and return its combined stdout/stderr."""
    logger.debug("Running: %s", " ".join(map(str, cmd)))
    proc = subprocess.run(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        check=False,
        timeout=timeout,
    )
    if proc.returncode != 0 and check:
        logger.error("Command failed with code %d: %s", proc.returncode, proc.stdout)
        raise RuntimeError(f"Command failed with code {proc.returncode}: {proc.stdout.strip()[-500:]}")
    return proc.stdout


def ensure_dir(path: str) -> None:
    """Ensure directory exists."""
    if path:
        Path(path).mkdir(parents=True, exist_ok=True)


def write_segments_json(segments: list[Segment], path: str) -> None:
    parent = str(Path(path).parent)
    ensure_dir(parent)
    data = [s.to_dict() for s in segments]
    Path(path).write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def read_segments_json(path: str) -> list[Segment]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("segments", [])
    return [Segment.from_dict(item) for item in data]
