"""Per-run record written next to the render outputs."""

import json
import os
import platform
import sys
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

import importlib.metadata as importlib_metadata

_PACKAGES = ("buddhabrot", "numpy", "Pillow", "tqdm")

@dataclass(frozen=True)
class RunManifest:
    command: str
    started_utc: str
    finished_utc: str
    elapsed_s: float
    config: Dict[str, Any]
    accumulation: Optional[Dict[str, Any]]
    outputs: Dict[str, Optional[str]]
    environment: Dict[str, Any] = field(default_factory=dict)

def _utc_iso(ts: float) -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(ts))

def _pkg_versions() -> Dict[str, str]:
    out = {}
    for name in _PACKAGES:
        try:
            out[name] = importlib_metadata.version(name)
        except importlib_metadata.PackageNotFoundError:
            continue
    return out

def environment(git_commit: Optional[str]) -> Dict[str, Any]:
    return {
        "python": sys.version.split()[0],
        "packages": _pkg_versions(),
        "platform": platform.platform(),
        "cpu_count": os.cpu_count(),
        "git_commit": git_commit,
    }

def build_manifest(
    *,
    command: str,
    config: Dict[str, Any],
    started: float,
    accumulation: Optional[Dict[str, Any]] = None,
    outputs: Optional[Dict[str, Optional[str]]] = None,
    git_commit: Optional[str] = None,
) -> RunManifest:
    """``accumulation`` holds the sampling totals; it is None when only composing a snapshot."""
    finished = time.time()
    if accumulation is not None:
        budget = config.get("samples") if config.get("sampling") == "random" else None
        accumulation = dict(accumulation, budget=budget)
    return RunManifest(
        command=command,
        started_utc=_utc_iso(started),
        finished_utc=_utc_iso(finished),
        elapsed_s=round(finished - started, 3),
        config=config,
        accumulation=accumulation,
        outputs=dict(outputs or {}),
        environment=environment(git_commit),
    )

def write_manifest(path: str, manifest: RunManifest) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(asdict(manifest), f, indent=2, sort_keys=True)

def read_manifest(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
