"""handsigns.core.artifacts

CONTRACT: inline
ROLE: Create per-run artifact directories and write run metadata.

OUTPUTS:
  - artifacts/<run_id>/logs
  - artifacts/<run_id>/stills
  - run_meta.json
  - config_effective.yaml

CONFIG KEYS:
  - runtime.run_id: optional explicit run id
  - runtime.artifacts.dir: base artifacts directory
  - runtime.artifacts.retention.max_runs: keep last N runs
"""

from __future__ import annotations

import json
import platform
import shutil
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from handsigns.core.clock import now_ns


def create_run_dir(base_dir: str, run_id: Optional[str] = None, max_runs: int = 10) -> Path:
    """Create and return the run artifact directory."""

    base_path = Path(base_dir)
    base_path.mkdir(parents=True, exist_ok=True)
    run_id_final = (run_id or "").strip() or _default_run_id()
    run_path = base_path / run_id_final
    if run_path.exists():
        suffix = 2
        while (base_path / f"{run_id_final}_{suffix:02d}").exists():
            suffix += 1
        run_path = base_path / f"{run_id_final}_{suffix:02d}"

    (run_path / "logs").mkdir(parents=True, exist_ok=True)
    (run_path / "stills").mkdir(parents=True, exist_ok=True)

    apply_retention(base_path, max_runs=max_runs, keep_dir=run_path)
    return run_path


def apply_retention(base_dir: Path, max_runs: int, keep_dir: Optional[Path] = None) -> None:
    if max_runs <= 0:
        return
    keep_resolved = keep_dir.resolve() if keep_dir is not None else None
    run_dirs = [p for p in base_dir.iterdir() if p.is_dir()]
    run_dirs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    for old in run_dirs[max_runs:]:
        if keep_resolved is not None and old.resolve() == keep_resolved:
            continue
        shutil.rmtree(old, ignore_errors=True)


def write_run_metadata(run_dir: Path, config: Dict[str, Any]) -> None:
    """Write run_meta.json and config_effective.yaml."""

    meta = {
        "t_start_ns": now_ns(),
        "platform": {
            "python": sys.version,
            "machine": platform.machine(),
            "system": platform.system(),
        },
        "versions": _versions(),
        "config": config,
    }
    with open(run_dir / "run_meta.json", "w", encoding="utf-8") as handle:
        json.dump(meta, handle, indent=2)

    with open(run_dir / "config_effective.yaml", "w", encoding="utf-8") as handle:
        yaml.safe_dump(config, handle, sort_keys=False)


def _default_run_id() -> str:
    return time.strftime("%Y%m%d_%H%M%S")


def _versions() -> Dict[str, Optional[str]]:
    from handsigns.version import __version__

    versions: Dict[str, Optional[str]] = {"handsigns": str(__version__)}
    try:
        import numpy

        versions["numpy"] = str(numpy.__version__)
    except ImportError:
        versions["numpy"] = None
    try:
        import cv2

        versions["opencv"] = str(getattr(cv2, "__version__", None))
    except ImportError:
        versions["opencv"] = None
    return versions
