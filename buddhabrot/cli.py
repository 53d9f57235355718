from __future__ import annotations

import argparse
import logging
import os
import subprocess
import time
from typing import Optional

from buddhabrot.config import CURVES, ConfigError, load_config, normalise_config
from buddhabrot.engine.tonemap import compose
from buddhabrot.output.image_writer import write_image
from buddhabrot.output.snapshot import IncompatibleSnapshotError, load_snapshot, save_snapshot
from buddhabrot.pipeline import accumulate_run
from buddhabrot.util.logging_setup import get_logger, logging_session
from buddhabrot.util.manifest import build_manifest, write_manifest

def _git_commit() -> Optional[str]:
    try:
        r = subprocess.run(["git", "rev-parse", "HEAD"], capture_output=True, text=True, check=True)
        return r.stdout.strip()
    except (OSError, subprocess.CalledProcessError):
        return None

def _add_image_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("-o", "--output", type=str, default="buddhabrot.png", help="Output image (.png or .jpg).")
    p.add_argument("-r", "--rotate", action="store_true", help="Rotate the fractal to an upright position.")
    p.add_argument("--curve", type=str, default=None, choices=list(CURVES), help="Colour scaling function.")
    p.add_argument("-f", "--factor", type=float, default=None, help="Response curve steepness.")
    p.add_argument("--exposure", type=float, default=None, help="Over exposure (brightness gain).")

def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="buddhabrot", description="Buddhabrot renderer with reproducible runs.")
    p.add_argument("--config", type=str, default=None, help="Path to config JSON. If omitted, built-in defaults are used.")
    p.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG","INFO","WARNING","ERROR"], help="Log level.")
    p.add_argument("--log-file", type=str, default="render.log", help="Log file path (rotating). Set empty to disable file logging.")
    p.add_argument("--manifest", type=str, default=os.path.join("artifacts", "run.json"), help="Run manifest path. Set empty to skip.")
    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("render", help="Compute the visit histograms and write the image.")
    r.add_argument("--samples", type=int, default=None, help="Override the sample budget.")
    r.add_argument("--workers", type=int, default=None, help="Override the worker count.")
    r.add_argument("--seed", type=int, default=None, help="Seed for reproducible sampling.")
    r.add_argument("--resume", type=str, default=None, help="Snapshot to continue accumulating on.")
    r.add_argument("--save", type=str, default=None, help="Write a histogram snapshot after accumulation.")
    r.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    _add_image_options(r)

    pl = sub.add_parser("plot", help="Compose an image from a saved snapshot.")
    pl.add_argument("--snapshot", type=str, required=True, help="Histogram snapshot to load.")
    _add_image_options(pl)

    return p

def _run(args, cfg, log_queue, log_level: int, started: float) -> None:
    logger = get_logger()
    accumulation = None
    if args.cmd == "render":
        resumed = load_snapshot(args.resume, cfg.width, cfg.height) if args.resume else None
        histograms, summary = accumulate_run(cfg, histograms=resumed, log_queue=log_queue, log_level=log_level,
                                             progress=not args.no_progress)
        accumulation = dict(summary.as_dict(), resumed_from=args.resume)
        if args.save:
            save_snapshot(args.save, histograms)
    elif args.cmd == "plot":
        histograms = load_snapshot(args.snapshot, cfg.width, cfg.height).freeze()
    else:
        raise RuntimeError("Unknown command.")

    raster = compose(histograms, cfg)
    write_image(raster, args.output, rotate=args.rotate)

    if args.manifest:
        outputs = {
            "image": args.output,
            "snapshot": getattr(args, "save", None),
            "source_snapshot": getattr(args, "snapshot", None),
        }
        manifest = build_manifest(command=args.cmd, config=cfg.to_dict(), started=started,
                                  accumulation=accumulation, outputs=outputs, git_commit=_git_commit())
        write_manifest(args.manifest, manifest)
        logger.info("Run manifest written: %s", args.manifest)

def main(argv: Optional[list] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    log_file = args.log_file if args.log_file and args.log_file.strip() else None
    started = time.time()

    with logging_session(level=log_level, log_file=log_file) as log_queue:
        logger = get_logger()
        try:
            overrides = {"curve": args.curve, "factor": args.factor, "exposure": args.exposure}
            if args.cmd == "render":
                overrides.update(samples=args.samples, workers=args.workers, seed=args.seed)
            cfg = normalise_config(load_config(args.config), **overrides)
            _run(args, cfg, log_queue, log_level, started)
        except (ConfigError, IncompatibleSnapshotError) as e:
            logger.error("%s", e)
            return 2
    return 0
