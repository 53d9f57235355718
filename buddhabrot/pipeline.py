from __future__ import annotations

import logging
import multiprocessing as mp
import threading
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from buddhabrot.config import RenderConfig
from buddhabrot.engine.evaluator import evaluate
from buddhabrot.engine.histogram import Histograms
from buddhabrot.engine.projector import PixelHit, project
from buddhabrot.engine.sampler import seed_stream, worker_seeds
from buddhabrot.engine.tonemap import compose
from buddhabrot.util.logging_setup import get_logger, logging_initialiser

_G: Dict[str, Any] = {}


@dataclass
class HitBatch:
    samples: int
    hits: List[PixelHit]


@dataclass(frozen=True)
class WorkerDone:
    index: int
    failed: bool = False


def _init_worker(cfg, hit_queue, log_queue, log_level):
    _G["cfg"] = cfg
    _G["hits"] = hit_queue
    logging_initialiser(log_queue, log_level)


def _sample_orbits(index: int, seed_seq: np.random.SeedSequence) -> Dict[str, int]:
    cfg: RenderConfig = _G["cfg"]
    hit_queue = _G["hits"]
    logger = get_logger()

    stats = {"index": index, "samples": 0, "escaped": 0, "hits": 0, "pixels": 0}
    batch = HitBatch(samples=0, hits=[])
    failed = True
    try:
        for c in seed_stream(cfg, index, seed_seq):
            orbit = evaluate(c, cfg.max_iter, cfg.bailout_sq)
            batch.samples += 1
            if orbit.escaped:
                stats["escaped"] += 1
                hit = project(orbit, cfg)
                if hit is not None:
                    batch.hits.append(hit)
                    stats["hits"] += 1
                    stats["pixels"] += len(hit)
            if batch.samples >= cfg.batch_size:
                stats["samples"] += batch.samples
                hit_queue.put(batch)
                batch = HitBatch(samples=0, hits=[])
        if batch.samples:
            stats["samples"] += batch.samples
            hit_queue.put(batch)
        failed = False
    finally:
        hit_queue.put(WorkerDone(index, failed))
    logger.debug("Worker %s done samples=%s escaped=%s hits=%s pixels=%s",
                 index, stats["samples"], stats["escaped"], stats["hits"], stats["pixels"])
    return stats


class Aggregator(threading.Thread):
    """Sole writer of the histograms; drains the hit queue until every worker is done."""

    def __init__(self, histograms: Histograms, hit_queue, workers: int, progress: Optional[tqdm] = None):
        super().__init__(name="buddhabrot-aggregator", daemon=True)
        self.histograms = histograms
        self.hit_queue = hit_queue
        self.workers = workers
        self.progress = progress
        self.batches = 0
        self.hits = 0
        self.finished: set = set()
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        while len(self.finished) < self.workers:
            msg = self.hit_queue.get()
            if isinstance(msg, WorkerDone):
                self.finished.add(msg.index)
                if msg.failed:
                    get_logger().warning("Worker %s stopped before finishing its share", msg.index)
                continue
            if self.error is None:
                try:
                    self.histograms.accumulate_all(msg.hits)
                except Exception as e:
                    # keep draining so blocked workers can finish
                    self.error = e
            self.batches += 1
            self.hits += len(msg.hits)
            if self.progress is not None:
                self.progress.update(msg.samples)

    def release(self) -> None:
        """Post completion markers for workers that can no longer send their own."""
        for i in range(self.workers):
            if i not in self.finished:
                self.hit_queue.put(WorkerDone(i, failed=True))


@dataclass(frozen=True)
class RunSummary:
    samples: int
    escaped: int
    hits: int
    pixels: int
    batches: int
    workers: int
    entropy: int
    maxima: List[int]

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


def accumulate_run(
    cfg: RenderConfig,
    *,
    histograms: Optional[Histograms] = None,
    log_queue=None,
    log_level: int = logging.INFO,
    progress: bool = False,
    mp_context=None,
) -> Tuple[Histograms, RunSummary]:
    """Sample, evaluate, project and accumulate ``cfg``'s budget.

    Returns the frozen histograms and per-run totals. When ``histograms`` is
    given the run adds to its counts; a frozen set is copied first.
    """
    logger = get_logger()
    cfg.validate()

    if histograms is None:
        histograms = Histograms(cfg.width, cfg.height)
    else:
        if (histograms.width, histograms.height) != (cfg.width, cfg.height):
            raise ValueError("histograms do not match the configured image size")
        cfg.check_headroom(int(histograms.maxima().max()))
        if histograms.frozen:
            histograms = histograms.copy()

    seed_root = np.random.SeedSequence(cfg.seed)
    seeds = worker_seeds(seed_root.entropy, cfg.workers)
    total = cfg.total_samples()
    logger.info("Compute start size=%sx%s samples=%s sampling=%s workers=%s max_iter=%s seed=%s",
                cfg.width, cfg.height, total, cfg.sampling, cfg.workers, cfg.max_iter, seed_root.entropy)

    ctx = mp_context or mp.get_context()
    hit_queue = ctx.Queue(cfg.queue_size)
    bar = tqdm(total=total, unit="seed", disable=not progress)
    aggregator = Aggregator(histograms, hit_queue, cfg.workers, bar)

    stats: List[Dict[str, int]] = []
    try:
        with ProcessPoolExecutor(
            max_workers=cfg.workers,
            mp_context=ctx,
            initializer=_init_worker,
            initargs=(cfg, hit_queue, log_queue, log_level),
        ) as pool:
            try:
                futures = [pool.submit(_sample_orbits, i, seeds[i]) for i in range(cfg.workers)]
            finally:
                # start only once the pool has launched its processes
                aggregator.start()
            for fut in futures:
                stats.append(fut.result())
    except BaseException:
        aggregator.release()
        raise
    finally:
        if aggregator.ident is not None:
            aggregator.join()
        bar.close()
        hit_queue.close()
        hit_queue.join_thread()

    if aggregator.error is not None:
        raise RuntimeError(f"histogram aggregation failed: {aggregator.error}") from aggregator.error

    histograms.freeze()
    summary = RunSummary(
        samples=sum(s["samples"] for s in stats),
        escaped=sum(s["escaped"] for s in stats),
        hits=aggregator.hits,
        pixels=sum(s["pixels"] for s in stats),
        batches=aggregator.batches,
        workers=cfg.workers,
        entropy=int(seed_root.entropy),
        maxima=[int(m) for m in histograms.maxima()],
    )
    logger.info("Compute done samples=%s escaped=%s hits=%s batches=%s",
                summary.samples, summary.escaped, summary.hits, summary.batches)
    return histograms, summary


def compute_histograms(cfg: RenderConfig, **kwargs) -> Histograms:
    histograms, _ = accumulate_run(cfg, **kwargs)
    return histograms


def render(cfg: RenderConfig, *, histograms: Optional[Histograms] = None, **kwargs) -> np.ndarray:
    """Full run: accumulate (on top of ``histograms`` when given) then compose."""
    result = compute_histograms(cfg, histograms=histograms, **kwargs)
    return compose(result, cfg)
