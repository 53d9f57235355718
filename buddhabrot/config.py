from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple

import numpy as np

CURVES = ("exp", "log", "sqrt", "linear", "lin")
SAMPLING_MODES = ("random", "grid")

_COUNTER_MAX = int(np.iinfo(np.uint64).max)


class ConfigError(ValueError):
    """Raised for a configuration that cannot be rendered."""


@dataclass(frozen=True)
class SampleRegion:
    re_min: float = -2.0
    re_max: float = 2.0
    im_min: float = -2.0
    im_max: float = 2.0


@dataclass(frozen=True)
class ChannelRange:
    """Inclusive orbit-length range routed to one colour channel.

    ``high=None`` leaves the range open ended. An orbit length must also be a
    multiple of ``divisor``.
    """

    low: int
    high: Optional[int] = None
    divisor: int = 1

    def contains(self, length: int) -> bool:
        if length < self.low:
            return False
        if self.high is not None and length > self.high:
            return False
        return length % self.divisor == 0


DEFAULT_CHANNELS: Tuple[ChannelRange, ...] = (
    ChannelRange(20, 199),
    ChannelRange(200, 999),
    ChannelRange(1000, None),
)


@dataclass(frozen=True)
class RenderConfig:
    width: int = 1024
    height: int = 1024
    zoom: Optional[float] = None
    offset: Tuple[float, float] = (0.4, 0.0)
    bailout: float = 2.0
    max_iter: int = 5000
    samples: int = 1_000_000
    workers: int = field(default_factory=lambda: os.cpu_count() or 1)
    curve: str = "log"
    factor: float = 1.0
    exposure: float = 1.0
    min_length: int = 20
    channels: Tuple[ChannelRange, ...] = DEFAULT_CHANNELS
    sampling: str = "random"
    grid_step: float = 0.01
    region: SampleRegion = SampleRegion()
    seed: Optional[int] = None
    queue_size: int = 256
    batch_size: int = 64

    @property
    def scale(self) -> float:
        if self.zoom is not None:
            return float(self.zoom)
        return min(self.width, self.height) / 2.8

    @property
    def bailout_sq(self) -> float:
        return self.bailout * self.bailout

    def classify(self, length: int) -> Tuple[int, ...]:
        """Channel indices whose range contains an orbit of this length."""
        if length < self.min_length:
            return ()
        return tuple(i for i, ch in enumerate(self.channels) if ch.contains(length))

    def validate(self) -> "RenderConfig":
        if self.width <= 0 or self.height <= 0:
            raise ConfigError("width/height must be positive.")
        if self.zoom is not None and self.zoom <= 0:
            raise ConfigError("zoom must be positive.")
        if self.bailout <= 0:
            raise ConfigError("bailout must be positive.")
        if self.max_iter < 0 or self.min_length < 0:
            raise ConfigError("max_iter/min_length must not be negative.")
        if self.curve not in CURVES:
            raise ConfigError(f"unknown response curve: {self.curve!r} (expected one of {', '.join(CURVES)})")
        if self.factor <= 0 or self.exposure <= 0:
            raise ConfigError("factor/exposure must be positive.")
        if self.sampling not in SAMPLING_MODES:
            raise ConfigError(f"unknown sampling mode: {self.sampling!r}")
        if self.sampling == "random" and self.samples <= 0:
            raise ConfigError("samples must be positive.")
        if self.sampling == "grid" and self.grid_step <= 0:
            raise ConfigError("grid_step must be positive.")
        if self.workers < 1 or self.queue_size < 1 or self.batch_size < 1:
            raise ConfigError("workers/queue_size/batch_size must be at least 1.")
        r = self.region
        if not (r.re_min < r.re_max and r.im_min < r.im_max):
            raise ConfigError("region must have positive extent on both axes.")
        if len(self.channels) != 3:
            raise ConfigError("exactly three channel ranges are required.")
        for ch in self.channels:
            if ch.low < 0 or (ch.high is not None and ch.high < ch.low):
                raise ConfigError(f"invalid channel range: {ch}")
            if ch.divisor < 1:
                raise ConfigError(f"channel divisor must be at least 1: {ch}")
        self.check_headroom(0)
        return self

    def check_headroom(self, existing_max: int) -> None:
        """Reject a run whose worst case would push a cell past the counter range."""
        # one sample adds at most max_iter visits to any single cell
        if int(existing_max) + self.total_samples() * self.max_iter > _COUNTER_MAX:
            raise ConfigError("sample budget could overflow the 64-bit histogram counters.")

    def total_samples(self) -> int:
        if self.sampling == "grid":
            r = self.region
            cols = grid_count(r.re_min, r.re_max, self.grid_step)
            rows = grid_count(r.im_min, r.im_max, self.grid_step)
            return cols * rows
        return self.samples

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            v = getattr(self, f.name)
            if f.name == "channels":
                v = [[ch.low, ch.high, ch.divisor] for ch in v]
            elif f.name == "region":
                v = [v.re_min, v.re_max, v.im_min, v.im_max]
            elif f.name == "offset":
                v = list(v)
            out[f.name] = v
        return out


def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    if not config_path:
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config {config_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config {config_path} is not valid JSON: {e}") from e
    if not isinstance(cfg, dict):
        raise ConfigError("Config JSON must be an object.")
    return cfg


def _channel(value: Any) -> ChannelRange:
    if isinstance(value, ChannelRange):
        return value
    if isinstance(value, dict):
        return ChannelRange(int(value["low"]), None if value.get("high") is None else int(value["high"]),
                            int(value.get("divisor", 1)))
    if isinstance(value, (list, tuple)) and 1 <= len(value) <= 3:
        low = int(value[0])
        high = None if len(value) < 2 or value[1] is None else int(value[1])
        divisor = int(value[2]) if len(value) == 3 else 1
        return ChannelRange(low, high, divisor)
    raise ConfigError(f"channel range must be [low, high, divisor]: {value!r}")


def normalise_config(cfg: Dict[str, Any], **overrides: Any) -> RenderConfig:
    merged = dict(cfg)
    merged.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(RenderConfig)}
    unknown = sorted(set(merged) - known)
    if unknown:
        raise ConfigError(f"Unknown config field(s): {', '.join(unknown)}")

    out: Dict[str, Any] = {}
    try:
        for name in ("width", "height", "max_iter", "samples", "workers", "min_length", "queue_size", "batch_size"):
            if name in merged:
                out[name] = int(merged[name])
        for name in ("bailout", "factor", "exposure", "grid_step"):
            if name in merged:
                out[name] = float(merged[name])
        if merged.get("zoom") is not None:
            out["zoom"] = float(merged["zoom"])
        if merged.get("seed") is not None:
            out["seed"] = int(merged["seed"])
        for name in ("curve", "sampling"):
            if name in merged:
                out[name] = str(merged[name]).lower()
        if "offset" in merged:
            offset = merged["offset"]
            if not (isinstance(offset, (list, tuple)) and len(offset) == 2):
                raise ConfigError("offset must be [re, im].")
            out["offset"] = (float(offset[0]), float(offset[1]))
        if "region" in merged:
            region = merged["region"]
            if isinstance(region, SampleRegion):
                out["region"] = region
            elif isinstance(region, (list, tuple)) and len(region) == 4:
                out["region"] = SampleRegion(*(float(v) for v in region))
            else:
                raise ConfigError("region must be [re_min, re_max, im_min, im_max].")
        if "channels" in merged:
            out["channels"] = tuple(_channel(v) for v in merged["channels"])
    except (TypeError, KeyError) as e:
        raise ConfigError(f"Malformed config value: {e}") from e
    except ValueError as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(f"Malformed config value: {e}") from e

    return RenderConfig(**out).validate()


def grid_count(lo: float, hi: float, step: float) -> int:
    # tolerance keeps an endpoint that lands on the grid from being lost to rounding
    return int(np.floor((hi - lo) / step + 1e-9)) + 1
