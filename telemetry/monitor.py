"""Telemetry tracking for per-stream latency and frame accounting."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque

# Latency samples kept for percentile estimates
MAX_LATENCY_SAMPLES = 1000


@dataclass
class LatencyStats:
    p50_ms: float
    p95_ms: float
    max_ms: float


@dataclass
class TelemetrySnapshot:
    frames_received: int
    frames_processed: int
    frames_skipped: int
    frames_rejected: int
    map_rebuilds: int
    latency: LatencyStats

    @property
    def skip_rate(self) -> float:
        if self.frames_received == 0:
            return 0.0
        return self.frames_skipped / self.frames_received


@dataclass
class TelemetryMonitor:
    frames_received: int = 0
    frames_processed: int = 0
    frames_skipped: int = 0
    frames_rejected: int = 0
    map_rebuilds: int = 0
    latency_samples_ms: Deque[float] = field(default_factory=lambda: deque(maxlen=MAX_LATENCY_SAMPLES))

    def record_received(self) -> None:
        self.frames_received += 1

    def record_skipped(self) -> None:
        self.frames_skipped += 1

    def record_rejected(self) -> None:
        self.frames_rejected += 1

    def record_map_rebuild(self) -> None:
        self.map_rebuilds += 1

    def record_processed(self, latency_ms: float) -> None:
        self.frames_processed += 1
        self.latency_samples_ms.append(latency_ms)

    def summarize(self) -> LatencyStats:
        if not self.latency_samples_ms:
            return LatencyStats(p50_ms=0.0, p95_ms=0.0, max_ms=0.0)
        values = sorted(self.latency_samples_ms)
        max_ms = values[-1]
        p50_ms = values[int(0.5 * (len(values) - 1))]
        p95_ms = values[int(0.95 * (len(values) - 1))]
        return LatencyStats(p50_ms=p50_ms, p95_ms=p95_ms, max_ms=max_ms)

    def snapshot(self) -> TelemetrySnapshot:
        return TelemetrySnapshot(
            frames_received=self.frames_received,
            frames_processed=self.frames_processed,
            frames_skipped=self.frames_skipped,
            frames_rejected=self.frames_rejected,
            map_rebuilds=self.map_rebuilds,
            latency=self.summarize(),
        )
