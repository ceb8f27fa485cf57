"""Timing and coverage metrics for lenticular generation.

This module provides a timing context manager for pipeline stages and
measures how much of a composite each source contributes.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from lenticular.engine import source_index_map

logger = logging.getLogger(__name__)


def source_coverage(
    canvas_size: Tuple[int, int],
    strip_width: int,
    n_sources: int,
    orientation: str = "vertical",
) -> List[float]:
    """Fraction of composite pixels taken from each source.

    Args:
        canvas_size: Composite (width, height)
        strip_width: Strip width in pixels
        n_sources: Number of sources in the cycle
        orientation: "vertical" or "horizontal"

    Returns:
        List of fractions, one per source, summing to 1
    """
    width, height = canvas_size
    length = width if orientation == "vertical" else height
    if length == 0:
        return [0.0] * n_sources

    indices = source_index_map(length, strip_width, n_sources)
    counts = np.bincount(indices, minlength=n_sources)

    return [float(c) / length for c in counts]


class Timer:
    """Context manager timing one pipeline stage."""

    def __init__(self, name: str = "Timer", logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self.start_time = None
        self.end_time = None

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        self.end_time = None
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.end_time = time.perf_counter()
        self.logger.debug(f"{self.name}: {self.elapsed:.4f}s")

    @property
    def elapsed(self) -> float:
        """Seconds since entering; frozen once the block exits."""
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return end - self.start_time


class GenerationMetrics:
    """Class for collecting metrics about one generation run."""

    def __init__(self):
        """Initialize metrics container."""
        self.metrics = {
            "n_inputs": 0,
            "n_sources": 0,
            "n_rejected": 0,
            "canvas_size": None,
            "strip_width_px": None,
            "orientation": None,
            "coverage": [],
            "output_bytes": 0,
            "stage_timings": {},
        }

    def update(self, metric_name: str, value: Union[int, float, str, List, Tuple, None]) -> None:
        """Update a specific metric.

        Args:
            metric_name: Name of the metric to update
            value: New value for the metric
        """
        self.metrics[metric_name] = value

    def update_stage_timing(self, stage_name: str, time_s: float) -> None:
        """Update timing for a specific pipeline stage.

        Args:
            stage_name: Name of the pipeline stage
            time_s: Time in seconds
        """
        self.metrics["stage_timings"][stage_name] = time_s

    def to_dict(self) -> Dict:
        """Convert metrics to dictionary."""
        metrics = self.metrics.copy()
        metrics["stage_timings"] = dict(self.metrics["stage_timings"])
        return metrics

    def summary(self) -> str:
        """Generate a human-readable summary of metrics.

        Returns:
            Summary string
        """
        lines = [
            "Lenticular Metrics:",
            f"  Inputs: {self.metrics['n_inputs']} "
            f"({self.metrics['n_sources']} used, {self.metrics['n_rejected']} rejected)",
        ]

        if self.metrics["canvas_size"] is not None:
            width, height = self.metrics["canvas_size"]
            lines.append(f"  Canvas: {width}x{height}")
            lines.append(
                f"  Strips: {self.metrics['strip_width_px']}px {self.metrics['orientation']}"
            )

        if self.metrics["coverage"]:
            shares = ", ".join(f"{c:.1%}" for c in self.metrics["coverage"])
            lines.append(f"  Coverage: {shares}")

        if self.metrics["output_bytes"]:
            lines.append(f"  Output: {self.metrics['output_bytes']} bytes")

        if self.metrics["stage_timings"]:
            lines.append("  Stage timings:")
            for stage, time_s in self.metrics["stage_timings"].items():
                lines.append(f"    {stage}: {time_s:.3f}s")

        return "\n".join(lines)
