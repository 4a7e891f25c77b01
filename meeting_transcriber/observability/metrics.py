"""Job metrics collection and reporting.

Provides the JobMetrics dataclass for structured observability data and
log_job_metrics() for emitting it as a single JSON line.
"""

from __future__ import annotations

import json
import sys
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import TextIO


@dataclass
class JobMetrics:
    """All metrics collected for a single transcription run."""

    job_id: str
    status: str
    path: str
    source_duration_seconds: float = 0.0
    source_size_bytes: int = 0
    transcription_mode: str | None = None
    chunk_count: int = 0
    speedup_applied: int = 0
    speedup_fallbacks: int = 0
    processing_wall_time_seconds: float = 0.0
    transcript_characters: int = 0
    stage_timings: dict[str, float] = field(default_factory=dict)
    error_stage: str | None = None
    error_message: str | None = None


def log_job_metrics(metrics: JobMetrics, stream: TextIO | None = None) -> None:
    """Emit job metrics as a single structured JSON line.

    Args:
        metrics: Populated JobMetrics dataclass.
        stream: Output stream (defaults to stdout).
    """
    entry = {
        "timestamp": datetime.now(UTC).isoformat(),
        "severity": "INFO",
        "metric_type": "transcription_job",
        **asdict(metrics),
    }
    print(json.dumps(entry), file=stream or sys.stdout)
