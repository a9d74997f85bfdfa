# src/groovy2cs/transpile/anomalies.py
from __future__ import annotations

import bisect
import enum
import threading
import time
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


class Severity(str, enum.Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class AnomalyKind(str, enum.Enum):
    # Discovery
    IO_ERROR = "IO_ERROR"
    SKIPPED = "SKIPPED"                # binary or filtered out
    ENCODING = "ENCODING"              # not valid UTF-8
    LANG_UNKNOWN = "LANG_UNKNOWN"      # no driver for the file's language
    SIZE_LIMIT = "SIZE_LIMIT"
    # One kind per failing translation stage
    STRUCTURAL_ERROR = "STRUCTURAL_ERROR"
    PARSE_FAILED = "PARSE_FAILED"
    MISSING_CONSTRUCT = "MISSING_CONSTRUCT"
    UNSUPPORTED_CONSTRUCT = "UNSUPPORTED_CONSTRUCT"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"


# TranslationError.code (and the registry's own failure codes) -> anomaly kind
_KIND_BY_ERROR_CODE: Dict[str, AnomalyKind] = {
    "STRUCTURAL": AnomalyKind.STRUCTURAL_ERROR,
    "SYNTAX_ERROR": AnomalyKind.PARSE_FAILED,
    "UNMAPPED_RULE": AnomalyKind.PARSE_FAILED,
    "MISSING_CONSTRUCT": AnomalyKind.MISSING_CONSTRUCT,
    "UNSUPPORTED_CONSTRUCT": AnomalyKind.UNSUPPORTED_CONSTRUCT,
    "TYPE_MISMATCH": AnomalyKind.TYPE_MISMATCH,
    "IO_ERROR": AnomalyKind.IO_ERROR,
    "TIMEOUT": AnomalyKind.TIMEOUT,
}


def kind_for_error_code(code: Optional[str]) -> AnomalyKind:
    return _KIND_BY_ERROR_CODE.get(code or "", AnomalyKind.UNKNOWN)


@dataclass(frozen=True)
class Anomaly:
    """One skipped or failed file. TranslationStore writes these as Parquet rows."""
    path: str
    blob_sha: str
    kind: AnomalyKind
    severity: Severity
    detail: str = ""
    span: Optional[Tuple[int, int]] = None  # (line_start, line_end), 1-based
    ts_ms: int = field(default_factory=lambda: int(time.time() * 1000))

    @classmethod
    def for_failure(
        cls,
        path: str,
        blob_sha: str,
        *,
        stage: str,
        code: str,
        detail: str,
        line: Optional[int] = None,
    ) -> "Anomaly":
        return cls(
            path=path,
            blob_sha=blob_sha,
            kind=kind_for_error_code(code),
            severity=Severity.ERROR,
            detail=f"[{stage}] {detail}",
            span=(line, line) if line else None,
        )

    def to_dict(self) -> Dict:
        line_start, line_end = self.span or (0, 0)
        return {
            "path": self.path,
            "blob_sha": self.blob_sha,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "detail": self.detail,
            "line_start": int(line_start),
            "line_end": int(line_end),
            "ts_ms": int(self.ts_ms),
        }


# Upper bounds in seconds; anything slower lands in the last bucket.
_DURATION_BUCKETS: Tuple[Tuple[float, str], ...] = (
    (1e-3, "<1ms"),
    (1e-2, "<10ms"),
    (1e-1, "<100ms"),
    (1.0, "<1s"),
    (5.0, "<5s"),
    (30.0, "<30s"),
)
_BUCKET_BOUNDS = [bound for bound, _ in _DURATION_BUCKETS]


def _duration_bucket(seconds: float) -> str:
    i = bisect.bisect_right(_BUCKET_BOUNDS, max(0.0, float(seconds)))
    return _DURATION_BUCKETS[i][1] if i < len(_DURATION_BUCKETS) else ">=30s"


class AnomalySink:
    """
    Thread-safe anomaly buffer shared by discovery, the registry and the batch API.

    Besides buffering anomalies until the store drains them, it keeps the
    counters and timing histograms that end up in the run receipt:
    ``total``, ``kind:<KIND>`` and ``sev:<SEVERITY>`` per emitted anomaly, plus
    any named counter bumped with ``incr``.
    """

    __slots__ = ("_lock", "_pending", "_counts", "_timers")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: List[Anomaly] = []
        self._counts: Counter = Counter(total=0)
        self._timers: Dict[str, Counter] = defaultdict(Counter)

    def emit(self, anomaly: Anomaly) -> None:
        with self._lock:
            self._pending.append(anomaly)
            self._counts.update(("total", f"kind:{anomaly.kind.value}", f"sev:{anomaly.severity.value}"))

    def incr(self, name: str, n: int = 1) -> None:
        with self._lock:
            self._counts[name] += n

    def drain(self) -> List[Anomaly]:
        with self._lock:
            out, self._pending = self._pending, []
        return out

    def counters(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def observe_duration(self, name: str, key: str, seconds: float) -> None:
        """Count one timing of ``key`` (a file path) under histogram ``name``."""
        with self._lock:
            hist = self._timers[name]
            hist[_duration_bucket(seconds)] += 1
            hist[f"{name}::count"] += 1

    def timer_histograms(self) -> Dict[str, Dict[str, int]]:
        with self._lock:
            return {name: dict(hist) for name, hist in self._timers.items()}
