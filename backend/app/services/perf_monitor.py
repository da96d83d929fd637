"""Performance monitoring for analytics report generation."""
import time
import logging
import threading
import functools
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("goalpulse-api.perf")


def timed(report_name: str) -> Callable:
    """
    Decorator that measures a synchronous report builder, logs the duration
    and records it (or the failure) in the module-level tracker.

    Usage::

        @timed("goal_risk")
        def analyze_goals(...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            except Exception:
                tracker.record_report_error(report_name)
                raise
            finally:
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                tracker.record_report_duration(report_name, duration_ms)
                logger.debug(
                    "report timed",
                    extra={
                        "report": report_name,
                        "function": func.__qualname__,
                        "duration_ms": duration_ms,
                    },
                )
        return wrapper
    return decorator


class PerformanceTracker:
    """
    Thread-safe in-memory tracker for report-level metrics.

    Tracks:
    - Reports generated, per report name
    - Average duration per report
    - Slowest report seen
    - Error count broken down by report name
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._durations: Dict[str, list] = {}   # report_name -> [duration_ms, ...]
        self._error_counts: Dict[str, int] = {}
        self._slowest_report: Optional[str] = None
        self._slowest_report_ms: float = 0.0

    # ------------------------------------------------------------------
    # Public write API
    # ------------------------------------------------------------------

    def record_report_duration(self, report_name: str, duration_ms: float) -> None:
        with self._lock:
            self._durations.setdefault(report_name, []).append(duration_ms)
            if duration_ms > self._slowest_report_ms:
                self._slowest_report_ms = duration_ms
                self._slowest_report = report_name

    def record_report_error(self, report_name: str) -> None:
        with self._lock:
            self._error_counts[report_name] = self._error_counts.get(report_name, 0) + 1

    # ------------------------------------------------------------------
    # Public read API
    # ------------------------------------------------------------------

    def get_metrics(self) -> Dict[str, Any]:
        """
        Return a snapshot of all collected metrics.

        Returns
        -------
        dict with keys:
            reports_generated       : int
            reports_by_name         : dict  {report_name: count}
            avg_duration_ms_by_name : dict  {report_name: avg_ms}
            slowest_report          : str | None
            slowest_report_ms       : float
            error_count             : int   (total across all reports)
            error_count_by_report   : dict  {report_name: count}
        """
        with self._lock:
            counts: Dict[str, int] = {}
            avgs: Dict[str, float] = {}
            for name, durations in self._durations.items():
                counts[name] = len(durations)
                avgs[name] = round(sum(durations) / len(durations), 2) if durations else 0.0

            return {
                "reports_generated": sum(counts.values()),
                "reports_by_name": counts,
                "avg_duration_ms_by_name": avgs,
                "slowest_report": self._slowest_report,
                "slowest_report_ms": round(self._slowest_report_ms, 2),
                "error_count": sum(self._error_counts.values()),
                "error_count_by_report": dict(self._error_counts),
            }

    def reset(self) -> None:
        """Reset all counters (useful in tests)."""
        with self._lock:
            self._durations.clear()
            self._error_counts.clear()
            self._slowest_report = None
            self._slowest_report_ms = 0.0


# Shared process-wide tracker
tracker = PerformanceTracker()
