import logging
import time
from typing import Optional

import psutil
from prometheus_client import Histogram

logger = logging.getLogger(__name__)

# Prometheus Metrics
TASK_DURATION_SECONDS = Histogram(
    "task_duration_seconds",
    "Time spent performing the task",
    ["task_name"]
)

TASK_CPU_USAGE_PERCENT = Histogram(
    "task_cpu_usage_percent",
    "CPU usage percent during the task",
    ["task_name"]
)

TASK_MEMORY_USAGE_BYTES = Histogram(
    "task_memory_usage_bytes",
    "Memory usage in bytes at the end of the task",
    ["task_name"]
)


class PerformanceMonitor:
    """Measures wall time, CPU and RSS for a labelled task; usable as a context manager."""

    def __init__(self, label: str):
        self.label = label
        self.start_time = 0.0
        self.end_time = 0.0
        self.end_cpu = 0.0
        self.start_mem = 0
        self.end_mem = 0
        self.process = psutil.Process()

    def __enter__(self) -> "PerformanceMonitor":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def start(self):
        self.start_time = time.perf_counter()
        self.process.cpu_percent(interval=None)  # baseline for the next call
        self.start_mem = self.process.memory_info().rss

    def stop(self):
        self.end_time = time.perf_counter()
        self.end_cpu = self.process.cpu_percent(interval=None)
        self.end_mem = self.process.memory_info().rss

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def report(self, count: Optional[int] = None) -> str:
        count_str = f" (N={count})" if count is not None else ""
        mem_diff_mb = (self.end_mem - self.start_mem) / (1024 * 1024)
        end_mem_mb = self.end_mem / (1024 * 1024)
        msg = (
            f"[{self.label}]{count_str} Time: {self.duration:.4f}s"
            f" | CPU: {self.end_cpu:.1f}% | Mem: {end_mem_mb:.1f}MB (Delta: {mem_diff_mb:+.2f}MB)"
        )

        TASK_DURATION_SECONDS.labels(task_name=self.label).observe(self.duration)
        TASK_CPU_USAGE_PERCENT.labels(task_name=self.label).observe(self.end_cpu)
        TASK_MEMORY_USAGE_BYTES.labels(task_name=self.label).observe(self.end_mem)

        logger.debug(msg)
        return msg
