"""
Prometheus Metrics

Provides application metrics in Prometheus text format:
- HTTP request metrics (count, duration, status codes)
- Booking metrics (reservations, rejections by reason, price overrides)
"""

from typing import Dict
import time
from collections import defaultdict
from threading import Lock


class Counter:
    """Simple counter metric."""

    def __init__(self, name: str, description: str, labels: tuple = ()):
        self.name = name
        self.description = description
        self.labels = labels
        self._values: Dict[tuple, float] = defaultdict(float)
        self._lock = Lock()

    def inc(self, value: float = 1, **label_values):
        """Increment counter."""
        key = tuple(label_values.get(l, '') for l in self.labels)
        with self._lock:
            self._values[key] += value

    def get(self, **label_values) -> float:
        key = tuple(label_values.get(l, '') for l in self.labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def get_all(self) -> Dict[tuple, float]:
        with self._lock:
            return dict(self._values)


class Histogram:
    """Simple histogram metric."""

    DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float('inf'))

    def __init__(self, name: str, description: str, labels: tuple = (), buckets: tuple = None):
        self.name = name
        self.description = description
        self.labels = labels
        self.buckets = buckets or self.DEFAULT_BUCKETS
        self._counts: Dict[tuple, Dict[float, int]] = defaultdict(lambda: defaultdict(int))
        self._sums: Dict[tuple, float] = defaultdict(float)
        self._totals: Dict[tuple, int] = defaultdict(int)
        self._lock = Lock()

    def observe(self, value: float, **label_values):
        key = tuple(label_values.get(l, '') for l in self.labels)
        with self._lock:
            self._sums[key] += value
            self._totals[key] += 1
            for bucket in self.buckets:
                if value <= bucket:
                    self._counts[key][bucket] += 1

    def get_all(self) -> Dict:
        with self._lock:
            return {
                'counts': {k: dict(v) for k, v in self._counts.items()},
                'sums': dict(self._sums),
                'totals': dict(self._totals)
            }


# ================================
# APPLICATION METRICS
# ================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labels=("method", "path", "status_code")
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    labels=("method", "path")
)

reservations_total = Counter(
    "reservations_total",
    "Reservations created",
    labels=("status",)
)

reservation_value_total = Counter(
    "reservation_value_total",
    "Sum of frozen reservation totals"
)

booking_rejections_total = Counter(
    "booking_rejections_total",
    "Booking attempts rejected before commit",
    labels=("reason",)
)

price_override_writes_total = Counter(
    "price_override_writes_total",
    "Price override writes",
    labels=("action",)
)

COUNTERS = (
    http_requests_total,
    reservations_total,
    reservation_value_total,
    booking_rejections_total,
    price_override_writes_total,
)


def _label_str(names: tuple, key: tuple) -> str:
    return ",".join(f'{k}="{v}"' for k, v in zip(names, key))


def format_prometheus_metrics() -> str:
    """Format all metrics in Prometheus text format."""
    lines = []

    for counter in COUNTERS:
        lines.append(f"# HELP {counter.name} {counter.description}")
        lines.append(f"# TYPE {counter.name} counter")
        for key, value in counter.get_all().items():
            if counter.labels:
                lines.append(f"{counter.name}{{{_label_str(counter.labels, key)}}} {value}")
            else:
                lines.append(f"{counter.name} {value}")

    hist = http_request_duration_seconds
    hist_data = hist.get_all()
    lines.append(f"# HELP {hist.name} {hist.description}")
    lines.append(f"# TYPE {hist.name} histogram")
    for key in hist_data['sums'].keys():
        label_str = _label_str(hist.labels, key)
        for bucket in hist.buckets:
            le = "+Inf" if bucket == float('inf') else str(bucket)
            count = hist_data['counts'].get(key, {}).get(bucket, 0)
            lines.append(f'{hist.name}_bucket{{{label_str},le="{le}"}} {count}')
        lines.append(f'{hist.name}_sum{{{label_str}}} {hist_data["sums"][key]}')
        lines.append(f'{hist.name}_count{{{label_str}}} {hist_data["totals"][key]}')

    return "\n".join(lines) + "\n"


# ================================
# CONVENIENCE FUNCTIONS
# ================================

def record_http_request(method: str, path: str, status_code: int, duration: float):
    http_requests_total.inc(method=method, path=path, status_code=str(status_code))
    http_request_duration_seconds.observe(duration, method=method, path=path)


def record_reservation_created(status: str, total_price: int):
    reservations_total.inc(status=status)
    reservation_value_total.inc(total_price)


def record_booking_rejected(reason: str):
    booking_rejections_total.inc(reason=reason)


def record_price_override(action: str):
    price_override_writes_total.inc(action=action)


UNMATCHED_PATH_LABEL = "<unmatched>"


class RequestTimer:
    """
    Context manager timing one HTTP request.

    path must be a route template or UNMATCHED_PATH_LABEL, never a raw URL.
    """

    def __init__(self, method: str, path: str):
        self.method = method
        self.path = path
        self.status_code = 500
        self.start_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        record_http_request(self.method, self.path, self.status_code, time.perf_counter() - self.start_time)
