"""
Metrics instrumentation wrapper around prometheus_client.
"""
import time
from functools import wraps

from prometheus_client import Counter, Histogram


class MetricsRegistry:
    """
    Central metrics registry for the clinic API.

    Provides typed access to all application metrics.
    """

    def __init__(self):
        self._setup_metrics()

    def _create_counter(self, name, description, labels=None):
        return Counter(name, description, labels or [])

    def _create_histogram(self, name, description, labels=None, buckets=None):
        if buckets:
            return Histogram(name, description, labels or [], buckets=buckets)
        return Histogram(name, description, labels or [])

    def _setup_metrics(self):
        """Setup all application metrics."""

        # ===================================================================
        # HTTP Metrics
        # ===================================================================
        self.exceptions_total = self._create_counter(
            'medimind_exceptions_total',
            'Total exceptions',
            ['exception_type', 'location']
        )

        # ===================================================================
        # Visit Lifecycle Metrics
        # ===================================================================
        self.visit_transition_total = self._create_counter(
            'medimind_visit_transition_total',
            'Visit status transitions',
            ['from_status', 'to_status', 'result']
        )

        self.visits_created_total = self._create_counter(
            'medimind_visits_created_total',
            'Visits created',
            ['origin']  # reception, consult, walk_in
        )

        # ===================================================================
        # Cashier Metrics
        # ===================================================================
        self.payments_total = self._create_counter(
            'medimind_payments_total',
            'Payments recorded',
            ['payment_type']
        )

        # ===================================================================
        # Lab Metrics
        # ===================================================================
        self.lab_tests_completed_total = self._create_counter(
            'medimind_lab_tests_completed_total',
            'Lab requests completed'
        )

        # ===================================================================
        # Storage Metrics
        # ===================================================================
        self.uploads_total = self._create_counter(
            'medimind_uploads_total',
            'Attachment uploads',
            ['bucket', 'result']  # result: stored|failed
        )

        # ===================================================================
        # AI Metrics
        # ===================================================================
        self.ai_requests_total = self._create_counter(
            'medimind_ai_requests_total',
            'AI service calls',
            ['action', 'result']
        )

        self.ai_request_duration_seconds = self._create_histogram(
            'medimind_ai_request_duration_seconds',
            'AI service call duration',
            ['action'],
            buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0]
        )

    def track_duration(self, histogram_metric):
        """
        Decorator to track function duration.

        Usage:
            @metrics.track_duration(metrics.ai_request_duration_seconds.labels(action='diagnosis'))
            def analyze(...):
                ...
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    histogram_metric.observe(time.time() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics = MetricsRegistry()
