from .logging import LoggingMiddleware
from .metrics import MetricsMiddleware
from .retry import RetryPolicy, RetryDecision

__all__ = [
    "LoggingMiddleware",
    "MetricsMiddleware",
    "RetryPolicy",
    "RetryDecision",
]
