"""Operational helpers."""

from .retry import RetryOutcome, RetryPolicy, is_retryable

__all__ = ["RetryOutcome", "RetryPolicy", "is_retryable"]
