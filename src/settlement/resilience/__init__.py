"""Resilience utilities: retry policy for external API calls."""

from settlement.resilience.retry import call_with_retry

__all__ = ["call_with_retry"]
