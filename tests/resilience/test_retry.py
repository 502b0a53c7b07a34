"""Tests for the async retry policy."""

from __future__ import annotations

import warnings

import pytest

from settlement.domain.errors import MetricsProviderError
from settlement.resilience.retry import call_with_retry


class Flaky:
    def __init__(self, failures: int, exc: Exception | None = None) -> None:
        self.failures = failures
        self.calls = 0
        self.exc = exc or MetricsProviderError("s1", "flaky")

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return "ok"


async def _call(func: Flaky, **kwargs: object) -> str:
    return await call_with_retry(
        func, api_name="test_api", wait_initial=0, wait_max=0, jitter=0, **kwargs  # type: ignore[arg-type]
    )


@pytest.mark.anyio()
async def test_returns_first_success() -> None:
    func = Flaky(failures=0)
    assert await _call(func) == "ok"
    assert func.calls == 1


@pytest.mark.anyio()
async def test_retries_until_success() -> None:
    func = Flaky(failures=2)
    assert await _call(func, attempts=3) == "ok"
    assert func.calls == 3


@pytest.mark.anyio()
async def test_reraises_original_after_exhaustion() -> None:
    func = Flaky(failures=5)

    with pytest.raises(MetricsProviderError, match="flaky"):
        await _call(func, attempts=3)

    assert func.calls == 3


@pytest.mark.anyio()
async def test_non_matching_exception_not_retried() -> None:
    func = Flaky(failures=5, exc=KeyError("nope"))

    with pytest.raises(KeyError):
        await _call(func, attempts=3, retry_on=(MetricsProviderError,))

    assert func.calls == 1


@pytest.mark.anyio()
async def test_single_attempt() -> None:
    func = Flaky(failures=1)

    with pytest.raises(MetricsProviderError):
        await _call(func, attempts=1)

    assert func.calls == 1


@pytest.mark.anyio()
async def test_backoff_uses_no_deprecated_tenacity_arguments() -> None:
    func = Flaky(failures=1)
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        assert await _call(func, attempts=2) == "ok"
    assert func.calls == 2
