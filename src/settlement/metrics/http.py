"""HTTP adapter for the external engagement metrics provider."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from settlement.domain.errors import MetricsProviderError
from settlement.domain.models import EngagementSnapshot

logger = structlog.get_logger()


class HttpMetricsProvider:
    """Fetch snapshots from ``GET {base_url}/submissions/{id}/metrics``.

    The response body is a JSON object with ``views``, ``likes`` and
    optionally ``comments`` and ``shares``.  Every failure mode (transport
    error, non-2xx status, malformed body) surfaces as
    :class:`MetricsProviderError`.

    Args:
        base_url: Provider base URL.
        token: Bearer token sent in the ``Authorization`` header.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def fetch_latest_metrics(self, submission_id: str) -> EngagementSnapshot:
        try:
            response = await self._client.get(f"/submissions/{submission_id}/metrics")
            response.raise_for_status()
            payload: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise MetricsProviderError(
                submission_id, f"provider returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise MetricsProviderError(submission_id, f"transport error: {exc}") from exc
        except ValueError as exc:
            raise MetricsProviderError(submission_id, "response body is not JSON") from exc

        try:
            return EngagementSnapshot.model_validate(
                {
                    "views": payload.get("views", 0),
                    "likes": payload.get("likes", 0),
                    "comments": payload.get("comments", 0),
                    "shares": payload.get("shares", 0),
                }
            )
        except (ValidationError, AttributeError) as exc:
            raise MetricsProviderError(submission_id, "malformed metrics payload") from exc

    async def aclose(self) -> None:
        await self._client.aclose()
