"""Request managers for handling HTTP requests.

This module provides SyncRequestManager, which encapsulates the httpx client
and converts httpx responses into Response objects, and
RateLimitedRequestManager, which adds politeness throttling via
pyrate_limiter.

The request manager is responsible for:
- Maintaining the HTTP client (httpx.Client)
- Sending the client identifier, timeout and redirect policy
- Turning transport failures and error statuses into TransientExceptions
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pyrate_limiter import (
    BucketFullException,
    InMemoryBucket,
    Limiter,
    LimiterDelayException,
    Rate,
)

from repeatermap.common.exceptions import (
    HTMLResponseAssumptionException,
    RateLimitException,
    RequestTimeoutException,
    RequestTransportException,
)
from repeatermap.data_types import HTTPRequestParams, Response
from repeatermap.settings import USER_AGENT

logger = logging.getLogger(__name__)


class SyncRequestManager:
    """Manages HTTP requests for the pipeline.

    This class encapsulates:

    - httpx.Client lifecycle
    - Request resolution (URL fetching)
    - Response transformation

    Example::

        with SyncRequestManager(timeout=30.0) as manager:
            response = manager.resolve_request(
                HTTPRequestParams.get("http://rpt.vkdmr.com/ipsc/_status.html")
            )
    """

    def __init__(
        self,
        user_agent: str = USER_AGENT,
        timeout: float | None = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the request manager.

        Args:
            user_agent: Client identifier sent as the User-Agent header.
            timeout: Request timeout in seconds. None means no timeout.
            transport: Optional httpx transport, e.g. httpx.MockTransport.
        """
        self.timeout = timeout
        self._client = httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        self._client.close()

    def __enter__(self) -> SyncRequestManager:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def resolve_request(self, http_params: HTTPRequestParams) -> Response:
        """Fetch a request and return the Response.

        Args:
            http_params: The request to send. URL should be absolute.

        Returns:
            Response containing the HTTP response data.

        Raises:
            HTMLResponseAssumptionException: If the server returns 4xx or 5xx.
            RequestTimeoutException: If the request times out.
            RequestTransportException: If the connection fails or the
                response cannot be read.
        """
        timeout = (
            http_params.timeout
            if http_params.timeout is not None
            else self.timeout
        )

        logger.debug(f"{http_params.method.value} {http_params.url}")
        try:
            http_response = self._client.request(
                method=http_params.method.value,
                url=http_params.url,
                params=http_params.params,
                headers=http_params.headers,
                content=http_params.data
                if isinstance(http_params.data, bytes)
                else None,
                data=http_params.data  # type: ignore[arg-type]
                if isinstance(http_params.data, dict)
                else None,
                timeout=timeout,
                follow_redirects=http_params.allow_redirects,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutException(
                url=http_params.url, timeout_seconds=timeout or 0.0
            ) from e
        except httpx.TransportError as e:
            raise RequestTransportException(
                url=http_params.url, reason=f"{type(e).__name__}: {e}"
            ) from e
        except httpx.RequestError as e:
            # Redirect loops, bad content encodings and the like
            raise RequestTransportException(
                url=http_params.url, reason=f"{type(e).__name__}: {e}"
            ) from e

        if http_response.status_code >= 400:
            raise HTMLResponseAssumptionException(
                status_code=http_response.status_code,
                expected_codes=[200],
                url=str(http_response.url),
            )

        return Response(
            status_code=http_response.status_code,
            headers=dict(http_response.headers),
            content=http_response.content,
            text=http_response.text,
            url=str(http_response.url),
            request=http_params,
        )


class RateLimitedRequestManager(SyncRequestManager):
    """Request manager with pyrate_limiter throttling.

    The licence register is an uncontrolled third-party service with abuse
    protection, so every request waits for a limiter token first. A single
    Rate of one request per ``interval_ms`` gives a fixed minimum spacing
    between consecutive requests.

    Example::

        manager = RateLimitedRequestManager(interval_ms=500)
        response = manager.resolve_request(params)  # waits if needed
    """

    # Headroom on top of the interval so a full bucket always waits
    # rather than raising.
    _DELAY_SLACK_MS = 1000

    def __init__(
        self,
        interval_ms: int = 500,
        user_agent: str = USER_AGENT,
        timeout: float | None = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the rate-limited request manager.

        Args:
            interval_ms: Minimum milliseconds between requests. ``0`` or a
                negative value disables throttling.
            user_agent: Client identifier sent as the User-Agent header.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport.
        """
        super().__init__(
            user_agent=user_agent, timeout=timeout, transport=transport
        )
        self.interval_ms = interval_ms
        self._limiter: Limiter | None = None
        self._total_requests = 0

        if interval_ms > 0:
            bucket = InMemoryBucket([Rate(1, interval_ms)])
            self._limiter = Limiter(
                bucket, max_delay=interval_ms + self._DELAY_SLACK_MS
            )
            logger.info(
                f"Rate limiter initialized: 1 request per {interval_ms}ms"
            )
        else:
            logger.info("No rate limit configured")

    def resolve_request(self, http_params: HTTPRequestParams) -> Response:
        """Wait for a limiter token, then fetch the request.

        Raises:
            RateLimitException: If the limiter refuses the request.
        """
        if self._limiter is not None:
            try:
                self._limiter.try_acquire("register")
            except (BucketFullException, LimiterDelayException) as e:
                reason = " ".join(str(e).split())
                raise RateLimitException(
                    url=http_params.url, reason=f"{type(e).__name__}: {reason}"
                ) from e
        self._total_requests += 1
        return super().resolve_request(http_params)

    @property
    def state(self) -> dict[str, Any]:
        """Current limiter state for logging."""
        return {
            "interval_ms": self.interval_ms,
            "total_requests": self._total_requests,
        }
