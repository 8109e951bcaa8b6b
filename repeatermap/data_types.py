"""Data types shared by the sources and the request manager.

Sources describe what they want fetched with HTTPRequestParams and receive a
Response back. Keeping these as plain frozen dataclasses means parsing code
never touches the HTTP client directly, and tests can build Responses by
hand.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class HttpMethod(Enum):
    """HTTP methods used against the upstream sites."""

    GET = "GET"
    POST = "POST"


# Type aliases for parameter types
QueryParams = dict[str, Any] | list[tuple[str, Any]] | None
RequestData = dict[str, Any] | bytes | None
HeadersType = dict[str, str] | None
TimeoutType = float | None


@dataclass(frozen=True)
class HTTPRequestParams:
    """Parameters for an HTTP request.

    :param method: HTTP method for the request: ``GET`` or ``POST``.
    :param url: Absolute URL for the request.
    :param params: (optional) Dictionary or list of tuples to send in the
        query string.
    :param data: (optional) Dictionary (form-encoded) or bytes to send in the
        body of the request.
    :param headers: (optional) Extra HTTP headers. The request manager adds
        the client identifier itself.
    :param timeout: (optional) Override of the manager's timeout in seconds.
    :param allow_redirects: (optional) Follow redirects. Defaults to ``True``.
    """

    method: HttpMethod
    url: str
    params: QueryParams = None
    data: RequestData = None
    headers: HeadersType = None
    timeout: TimeoutType = None
    allow_redirects: bool = True

    @classmethod
    def get(cls, url: str, **params: Any) -> HTTPRequestParams:
        """Build a GET request, passing keyword arguments as the query."""
        return cls(method=HttpMethod.GET, url=url, params=params or None)

    @classmethod
    def post_form(cls, url: str, fields: dict[str, Any]) -> HTTPRequestParams:
        """Build a form-encoded POST request."""
        return cls(method=HttpMethod.POST, url=url, data=dict(fields))


@dataclass
class Response:
    """HTTP response from fetching a page.

    Modeled after httpx.Response to provide a familiar interface.

    Attributes:
        status_code: HTTP status code (200, 404, etc.).
        headers: Response headers.
        content: Raw response bytes.
        text: Decoded response text.
        url: Final URL after any redirects.
        request: The request parameters that produced this response.
    """

    status_code: int
    headers: dict[str, str]
    content: bytes
    text: str
    url: str
    request: HTTPRequestParams
