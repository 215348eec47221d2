#!/usr/bin/env python
"""
Async WebDAV/CalDAV transport.

Sends one HTTP request per call, with Basic authentication, and hands
back the response body as text.  Non-success statuses are raised as
TransportError.  Nothing is retried here.
"""

import logging
import sys
from collections.abc import Mapping
from types import TracebackType
from typing import Optional
from typing import Union

from niquests import AsyncSession
from niquests.auth import HTTPBasicAuth

from squarecal import __version__
from squarecal.lib import error
from squarecal.lib.python_utilities import to_normal_str
from squarecal.lib.python_utilities import to_wire
from squarecal.lib.url import URL
from squarecal.protocol.types import CalendarCredentials
from squarecal.protocol.types import DAVMethod

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

log = logging.getLogger("squarecal")

USER_AGENT = "Square-Cal-Sync/%s" % __version__
XML_CONTENT_TYPE = 'application/xml; charset="utf-8"'
ICAL_CONTENT_TYPE = "text/calendar; charset=utf-8"


class AsyncDAVClient:
    """
    Async WebDAV/CalDAV client.

    Usage:
        async with AsyncDAVClient(credentials) as client:
            body = await client.propfind("/", propfind_xml, depth=0)
    """

    url: URL = None

    def __init__(
        self,
        credentials: CalendarCredentials,
        timeout: Optional[Union[int, float]] = None,
        headers: Optional[Mapping[str, str]] = None,
        session: Optional[AsyncSession] = None,
    ) -> None:
        """
        Args:
            credentials: Account, secret and server URL.
            timeout: Request timeout in seconds, None for the HTTP stack default.
            headers: Additional headers for all requests.
            session: An existing niquests AsyncSession to use.
        """
        self.credentials = credentials
        self.url = URL.objectify(credentials.server_url)
        self.timeout = timeout
        self.session = session if session is not None else AsyncSession()

        self.auth = HTTPBasicAuth(credentials.account_id, credentials.secret)
        self.headers: dict[str, str] = {"User-Agent": USER_AGENT}
        self.headers.update(headers or {})

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the async session."""
        if hasattr(self, "session"):
            await self.session.close()

    @staticmethod
    def _build_method_headers(
        method: str, depth: Optional[int] = None, extra_headers: Optional[Mapping[str, str]] = None
    ) -> dict[str, str]:
        """
        Build headers for WebDAV methods.

        Args:
            method: HTTP method name.
            depth: Depth header value (for PROPFIND/REPORT).
            extra_headers: Additional headers to merge.

        Returns:
            Dictionary of headers.
        """
        headers: dict[str, str] = {}

        if depth is not None:
            headers["Depth"] = str(depth)

        if method in (DAVMethod.PROPFIND.value, DAVMethod.REPORT.value):
            headers["Content-Type"] = XML_CONTENT_TYPE
        elif method == DAVMethod.PUT.value:
            headers["Content-Type"] = ICAL_CONTENT_TYPE

        if extra_headers:
            headers.update(extra_headers)

        return headers

    async def request(
        self,
        method: str,
        url: str,
        body: Union[str, bytes, None] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Send an HTTP request and return the response body.

        Args:
            method: HTTP method.
            url: Request URL; a path is resolved against the server URL.
            body: Request body.
            headers: Additional headers, added on top of the defaults.

        Returns:
            The response body as text.

        Raises:
            TransportError: on a non-success HTTP status.
        """
        combined_headers = self.headers.copy()
        combined_headers.update(headers or {})
        if not body and "Content-Type" in combined_headers:
            del combined_headers["Content-Type"]

        url_obj = self.url.join(url)

        log.debug(
            f"sending request - method={method}, url={url_obj}\nbody:\n{to_normal_str(body)}"
        )

        r = await self.session.request(
            method,
            str(url_obj),
            data=to_wire(body) if body else None,
            headers=combined_headers,
            auth=self.auth,
            timeout=self.timeout,
        )
        ## read the body before looking at the status, so that it
        ## is available to the error
        text = r.text or ""
        log.debug(f"server responded with {r.status_code} {r.reason}")

        if not 200 <= r.status_code < 300:
            raise error.TransportError(
                status=r.status_code,
                reason=r.reason or "",
                body=text,
                url=str(url_obj),
                method=method,
            )

        log.debug(text)
        return text

    # ==================== HTTP Method Wrappers ====================

    async def propfind(
        self,
        url: str,
        body: Union[str, bytes] = "",
        depth: int = 0,
        headers: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Send a PROPFIND request.

        Args:
            url: Target URL.
            body: XML properties request.
            depth: Maximum recursion depth.
            headers: Additional headers.
        """
        final_headers = self._build_method_headers(DAVMethod.PROPFIND.value, depth, headers)
        return await self.request(DAVMethod.PROPFIND.value, url, body, final_headers)

    async def report(
        self,
        url: str,
        body: Union[str, bytes] = "",
        depth: int = 0,
        headers: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Send a REPORT request.

        Args:
            url: Target URL.
            body: XML report request.
            depth: Maximum recursion depth.
            headers: Additional headers.
        """
        final_headers = self._build_method_headers(DAVMethod.REPORT.value, depth, headers)
        return await self.request(DAVMethod.REPORT.value, url, body, final_headers)

    async def put(
        self,
        url: str,
        body: Union[str, bytes],
        headers: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Send a PUT request.

        Args:
            url: Target URL.
            body: Request body (iCalendar data).
            headers: Additional headers, i.e. If-None-Match.
        """
        final_headers = self._build_method_headers(DAVMethod.PUT.value, None, headers)
        return await self.request(DAVMethod.PUT.value, url, body, final_headers)

    async def get(self, url: str, headers: Optional[Mapping[str, str]] = None) -> str:
        return await self.request(DAVMethod.GET.value, url, None, headers)

    async def delete(self, url: str, headers: Optional[Mapping[str, str]] = None) -> str:
        return await self.request(DAVMethod.DELETE.value, url, None, headers)
