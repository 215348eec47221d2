#!/usr/bin/env python
import logging
import os
from typing import Optional

from squarecal import __version__

## one of DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("SQUARECAL_DEBUGMODE")
if not debugmode:
    if "dev" in __version__:
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("squarecal")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)
else:
    log.setLevel(logging.WARNING)

## Diagnostic snippets of server responses are cut at this length
SNIPPET_LENGTH = 500


def snippet(text: Optional[str], length: int = SNIPPET_LENGTH) -> str:
    """Utility for cutting a server response down to something loggable"""
    if not text:
        return ""
    return text[:length]


class SquareCalError(Exception):
    url: Optional[str] = None
    reason: str = "no reason"

    def __init__(self, url: Optional[str] = None, reason: Optional[str] = None) -> None:
        if url:
            self.url = url
        if reason:
            self.reason = reason

    def __str__(self) -> str:
        return "%s at '%s', reason %s" % (
            self.__class__.__name__,
            self.url,
            self.reason,
        )


class TransportError(SquareCalError):
    """
    The server answered with a non-success HTTP status.  The status
    code, the status text and the (eagerly read) response body are
    kept on the exception.
    """

    def __init__(
        self,
        status: int,
        reason: str = "",
        body: str = "",
        url: Optional[str] = None,
        method: Optional[str] = None,
    ) -> None:
        super().__init__(url=url, reason=reason)
        self.status = status
        self.reason = reason
        self.body = body
        self.method = method

    @property
    def not_found(self) -> bool:
        return self.status == 404

    def __str__(self) -> str:
        return "CalDAV request failed: %s %s" % (self.status, self.reason)


class DiscoveryError(SquareCalError):
    """
    A required element was missing in a PROPFIND response, or no
    usable calendar collection was found.  `snippet` holds the start of
    the offending response for diagnostics.
    """

    def __init__(
        self,
        reason: str,
        response_text: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(url=url, reason=reason)
        self.snippet = snippet(response_text)

    def __str__(self) -> str:
        if self.snippet:
            return "%s: %s\n\n%s" % (self.__class__.__name__, self.reason, self.snippet)
        return "%s: %s" % (self.__class__.__name__, self.reason)


class ConfigurationError(SquareCalError):
    pass
