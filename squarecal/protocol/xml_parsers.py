"""
Pure functions for parsing CalDAV XML responses.

All functions in this module are pure - they take XML text in and return
structured data out, with no side effects or I/O.

Servers disagree on namespace prefixes (no prefix, ``D:``, ``d:``, ...),
so elements are matched on their local name only.
"""

import logging
from typing import Iterator
from typing import List
from typing import Optional
from typing import Union

from lxml import etree
from lxml.etree import _Element

from squarecal.lib import error

from .types import CalendarInfo
from .types import CalendarQueryResult

log = logging.getLogger(__name__)


def find_href(body: Union[str, bytes], target: Optional[str] = None) -> str:
    """
    Find the first href below the first element named `target`.

    Args:
        body: Raw multistatus XML
        target: Local name of the property holding the href, i.e.
                "current-user-principal" or "calendar-home-set".  If None,
                the first href in the document is returned.

    Returns:
        The href text

    Raises:
        DiscoveryError: if the document can't be parsed, or holds no such href
    """
    tree = _parse_or_fail(body)
    what = target or "href"

    containers = _iter_local(tree, target) if target else [tree]
    for container in containers:
        for elem in _iter_local(container, "href"):
            if elem.text and elem.text.strip():
                return elem.text.strip()

    raise error.DiscoveryError(
        "no %s href found in response" % what, response_text=_as_text(body)
    )


def parse_calendar_list(body: Union[str, bytes]) -> List[CalendarInfo]:
    """
    Parse the depth 1 PROPFIND response on a calendar home.

    Args:
        body: Raw multistatus XML

    Returns:
        One CalendarInfo per response block carrying an href, in document order

    Raises:
        DiscoveryError: if the document can't be parsed
    """
    tree = _parse_or_fail(body)
    calendars: List[CalendarInfo] = []

    for response in _iter_local(tree, "response"):
        href = _child_text(response, "href")
        if not href:
            log.debug("skipping response without href")
            continue

        is_calendar = False
        resourcetype = _first(response, "resourcetype")
        if resourcetype is not None:
            is_calendar = any(
                _localname(child) == "calendar" for child in resourcetype
            )

        displayname = _first(response, "displayname")
        ctag = _first(response, "getctag")

        calendars.append(
            CalendarInfo(
                url=href,
                display_name=_text(displayname) or "",
                ctag=_text(ctag),
                is_calendar=is_calendar,
            )
        )

    return calendars


def parse_calendar_query_response(body: Union[str, bytes]) -> List[CalendarQueryResult]:
    """
    Parse a calendar-query REPORT response.

    Args:
        body: Raw multistatus XML

    Returns:
        List of CalendarQueryResult with calendar data, in document order

    Raises:
        XMLSyntaxError: If body is not valid XML
    """
    if not body or not body.strip():
        return []

    tree = _parse(body)
    results: List[CalendarQueryResult] = []

    for response in _iter_local(tree, "response"):
        calendar_data = _first(response, "calendar-data")
        etag = _first(response, "getetag")
        results.append(
            CalendarQueryResult(
                href=_child_text(response, "href") or "",
                etag=_text(etag),
                calendar_data=calendar_data.text if calendar_data is not None else None,
            )
        )

    return results


# Helper functions


def _as_text(body: Union[str, bytes]) -> str:
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return body


def _parse(body: Union[str, bytes]) -> _Element:
    ## lxml refuses str input carrying an encoding declaration
    if isinstance(body, str):
        body = body.encode("utf-8")
    parser = etree.XMLParser(remove_blank_text=True, resolve_entities=False)
    return etree.fromstring(body, parser)


def _parse_or_fail(body: Union[str, bytes]) -> _Element:
    if not body or not body.strip():
        raise error.DiscoveryError("empty response", response_text="")
    try:
        return _parse(body)
    except etree.XMLSyntaxError as err:
        raise error.DiscoveryError(
            "response is not valid XML (%s)" % err, response_text=_as_text(body)
        ) from err


def _localname(elem: _Element) -> Optional[str]:
    ## comments and processing instructions have a non-string tag
    if not isinstance(elem.tag, str):
        return None
    return etree.QName(elem).localname


def _iter_local(elem: _Element, name: str) -> Iterator[_Element]:
    for candidate in elem.iter():
        if _localname(candidate) == name:
            yield candidate


def _first(elem: _Element, name: str) -> Optional[_Element]:
    return next(_iter_local(elem, name), None)


def _text(elem: Optional[_Element]) -> Optional[str]:
    if elem is None or elem.text is None:
        return None
    return elem.text.strip()


def _child_text(elem: _Element, name: str) -> Optional[str]:
    """text of a direct child; nested hrefs (i.e. inside a property) don't count"""
    for child in elem:
        if _localname(child) == name:
            return _text(child)
    return None
