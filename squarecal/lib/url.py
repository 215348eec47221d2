#!/usr/bin/env python
import sys
from typing import Any
from typing import Optional
from typing import Union
from urllib.parse import ParseResult
from urllib.parse import SplitResult
from urllib.parse import urlparse

from squarecal.lib.python_utilities import to_normal_str
from squarecal.lib.python_utilities import to_unicode

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self


class URL:
    """
    Wraps URLs into objects.  Used internally; all methods accepting
    URLs can be fed a URL object, a string or a parsed URL.

    Addresses handed back by a CalDAV server come in three flavours:

    1) a path relative to the current collection, i.e. "event.ics"

    2) an absolute path, i.e. "/123456789/calendars/home/"

    3) a fully qualified URL, i.e.
    "https://p42-caldav.icloud.com/123456789/calendars/home/".  Some
    servers (iCloud) delegate the calendar home to another host, so
    a fully qualified URL always wins over the base it is joined to.
    """

    def __init__(self, url: Union[str, ParseResult, SplitResult]) -> None:
        if isinstance(url, (ParseResult, SplitResult)):
            self.url_parsed: Optional[Union[ParseResult, SplitResult]] = url
            self.url_raw = None
        else:
            self.url_raw = url
            self.url_parsed = None

    @classmethod
    def objectify(cls, url: Union[Self, str, ParseResult, SplitResult, None]) -> Optional["URL"]:
        if url is None or isinstance(url, URL):
            return url
        return URL(url)

    # To deal with all kind of methods/properties in the ParseResult
    # class
    def __getattr__(self, attr: str):
        if "url_parsed" not in vars(self):
            raise AttributeError(attr)
        if self.url_parsed is None:
            self.url_parsed = urlparse(self.url_raw)
        if hasattr(self.url_parsed, attr):
            return getattr(self.url_parsed, attr)
        return getattr(str(self), attr)

    def __str__(self) -> str:
        if self.url_raw is None:
            if self.url_parsed is None:
                raise ValueError("Unexpected value None for self.url_parsed")
            self.url_raw = self.url_parsed.geturl()
        return to_normal_str(to_unicode(self.url_raw))

    def __repr__(self) -> str:
        return "URL(%s)" % str(self)

    def is_absolute(self) -> bool:
        return bool(self.scheme and self.netloc)

    def join(self, path: Any) -> "URL":
        """
        Assumes this object is the base URL.  A relative path is
        appended to the base path, an absolute path replaces the base
        path, and a fully qualified URL is returned as it is.
        """
        if not path or not str(path):
            return self
        path = URL.objectify(path)
        if path.is_absolute():
            return path

        if path.path.startswith("/"):
            ret_path = path.path
        else:
            sep = "/"
            if self.path.endswith("/"):
                sep = ""
            ret_path = "%s%s%s" % (self.path, sep, path.path)
        return URL(
            ParseResult(
                self.scheme,
                self.netloc,
                ret_path,
                path.params,
                path.query,
                path.fragment,
            )
        )
