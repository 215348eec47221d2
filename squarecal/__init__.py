#!/usr/bin/env python
import logging

__version__ = "1.0.0"

from .calendar_service import CalendarService
from .config import get_calendar_service
from .config import get_credentials
from .protocol.types import CalendarCredentials
from .protocol.types import CalendarEvent
from .protocol.types import CalendarInfo

# Silence notification of no default logging handler
log = logging.getLogger("squarecal")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = [
    "__version__",
    "CalendarService",
    "CalendarCredentials",
    "CalendarEvent",
    "CalendarInfo",
    "get_calendar_service",
    "get_credentials",
]
