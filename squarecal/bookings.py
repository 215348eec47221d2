#!/usr/bin/env python
"""
Mapping of booking records, as delivered by the Square appointments
API, into CalendarEvent objects.

A booking is a mapping with (at least) the keys id, startAt, status
and appointmentSegments, each segment carrying durationMinutes and
optionally intermissionMinutes.
"""
from datetime import datetime
from datetime import timedelta
from typing import Any
from typing import Iterable
from typing import List
from typing import Mapping
from typing import Optional

from squarecal.protocol.types import CalendarEvent

ACTIVE_STATUSES = ("ACCEPTED", "PENDING")
DEFAULT_TITLE = "Square Appointment"

Booking = Mapping[str, Any]


def is_booking_active(booking: Booking) -> bool:
    return booking.get("status") in ACTIVE_STATUSES


def booking_duration(booking: Booking) -> int:
    """total minutes of all segments, intermissions included"""
    return sum(
        segment.get("durationMinutes", 0) + (segment.get("intermissionMinutes") or 0)
        for segment in booking.get("appointmentSegments") or []
    )


def booking_start_time(booking: Booking) -> datetime:
    ## datetime.fromisoformat accepts a trailing Z only from python 3.11
    return datetime.fromisoformat(booking["startAt"].replace("Z", "+00:00"))


def booking_end_time(booking: Booking) -> datetime:
    return booking_start_time(booking) + timedelta(minutes=booking_duration(booking))


def booking_to_event(
    booking: Booking,
    title: str = DEFAULT_TITLE,
    location: Optional[str] = None,
    description: Optional[str] = None,
) -> CalendarEvent:
    return CalendarEvent(
        title=title,
        description=description,
        location=location,
        start_date=booking_start_time(booking),
        end_date=booking_end_time(booking),
        external_ref=booking["id"],
    )


def bookings_to_events(bookings: Iterable[Booking], **kwargs: Any) -> List[CalendarEvent]:
    """events for the active (accepted or pending) bookings only"""
    return [
        booking_to_event(booking, **kwargs)
        for booking in bookings
        if is_booking_active(booking)
    ]
