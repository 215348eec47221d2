#!/usr/bin/env python
"""
Unit tests for the discovery state machine.  The HTTP session is
mocked, no test talks to a server.
"""
import asyncio

import pytest
from unittest.mock import AsyncMock

from squarecal.async_davclient import AsyncDAVClient
from squarecal.discovery import CalendarDiscovery
from squarecal.discovery import DiscoveryState
from squarecal.discovery import select_calendar
from squarecal.discovery import user_calendars
from squarecal.lib import error
from squarecal.protocol.types import CalendarCredentials
from squarecal.protocol.types import CalendarInfo

from .test_async_davclient import create_mock_response

CREDENTIALS = CalendarCredentials(
    account_id="user@example.com",
    secret="secret",
    server_url="https://caldav.example.com",
    calendar_name="Square Appointments",
)

PRINCIPAL_RESPONSE = b"""<?xml version="1.0" encoding="utf-8"?>
<D:multistatus xmlns:D="DAV:">
  <D:response>
    <D:href>/</D:href>
    <D:propstat>
      <D:prop>
        <D:current-user-principal>
          <D:href>/123456789/principal/</D:href>
        </D:current-user-principal>
      </D:prop>
      <D:status>HTTP/1.1 200 OK</D:status>
    </D:propstat>
  </D:response>
</D:multistatus>"""

CALENDAR_HOME_RESPONSE = b"""<?xml version="1.0" encoding="utf-8"?>
<D:multistatus xmlns:D="DAV:" xmlns:C="urn:ietf:params:xml:ns:caldav">
  <D:response>
    <D:href>/123456789/principal/</D:href>
    <D:propstat>
      <D:prop>
        <C:calendar-home-set>
          <D:href>/123456789/calendars/</D:href>
        </C:calendar-home-set>
      </D:prop>
      <D:status>HTTP/1.1 200 OK</D:status>
    </D:propstat>
  </D:response>
</D:multistatus>"""

CALENDAR_LIST_RESPONSE = b"""<?xml version="1.0" encoding="utf-8"?>
<D:multistatus xmlns:D="DAV:" xmlns:C="urn:ietf:params:xml:ns:caldav">
  <D:response>
    <D:href>/123456789/calendars/inbox/</D:href>
    <D:propstat>
      <D:prop>
        <D:resourcetype><D:collection/><C:schedule-inbox/></D:resourcetype>
        <D:displayname>Inbox</D:displayname>
      </D:prop>
      <D:status>HTTP/1.1 200 OK</D:status>
    </D:propstat>
  </D:response>
  <D:response>
    <D:href>/123456789/calendars/square-appointments/</D:href>
    <D:propstat>
      <D:prop>
        <D:resourcetype>
          <D:collection/>
          <C:calendar/>
        </D:resourcetype>
        <D:displayname>Square Appointments</D:displayname>
        <D:getctag>test-ctag</D:getctag>
      </D:prop>
      <D:status>HTTP/1.1 200 OK</D:status>
    </D:propstat>
  </D:response>
</D:multistatus>"""

EMPTY_HOME_RESPONSE = b"""<?xml version="1.0" encoding="utf-8"?>
<D:multistatus xmlns:D="DAV:">
  <D:response>
    <D:href>/123456789/calendars/outbox/</D:href>
    <D:propstat>
      <D:prop><D:displayname>Outbox</D:displayname></D:prop>
      <D:status>HTTP/1.1 200 OK</D:status>
    </D:propstat>
  </D:response>
</D:multistatus>"""


def discovery_responses():
    return [
        create_mock_response(PRINCIPAL_RESPONSE, status_code=207),
        create_mock_response(CALENDAR_HOME_RESPONSE, status_code=207),
        create_mock_response(CALENDAR_LIST_RESPONSE, status_code=207),
    ]


def mocked_discovery(responses, calendar_name="Square Appointments") -> CalendarDiscovery:
    client = AsyncDAVClient(CREDENTIALS)
    client.session.request = AsyncMock(side_effect=responses)
    return CalendarDiscovery(client, calendar_name)


def calendars(*names):
    return [
        CalendarInfo(url="/cal/%s/" % name.lower().replace(" ", "-"), display_name=name)
        for name in names
    ]


class TestSelectCalendar:
    def test_exact_match_wins(self):
        cals = [CalendarInfo(url="/home/inbox/", display_name="inbox")] + calendars(
            "Team Calendar", "Home"
        )
        assert select_calendar(cals, "Team Calendar").display_name == "Team Calendar"

    def test_exact_match_is_trimmed(self):
        cals = calendars("Team Calendar Archive", "  Team Calendar ")
        assert select_calendar(cals, "Team Calendar").display_name == "  Team Calendar "

    def test_substring_match(self):
        cals = calendars("My Calendar", "Salon - square appointments")
        assert (
            select_calendar(cals, "Square Appointments").display_name
            == "Salon - square appointments"
        )

    def test_fallback_to_calendar(self):
        cals = calendars("Work Stuff", "My Calendar")
        assert select_calendar(cals, "Square Appointments").display_name == "My Calendar"

    def test_fallback_to_home(self):
        cals = calendars("Work Stuff", "Home")
        assert select_calendar(cals, "Square Appointments").display_name == "Home"

    def test_fallback_to_first(self):
        cals = calendars("Work Stuff", "Private")
        assert select_calendar(cals, "Square Appointments").display_name == "Work Stuff"

    def test_filters_non_user_collections(self):
        cals = [
            CalendarInfo(url="/home/inbox/", display_name="Square Appointments"),
            CalendarInfo(url="/home/outbox/", display_name="Outbox Calendar"),
            CalendarInfo(url="/home/notification/", display_name="Notifications"),
            CalendarInfo(url="/home/unnamed/", display_name=""),
            CalendarInfo(url="/home/work/", display_name="Work"),
        ]
        assert [c.url for c in user_calendars(cals)] == ["/home/work/"]
        assert select_calendar(cals, "Square Appointments").url == "/home/work/"

    def test_no_user_calendars(self):
        cals = [
            CalendarInfo(url="/home/inbox/", display_name="Inbox"),
            CalendarInfo(url="/home/x/", display_name=""),
        ]
        with pytest.raises(error.DiscoveryError) as excinfo:
            select_calendar(cals, "Square Appointments")
        assert "Inbox" in str(excinfo.value)


class TestCalendarDiscovery:
    @pytest.mark.asyncio
    async def test_full_discovery(self):
        discovery = mocked_discovery(discovery_responses())
        assert discovery.state is DiscoveryState.UNDISCOVERED

        target = await discovery.ensure_discovered()

        assert discovery.state is DiscoveryState.TARGET_SELECTED
        assert discovery.principal_url == "/123456789/principal/"
        assert discovery.calendar_home_url == "/123456789/calendars/"
        assert len(discovery.calendars) == 2
        assert target.url == "/123456789/calendars/square-appointments/"
        assert target.ctag == "test-ctag"
        assert target.is_calendar

        calls = discovery.client.session.request.call_args_list
        assert [c[0][0] for c in calls] == ["PROPFIND"] * 3
        assert [c[0][1] for c in calls] == [
            "https://caldav.example.com/",
            "https://caldav.example.com/123456789/principal/",
            "https://caldav.example.com/123456789/calendars/",
        ]
        assert [c[1]["headers"]["Depth"] for c in calls] == ["0", "0", "1"]
        assert b"current-user-principal" in calls[0][1]["data"]
        assert b"calendar-home-set" in calls[1][1]["data"]
        assert b"getctag" in calls[2][1]["data"]

    @pytest.mark.asyncio
    async def test_discovery_is_cached(self):
        discovery = mocked_discovery(discovery_responses())

        first = await discovery.ensure_discovered()
        second = await discovery.ensure_discovered()

        assert first is second
        assert discovery.client.session.request.call_count == 3

    @pytest.mark.asyncio
    async def test_concurrent_first_use_discovers_once(self):
        discovery = mocked_discovery(discovery_responses())

        results = await asyncio.gather(
            discovery.ensure_discovered(), discovery.ensure_discovered()
        )

        assert results[0] is results[1]
        assert discovery.client.session.request.call_count == 3

    @pytest.mark.asyncio
    async def test_missing_principal(self):
        discovery = mocked_discovery(
            [create_mock_response(b'<D:multistatus xmlns:D="DAV:"/>', status_code=207)]
        )

        with pytest.raises(error.DiscoveryError):
            await discovery.ensure_discovered()
        assert discovery.state is DiscoveryState.UNDISCOVERED

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self):
        responses = [
            create_mock_response(PRINCIPAL_RESPONSE, status_code=207),
            create_mock_response(CALENDAR_HOME_RESPONSE, status_code=207),
            create_mock_response(EMPTY_HOME_RESPONSE, status_code=207),
        ] + discovery_responses()
        discovery = mocked_discovery(responses)

        with pytest.raises(error.DiscoveryError):
            await discovery.ensure_discovered()
        assert discovery.state is DiscoveryState.UNDISCOVERED
        assert discovery.target_calendar is None

        target = await discovery.ensure_discovered()
        assert target.display_name == "Square Appointments"
        assert discovery.client.session.request.call_count == 6

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self):
        discovery = mocked_discovery(
            [create_mock_response(b"Unauthorized access", status_code=401, reason="Unauthorized")]
        )

        with pytest.raises(error.TransportError) as excinfo:
            await discovery.ensure_discovered()
        assert excinfo.value.status == 401


CROSS_HOST_HOME_RESPONSE = CALENDAR_HOME_RESPONSE.replace(
    b"<D:href>/123456789/calendars/</D:href>",
    b"<D:href>https://p42-caldav.example.com/123456789/calendars/</D:href>",
)


class TestCrossHostCalendarHome:
    @pytest.mark.asyncio
    async def test_calendar_home_on_other_host(self):
        discovery = mocked_discovery(
            [
                create_mock_response(PRINCIPAL_RESPONSE, status_code=207),
                create_mock_response(CROSS_HOST_HOME_RESPONSE, status_code=207),
                create_mock_response(CALENDAR_LIST_RESPONSE, status_code=207),
            ]
        )

        await discovery.ensure_discovered()

        calls = discovery.client.session.request.call_args_list
        assert calls[2][0][1] == "https://p42-caldav.example.com/123456789/calendars/"
        assert discovery.client.url.hostname == "p42-caldav.example.com"
        assert (
            str(discovery.client.url.join(discovery.target_calendar.url))
            == "https://p42-caldav.example.com/123456789/calendars/square-appointments/"
        )

    @pytest.mark.asyncio
    async def test_failed_run_restores_base_url(self):
        discovery = mocked_discovery(
            [
                create_mock_response(PRINCIPAL_RESPONSE, status_code=207),
                create_mock_response(CROSS_HOST_HOME_RESPONSE, status_code=207),
                create_mock_response(EMPTY_HOME_RESPONSE, status_code=207),
            ]
            + discovery_responses()
        )

        with pytest.raises(error.DiscoveryError):
            await discovery.ensure_discovered()
        assert discovery.client.url.hostname == "caldav.example.com"

        await discovery.ensure_discovered()
        calls = discovery.client.session.request.call_args_list
        assert calls[3][0][1] == "https://caldav.example.com/"


def test_lock_created_inside_running_loop():
    ## built outside any event loop
    discovery = mocked_discovery(discovery_responses())
    assert discovery._lock is None

    async def run_twice():
        return await asyncio.gather(
            discovery.ensure_discovered(), discovery.ensure_discovered()
        )

    first = asyncio.run(run_twice())
    assert first[0].display_name == "Square Appointments"
    assert discovery.client.session.request.call_count == 3
