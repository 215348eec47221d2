import json
import logging
import os
from typing import Any
from typing import Dict
from typing import Optional

from squarecal.lib import error
from squarecal.protocol.types import DEFAULT_CALENDAR_NAME
from squarecal.protocol.types import CalendarCredentials

"""
Connection parameters come from, in order of precedence:

* explicit arguments
* environment variables (APPLE_USERNAME, APPLE_APP_PASSWORD,
  APPLE_CALDAV_SERVER, APPLE_CALENDAR_NAME)
* a section in a json or yaml config file
"""

log = logging.getLogger("squarecal")

## config file key -> environment variable
ENVIRONMENT_KEYS = {
    "caldav_username": "APPLE_USERNAME",
    "caldav_password": "APPLE_APP_PASSWORD",
    "caldav_url": "APPLE_CALDAV_SERVER",
    "calendar_name": "APPLE_CALENDAR_NAME",
}


def config_section(config: Dict[str, Any], section: str = "default") -> Dict[str, Any]:
    if section in config and "inherits" in config[section]:
        ret = config_section(config, config[section]["inherits"])
    else:
        ret = {}
    if section in config:
        ret.update(config[section])
    return ret


def read_config(fn: Optional[str]) -> Optional[Dict[str, Any]]:
    if not fn:
        cfgdir = f"{os.environ.get('HOME', '/')}/.config/"
        for config_file in (
            f"{cfgdir}/squarecal/calendar.conf",
            f"{cfgdir}/squarecal/calendar.yaml",
            f"{cfgdir}/squarecal/calendar.json",
            "/etc/squarecal/calendar.conf",
        ):
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return None

    try:
        try:
            with open(fn, "rb") as config_file:
                return json.load(config_file)
        except json.decoder.JSONDecodeError:
            ## Late import, wrapped in try/except.  yaml is an optional
            ## dependency.
            try:
                import yaml

                try:
                    with open(fn, "rb") as config_file:
                        return yaml.load(config_file, yaml.SafeLoader)
                except yaml.YAMLError:
                    log.error(
                        f"config file {fn} exists but is neither valid json nor yaml.  Check the syntax."
                    )
            except ImportError:
                log.error(
                    f"config file {fn} exists but is not valid json, and pyyaml is not installed."
                )

    except FileNotFoundError:
        log.info("no config file found")
    except ValueError:
        log.error("error in config file.  It will be ignored", exc_info=True)
    return {}


def get_credentials(
    section: str = "default",
    config_file: Optional[str] = None,
    **overrides: Optional[str],
) -> CalendarCredentials:
    """
    Collect the connection parameters.

    Args:
        section: Section of the config file to use.
        config_file: Path of a config file, None to search the default locations.
        overrides: caldav_username, caldav_password, caldav_url and/or
                   calendar_name given explicitly.

    Raises:
        ConfigurationError: if username, password or server URL is missing
    """
    unknown = set(overrides) - set(ENVIRONMENT_KEYS)
    if unknown:
        raise TypeError("unexpected keyword arguments: %s" % ", ".join(sorted(unknown)))

    params = config_section(read_config(config_file) or {}, section)
    for key, envvar in ENVIRONMENT_KEYS.items():
        if os.environ.get(envvar):
            params[key] = os.environ[envvar]
        if overrides.get(key):
            params[key] = overrides[key]

    missing = [
        ENVIRONMENT_KEYS[key]
        for key in ("caldav_username", "caldav_password", "caldav_url")
        if not params.get(key)
    ]
    if missing:
        raise error.ConfigurationError(
            reason="missing calendar configuration, please set %s" % ", ".join(missing)
        )

    return CalendarCredentials(
        account_id=params["caldav_username"],
        secret=params["caldav_password"],
        server_url=params["caldav_url"],
        calendar_name=params.get("calendar_name") or DEFAULT_CALENDAR_NAME,
    )


def get_calendar_service(
    section: str = "default",
    config_file: Optional[str] = None,
    timeout: Optional[float] = None,
    **overrides: Optional[str],
):
    """
    The recommended way to create a CalendarService, with parameters
    from arguments, environment or config file.

    Example:
        async with get_calendar_service() as service:
            events = await service.list_events()
    """
    from squarecal.calendar_service import CalendarService

    credentials = get_credentials(section, config_file, **overrides)
    log.debug(f"connecting to {credentials.server_url} as {credentials.account_id}")
    return CalendarService(credentials, timeout=timeout)
