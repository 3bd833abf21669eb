"""Best-effort IP geolocation used as context for query enhancement."""

from __future__ import annotations

from datetime import datetime
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from pydantic import BaseModel, ValidationError

LOGGER = logging.getLogger(__name__)

IP_LOOKUP_URL = "https://ipapi.co/json/"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class IPInfo(BaseModel):
    ip: str = ""
    city: str = ""
    region: str = ""
    country: str = ""
    timezone: str = ""


async def lookup_location(
    *,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> IPInfo:
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        response = await client.get(IP_LOOKUP_URL)
        response.raise_for_status()
        return IPInfo.model_validate(response.json())


def _now_in(timezone_name: str) -> datetime:
    if timezone_name:
        try:
            return datetime.now(ZoneInfo(timezone_name))
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return datetime.now().astimezone()


async def formatted_location_and_time(
    *,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Return ``"Location: City, Region, Country, Current time: ..."``.

    Any lookup failure degrades to ``"Unknown location, Current time: ..."``.
    """
    try:
        info = await lookup_location(timeout=timeout, transport=transport)
    except (httpx.HTTPError, ValueError, ValidationError) as exc:
        LOGGER.info(
            "location.lookup.failed",
            extra={"event": "location.lookup.failed", "error": str(exc)},
        )
        return f"Unknown location, Current time: {datetime.now().strftime(TIME_FORMAT)}"

    now = _now_in(info.timezone).strftime(TIME_FORMAT)
    return (
        f"Location: {info.city}, {info.region}, {info.country}, Current time: {now}"
    )
