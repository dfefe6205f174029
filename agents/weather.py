"""
Best-effort weather enrichment via the free Open-Meteo API (no key needed).

Every failure degrades to Weather.unavailable() for the affected days; nothing
in this module raises to the caller.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

import requests

from itinerary import DayPlan, Weather

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
TIMEOUT_SECONDS = 5

# WMO weather interpretation codes, collapsed to short labels
_WMO_CONDITIONS = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Fog",
    51: "Drizzle",
    53: "Drizzle",
    55: "Drizzle",
    61: "Light rain",
    63: "Rain",
    65: "Heavy rain",
    71: "Light snow",
    73: "Snow",
    75: "Heavy snow",
    80: "Rain showers",
    81: "Rain showers",
    82: "Violent rain showers",
    95: "Thunderstorm",
    96: "Thunderstorm with hail",
    99: "Thunderstorm with hail",
}


def _condition(code) -> str:
    if code is None:
        return "Unknown"
    return _WMO_CONDITIONS.get(int(code), "Unknown")


def _geocode(location: str, get: Callable) -> Optional[tuple[float, float]]:
    resp = get(GEOCODE_URL, params={"name": location, "count": 1}, timeout=TIMEOUT_SECONDS)
    resp.raise_for_status()
    results = resp.json().get("results") or []
    if not results:
        return None
    return results[0]["latitude"], results[0]["longitude"]


def _forecast(lat: float, lon: float, start: str, end: str, get: Callable) -> dict[str, Weather]:
    resp = get(
        FORECAST_URL,
        params={
            "latitude": lat,
            "longitude": lon,
            "daily": "temperature_2m_max,temperature_2m_min,weather_code,relative_humidity_2m_mean",
            "start_date": start,
            "end_date": end,
            "timezone": "auto",
        },
        timeout=TIMEOUT_SECONDS,
    )
    resp.raise_for_status()
    daily = resp.json().get("daily", {})
    dates = daily.get("time", [])
    t_max = daily.get("temperature_2m_max", [])
    t_min = daily.get("temperature_2m_min", [])
    codes = daily.get("weather_code", [])
    humidity = daily.get("relative_humidity_2m_mean", [])

    by_date = {}
    for i, date in enumerate(dates):
        hi = t_max[i] if i < len(t_max) else None
        lo = t_min[i] if i < len(t_min) else None
        if hi is None or lo is None:
            continue
        hum = humidity[i] if i < len(humidity) else None
        by_date[date] = Weather(
            temperature=f"{lo:.0f}-{hi:.0f}°C",
            condition=_condition(codes[i] if i < len(codes) else None),
            humidity=f"{hum:.0f}%" if hum is not None else "N/A",
            available=True,
        )
    return by_date


def get_weather_for_days(days: list[DayPlan], get: Callable = requests.get) -> list[dict]:
    """Return ``[{"day": n, "weather": Weather}, ...]`` with one entry per day.

    Days are grouped by location so each city is geocoded and forecast once.
    """
    weather = {d.day: Weather.unavailable() for d in days}

    by_location: dict[str, list[DayPlan]] = {}
    for d in days:
        by_location.setdefault(d.location, []).append(d)

    for location, group in by_location.items():
        try:
            coords = _geocode(location, get)
            if coords is None:
                logger.warning("Could not geocode %s; weather unavailable", location)
                continue
            dates = sorted(d.date for d in group)
            forecast = _forecast(coords[0], coords[1], dates[0], dates[-1], get)
        except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
            logger.warning("Weather lookup failed for %s: %s", location, exc)
            continue
        for d in group:
            if d.date in forecast:
                weather[d.day] = forecast[d.date]

    return [{"day": d.day, "weather": weather[d.day]} for d in days]


def enrich_with_weather(days: list[DayPlan], get: Callable = requests.get) -> list[DayPlan]:
    """Set ``weather`` on each DayPlan in place and return the list."""
    by_day = {entry["day"]: entry["weather"] for entry in get_weather_for_days(days, get)}
    for d in days:
        d.weather = by_day.get(d.day, Weather.unavailable())
    return days
