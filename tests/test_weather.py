"""
Unit tests for agents/weather.py

requests.get is replaced by a MagicMock passed through the ``get`` argument.
"""
from unittest.mock import MagicMock

import requests

from agents.weather import FORECAST_URL, GEOCODE_URL, enrich_with_weather, get_weather_for_days


def _resp(payload):
    r = MagicMock()
    r.json.return_value = payload
    r.raise_for_status.return_value = None
    return r


GEOCODE = {"results": [{"latitude": 48.85, "longitude": 2.35}]}
FORECAST = {
    "daily": {
        "time": ["2026-06-01", "2026-06-02"],
        "temperature_2m_max": [24.4, 22.0],
        "temperature_2m_min": [14.2, 13.0],
        "weather_code": [2, 61],
        "relative_humidity_2m_mean": [55.0, 80.0],
    }
}


def _router(geocode=GEOCODE, forecast=FORECAST):
    def get(url, params=None, timeout=None):
        if url == GEOCODE_URL:
            return _resp(geocode)
        if url == FORECAST_URL:
            return _resp(forecast)
        raise AssertionError(url)
    return MagicMock(side_effect=get)


class TestGetWeatherForDays:
    def test_forecast_is_mapped_per_day(self, day_factory):
        days = [day_factory(1), day_factory(2)]
        out = get_weather_for_days(days, get=_router())
        assert [e["day"] for e in out] == [1, 2]
        first = out[0]["weather"]
        assert first.available is True
        assert first.temperature == "14-24°C"
        assert first.condition == "Partly cloudy"
        assert first.humidity == "55%"
        assert out[1]["weather"].condition == "Light rain"

    def test_each_location_is_looked_up_once(self, day_factory):
        get = _router()
        get_weather_for_days([day_factory(1), day_factory(2)], get=get)
        urls = [c.args[0] for c in get.call_args_list]
        assert urls.count(GEOCODE_URL) == 1
        assert urls.count(FORECAST_URL) == 1

    def test_unknown_location_is_unavailable(self, day_factory):
        out = get_weather_for_days([day_factory(1, location="Atlantis")], get=_router(geocode={}))
        assert out[0]["weather"].available is False

    def test_network_error_degrades(self, day_factory):
        get = MagicMock(side_effect=requests.ConnectionError("offline"))
        out = get_weather_for_days([day_factory(1), day_factory(2), day_factory(3)], get=get)
        assert len(out) == 3
        assert all(not e["weather"].available for e in out)

    def test_days_outside_forecast_window_are_unavailable(self, day_factory):
        out = get_weather_for_days([day_factory(1), day_factory(2), day_factory(3)], get=_router())
        assert out[2]["weather"].available is False


class TestEnrich:
    def test_sets_weather_in_place(self, day_factory):
        days = [day_factory(1), day_factory(2)]
        enrich_with_weather(days, get=_router())
        assert days[0].weather.available is True
        assert days[1].weather.temperature == "13-22°C"
