import sys
import os
import pytest
from datetime import date

# Project root, so config, itinerary, database and the agents package import by name
_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _root not in sys.path:
    sys.path.insert(0, _root)

from config import Settings
from TripRequest import TripRequest
from itinerary import Accommodation, DayPlan, Itinerary, Meals, Transportation
from database import ItineraryStore, init_db


def make_day(number: int, location: str = "Paris", activities=None, cost: float = 100.0,
             start: date = date(2026, 6, 1)) -> DayPlan:
    return DayPlan(
        day=number,
        date=date.fromordinal(start.toordinal() + number - 1).isoformat(),
        location=location,
        activities=list(activities) if activities is not None else [
            f"Morning walk day {number}", f"Museum day {number}", f"Dinner cruise day {number}",
        ],
        meals=Meals(breakfast=f"Cafe {number}", lunch=f"Bistro {number}", dinner=f"Brasserie {number}"),
        accommodation=Accommodation(name=f"Hotel {number}", address=f"{location} center",
                                    rating=4.2, price=120.0),
        transportation=Transportation(mode="metro", details="Day pass", cost=8.0),
        estimated_cost=cost,
    )


@pytest.fixture
def settings():
    return Settings(llm_api_key="test-key", retry_backoff_seconds=0.0,
                    database_url="sqlite://", weather_enabled=False)


@pytest.fixture
def unconfigured_settings():
    return Settings(llm_api_key=None, database_url="sqlite://", weather_enabled=False)


@pytest.fixture
def trip():
    return TripRequest(
        start_location="London",
        destinations=["Paris"],
        start_date=date(2026, 6, 1),
        days=3,
        travelers=2,
        budget="moderate",
        interests=["museums", "food"],
    )


@pytest.fixture
def itinerary(trip):
    return Itinerary(
        id="it-1",
        owner_id="user-1",
        trip_request=trip,
        days=[make_day(1, cost=100.0), make_day(2, cost=150.0), make_day(3, cost=80.0)],
        title=trip.title(),
    )


@pytest.fixture
def delhi_itinerary():
    trip = TripRequest(start_location="Mumbai", destinations=["Delhi"],
                       start_date=date(2026, 6, 1), days=2)
    return Itinerary(
        id="it-delhi",
        owner_id="user-1",
        trip_request=trip,
        days=[make_day(1, location="Delhi"), make_day(2, location="Delhi")],
        title=trip.title(),
    )


@pytest.fixture
def store():
    return ItineraryStore(init_db("sqlite://"))


@pytest.fixture
def day_factory():
    return make_day
