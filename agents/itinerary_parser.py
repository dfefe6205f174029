"""
Itinerary generation: prompt -> LLM -> validated DayPlan list.

The LLM is asked for a JSON array of day objects. Its answer is cleaned of
markdown fences and chatter, validated (exact day count, activities, three
meals, a hotel name) and normalised with sensible defaults. A bad answer is
retried straight away; an unreachable provider is retried with a linear
backoff.
"""
from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Callable, Optional

from config import Settings
from TripRequest import TripRequest
from itinerary import Accommodation, DayPlan, Itinerary, Meals, MEAL_SLOTS, Transportation, Weather
from agents.completion_client import CompletionClient
from agents.errors import (
    AuthError,
    GenerationExhausted,
    IncompleteItinerary,
    MalformedResponse,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

# Nightly hotel price used when the LLM leaves it out
DEFAULT_NIGHTLY_PRICE = {"low": 25.0, "moderate": 80.0, "high": 200.0}
DEFAULT_DAILY_COST = 100.0
DEFAULT_RATING = 4.0

BUDGET_GUIDELINES = """\
- Low: Budget accommodations, local food, public transport
- Moderate: Mid-range hotels, mix of local and restaurant meals, mix of transport
- High: Premium hotels, fine dining, private transport/taxis"""

_SYSTEM_PROMPT = """\
You are an expert travel planner. Create detailed, practical day-by-day \
itineraries. Your response must be a valid JSON array of day objects.

For each day, provide:
- day: number
- date: ISO date string
- location: string
- activities: array of strings (3-5 activities per day)
- meals: object with breakfast, lunch, dinner recommendations
- accommodation: object with name, address, rating, price, currency
- transportation: object with mode, details, cost, currency
- estimatedCost: number (daily total cost)

Consider the user's budget level, interests, and travel style."""


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

def build_prompt(trip: TripRequest) -> list[dict]:
    interests = ", ".join(trip.interests) or "general sightseeing"
    user_prompt = f"""Generate a detailed {trip.days}-day travel itinerary for {trip.travelers} traveler(s).

TRIP DETAILS:
- Start Location: {trip.start_location}
- Destinations: {", ".join(trip.destinations)}
- Start Date: {trip.start_date.isoformat()}
- Budget Level: {trip.budget}
- Interests: {interests}
- Daily Time: {trip.start_time} to {trip.end_time}
- Currency: {trip.currency}

BUDGET GUIDELINES:
{BUDGET_GUIDELINES}

For each day, provide a JSON object with:
1. day: day number (1, 2, 3...)
2. date: date in YYYY-MM-DD format
3. location: primary city/area for that day
4. activities: array of 3-5 specific activities with descriptions
5. meals: breakfast, lunch, dinner recommendations with restaurant names
6. accommodation: hotel name, address, rating (1-5), price per night, currency
7. transportation: mode (flight/train/bus/car), details, estimated cost, currency
8. estimatedCost: total estimated cost for the day in {trip.currency}

Return ONLY a valid JSON array with exactly {trip.days} day objects. No explanations or markdown."""
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def _safe_json_parse(text: str) -> Any:
    """Extract and parse JSON from an LLM response that may include fences or chatter."""
    cleaned = _FENCE_RE.sub("", text or "").strip()
    starts = [i for i in (cleaned.find("["), cleaned.find("{")) if i != -1]
    if not starts:
        raise MalformedResponse("No JSON found in response")
    start = min(starts)
    end = cleaned.rfind("]" if cleaned[start] == "[" else "}")
    if end < start:
        raise MalformedResponse("Unterminated JSON in response")
    try:
        return json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"Invalid JSON: {exc}") from exc


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = re.search(r"-?\d+(?:\.\d+)?", value.replace(",", ""))
        if match:
            return float(match.group())
    return default


def _text(value: Any) -> str:
    """Flatten an LLM field that may be a string or a {name: ...} object."""
    if isinstance(value, dict):
        for key in ("name", "title", "description"):
            if value.get(key):
                return str(value[key]).strip()
        return ""
    if value is None:
        return ""
    return str(value).strip()


def _get(raw: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if raw.get(key) not in (None, ""):
            return raw[key]
    return default


def _day_from_raw(raw: Any, number: int, trip: TripRequest) -> DayPlan:
    if not isinstance(raw, dict):
        raise IncompleteItinerary(f"day {number}", "not an object")

    activities = raw.get("activities")
    if not isinstance(activities, list):
        activities = []
    activities = [a for a in (_text(x) for x in activities) if a]
    if not activities:
        raise IncompleteItinerary(f"day {number}: activities", "missing or empty")

    raw_meals = raw.get("meals") if isinstance(raw.get("meals"), dict) else {}
    meals = {}
    for slot in MEAL_SLOTS:
        meals[slot] = _text(raw_meals.get(slot))
        if not meals[slot]:
            raise IncompleteItinerary(f"day {number}: meals.{slot}", "missing")

    raw_hotel = raw.get("accommodation")
    if isinstance(raw_hotel, str):
        raw_hotel = {"name": raw_hotel}
    if not isinstance(raw_hotel, dict) or not _text(raw_hotel.get("name")):
        raise IncompleteItinerary(f"day {number}: accommodation.name", "missing")

    raw_transport = raw.get("transportation")
    if isinstance(raw_transport, str):
        raw_transport = {"mode": raw_transport}
    if not isinstance(raw_transport, dict):
        raw_transport = {}

    rating = _as_float(raw_hotel.get("rating"), DEFAULT_RATING)
    if not 0 <= rating <= 5:
        rating = DEFAULT_RATING

    return DayPlan(
        day=number,
        date=trip.date_for_day(number).isoformat(),
        location=_text(raw.get("location")) or trip.destination_for_day(number),
        activities=activities,
        meals=Meals(**meals),
        accommodation=Accommodation(
            name=_text(raw_hotel.get("name")),
            address=_text(raw_hotel.get("address")) or "City center",
            rating=rating,
            price=max(_as_float(raw_hotel.get("price"), DEFAULT_NIGHTLY_PRICE[trip.budget]), 0.0),
            currency=trip.currency,
        ),
        transportation=Transportation(
            mode=_text(raw_transport.get("mode")) or "walking",
            details=_text(raw_transport.get("details")) or "Local transportation",
            cost=max(_as_float(raw_transport.get("cost"), 0.0), 0.0),
            currency=trip.currency,
        ),
        weather=Weather.unavailable(),
        estimated_cost=max(
            _as_float(_get(raw, "estimatedCost", "estimated_cost"), DEFAULT_DAILY_COST), 0.0
        ),
    )


def parse_days(text: str, trip: TripRequest) -> list[DayPlan]:
    """Turn raw LLM output into exactly ``trip.days`` validated DayPlans.

    Raises MalformedResponse when no JSON array can be recovered and
    IncompleteItinerary naming the first missing field otherwise.
    """
    parsed = _safe_json_parse(text)
    if isinstance(parsed, dict):
        # Some models wrap the array: {"dailyItinerary": [...]} / {"days": [...]}
        wrapped = _get(parsed, "dailyItinerary", "days", "itinerary")
        parsed = wrapped if isinstance(wrapped, list) else [parsed]
    if not isinstance(parsed, list):
        raise MalformedResponse(f"Expected a JSON array, got {type(parsed).__name__}")
    if len(parsed) != trip.days:
        raise IncompleteItinerary("days", f"expected {trip.days}, got {len(parsed)}")
    return [_day_from_raw(raw, i, trip) for i, raw in enumerate(parsed, start=1)]


# ---------------------------------------------------------------------------
# Generation loop
# ---------------------------------------------------------------------------

class ItineraryParser:
    def __init__(self, client: Optional[CompletionClient] = None,
                 settings: Optional[Settings] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.settings = settings or (client.settings if client else Settings.from_env())
        self.client = client or CompletionClient(self.settings)
        self._sleep = sleep

    def generate(self, trip: TripRequest) -> list[DayPlan]:
        attempts = max(self.settings.generation_attempts, 1)
        messages = build_prompt(trip)
        errors: list[Exception] = []

        for attempt in range(1, attempts + 1):
            try:
                raw = self.client.complete(messages, max_tokens=4000, temperature=0.7)
                days = parse_days(raw, trip)
            except AuthError:
                raise
            except UpstreamUnavailable as exc:
                errors.append(exc)
                logger.warning("Itinerary attempt %d/%d: upstream unavailable: %s",
                               attempt, attempts, exc)
                if attempt < attempts:
                    self._sleep(self.settings.retry_backoff_seconds * attempt)
                continue
            except (MalformedResponse, IncompleteItinerary) as exc:
                errors.append(exc)
                logger.warning("Itinerary attempt %d/%d rejected: %s", attempt, attempts, exc)
                continue
            logger.info("Generated %d-day itinerary on attempt %d", len(days), attempt)
            return days

        if isinstance(errors[-1], UpstreamUnavailable):
            raise errors[-1]
        raise GenerationExhausted(attempts, errors)

    @staticmethod
    def summarize(itinerary: Itinerary) -> str:
        """Compact per-day text used as context in the chat prompts."""
        lines = []
        for day in itinerary.days:
            lines.append(
                f"Day {day.day} ({day.date}, {day.location}): "
                f"Activities: {'; '.join(day.activities)} | "
                f"Hotel: {day.accommodation.name} | "
                f"Meals: breakfast {day.meals.breakfast}, lunch {day.meals.lunch}, "
                f"dinner {day.meals.dinner}"
            )
        return "\n".join(lines)
