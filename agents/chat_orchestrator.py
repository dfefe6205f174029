"""
Top-level entry points used by the HTTP layer.

Chat is two-phase: ``handle_chat`` only *proposes* ActionableChanges; the
client confirms one at a time through ``apply_change``, which is idempotent
per change id.
"""
from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional

from config import Settings
from TripRequest import TripRequest
from itinerary import ActionableChange, Itinerary, ItineraryStatus
from database import ItineraryStore
from agents.change_applier import ChangeApplier
from agents.completion_client import CompletionClient
from agents.errors import (
    ChangeRejected,
    DayNotFound,
    ItineraryNotFound,
    PlannerError,
    StaleItinerary,
    UnknownChangeType,
)
from agents.itinerary_parser import ItineraryParser
from agents.modification_classifier import SPECIFY_MESSAGE, ModificationClassifier
from agents.weather import enrich_with_weather

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 10


def generate_id() -> str:
    return str(uuid.uuid4())[:8]


@dataclass
class ChatContext:
    user_id: str
    itinerary_id: Optional[str] = None
    current_day: Optional[int] = None


@dataclass
class ChatResponse:
    message: str
    modified: bool = False
    itinerary: Optional[Itinerary] = None
    actionable_changes: list[ActionableChange] = field(default_factory=list)
    can_apply_changes: bool = False
    infeasible: bool = False

    def to_payload(self) -> dict:
        return {
            "message": self.message,
            "modified": self.modified,
            "itinerary": self.itinerary.to_payload() if self.itinerary else None,
            "actionable_changes": [c.to_dict(encode_json=True) for c in self.actionable_changes],
            "can_apply_changes": self.can_apply_changes,
            "infeasible": self.infeasible,
        }


@dataclass
class ApplyResult:
    success: bool
    message: str
    itinerary: Optional[Itinerary] = None
    already_applied: bool = False
    error: Optional[str] = None  # not_found, invalid, conflict, generation_failed

    def to_payload(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "itinerary": self.itinerary.to_payload() if self.itinerary else None,
            "already_applied": self.already_applied,
        }


# ---------------------------------------------------------------------------
# Static replies (no LLM configured, or the LLM call failed)
# ---------------------------------------------------------------------------

_STATIC_TOPICS = [
    ("greeting", ("hello", "hi", "hey", "good morning", "good evening")),
    ("weather", ("weather", "rain", "forecast", "temperature", "sunny")),
    ("hotel", ("hotel", "accommodation", "stay", "room")),
    ("food", ("food", "restaurant", "eat", "meal", "breakfast", "lunch", "dinner")),
    ("budget", ("budget", "cost", "price", "expensive", "cheap", "money")),
    ("transport", ("transport", "taxi", "metro", "bus", "train", "getting around")),
]


def _topic(message: str) -> str:
    lower = message.lower()
    for topic, words in _STATIC_TOPICS:
        if any(re.search(rf"\b{re.escape(w)}\b", lower) for w in words):
            return topic
    return "default"


def static_reply(message: str, itinerary: Optional[Itinerary] = None,
                 current_day: Optional[int] = None) -> str:
    topic = _topic(message)
    day = None
    if itinerary and itinerary.days:
        number = current_day if current_day and itinerary.has_day(current_day) else 1
        day = itinerary.day(number)

    if topic == "greeting":
        return ("Hello! I'm your travel assistant. I can add or remove activities, "
                "change hotels and meals, or swap days in your itinerary.")
    if topic == "weather":
        if day and day.weather.available:
            return (f"Day {day.day} in {day.location}: {day.weather.temperature}, "
                    f"{day.weather.condition}, humidity {day.weather.humidity}.")
        return ("I don't have a forecast for those dates yet. Check again closer to "
                "your trip, and pack layers just in case.")
    if topic == "hotel":
        if day:
            return (f"On day {day.day} you're staying at {day.accommodation.name}. "
                    "Ask me to change to a luxury, budget or boutique hotel if you'd like.")
        return "Tell me your destination and budget and I'll suggest places to stay."
    if topic == "food":
        if day:
            return (f"Day {day.day} meals: breakfast at {day.meals.breakfast}, lunch at "
                    f"{day.meals.lunch}, dinner at {day.meals.dinner}. Want a different cuisine?")
        return "Tell me what cuisine you like and I'll suggest restaurants."
    if topic == "budget":
        if itinerary:
            return (f"Your itinerary is estimated at {itinerary.total_cost:.0f} "
                    f"{itinerary.trip_request.currency} in total.")
        return "Share your budget level (low, moderate or high) and I'll plan around it."
    if topic == "transport":
        if day:
            return (f"On day {day.day} you're getting around by {day.transportation.mode}. "
                    "I can switch you to public transport or a private car.")
        return "Public transport is usually the cheapest way to get around; taxis are quicker."
    return ("I'm here to help with your trip. Try something like \"add a museum to "
            "day 2\" or \"swap day 1 and day 3\".")


class ChatOrchestrator:
    def __init__(self, store: ItineraryStore,
                 settings: Optional[Settings] = None,
                 client: Optional[CompletionClient] = None,
                 parser: Optional[ItineraryParser] = None,
                 classifier: Optional[ModificationClassifier] = None,
                 applier: Optional[ChangeApplier] = None,
                 weather: Callable = enrich_with_weather,
                 today: Callable[[], date] = date.today):
        self.store = store
        self.settings = settings or Settings.from_env()
        self.client = client or CompletionClient(self.settings)
        self.parser = parser or ItineraryParser(self.client, self.settings)
        self.classifier = classifier or ModificationClassifier(self.client)
        self.applier = applier or ChangeApplier()
        self._weather = weather
        self._today = today

    def _enrich(self, itinerary_days) -> None:
        if self.settings.weather_enabled:
            self._weather(itinerary_days)

    # ------------------------------------------------------------------
    # Itinerary lifecycle
    # ------------------------------------------------------------------

    def create_itinerary(self, trip_request: TripRequest, user_id: str) -> Itinerary:
        """Generate, enrich and persist a new draft itinerary.

        Generation failures (GenerationExhausted / UpstreamUnavailable)
        propagate to the caller.
        """
        days = self.parser.generate(trip_request)
        self._enrich(days)
        itinerary = Itinerary(
            id=generate_id(),
            owner_id=user_id,
            trip_request=trip_request,
            days=days,
            title=trip_request.title(),
            ai_model=self.client.model,
        )
        itinerary.check_days()
        self.store.save_itinerary(itinerary)
        logger.info("Created itinerary %s for user %s (%d days)", itinerary.id, user_id, len(days))
        return itinerary

    def get_itinerary(self, itinerary_id: str, user_id: str) -> Itinerary:
        itinerary = self.store.load_itinerary(itinerary_id, user_id)
        return self.store.refresh_status(itinerary, self._today())

    def regenerate_itinerary(self, itinerary_id: str, user_id: str) -> ApplyResult:
        try:
            itinerary = self.store.load_itinerary(itinerary_id, user_id)
        except ItineraryNotFound as exc:
            return ApplyResult(False, str(exc), error="not_found")

        try:
            days = self.parser.generate(itinerary.trip_request)
        except PlannerError as exc:
            logger.warning("Regeneration of %s failed: %s", itinerary_id, exc)
            return ApplyResult(False, str(exc), error="generation_failed")

        self._enrich(days)
        itinerary.days = days
        itinerary.ai_model = self.client.model
        try:
            itinerary.check_days()
            self.store.save_itinerary(itinerary)
        except StaleItinerary as exc:
            return ApplyResult(False, f"{exc}. Please reload and try again.", error="conflict")
        return ApplyResult(True, "Itinerary regenerated", itinerary)

    def confirm_itinerary(self, itinerary_id: str, user_id: str) -> Itinerary:
        itinerary = self.store.load_itinerary(itinerary_id, user_id)
        if itinerary.status != ItineraryStatus.DRAFT:
            raise ValueError(f"Only draft itineraries can be confirmed (status is {itinerary.status.value})")
        itinerary.status = ItineraryStatus.CONFIRMED
        self.store.save_itinerary(itinerary)
        return self.store.refresh_status(itinerary, self._today())

    def cancel_itinerary(self, itinerary_id: str, user_id: str) -> Itinerary:
        itinerary = self.get_itinerary(itinerary_id, user_id)
        if itinerary.status in (ItineraryStatus.COMPLETED, ItineraryStatus.CANCELLED):
            raise ValueError(f"A {itinerary.status.value} itinerary cannot be cancelled")
        itinerary.status = ItineraryStatus.CANCELLED
        self.store.save_itinerary(itinerary)
        return itinerary

    def delete_itinerary(self, itinerary_id: str, user_id: str) -> None:
        self.store.delete_itinerary(itinerary_id, user_id)

    def submit_review(self, itinerary_id: str, user_id: str, rating: int,
                      review: Optional[str] = None) -> Itinerary:
        if not 1 <= int(rating) <= 5:
            raise ValueError("rating must be between 1 and 5")
        itinerary = self.get_itinerary(itinerary_id, user_id)
        if itinerary.status != ItineraryStatus.COMPLETED:
            raise ValueError("Reviews can only be submitted for completed trips")
        itinerary.rating = int(rating)
        itinerary.review = review
        self.store.save_itinerary(itinerary)
        return itinerary

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    def handle_chat(self, message: str, context: ChatContext) -> ChatResponse:
        itinerary = None
        history: list[dict] = []
        if context.itinerary_id:
            itinerary = self.store.load_itinerary(context.itinerary_id, context.user_id)
            history = self.store.chat_history(itinerary.id, context.user_id, limit=HISTORY_WINDOW)
            self.store.add_chat_message(itinerary.id, context.user_id, "user", message)

        if itinerary is None:
            response = ChatResponse(message=self._conversational_reply(message, None, history, context))
        else:
            response = self._chat_about(message, itinerary, history, context)

        if itinerary is not None:
            self.store.add_chat_message(itinerary.id, context.user_id, "assistant", response.message)
        return response

    def _chat_about(self, message: str, itinerary: Itinerary, history: list[dict],
                    context: ChatContext) -> ChatResponse:
        result = self.classifier.classify(message, itinerary)

        if result.requires_modification:
            lines = [f"- {c.description}" for c in result.actionable_changes]
            text = result.response_text or "Here's what I can change for you:\n" + "\n".join(lines)
            return ChatResponse(
                message=text,
                itinerary=itinerary,
                actionable_changes=result.actionable_changes,
                can_apply_changes=True,
            )
        if result.infeasible:
            return ChatResponse(message=result.response_text, itinerary=itinerary, infeasible=True)
        if result.response_text and result.response_text != SPECIFY_MESSAGE:
            return ChatResponse(message=result.response_text, itinerary=itinerary)
        return ChatResponse(
            message=self._conversational_reply(message, itinerary, history, context),
            itinerary=itinerary,
        )

    def _conversational_reply(self, message: str, itinerary: Optional[Itinerary],
                              history: list[dict], context: ChatContext) -> str:
        if not self.client.is_configured:
            return static_reply(message, itinerary, context.current_day)

        system = ("You are a friendly, concise travel assistant. Answer in 1-4 sentences "
                  "and name specific places when you can.")
        if itinerary is not None:
            system += "\n\nThe traveler's itinerary:\n" + ItineraryParser.summarize(itinerary)
            if context.current_day:
                system += f"\n\nThe traveler is currently on day {context.current_day}."
        messages = [{"role": "system", "content": system}]
        messages += [{"role": m["role"], "content": m["content"]} for m in history[-HISTORY_WINDOW:]]
        messages.append({"role": "user", "content": message})
        try:
            return self.client.complete(messages, max_tokens=500, temperature=0.7).strip()
        except PlannerError as exc:
            logger.warning("Chat completion failed, using static reply: %s", exc)
            return static_reply(message, itinerary, context.current_day)

    # ------------------------------------------------------------------
    # Apply (second phase)
    # ------------------------------------------------------------------

    def apply_change(self, itinerary_id: str, user_id: str, change_payload: dict) -> ApplyResult:
        try:
            change = ActionableChange.from_payload(change_payload)
        except UnknownChangeType as exc:
            logger.warning("Rejected change for %s: %s", itinerary_id, exc)
            return ApplyResult(False, "Failed to apply the change. Please try again.", error="invalid")
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Malformed change payload for %s: %s", itinerary_id, exc)
            return ApplyResult(False, "Invalid change request.", error="invalid")

        try:
            itinerary = self.store.load_itinerary(itinerary_id, user_id)
        except ItineraryNotFound as exc:
            return ApplyResult(False, str(exc), error="not_found")

        if self.store.is_change_applied(itinerary.id, change.id):
            return ApplyResult(True, f"Change already applied: {change.description}",
                               itinerary, already_applied=True)

        try:
            self.applier.apply(itinerary, change)
            itinerary.check_days()
            self.store.save_itinerary(itinerary, applied_change_id=change.id)
        except (DayNotFound, ChangeRejected) as exc:
            logger.warning("Change %s not applied to %s: %s", change.id, itinerary_id, exc)
            return ApplyResult(False, str(exc), error="invalid")
        except StaleItinerary as exc:
            logger.warning("Conflicting update on %s: %s", itinerary_id, exc)
            return ApplyResult(False, "This itinerary was changed elsewhere. Please reload and try again.",
                               error="conflict")
        except ValueError as exc:
            return ApplyResult(False, str(exc), error="invalid")

        return ApplyResult(True, f"Successfully applied: {change.description}", itinerary)
