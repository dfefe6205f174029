"""
Applies one ActionableChange to an Itinerary in place.

There is exactly one handler per ChangeKind. Day lookups happen before any
mutation, so a change pointing at a missing day leaves the itinerary
untouched. Synthetic prices/ratings come from an injectable random.Random.
"""
from __future__ import annotations

import logging
import random
from typing import Callable, Optional

from itinerary import (
    ActionableChange,
    ChangeKind,
    ChangeStatus,
    DayPlan,
    Itinerary,
    MEAL_SLOTS,
)
from destination_data import DEFAULT_VOCABULARY, ClassifierVocabulary
from agents.errors import ChangeRejected

logger = logging.getLogger(__name__)

# (price low, price high) per night and (rating low, rating high)
ACCOMMODATION_BANDS = {
    "luxury": ((200, 399), (4.5, 5.0)),
    "budget": ((30, 79), (3.0, 4.0)),
    "standard": ((80, 179), (3.5, 4.5)),
}

TRANSPORT_BANDS = {
    "premium": (50, 149),
    "budget": (5, 19),
    "standard": (20, 49),
}


class ChangeApplier:
    def __init__(self, rng: Optional[random.Random] = None,
                 vocabulary: ClassifierVocabulary = DEFAULT_VOCABULARY):
        self.rng = rng or random.Random()
        self.vocabulary = vocabulary

    def apply(self, itinerary: Itinerary, change: ActionableChange) -> Itinerary:
        handler = _HANDLERS.get(change.kind)
        if handler is None:
            logger.warning("No handler for change type %r; itinerary left unchanged", change.kind)
            return itinerary

        # Resolve every referenced day first; DayNotFound leaves nothing half-applied
        day = itinerary.day(change.target_day)
        other = None
        if change.is_swap:
            if change.target_day2 is None:
                raise ValueError(f"Swap change {change.id} has no second day")
            other = itinerary.day(change.target_day2)

        handler(self, day, change, other)
        change.status = ChangeStatus.APPLIED
        logger.info("Applied %s to day %s of itinerary %s",
                    change.kind.value, change.target_day, itinerary.id)
        return itinerary

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _add_activity(self, day: DayPlan, change: ActionableChange, _other) -> None:
        value = change.new_value or change.description
        lower = value.lower()
        if "morning" in lower:
            day.activities.insert(0, value)
        elif "evening" in lower:
            day.activities.append(value)
        else:
            day.activities.insert(len(day.activities) // 2, value)

    def _remove_activity(self, day: DayPlan, change: ActionableChange, _other) -> None:
        needle = change.old_value.strip().lower()
        if not needle:
            return
        kept = [a for a in day.activities if needle not in a.lower()]
        if not kept:
            # Keep at least one activity per day
            logger.warning("Refusing to remove every activity from day %d", day.day)
            raise ChangeRejected(
                change.id, f"Removing '{change.old_value}' would leave day {day.day} empty.")
        day.activities = kept

    def _change_accommodation(self, day: DayPlan, change: ActionableChange, _other) -> None:
        value = change.new_value or change.description
        tier = self.vocabulary.hotel_tier(value)
        band = tier if tier in ("luxury", "budget") else "standard"
        (price_lo, price_hi), (rating_lo, rating_hi) = ACCOMMODATION_BANDS[band]

        hotel = day.accommodation
        hotel.name = value if "hotel" in value.lower() else f"{value} - {day.location}"
        hotel.address = f"{day.location} - Premium location"
        hotel.price = float(self.rng.randint(price_lo, price_hi))
        hotel.rating = round(self.rng.uniform(rating_lo, rating_hi), 1)

    def _change_meal(self, day: DayPlan, change: ActionableChange, _other) -> None:
        prefix, _, slot = change.target_field.partition(".")
        if prefix != "meals" or slot not in MEAL_SLOTS:
            raise ChangeRejected(change.id, f"Unknown meal field '{change.target_field}'.")
        value = change.new_value or change.description
        if "restaurant" not in value.lower():
            value = f"{value} in {day.location}"
        setattr(day.meals, slot, value)

    def _change_transport(self, day: DayPlan, change: ActionableChange, _other) -> None:
        value = change.new_value or change.description
        lower = value.lower()
        if "luxury" in lower or "private" in lower:
            band = "premium"
        elif "budget" in lower or "public" in lower:
            band = "budget"
        else:
            band = "standard"
        day.transportation.mode = value
        day.transportation.details = f"{value} - Updated based on your preferences"
        day.transportation.cost = float(self.rng.randint(*TRANSPORT_BANDS[band]))

    def _swap_activities(self, day: DayPlan, _change, other: DayPlan) -> None:
        day.activities, other.activities = other.activities, day.activities

    def _swap_accommodation(self, day: DayPlan, _change, other: DayPlan) -> None:
        day.accommodation, other.accommodation = other.accommodation, day.accommodation

    def _swap_meals(self, day: DayPlan, _change, other: DayPlan) -> None:
        day.meals, other.meals = other.meals, day.meals


_HANDLERS: dict[ChangeKind, Callable] = {
    ChangeKind.ADD_ACTIVITY: ChangeApplier._add_activity,
    ChangeKind.REMOVE_ACTIVITY: ChangeApplier._remove_activity,
    ChangeKind.CHANGE_ACCOMMODATION: ChangeApplier._change_accommodation,
    ChangeKind.CHANGE_MEAL: ChangeApplier._change_meal,
    ChangeKind.CHANGE_TRANSPORT: ChangeApplier._change_transport,
    ChangeKind.SWAP_ACTIVITIES: ChangeApplier._swap_activities,
    ChangeKind.SWAP_ACCOMMODATION: ChangeApplier._swap_accommodation,
    ChangeKind.SWAP_MEALS: ChangeApplier._swap_meals,
}
