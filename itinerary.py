"""
Itinerary domain model.

Every record is a dataclass with dataclasses-json support so it round-trips
through the document store's JSON columns and the HTTP layer unchanged.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from dataclasses_json import dataclass_json

from TripRequest import TripRequest
from agents.errors import DayNotFound, UnknownChangeType


class ChangeKind(str, Enum):
    ADD_ACTIVITY = "add_activity"
    REMOVE_ACTIVITY = "remove_activity"
    CHANGE_ACCOMMODATION = "change_accommodation"
    CHANGE_MEAL = "change_meal"
    CHANGE_TRANSPORT = "change_transport"
    SWAP_ACTIVITIES = "swap_activities"
    SWAP_ACCOMMODATION = "swap_accommodation"
    SWAP_MEALS = "swap_meals"


SWAP_KINDS = frozenset({
    ChangeKind.SWAP_ACTIVITIES,
    ChangeKind.SWAP_ACCOMMODATION,
    ChangeKind.SWAP_MEALS,
})

# Names the analysis prompt historically accepted for the same edits
_KIND_ALIASES = {
    "change_hotel": ChangeKind.CHANGE_ACCOMMODATION,
    "change_restaurant": ChangeKind.CHANGE_MEAL,
}


class ChangeStatus(str, Enum):
    PENDING = "pending"
    APPLIED = "applied"


class ItineraryStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


MEAL_SLOTS = ("breakfast", "lunch", "dinner")


@dataclass_json
@dataclass
class Meals:
    breakfast: str
    lunch: str
    dinner: str


@dataclass_json
@dataclass
class Accommodation:
    name: str
    address: str = "City center"
    rating: float = 4.0
    price: float = 0.0
    currency: str = "USD"


@dataclass_json
@dataclass
class Transportation:
    mode: str = "walking"
    details: str = "Local transportation"
    cost: float = 0.0
    currency: str = "USD"


@dataclass_json
@dataclass
class Weather:
    temperature: str = "N/A"
    condition: str = "unavailable"
    humidity: str = "N/A"
    available: bool = False

    @classmethod
    def unavailable(cls) -> "Weather":
        return cls()


@dataclass_json
@dataclass
class DayPlan:
    day: int
    date: str  # YYYY-MM-DD
    location: str
    activities: list[str]
    meals: Meals
    accommodation: Accommodation
    transportation: Transportation = field(default_factory=Transportation)
    weather: Weather = field(default_factory=Weather)
    estimated_cost: float = 100.0


@dataclass_json
@dataclass
class ActionableChange:
    id: str
    kind: ChangeKind
    target_day: int
    description: str = ""
    target_field: str = ""
    new_value: str = ""
    old_value: str = ""
    target_day2: Optional[int] = None
    status: ChangeStatus = ChangeStatus.PENDING

    @property
    def is_swap(self) -> bool:
        return self.kind in SWAP_KINDS

    @staticmethod
    def new_id(kind: ChangeKind, label: str, day: int) -> str:
        slug = "_".join(label.lower().split())[:40] or "change"
        return f"{kind.value}_{slug}_d{day}_{uuid.uuid4().hex[:6]}"

    @staticmethod
    def parse_kind(raw: Any) -> ChangeKind:
        if isinstance(raw, ChangeKind):
            return raw
        key = str(raw or "").strip().lower()
        if key in _KIND_ALIASES:
            return _KIND_ALIASES[key]
        try:
            return ChangeKind(key)
        except ValueError:
            raise UnknownChangeType(raw) from None

    @classmethod
    def from_payload(cls, data: dict) -> "ActionableChange":
        """Build a change from an untrusted dict (client request or LLM output).

        Accepts both snake_case and the camelCase keys the LLM answers with.
        Raises UnknownChangeType for an unrecognised kind and ValueError for a
        missing/invalid target day.
        """
        def pick(*keys, default=None):
            for k in keys:
                if data.get(k) not in (None, ""):
                    return data[k]
            return default

        kind = cls.parse_kind(pick("kind", "type"))
        target_day = int(pick("target_day", "targetDay"))
        target_day2 = pick("target_day2", "targetDay2")
        new_value = str(pick("new_value", "newValue", default=""))
        description = str(pick("description", default=new_value))
        change_id = pick("id") or cls.new_id(kind, description or kind.value, target_day)
        status = pick("status", default=ChangeStatus.PENDING.value)
        return cls(
            id=str(change_id),
            kind=kind,
            target_day=target_day,
            description=description,
            target_field=str(pick("target_field", "targetField", default="")),
            new_value=new_value,
            old_value=str(pick("old_value", "oldValue", default="")),
            target_day2=int(target_day2) if target_day2 is not None else None,
            status=ChangeStatus(status),
        )


@dataclass_json
@dataclass
class Itinerary:
    id: str
    owner_id: str
    trip_request: TripRequest
    days: list[DayPlan]
    title: str = ""
    status: ItineraryStatus = ItineraryStatus.DRAFT
    rating: Optional[int] = None
    review: Optional[str] = None
    version: int = 0
    ai_model: str = ""

    @property
    def total_cost(self) -> float:
        return round(sum(d.estimated_cost for d in self.days), 2)

    @property
    def number_of_days(self) -> int:
        return len(self.days)

    def day(self, number: int) -> DayPlan:
        for plan in self.days:
            if plan.day == number:
                return plan
        raise DayNotFound(number)

    def has_day(self, number: int) -> bool:
        return any(plan.day == number for plan in self.days)

    def check_days(self) -> None:
        """Day numbers must be 1..n in order and match the requested length."""
        numbers = [d.day for d in self.days]
        if numbers != list(range(1, len(self.days) + 1)):
            raise ValueError(f"Day numbers must be contiguous from 1, got {numbers}")
        if len(self.days) != self.trip_request.days:
            raise ValueError(
                f"Itinerary has {len(self.days)} days, trip requested {self.trip_request.days}"
            )

    def to_payload(self) -> dict:
        data = self.to_dict(encode_json=True)
        data["total_cost"] = self.total_cost
        return data


@dataclass_json
@dataclass
class ClassificationResult:
    requires_modification: bool
    actionable_changes: list[ActionableChange] = field(default_factory=list)
    response_text: str = ""
    modification_type: str = "general_info"
    target_day: Optional[int] = None
    target_day2: Optional[int] = None
    summary: list[str] = field(default_factory=list)
    infeasible: bool = False
    source: str = "fallback"

    @classmethod
    def decline(cls, text: str, *, infeasible: bool = False,
                source: str = "fallback") -> "ClassificationResult":
        """Non-modifying result: no changes and a user-visible explanation."""
        return cls(
            requires_modification=False,
            response_text=text,
            modification_type="infeasible" if infeasible else "general_info",
            infeasible=infeasible,
            source=source,
        )
