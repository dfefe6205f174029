from dataclasses import dataclass, field
from datetime import date, timedelta

from dataclasses_json import config, dataclass_json

BUDGET_TIERS = ("low", "moderate", "high")

MAX_DAYS = 30
MAX_TRAVELERS = 20


@dataclass_json
@dataclass(frozen=True)
class TripRequest:
    start_location: str
    destinations: list[str]
    start_date: date = field(
        metadata=config(encoder=date.isoformat, decoder=date.fromisoformat)
    )
    days: int = 1
    travelers: int = 1
    budget: str = "moderate"
    interests: list[str] = field(default_factory=list)
    currency: str = "USD"
    start_time: str = "09:00"
    end_time: str = "18:00"

    def __post_init__(self):
        if not self.destinations:
            raise ValueError("At least one destination is required")
        if not 1 <= self.days <= MAX_DAYS:
            raise ValueError(f"days must be between 1 and {MAX_DAYS}")
        if not 1 <= self.travelers <= MAX_TRAVELERS:
            raise ValueError(f"travelers must be between 1 and {MAX_TRAVELERS}")
        if self.budget not in BUDGET_TIERS:
            raise ValueError(f"budget must be one of {', '.join(BUDGET_TIERS)}")
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "currency", (self.currency or "USD").upper())
        object.__setattr__(self, "interests", list(dict.fromkeys(self.interests)))

    def end_date(self) -> date:
        """Last calendar day of the trip."""
        return self.start_date + timedelta(days=self.days - 1)

    def date_for_day(self, day: int) -> date:
        return self.start_date + timedelta(days=day - 1)

    def destination_for_day(self, day: int) -> str:
        """Destinations spread evenly over the trip, in the order given."""
        per_destination = -(-self.days // len(self.destinations))  # ceil
        index = min((day - 1) // per_destination, len(self.destinations) - 1)
        return self.destinations[index]

    def title(self) -> str:
        return f"Trip from {self.start_location} to {', '.join(self.destinations)}"
