"""
Turns a free-text chat message into structured itinerary edits.

Two paths share one feasibility pre-check:

  1. LLM analysis (when a completion key is configured) -> JSON with
     actionableChanges, each re-validated against the itinerary.
  2. Deterministic keyword fallback, using the destination recommendation
     table so suggestions name real places.

Nothing here mutates the itinerary; changes are proposals until applied.
"""
from __future__ import annotations

import logging
import re
from typing import Optional

from itinerary import ActionableChange, ChangeKind, ClassificationResult, Itinerary
from destination_data import (
    DEFAULT_RECOMMENDATIONS,
    DEFAULT_VOCABULARY,
    ClassifierVocabulary,
    RecommendationTable,
)
from agents.completion_client import CompletionClient
from agents.errors import MalformedResponse, UnknownChangeType, UpstreamUnavailable
from agents.itinerary_parser import ItineraryParser, _safe_json_parse

logger = logging.getLogger(__name__)

_DAY_RE = re.compile(r"\bday\s*(\d+)", re.IGNORECASE)
_BUDGET_RE = re.compile(r"budget.*?\$\s*(\d[\d,]*(?:\.\d+)?)", re.IGNORECASE)
_REMOVE_RE = re.compile(
    r"(?:remove|skip|delete|cancel|drop|don't want)\s+"
    r"(?:to\s+(?:go\s+to|visit|see)\s+)?(?:the\s+|a\s+|an\s+|my\s+)?"
    r"(?P<what>.+?)"
    r"(?:\s+(?:from|on|in|for)\s+(?:the\s+)?(?:day\s*\d+|\w+\s+day).*)?[.!?]*$",
    re.IGNORECASE,
)

SPECIFY_MESSAGE = (
    "I can help you with your travel plans. Could you be more specific about "
    "what you'd like to change?"
)

_ANALYSIS_SYSTEM = """\
You are an expert itinerary analysis assistant. Create SPECIFIC, actionable \
changes based on user requests and current itinerary data. Always respond \
with valid JSON only."""


def _mentions(text: str, keywords) -> bool:
    return any(k in text for k in keywords)


def _find_terms(text: str, terms) -> list[str]:
    """Vocabulary terms present in *text* as whole words, longest match wins."""
    found = [t for t in terms if re.search(rf"\b{re.escape(t.lower())}\b", text)]
    return [t for t in found
            if not any(t.lower() != o.lower() and t.lower() in o.lower() for o in found)]


class ModificationClassifier:
    def __init__(self, client: Optional[CompletionClient] = None,
                 recommendations: RecommendationTable = DEFAULT_RECOMMENDATIONS,
                 vocabulary: ClassifierVocabulary = DEFAULT_VOCABULARY):
        self.client = client or CompletionClient()
        self.recommendations = recommendations
        self.vocabulary = vocabulary

    def classify(self, message: str, itinerary: Itinerary) -> ClassificationResult:
        reason = self.check_feasibility(message, itinerary)
        if reason:
            logger.info("Request rejected as infeasible: %s", message)
            return ClassificationResult.decline(reason, infeasible=True)

        if self.client.is_configured:
            try:
                result = self._classify_with_llm(message, itinerary)
            except (UpstreamUnavailable, MalformedResponse) as exc:
                logger.warning("LLM classification failed, using keyword fallback: %s", exc)
            else:
                if result is not None:
                    return result
                logger.warning("LLM proposed no usable changes, using keyword fallback")
        return self.fallback(message, itinerary)

    # ------------------------------------------------------------------
    # Feasibility
    # ------------------------------------------------------------------

    def check_feasibility(self, message: str, itinerary: Itinerary) -> Optional[str]:
        """Return an explanation when the request cannot be honoured, else None."""
        lower = message.lower()
        total = itinerary.number_of_days

        for match in _DAY_RE.finditer(message):
            requested = int(match.group(1))
            if requested > total:
                return (
                    f"Your trip is only {total} days long, but you're asking about day "
                    f"{requested}. Please choose a day between 1 and {total}, or extend "
                    f"your trip duration."
                )
            if requested < 1:
                return f"Day {requested} doesn't exist. Please choose a day between 1 and {total}."

        if "luxury" in lower and "budget" in lower:
            budget = _BUDGET_RE.search(message)
            floor = self.vocabulary.luxury_budget_floor
            if budget and float(budget.group(1).replace(",", "")) < floor:
                return (
                    f"A budget of ${budget.group(1)} for luxury accommodations is not "
                    f"realistic. Luxury hotels typically start from ${floor}+ per night. "
                    f"Consider upgrading your budget or choosing mid-range "
                    f"accommodations instead."
                )

        if re.search(r"\b1\s*day\b", lower) and _mentions(lower, self.vocabulary.travel_words):
            regions = self.vocabulary.regions_in(lower)
            groups = list(regions)
            for i, first in enumerate(groups):
                for second in groups[i + 1:]:
                    if frozenset({first, second}) in self.vocabulary.distant_region_pairs:
                        a, b = (_label(regions[g]) for g in (first, second))
                        return (
                            f"I'm sorry, but traveling between {a} and {b} in 1 day is "
                            f"not feasible. International flights typically take 15-20 "
                            f"hours plus layover time. I'd recommend allowing at least "
                            f"2-3 days for such long-distance travel including jet lag "
                            f"recovery."
                        )
        return None

    # ------------------------------------------------------------------
    # LLM path
    # ------------------------------------------------------------------

    def _build_prompt(self, message: str, itinerary: Itinerary) -> list[dict]:
        trip = itinerary.trip_request
        kinds = " | ".join(f'"{k.value}"' for k in ChangeKind)
        prompt = f"""Analyze this user request to determine if it requires modifying an existing travel itinerary:

USER REQUEST: "{message}"

TRIP: {", ".join(trip.destinations)}, {itinerary.number_of_days} days, budget {trip.budget}

CURRENT DAILY BREAKDOWN:
{ItineraryParser.summarize(itinerary)}

Respond with JSON:
{{
  "requiresModification": boolean,
  "modificationType": "add_activity" | "remove_activity" | "change_hotel" | "change_restaurant" | "change_transport" | "swap_activities" | "change_day_plan" | "general_info",
  "targetDay": number or null,
  "changes": ["list of specific changes needed"],
  "actionableChanges": [
    {{
      "type": {kinds},
      "description": "Human readable description with SPECIFIC details",
      "targetDay": number,
      "targetDay2": number (swap types only),
      "targetField": "activities" | "accommodation" | "meals.breakfast" | "meals.lunch" | "meals.dinner" | "transportation",
      "newValue": "SPECIFIC new value based on destination and user request",
      "oldValue": "current value (if applicable)"
    }}
  ],
  "response": "Brief response if no modification needed"
}}

Only reference days 1 to {itinerary.number_of_days}. Name real places."""
        return [
            {"role": "system", "content": _ANALYSIS_SYSTEM},
            {"role": "user", "content": prompt},
        ]

    def _targets_exist(self, change: ActionableChange, itinerary: Itinerary) -> bool:
        if not itinerary.has_day(change.target_day):
            return False
        if change.is_swap:
            return (change.target_day2 is not None
                    and change.target_day2 != change.target_day
                    and itinerary.has_day(change.target_day2))
        return True

    def _classify_with_llm(self, message: str, itinerary: Itinerary) -> Optional[ClassificationResult]:
        raw = self.client.complete(self._build_prompt(message, itinerary),
                                   max_tokens=800, temperature=0.3)
        data = _safe_json_parse(raw)
        if not isinstance(data, dict):
            raise MalformedResponse("Analysis response is not a JSON object")

        response_text = str(data.get("response") or "").strip()
        if not data.get("requiresModification"):
            return ClassificationResult.decline(response_text or SPECIFY_MESSAGE, source="llm")

        changes = []
        for item in data.get("actionableChanges") or []:
            if not isinstance(item, dict):
                continue
            try:
                change = ActionableChange.from_payload(item)
            except UnknownChangeType as exc:
                logger.warning("Dropping LLM change with unknown type %r", exc.kind)
                continue
            except (TypeError, ValueError) as exc:
                logger.warning("Dropping malformed LLM change: %s", exc)
                continue
            if not self._targets_exist(change, itinerary):
                logger.warning("Dropping LLM change %s: day out of range", change.id)
                continue
            changes.append(change)

        if not changes:
            return None
        summary = [str(s) for s in data.get("changes") or [] if s]
        return ClassificationResult(
            requires_modification=True,
            actionable_changes=changes,
            response_text=response_text,
            modification_type=str(data.get("modificationType") or changes[0].kind.value),
            target_day=changes[0].target_day,
            target_day2=changes[0].target_day2,
            summary=summary or [c.description for c in changes],
            source="llm",
        )

    # ------------------------------------------------------------------
    # Keyword fallback
    # ------------------------------------------------------------------

    def _match_swap_days(self, message: str) -> Optional[tuple[int, int]]:
        # two day numbers alone are not a swap; "add X to day 1 ... with ... day 2" is an add
        if not _mentions(message.lower(), self.vocabulary.swap_keywords):
            return None
        for pattern in self.vocabulary.swap_patterns:
            match = re.search(pattern, message, re.IGNORECASE)
            if match:
                return int(match.group(1)), int(match.group(2))
        return None

    def fallback(self, message: str, itinerary: Itinerary) -> ClassificationResult:
        v = self.vocabulary
        lower = message.lower()
        is_add = _mentions(lower, v.add_keywords)
        is_change = _mentions(lower, v.change_keywords)
        is_remove = _mentions(lower, v.remove_keywords)
        is_swap = _mentions(lower, v.swap_keywords)
        swap_days = self._match_swap_days(message)

        if not (is_add or is_change or is_remove or is_swap or swap_days):
            return ClassificationResult.decline(SPECIFY_MESSAGE)

        # "switch" doubles as a change word; only treat it as a swap with two days
        swap_only = _mentions(lower, [k for k in v.swap_keywords if k not in v.change_keywords])
        if swap_days or swap_only or (is_swap and len(_DAY_RE.findall(message)) >= 2):
            return self._swap(message, itinerary, swap_days)

        day_match = _DAY_RE.search(message)
        target_day = int(day_match.group(1)) if day_match else 1
        location = itinerary.day(target_day).location
        bundle = self.recommendations.lookup(location)
        changes: list[ActionableChange] = []

        removed = None
        remaining = lower
        if is_remove:
            match = _REMOVE_RE.search(message)
            if match and match.group("what").strip():
                removed = match.group("what").strip()
                remaining = lower.replace(removed.lower(), " ")
                changes.append(self._change(
                    ChangeKind.REMOVE_ACTIVITY, target_day, removed,
                    description=f"Remove {removed} from day {target_day}",
                    target_field="activities", old_value=removed,
                ))
            is_add = _mentions(remaining, v.add_keywords)
            is_change = _mentions(remaining, v.change_keywords)

        if is_add or is_change:
            for place in _find_terms(remaining, v.landmarks):
                changes.append(self._change(
                    ChangeKind.ADD_ACTIVITY, target_day, place,
                    description=f"Visit {place} in {location}",
                    target_field="activities",
                    new_value=f"Visit {place} - {v.describe_attraction(place)}",
                ))

            cuisines = _find_terms(remaining, v.cuisines)
            if cuisines or _find_terms(remaining, v.food_words):
                slot = v.meal_slot(remaining)
                restaurants = bundle.restaurants_for(cuisines[0] if cuisines else None)
                if restaurants:
                    r = restaurants[0]
                    changes.append(self._change(
                        ChangeKind.CHANGE_MEAL, target_day, r.name,
                        description=f"Try {r.name} for {slot}",
                        target_field=f"meals.{slot}",
                        new_value=f"{r.name} - {r.specialty} ({r.cuisine})",
                    ))

            if _find_terms(remaining, v.hotel_types) or _find_terms(remaining, v.hotel_words):
                tier = v.hotel_tier(remaining)
                hotels = bundle.hotels_for(tier) or bundle.hotels_for("business")
                if hotels:
                    h = hotels[0]
                    changes.append(self._change(
                        ChangeKind.CHANGE_ACCOMMODATION, target_day, h.name,
                        description=f"Stay at {h.name}",
                        target_field="accommodation",
                        new_value=f"{h.name} - {h.description}",
                    ))

            transport = self._transport_choice(remaining)
            if transport:
                changes.append(self._change(
                    ChangeKind.CHANGE_TRANSPORT, target_day, transport,
                    description=f"Get around by {transport} on day {target_day}",
                    target_field="transportation", new_value=transport,
                ))

            if _mentions(remaining, v.whole_day_phrases) and len(bundle.attractions) >= 2:
                morning, afternoon = bundle.attractions[0], bundle.attractions[1]
                lunch = bundle.restaurants[0]
                changes.extend([
                    self._change(
                        ChangeKind.ADD_ACTIVITY, target_day, f"morning {morning.name}",
                        description=f"Morning: {morning.name}", target_field="activities",
                        new_value=f"Morning visit to {morning.name} - {morning.description}",
                    ),
                    self._change(
                        ChangeKind.CHANGE_MEAL, target_day, f"lunch {lunch.name}",
                        description=f"Lunch at {lunch.name}", target_field="meals.lunch",
                        new_value=f"{lunch.name} - {lunch.specialty}",
                    ),
                    self._change(
                        ChangeKind.ADD_ACTIVITY, target_day, f"afternoon {afternoon.name}",
                        description=f"Afternoon: {afternoon.name}", target_field="activities",
                        new_value=f"Afternoon at {afternoon.name} - {afternoon.description}",
                    ),
                ])

        if not changes:
            if is_remove and not (is_add or is_change):
                return ClassificationResult.decline(
                    f"Which activity would you like me to remove from day {target_day}?"
                )
            for attraction in bundle.attractions[:2]:
                changes.append(self._change(
                    ChangeKind.ADD_ACTIVITY, target_day, attraction.name,
                    description=f"Visit {attraction.name}", target_field="activities",
                    new_value=f"Visit {attraction.name} - {attraction.description}",
                ))

        if is_add:
            modification_type = "add_activity"
        elif is_change:
            modification_type = "change_day_plan"
        else:
            modification_type = "remove_activity"
        return ClassificationResult(
            requires_modification=True,
            actionable_changes=changes,
            modification_type=modification_type,
            target_day=target_day,
            summary=[c.description for c in changes],
        )

    def _transport_choice(self, text: str) -> Optional[str]:
        words = [w for w in _find_terms(text, self.vocabulary.transport_words) if w != "transport"]
        if words:
            mode = words[0]
        elif "transport" in text:
            mode = "transport"
        else:
            return None
        for qualifier in ("private", "luxury", "public", "budget"):
            if qualifier in text:
                return f"{qualifier} {mode}"
        return mode if mode != "transport" else None

    def _swap(self, message: str, itinerary: Itinerary,
              swap_days: Optional[tuple[int, int]]) -> ClassificationResult:
        if not swap_days:
            numbers = [int(n) for n in _DAY_RE.findall(message)]
            if len(numbers) < 2:
                return ClassificationResult.decline(
                    "Please specify which two days you want to swap activities between. "
                    'For example: "swap day 1 activities with day 2"'
                )
            swap_days = (numbers[0], numbers[1])

        day1, day2 = swap_days
        total = itinerary.number_of_days
        if not (itinerary.has_day(day1) and itinerary.has_day(day2)):
            return ClassificationResult.decline(
                f"Invalid day numbers. Your trip has {total} days. "
                f"Please specify days between 1 and {total}."
            )
        if day1 == day2:
            return ClassificationResult.decline(
                "You cannot swap a day with itself. Please specify two different days."
            )

        first, second = itinerary.day(day1), itinerary.day(day2)
        preview = (f"Day {day1}: {', '.join(first.activities[:2])} | "
                   f"Day {day2}: {', '.join(second.activities[:2])}")
        changes = [self._change(
            ChangeKind.SWAP_ACTIVITIES, day1, f"d{day2}",
            description=f"Swap all activities between Day {day1} and Day {day2}",
            target_field="activities", target_day2=day2,
            new_value=f"Swap activities: Day {day1} <-> Day {day2}", old_value=preview,
        )]
        if _mentions(message.lower(), self.vocabulary.swap_everything_phrases):
            changes.append(self._change(
                ChangeKind.SWAP_ACCOMMODATION, day1, f"d{day2}",
                description=f"Swap accommodations between Day {day1} and Day {day2}",
                target_field="accommodation", target_day2=day2,
                new_value=f"Swap hotels: Day {day1} <-> Day {day2}",
            ))
            changes.append(self._change(
                ChangeKind.SWAP_MEALS, day1, f"d{day2}",
                description=f"Swap meal plans between Day {day1} and Day {day2}",
                target_field="meals", target_day2=day2,
                new_value=f"Swap meals: Day {day1} <-> Day {day2}",
            ))
        return ClassificationResult(
            requires_modification=True,
            actionable_changes=changes,
            modification_type="swap_activities",
            target_day=day1,
            target_day2=day2,
            summary=[c.description for c in changes],
        )

    @staticmethod
    def _change(kind: ChangeKind, day: int, label: str, **fields) -> ActionableChange:
        return ActionableChange(
            id=ActionableChange.new_id(kind, label, day), kind=kind, target_day=day, **fields
        )


def _label(term: str) -> str:
    return term.upper() if len(term) <= 3 else term.title()
