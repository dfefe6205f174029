"""Error taxonomy shared by the planning, classification and apply paths."""


class PlannerError(Exception):
    """Base class for every planner-specific failure."""


# ---------------------------------------------------------------------------
# Transport channel (LLM / weather unreachable)
# ---------------------------------------------------------------------------

class UpstreamUnavailable(PlannerError):
    """An upstream service (LLM, weather) could not serve the request."""

    retryable = True


class AuthError(UpstreamUnavailable):
    """Missing or rejected API key. Retrying will not help."""

    retryable = False


class RateLimited(UpstreamUnavailable):
    pass


class CompletionTimeout(UpstreamUnavailable):
    pass


# ---------------------------------------------------------------------------
# Validation channel (LLM answered, but the answer is unusable)
# ---------------------------------------------------------------------------

class MalformedResponse(PlannerError):
    """LLM output could not be parsed as the expected JSON shape."""


class IncompleteItinerary(PlannerError):
    """Parsed itinerary is missing a required field or has the wrong length."""

    def __init__(self, field: str, detail: str = ""):
        self.field = field
        super().__init__(f"{field}: {detail}" if detail else field)


class GenerationExhausted(PlannerError):
    """Every generation attempt failed validation."""

    def __init__(self, attempts: int, errors: list[Exception]):
        self.attempts = attempts
        self.errors = list(errors)
        first = next(
            (e for e in self.errors if isinstance(e, IncompleteItinerary)),
            self.errors[0] if self.errors else None,
        )
        self.first_violation = getattr(first, "field", None) or str(first or "unknown")
        super().__init__(
            f"Could not build itinerary after {attempts} attempts "
            f"(first problem: {self.first_violation}). Please retry."
        )


# ---------------------------------------------------------------------------
# Apply path
# ---------------------------------------------------------------------------

class DayNotFound(PlannerError):
    def __init__(self, day: int):
        self.day = day
        super().__init__(f"Day {day} not found in itinerary")


class UnknownChangeType(PlannerError):
    def __init__(self, kind):
        self.kind = kind
        super().__init__(f"Unknown change type: {kind!r}")


class ChangeRejected(PlannerError):
    """The change targets a real day but cannot be applied as written."""

    def __init__(self, change_id: str, reason: str):
        self.change_id = change_id
        self.reason = reason
        super().__init__(reason)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class ItineraryNotFound(PlannerError):
    def __init__(self, itinerary_id: str):
        self.itinerary_id = itinerary_id
        super().__init__(f"Itinerary {itinerary_id} not found")


class StaleItinerary(PlannerError):
    """The stored itinerary changed since it was loaded (version mismatch)."""

    def __init__(self, itinerary_id: str, expected: int, actual: int):
        self.itinerary_id = itinerary_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Itinerary {itinerary_id} was modified concurrently "
            f"(loaded version {expected}, stored version {actual})"
        )
