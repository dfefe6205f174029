"""
Unit tests for agents/chat_orchestrator.py

The store is real (in-memory sqlite); the LLM-facing collaborators are mocks.
"""
import random
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from config import Settings
from itinerary import ChangeKind, ItineraryStatus
from agents.change_applier import ChangeApplier
from agents.chat_orchestrator import ChatContext, ChatOrchestrator, static_reply
from agents.completion_client import CompletionClient
from agents.errors import (
    GenerationExhausted,
    IncompleteItinerary,
    ItineraryNotFound,
    RateLimited,
    StaleItinerary,
)
from agents.modification_classifier import ModificationClassifier


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_orchestrator(store, days=None, settings=None, configured=False, today=date(2026, 5, 1)):
    settings = settings or Settings(llm_api_key=None, weather_enabled=False)
    client = MagicMock()
    client.is_configured = configured
    client.model = "gpt-4o-mini"
    parser = MagicMock()
    parser.generate.return_value = days
    weather = MagicMock()
    orchestrator = ChatOrchestrator(
        store,
        settings,
        client=client,
        parser=parser,
        classifier=ModificationClassifier(CompletionClient(Settings(llm_api_key=None))),
        applier=ChangeApplier(rng=random.Random(7)),
        weather=weather,
        today=lambda: today,
    )
    return orchestrator, client, parser, weather


@pytest.fixture
def saved(store, itinerary):
    store.save_itinerary(itinerary)
    return itinerary


CTX = ChatContext(user_id="user-1", itinerary_id="it-1")


# ---------------------------------------------------------------------------
# create / regenerate
# ---------------------------------------------------------------------------

class TestCreateItinerary:
    def test_generated_days_are_saved_as_draft(self, store, trip, itinerary):
        orch, _, parser, weather = make_orchestrator(store, days=itinerary.days)
        created = orch.create_itinerary(trip, "user-9")

        parser.generate.assert_called_once_with(trip)
        weather.assert_not_called()
        loaded = store.load_itinerary(created.id, "user-9")
        assert loaded.status == ItineraryStatus.DRAFT
        assert loaded.title == "Trip from London to Paris"
        assert loaded.ai_model == "gpt-4o-mini"
        assert loaded.number_of_days == 3

    def test_weather_enrichment_when_enabled(self, store, trip, itinerary):
        orch, _, _, weather = make_orchestrator(
            store, days=itinerary.days, settings=Settings(llm_api_key=None, weather_enabled=True))
        orch.create_itinerary(trip, "user-9")
        weather.assert_called_once_with(itinerary.days)

    def test_generation_failure_propagates(self, store, trip):
        orch, _, parser, _ = make_orchestrator(store)
        parser.generate.side_effect = GenerationExhausted(3, [IncompleteItinerary("days")])
        with pytest.raises(GenerationExhausted):
            orch.create_itinerary(trip, "user-9")
        assert store.list_itineraries("user-9") == []


class TestRegenerate:
    def test_days_are_replaced(self, store, saved, day_factory):
        new_days = [day_factory(i, activities=[f"New plan {i}"]) for i in (1, 2, 3)]
        orch, _, _, _ = make_orchestrator(store, days=new_days)
        result = orch.regenerate_itinerary("it-1", "user-1")
        assert result.success is True
        assert store.load_itinerary("it-1", "user-1").day(2).activities == ["New plan 2"]

    def test_failure_is_reported_not_raised(self, store, saved):
        orch, _, parser, _ = make_orchestrator(store)
        parser.generate.side_effect = RateLimited("429")
        result = orch.regenerate_itinerary("it-1", "user-1")
        assert result.success is False
        assert result.error == "generation_failed"
        assert store.load_itinerary("it-1", "user-1").version == 1

    def test_unknown_itinerary(self, store):
        orch, _, _, _ = make_orchestrator(store)
        assert orch.regenerate_itinerary("nope", "user-1").error == "not_found"


# ---------------------------------------------------------------------------
# chat
# ---------------------------------------------------------------------------

class TestHandleChat:
    def test_modification_is_proposed_not_applied(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        before = [list(d.activities) for d in saved.days]

        response = orch.handle_chat("swap day 1 and day 3 activities", CTX)

        assert response.can_apply_changes is True
        assert response.modified is False
        assert [c.kind for c in response.actionable_changes] == [ChangeKind.SWAP_ACTIVITIES]
        assert "Swap all activities between Day 1 and Day 3" in response.message
        loaded = store.load_itinerary("it-1", "user-1")
        assert [d.activities for d in loaded.days] == before

    def test_messages_are_stored(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        orch.handle_chat("hello", CTX)
        history = store.chat_history("it-1", "user-1")
        assert [m["role"] for m in history] == ["user", "assistant"]
        assert history[0]["content"] == "hello"

    def test_infeasible_request_is_explained(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        response = orch.handle_chat("add a museum to day 8", CTX)
        assert response.infeasible is True
        assert response.can_apply_changes is False
        assert "between 1 and 3" in response.message

    def test_static_reply_without_llm(self, store):
        orch, _, _, _ = make_orchestrator(store)
        response = orch.handle_chat("hello there", ChatContext(user_id="user-1"))
        assert response.message.startswith("Hello!")
        assert response.itinerary is None

    def test_conversational_llm_reply_uses_history(self, store, saved):
        orch, client, _, _ = make_orchestrator(store, configured=True)
        store.add_chat_message("it-1", "user-1", "user", "earlier question")
        client.complete.return_value = "  Expect sunshine.  "

        response = orch.handle_chat("what's the weather like?",
                                    ChatContext(user_id="user-1", itinerary_id="it-1", current_day=2))

        assert response.message == "Expect sunshine."
        messages = client.complete.call_args.args[0]
        assert "Day 1 (2026-06-01, Paris)" in messages[0]["content"]
        assert "currently on day 2" in messages[0]["content"]
        assert messages[1] == {"role": "user", "content": "earlier question"}
        assert messages[-1] == {"role": "user", "content": "what's the weather like?"}

    def test_llm_failure_falls_back_to_static_reply(self, store, saved):
        orch, client, _, _ = make_orchestrator(store, configured=True)
        client.complete.side_effect = RateLimited("429")
        response = orch.handle_chat("what's the weather like?", CTX)
        assert "forecast" in response.message


class TestStaticReply:
    def test_hi_inside_a_word_is_not_a_greeting(self):
        assert not static_reply("this is fine").startswith("Hello")

    def test_hotel_reply_names_current_hotel(self, itinerary):
        assert "Hotel 2" in static_reply("which hotel am I in?", itinerary, current_day=2)

    def test_budget_reply_uses_total_cost(self, itinerary):
        assert "330" in static_reply("what's my budget looking like", itinerary)


# ---------------------------------------------------------------------------
# apply
# ---------------------------------------------------------------------------

class TestApplyChange:
    def _proposed_swap(self, orch):
        response = orch.handle_chat("swap day 1 and day 3 activities", CTX)
        return response.actionable_changes[0].to_dict(encode_json=True)

    def test_apply_persists_and_records(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        first, third = list(saved.day(1).activities), list(saved.day(3).activities)
        payload = self._proposed_swap(orch)

        result = orch.apply_change("it-1", "user-1", payload)

        assert result.success is True
        loaded = store.load_itinerary("it-1", "user-1")
        assert loaded.day(1).activities == third
        assert loaded.day(3).activities == first
        assert store.is_change_applied("it-1", payload["id"])

    def test_duplicate_apply_is_idempotent(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        third = list(saved.day(3).activities)
        payload = self._proposed_swap(orch)

        orch.apply_change("it-1", "user-1", payload)
        again = orch.apply_change("it-1", "user-1", payload)

        assert again.success is True
        assert again.already_applied is True
        loaded = store.load_itinerary("it-1", "user-1")
        assert loaded.day(1).activities == third
        assert loaded.version == 2

    def test_unknown_kind_fails_without_change(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        result = orch.apply_change("it-1", "user-1", {"id": "x", "type": "teleport", "target_day": 1})
        assert result.success is False
        assert result.error == "invalid"
        assert store.load_itinerary("it-1", "user-1").version == 1

    def test_missing_day_saves_nothing(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        result = orch.apply_change("it-1", "user-1", {
            "id": "add-9", "type": "add_activity", "target_day": 9, "new_value": "Picnic"})
        assert result.success is False
        assert "Day 9" in result.message
        assert store.load_itinerary("it-1", "user-1").version == 1
        assert store.is_change_applied("it-1", "add-9") is False

    def test_rejected_change_is_not_recorded(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        before = list(saved.day(1).activities)
        result = orch.apply_change("it-1", "user-1", {
            "id": "c1", "type": "remove_activity", "targetDay": 1, "oldValue": "day 1"})

        assert result.success is False
        assert result.error == "invalid"
        assert "empty" in result.message
        loaded = store.load_itinerary("it-1", "user-1")
        assert loaded.day(1).activities == before
        assert loaded.version == 1
        assert store.is_change_applied("it-1", "c1") is False

    def test_invalid_meal_slot_is_rejected(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        result = orch.apply_change("it-1", "user-1", {
            "id": "m1", "type": "change_meal", "targetDay": 2,
            "targetField": "meals.brunch", "newValue": "Pancakes"})
        assert result.success is False
        assert result.error == "invalid"
        assert store.is_change_applied("it-1", "m1") is False

    def test_missing_target_day_is_invalid(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        result = orch.apply_change("it-1", "user-1", {"type": "add_activity"})
        assert result.success is False
        assert result.error == "invalid"

    def test_conflicting_write_asks_to_reload(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        payload = {"id": "add-1", "type": "add_activity", "target_day": 1, "new_value": "Picnic"}
        with patch.object(store, "save_itinerary", side_effect=StaleItinerary("it-1", 1, 2)):
            result = orch.apply_change("it-1", "user-1", payload)
        assert result.success is False
        assert result.error == "conflict"
        assert "reload" in result.message

    def test_unknown_itinerary(self, store):
        orch, _, _, _ = make_orchestrator(store)
        result = orch.apply_change("nope", "user-1", {"type": "add_activity", "target_day": 1})
        assert result.error == "not_found"


# ---------------------------------------------------------------------------
# lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    def test_confirm_draft(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        confirmed = orch.confirm_itinerary("it-1", "user-1")
        assert confirmed.status == ItineraryStatus.CONFIRMED

    def test_confirm_twice_is_rejected(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        orch.confirm_itinerary("it-1", "user-1")
        with pytest.raises(ValueError):
            orch.confirm_itinerary("it-1", "user-1")

    def test_review_after_trip(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        orch.confirm_itinerary("it-1", "user-1")
        later, _, _, _ = make_orchestrator(store, today=date(2026, 7, 1))
        reviewed = later.submit_review("it-1", "user-1", 5, "Loved it")
        loaded = store.load_itinerary("it-1", "user-1")
        assert reviewed.status == ItineraryStatus.COMPLETED
        assert (loaded.rating, loaded.review) == (5, "Loved it")

    def test_review_before_completion_is_rejected(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        orch.confirm_itinerary("it-1", "user-1")
        with pytest.raises(ValueError):
            orch.submit_review("it-1", "user-1", 4)

    def test_rating_out_of_range(self, store, saved):
        orch, _, _, _ = make_orchestrator(store, today=date(2026, 7, 1))
        with pytest.raises(ValueError):
            orch.submit_review("it-1", "user-1", 6)

    def test_cancel_confirmed_trip(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        orch.confirm_itinerary("it-1", "user-1")
        cancelled = orch.cancel_itinerary("it-1", "user-1")
        assert cancelled.status == ItineraryStatus.CANCELLED
        assert store.load_itinerary("it-1", "user-1").status == ItineraryStatus.CANCELLED

    def test_cancelled_trip_is_not_advanced_by_dates(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        orch.cancel_itinerary("it-1", "user-1")
        later, _, _, _ = make_orchestrator(store, today=date(2026, 7, 1))
        assert later.get_itinerary("it-1", "user-1").status == ItineraryStatus.CANCELLED

    def test_completed_trip_cannot_be_cancelled(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        orch.confirm_itinerary("it-1", "user-1")
        later, _, _, _ = make_orchestrator(store, today=date(2026, 7, 1))
        with pytest.raises(ValueError):
            later.cancel_itinerary("it-1", "user-1")

    def test_cancel_twice_is_rejected(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        orch.cancel_itinerary("it-1", "user-1")
        with pytest.raises(ValueError):
            orch.cancel_itinerary("it-1", "user-1")

    def test_delete(self, store, saved):
        orch, _, _, _ = make_orchestrator(store)
        orch.delete_itinerary("it-1", "user-1")
        with pytest.raises(ItineraryNotFound):
            orch.get_itinerary("it-1", "user-1")
