"""
Unit tests for database.py (ItineraryStore on in-memory sqlite).
"""
from dataclasses import replace
from datetime import date

import pytest

from itinerary import ItineraryStatus
from agents.errors import ItineraryNotFound, StaleItinerary


class TestLoadSave:
    def test_round_trip(self, store, itinerary):
        store.save_itinerary(itinerary)
        loaded = store.load_itinerary("it-1", "user-1")
        assert loaded.version == 1
        assert loaded.trip_request == itinerary.trip_request
        assert [d.activities for d in loaded.days] == [d.activities for d in itinerary.days]
        assert loaded.days[0].meals.lunch == "Bistro 1"
        assert loaded.total_cost == 330.0

    def test_other_owner_cannot_load(self, store, itinerary):
        store.save_itinerary(itinerary)
        with pytest.raises(ItineraryNotFound):
            store.load_itinerary("it-1", "someone-else")

    def test_unknown_id(self, store):
        with pytest.raises(ItineraryNotFound):
            store.load_itinerary("missing", "user-1")

    def test_update_bumps_version(self, store, itinerary):
        store.save_itinerary(itinerary)
        itinerary.days[0].activities.append("Late-night crepes")
        store.save_itinerary(itinerary)
        loaded = store.load_itinerary("it-1", "user-1")
        assert loaded.version == 2
        assert loaded.days[0].activities[-1] == "Late-night crepes"

    def test_concurrent_write_is_rejected(self, store, itinerary):
        store.save_itinerary(itinerary)
        first = store.load_itinerary("it-1", "user-1")
        second = store.load_itinerary("it-1", "user-1")

        first.days[0].activities.append("A")
        store.save_itinerary(first)

        second.days[0].activities.append("B")
        with pytest.raises(StaleItinerary) as err:
            store.save_itinerary(second)
        assert err.value.expected == 1
        assert err.value.actual == 2
        assert store.load_itinerary("it-1", "user-1").days[0].activities[-1] == "A"

    def test_list_itineraries(self, store, itinerary):
        store.save_itinerary(itinerary)
        assert [i.id for i in store.list_itineraries("user-1")] == ["it-1"]
        assert store.list_itineraries("nobody") == []

    def test_list_filters_by_status(self, store, itinerary):
        store.save_itinerary(itinerary)
        store.save_itinerary(replace(itinerary, id="it-2", status=ItineraryStatus.CONFIRMED))
        confirmed = store.list_itineraries("user-1", status=ItineraryStatus.CONFIRMED)
        assert [i.id for i in confirmed] == ["it-2"]
        assert [i.id for i in store.list_itineraries("user-1", status="draft")] == ["it-1"]
        assert store.list_itineraries("user-1", status=ItineraryStatus.CANCELLED) == []

    def test_list_pages(self, store, itinerary):
        for n in range(5):
            store.save_itinerary(replace(itinerary, id=f"it-{n}"))
        first = store.list_itineraries("user-1", limit=2, page=1)
        second = store.list_itineraries("user-1", limit=2, page=2)
        last = store.list_itineraries("user-1", limit=2, page=3)
        assert (len(first), len(second), len(last)) == (2, 2, 1)
        ids = {i.id for i in first + second + last}
        assert ids == {f"it-{n}" for n in range(5)}
        assert store.list_itineraries("user-1", limit=2, page=4) == []


class TestDelete:
    def test_delete_removes_ledger_and_history(self, store, itinerary):
        store.save_itinerary(itinerary, applied_change_id="chg-1")
        store.add_chat_message("it-1", "user-1", "user", "hello")

        store.delete_itinerary("it-1", "user-1")

        with pytest.raises(ItineraryNotFound):
            store.load_itinerary("it-1", "user-1")
        assert store.is_change_applied("it-1", "chg-1") is False
        assert store.chat_history("it-1", "user-1") == []

    def test_delete_is_scoped_to_owner(self, store, itinerary):
        store.save_itinerary(itinerary)
        with pytest.raises(ItineraryNotFound):
            store.delete_itinerary("it-1", "user-2")
        assert store.load_itinerary("it-1", "user-1").id == "it-1"


class TestAppliedChanges:
    def test_change_is_recorded_with_save(self, store, itinerary):
        store.save_itinerary(itinerary)
        assert store.is_change_applied("it-1", "chg-1") is False
        store.save_itinerary(itinerary, applied_change_id="chg-1")
        assert store.is_change_applied("it-1", "chg-1") is True

    def test_duplicate_change_id_rolls_back(self, store, itinerary):
        store.save_itinerary(itinerary)
        store.save_itinerary(itinerary, applied_change_id="chg-1")
        itinerary.days[0].activities.append("Should not persist")
        with pytest.raises(StaleItinerary):
            store.save_itinerary(itinerary, applied_change_id="chg-1")
        assert "Should not persist" not in store.load_itinerary("it-1", "user-1").days[0].activities


class TestChatHistory:
    def test_history_is_oldest_first_and_limited(self, store, itinerary):
        store.save_itinerary(itinerary)
        for i in range(5):
            store.add_chat_message("it-1", "user-1", "user", f"message {i}")
        history = store.chat_history("it-1", "user-1", limit=3)
        assert [m["content"] for m in history] == ["message 2", "message 3", "message 4"]
        assert history[0]["role"] == "user"

    def test_history_is_per_user(self, store, itinerary):
        store.save_itinerary(itinerary)
        store.add_chat_message("it-1", "user-1", "user", "hello")
        assert store.chat_history("it-1", "user-2") == []


class TestRefreshStatus:
    def test_draft_is_never_advanced(self, store, itinerary):
        store.save_itinerary(itinerary)
        store.refresh_status(itinerary, date(2027, 1, 1))
        assert itinerary.status == ItineraryStatus.DRAFT

    @pytest.mark.parametrize("today, expected", [
        (date(2026, 5, 31), ItineraryStatus.CONFIRMED),
        (date(2026, 6, 1), ItineraryStatus.ONGOING),
        (date(2026, 6, 3), ItineraryStatus.ONGOING),
        (date(2026, 6, 4), ItineraryStatus.COMPLETED),
    ])
    def test_confirmed_follows_trip_dates(self, store, itinerary, today, expected):
        itinerary.status = ItineraryStatus.CONFIRMED
        store.save_itinerary(itinerary)
        store.refresh_status(itinerary, today)
        assert itinerary.status == expected
        assert store.load_itinerary("it-1", "user-1").status == expected
