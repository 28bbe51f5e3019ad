"""Unit tests for trip status derivation (Strategy Pattern) and manual trip transitions."""

from datetime import timedelta

import pytest

from carpool.domain.enums import TripKind, TripStatus
from carpool.domain.errors import InvalidStateTransition, TripUnavailableError
from carpool.domain.trip_lifecycle import (
    NeverFullRule,
    SeatCapacityRule,
    TripLifecycleEngine,
    apply_trip_transition,
    fullness_rule,
    next_trip_status,
)
from tests.factories import NOW, make_trip


class TestNextTripStatus:
    def test_departure_within_the_hour_is_urgent(self):
        trip = make_trip(departure_time=NOW + timedelta(minutes=30))
        assert next_trip_status(trip, NOW) == TripStatus.URGENT

    def test_urgent_window_boundary_is_inclusive(self):
        trip = make_trip(departure_time=NOW + timedelta(minutes=60))
        assert next_trip_status(trip, NOW) == TripStatus.URGENT

    def test_just_outside_urgent_window_is_preparing(self):
        trip = make_trip(departure_time=NOW + timedelta(minutes=61))
        assert next_trip_status(trip, NOW) == TripStatus.PREPARING

    def test_between_departure_and_arrival_is_on_trip(self):
        trip = make_trip(
            departure_time=NOW - timedelta(hours=1),
            arrival_time=NOW + timedelta(hours=2),
        )
        assert next_trip_status(trip, NOW) == TripStatus.ON_TRIP

    def test_departure_instant_is_on_trip(self):
        trip = make_trip(departure_time=NOW)
        assert next_trip_status(trip, NOW) == TripStatus.ON_TRIP

    def test_after_arrival_is_completed(self):
        trip = make_trip(
            departure_time=NOW - timedelta(hours=4),
            arrival_time=NOW - timedelta(minutes=1),
        )
        assert next_trip_status(trip, NOW) == TripStatus.COMPLETED

    def test_missing_arrival_defaults_to_three_hours(self):
        trip = make_trip(departure_time=NOW - timedelta(hours=3))
        assert next_trip_status(trip, NOW) == TripStatus.ON_TRIP
        trip = make_trip(departure_time=NOW - timedelta(hours=3, seconds=1))
        assert next_trip_status(trip, NOW) == TripStatus.COMPLETED

    def test_no_seats_left_is_full(self):
        trip = make_trip(available_seats=0, departure_time=NOW + timedelta(minutes=10))
        assert next_trip_status(trip, NOW) == TripStatus.FULL

    def test_full_trip_still_starts(self):
        trip = make_trip(available_seats=0, departure_time=NOW - timedelta(minutes=5))
        assert next_trip_status(trip, NOW) == TripStatus.ON_TRIP

    @pytest.mark.parametrize("status", [TripStatus.COMPLETED, TripStatus.CANCELLED])
    def test_terminal_status_is_kept(self, status):
        trip = make_trip(status=status, departure_time=NOW + timedelta(minutes=5))
        assert next_trip_status(trip, NOW) == status

    def test_arrival_before_departure_counts_as_departure(self, caplog):
        trip = make_trip(
            departure_time=NOW - timedelta(minutes=10),
            arrival_time=NOW - timedelta(hours=2),
        )
        assert next_trip_status(trip, NOW) == TripStatus.COMPLETED
        assert "before it departs" in caplog.text

    def test_same_inputs_same_answer(self):
        trip = make_trip(departure_time=NOW + timedelta(minutes=45), available_seats=2)
        assert next_trip_status(trip, NOW) == next_trip_status(trip, NOW)


class TestFullnessRules:
    def test_request_trip_is_never_full_by_default(self):
        trip = make_trip(kind=TripKind.REQUEST, available_seats=0)
        assert next_trip_status(trip, NOW) == TripStatus.PREPARING

    def test_request_trip_can_be_seat_capped(self):
        engine = TripLifecycleEngine(fullness={TripKind.REQUEST: SeatCapacityRule()})
        trip = make_trip(kind=TripKind.REQUEST, available_seats=0)
        assert engine.next_status(trip, NOW) == TripStatus.FULL

    def test_rule_lookup_by_name(self):
        assert isinstance(fullness_rule("seats"), SeatCapacityRule)
        assert isinstance(fullness_rule("never"), NeverFullRule)

    def test_unknown_rule_name_fails(self):
        with pytest.raises(ValueError):
            fullness_rule("sometimes")

    def test_custom_urgent_window(self):
        engine = TripLifecycleEngine(urgent_window=timedelta(minutes=15))
        trip = make_trip(departure_time=NOW + timedelta(minutes=30))
        assert engine.next_status(trip, NOW) == TripStatus.PREPARING


class TestManualTripTransition:
    def test_cancel_from_any_open_status(self):
        for status in (TripStatus.PREPARING, TripStatus.URGENT, TripStatus.FULL, TripStatus.ON_TRIP):
            trip = make_trip(status=status)
            assert apply_trip_transition(trip, TripStatus.CANCELLED, NOW).status == TripStatus.CANCELLED

    def test_transition_returns_a_copy(self):
        trip = make_trip()
        apply_trip_transition(trip, TripStatus.CANCELLED, NOW)
        assert trip.status == TripStatus.PREPARING

    def test_complete_after_arrival(self):
        trip = make_trip(
            status=TripStatus.ON_TRIP,
            departure_time=NOW - timedelta(hours=2),
            arrival_time=NOW,
        )
        assert apply_trip_transition(trip, TripStatus.COMPLETED, NOW).status == TripStatus.COMPLETED

    def test_cannot_complete_early(self):
        trip = make_trip(
            status=TripStatus.ON_TRIP,
            departure_time=NOW - timedelta(hours=1),
            arrival_time=NOW + timedelta(hours=1),
        )
        with pytest.raises(InvalidStateTransition):
            apply_trip_transition(trip, TripStatus.COMPLETED, NOW)

    @pytest.mark.parametrize(
        "target", [TripStatus.PREPARING, TripStatus.URGENT, TripStatus.FULL, TripStatus.ON_TRIP]
    )
    def test_derived_statuses_cannot_be_requested(self, target):
        with pytest.raises(InvalidStateTransition):
            apply_trip_transition(make_trip(), target, NOW)

    @pytest.mark.parametrize("status", [TripStatus.COMPLETED, TripStatus.CANCELLED])
    def test_terminal_trip_is_unavailable(self, status):
        trip = make_trip(status=status)
        with pytest.raises(TripUnavailableError) as exc_info:
            apply_trip_transition(trip, TripStatus.CANCELLED, NOW)
        assert exc_info.value.code == "TRIP_UNAVAILABLE"
