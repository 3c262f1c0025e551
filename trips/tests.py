from __future__ import annotations

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from .models import (
    Trip,
    TripStatus,
    clean_travel_styles,
    completed_trip_counts_for_authors,
    cost_breakdown_from_itinerary,
    trip_history_preferences_for_member,
)

UserModel = get_user_model()


class TripModelTests(TestCase):
    def setUp(self) -> None:
        self.author = UserModel.objects.create_user(
            username="author1",
            email="author1@example.com",
            password="TripPass!123456",
        )

    def test_save_normalizes_styles_and_defaults_title(self) -> None:
        trip = Trip.objects.create(
            author=self.author,
            source="Kathmandu",
            destination="Pokhara",
            days=4,
            travel_styles=["adventure", "bogus", "ADVENTURE", " cultural "],
        )

        self.assertEqual(trip.travel_styles, ["ADVENTURE", "CULTURAL"])
        self.assertEqual(trip.title, "Kathmandu to Pokhara - 4 days")
        self.assertEqual(trip.status, TripStatus.GENERATED)

    def test_clean_rejects_inverted_budget(self) -> None:
        trip = Trip(author=self.author, source="A", destination="B", budget_min=500, budget_max=100)

        with self.assertRaises(ValidationError) as caught:
            trip.full_clean()

        self.assertIn("budget_max", caught.exception.message_dict)

    def test_clean_rejects_unknown_styles(self) -> None:
        trip = Trip(author=self.author, source="A", destination="B", travel_styles=["SPACEFLIGHT"])

        with self.assertRaises(ValidationError) as caught:
            trip.full_clean()

        self.assertIn("travel_styles", caught.exception.message_dict)

    def test_clean_rejects_negative_days(self) -> None:
        trip = Trip(author=self.author, source="A", destination="B", days=-1)

        with self.assertRaises(ValidationError) as caught:
            trip.full_clean()

        self.assertIn("days", caught.exception.message_dict)

    def test_mark_completed_sets_status_and_timestamp(self) -> None:
        trip = Trip.objects.create(author=self.author, source="A", destination="B")
        finished_at = timezone.now() - timedelta(hours=2)

        trip.mark_completed(now=finished_at)
        trip.refresh_from_db()

        self.assertTrue(trip.is_completed)
        self.assertEqual(trip.completed_at, finished_at)

        with self.assertRaises(ValidationError):
            trip.mark_completed()

    def test_completed_status_without_timestamp_is_stamped_on_save(self) -> None:
        trip = Trip.objects.create(author=self.author, source="A", destination="B", status=TripStatus.COMPLETED)

        self.assertIsNotNone(trip.completed_at)

    def test_other_statuses_are_not_stamped(self) -> None:
        trip = Trip.objects.create(author=self.author, source="A", destination="B", status=TripStatus.SAVED)

        self.assertIsNone(trip.completed_at)

    def test_to_trip_candidate_snapshot(self) -> None:
        trip = Trip.objects.create(
            author=self.author,
            source="Kathmandu",
            destination="Chitwan",
            days=3,
            travel_styles=["backpacking"],
            budget_min=100,
            budget_max=300,
            itinerary={"overview": "Jungle"},
            cost_breakdown={"total": 280},
        )

        candidate = trip.to_trip_candidate()

        self.assertEqual(candidate.trip_id, trip.pk)
        self.assertEqual(candidate.author_id, self.author.pk)
        self.assertEqual(candidate.travel_styles, ("BACKPACKING",))
        self.assertEqual(candidate.budget_average, 200)
        self.assertEqual(candidate.itinerary, {"overview": "Jungle"})
        self.assertIsNone(candidate.completed_at)


class TripAggregateTests(TestCase):
    def setUp(self) -> None:
        self.member = UserModel.objects.create_user(
            username="member1",
            email="member1@example.com",
            password="TripPass!123456",
        )
        self.other = UserModel.objects.create_user(
            username="member2",
            email="member2@example.com",
            password="TripPass!123456",
        )

    def _trip(self, author: object, **overrides: object) -> Trip:
        values: dict[str, object] = {"author": author, "source": "Kathmandu", "destination": "Patan"}
        values.update(overrides)
        return Trip.objects.create(**values)

    def test_completed_trip_counts_for_authors(self) -> None:
        self._trip(self.member, status=TripStatus.COMPLETED)
        self._trip(self.member, status=TripStatus.COMPLETED)
        self._trip(self.member, status=TripStatus.SAVED)
        self._trip(self.other, status=TripStatus.CANCELLED)

        counts = completed_trip_counts_for_authors([self.member.pk, self.other.pk, self.member.pk])

        self.assertEqual(counts, {self.member.pk: 2})
        self.assertEqual(completed_trip_counts_for_authors([]), {})

    def test_guest_history_is_empty(self) -> None:
        history = trip_history_preferences_for_member(AnonymousUser())

        self.assertEqual(
            history,
            {"budget_min": None, "budget_max": None, "travel_styles": [], "completed_trips_count": 0},
        )

    def test_history_averages_budgets_and_ranks_styles(self) -> None:
        self._trip(self.member, travel_styles=["CULTURAL"], budget_min=100, budget_max=200)
        self._trip(
            self.member,
            travel_styles=["ADVENTURE", "RELAXED"],
            budget_min=300,
            budget_max=600,
            status=TripStatus.COMPLETED,
        )
        self._trip(self.member, travel_styles=["LUXURY", "ADVENTURE"], budget_min=0, budget_max=900)
        self._trip(self.member, travel_styles=["LUXURY"], budget_min=9000, budget_max=9900, status=TripStatus.CANCELLED)

        history = trip_history_preferences_for_member(self.member)

        self.assertEqual(history["budget_min"], 200)
        self.assertEqual(history["budget_max"], 400)
        # ADVENTURE leads on count; LUXURY then RELAXED follow newest-first appearance.
        self.assertEqual(history["travel_styles"], ["ADVENTURE", "LUXURY", "RELAXED"])
        self.assertEqual(history["completed_trips_count"], 1)


class TravelStyleCleaningTests(SimpleTestCase):
    def test_clean_travel_styles_dedupes_and_drops_unknown(self) -> None:
        self.assertEqual(
            clean_travel_styles(["relaxed", None, "RELAXED", "party", "Luxury"]),
            ["RELAXED", "LUXURY"],
        )


class CostBreakdownTests(SimpleTestCase):
    def test_sums_costs_per_category(self) -> None:
        itinerary = {
            "days": [
                {
                    "accommodation": {"name": "Lodge", "estimatedCost": 40},
                    "activities": [{"estimatedCost": 10}, {"estimatedCost": 5.5}],
                    "meals": [{"estimatedCost": 6}, {"estimatedCost": 4}],
                },
                {"accommodation": {"estimatedCost": 35}, "activities": [], "meals": "none"},
            ],
            "transportation": {"estimatedCost": 25},
            "totalEstimatedCost": 125.5,
        }

        self.assertEqual(
            cost_breakdown_from_itinerary(itinerary),
            {
                "accommodation": 75.0,
                "activities": 15.5,
                "meals": 10.0,
                "transportation": 25.0,
                "total": 125.5,
            },
        )

    def test_missing_total_yields_none(self) -> None:
        self.assertIsNone(cost_breakdown_from_itinerary({"days": []}))
        self.assertIsNone(cost_breakdown_from_itinerary("not a dict"))
