from __future__ import annotations

from datetime import timedelta
from io import StringIO
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from social.models import Post, PostBookmark, PostComment, PostLike
from trips.models import Trip, TripStatus

from .geo import (
    DEFAULT_DESTINATION_RESOLVER,
    NEPAL_DESTINATIONS,
    Coordinate,
    StaticDestinationResolver,
    distance_km,
)
from .models import MemberFeedPreference, build_ranked_feed_payload, build_viewer_context
from .ranking import (
    FEED_MODES,
    WEIGHT_PROFILES,
    ZERO_BREAKDOWN,
    EngagementCounts,
    FeedCandidate,
    TripCandidate,
    UnknownFeedModeError,
    ViewerContext,
    is_evergreen_trip,
    normalize_feed_mode,
    rank_candidates,
    score_engagement,
    score_freshness,
    score_relevance,
    score_trip_quality,
    score_trust,
    weight_profile_for_mode,
)

UserModel = get_user_model()

KATHMANDU = NEPAL_DESTINATIONS["Kathmandu"]


def detailed_itinerary(days: int) -> dict[str, object]:
    return {
        "overview": "Ridge walk with tea houses.",
        "days": [
            {
                "day": index + 1,
                "activities": [{"name": "Hike"}],
                "accommodation": {"name": "Tea house"},
                "meals": [{"type": "dinner"}],
            }
            for index in range(days)
        ],
        "transportation": {"toDestination": "Bus", "withinDestination": "Walking"},
        "tips": ["Start early."],
    }


def make_trip(**overrides: object) -> TripCandidate:
    values: dict[str, object] = {
        "trip_id": 1,
        "author_id": 1,
        "source": "Kathmandu",
        "destination": "Pokhara",
        "days": 0,
        "travel_styles": (),
    }
    values.update(overrides)
    return TripCandidate(**values)  # type: ignore[arg-type]


class GeoDistanceTests(SimpleTestCase):
    def test_distance_is_symmetric(self) -> None:
        pokhara = NEPAL_DESTINATIONS["Pokhara"]
        forward = distance_km(KATHMANDU.latitude, KATHMANDU.longitude, pokhara.latitude, pokhara.longitude)
        backward = distance_km(pokhara.latitude, pokhara.longitude, KATHMANDU.latitude, KATHMANDU.longitude)

        self.assertAlmostEqual(forward, backward, places=9)
        self.assertGreater(forward, 135)
        self.assertLess(forward, 150)

    def test_distance_to_same_point_is_zero(self) -> None:
        self.assertEqual(distance_km(KATHMANDU.latitude, KATHMANDU.longitude, KATHMANDU.latitude, KATHMANDU.longitude), 0)
        self.assertEqual(distance_km(-33.9, 151.2, -33.9, 151.2), 0)

    def test_static_resolver_matches_exact_then_case_insensitive(self) -> None:
        self.assertEqual(DEFAULT_DESTINATION_RESOLVER.resolve("Kathmandu"), KATHMANDU)
        self.assertEqual(DEFAULT_DESTINATION_RESOLVER.resolve("  kathmandu "), KATHMANDU)
        self.assertIsNone(DEFAULT_DESTINATION_RESOLVER.resolve("Atlantis"))
        self.assertIsNone(DEFAULT_DESTINATION_RESOLVER.resolve(""))


class TripQualityScorerTests(SimpleTestCase):
    def test_bare_trip_gets_base_points_only(self) -> None:
        self.assertEqual(score_trip_quality(make_trip()), 10)

    def test_trip_length_bands(self) -> None:
        self.assertEqual(score_trip_quality(make_trip(days=2)), 20)
        self.assertEqual(score_trip_quality(make_trip(days=5)), 25)
        self.assertEqual(score_trip_quality(make_trip(days=10)), 22)

    def test_fully_detailed_trip_reaches_cap(self) -> None:
        trip = make_trip(
            days=5,
            itinerary=detailed_itinerary(5),
            budget_min=100,
            budget_max=300,
            cost_breakdown={"total": 250},
        )
        self.assertEqual(score_trip_quality(trip), 100)

    def test_short_day_list_skips_coverage_points(self) -> None:
        full = make_trip(days=5, itinerary=detailed_itinerary(5))
        partial = make_trip(days=5, itinerary=detailed_itinerary(3))
        self.assertEqual(score_trip_quality(full) - score_trip_quality(partial), 10)

    def test_cost_total_needs_valid_budget_range(self) -> None:
        trip = make_trip(days=2, cost_breakdown={"total": 100})
        self.assertEqual(score_trip_quality(trip), 20)

        inverted = make_trip(days=2, budget_min=300, budget_max=100, cost_breakdown={"total": 100})
        self.assertEqual(score_trip_quality(inverted), 20)

    def test_snake_case_transportation_keys_are_read(self) -> None:
        trip = make_trip(itinerary={"transportation": {"to_destination": "Bus", "within_destination": "Taxi"}})
        self.assertEqual(score_trip_quality(trip), 20)

    def test_malformed_itinerary_degrades_without_error(self) -> None:
        self.assertEqual(score_trip_quality(make_trip(days=3, itinerary="garbage", cost_breakdown=[1])), 20)
        self.assertEqual(score_trip_quality(make_trip(itinerary={"days": "nope", "tips": "x"})), 10)

    def test_adding_optional_fields_never_lowers_score(self) -> None:
        itinerary: dict[str, object] = {"days": [{"day": 1}]}
        previous = score_trip_quality(make_trip(days=1, itinerary=dict(itinerary)))
        steps: list[tuple[str, object]] = [
            ("days", [{"day": 1, "accommodation": {"name": "Lodge"}}]),
            ("days", [{"day": 1, "accommodation": {"name": "Lodge"}, "meals": [{"type": "lunch"}]}]),
            ("tips", ["Bring layers."]),
            ("overview", "Short hop."),
        ]
        for key, value in steps:
            itinerary[key] = value
            current = score_trip_quality(make_trip(days=1, itinerary=dict(itinerary)))
            self.assertGreaterEqual(current, previous)
            self.assertLessEqual(current, 100)
            previous = current


class EngagementScorerTests(SimpleTestCase):
    def test_no_engagement_scores_zero(self) -> None:
        self.assertEqual(score_engagement(EngagementCounts()), 0)

    def test_each_count_increases_score(self) -> None:
        base = score_engagement(EngagementCounts(likes=2, comments=2, bookmarks=2))
        self.assertGreater(score_engagement(EngagementCounts(likes=3, comments=2, bookmarks=2)), base)
        self.assertGreater(score_engagement(EngagementCounts(likes=2, comments=3, bookmarks=2)), base)
        self.assertGreater(score_engagement(EngagementCounts(likes=2, comments=2, bookmarks=3)), base)

    def test_bookmarks_outweigh_likes(self) -> None:
        self.assertGreater(
            score_engagement(EngagementCounts(bookmarks=10)),
            score_engagement(EngagementCounts(likes=10)),
        )

    def test_score_is_capped(self) -> None:
        self.assertEqual(score_engagement(EngagementCounts(likes=100_000)), 100)


class RelevanceScorerTests(SimpleTestCase):
    def test_guest_viewer_gets_neutral_score(self) -> None:
        trip = make_trip(travel_styles=("ADVENTURE",), budget_min=10, budget_max=20)
        self.assertEqual(score_relevance(trip, None), 50)

    def test_viewer_without_signals_stays_neutral(self) -> None:
        self.assertEqual(score_relevance(make_trip(), ViewerContext(viewer_id=1)), 50)

    def test_half_coordinates_skip_geo_signal(self) -> None:
        viewer = ViewerContext(viewer_id=1, latitude=KATHMANDU.latitude)

        self.assertFalse(viewer.has_coordinates)
        self.assertEqual(score_relevance(make_trip(destination="Kathmandu"), viewer), 50)

    def test_style_overlap_is_share_of_trip_styles(self) -> None:
        trip = make_trip(travel_styles=("ADVENTURE", "CULTURAL"))
        viewer = ViewerContext(viewer_id=1, preferred_styles=("adventure",))
        self.assertAlmostEqual(score_relevance(trip, viewer), 62.5)

    def test_matching_budget_adds_full_share(self) -> None:
        trip = make_trip(budget_min=100, budget_max=300)
        viewer = ViewerContext(viewer_id=1, preferred_budget_min=100, preferred_budget_max=300)
        self.assertAlmostEqual(score_relevance(trip, viewer), 75)

    def test_zero_viewer_budget_is_ignored(self) -> None:
        trip = make_trip(budget_min=100, budget_max=300)
        viewer = ViewerContext(viewer_id=1, preferred_budget_min=0, preferred_budget_max=0)
        self.assertEqual(score_relevance(trip, viewer), 50)

    def test_geo_proximity_bands(self) -> None:
        viewer = ViewerContext(viewer_id=1, latitude=KATHMANDU.latitude, longitude=KATHMANDU.longitude)

        self.assertAlmostEqual(score_relevance(make_trip(destination="Kathmandu"), viewer), 70)
        nearby_score = score_relevance(make_trip(destination="Pokhara"), viewer)
        self.assertGreater(nearby_score, 50)
        self.assertLess(nearby_score, 52)
        self.assertEqual(score_relevance(make_trip(destination="Reykjavik"), viewer), 50)

    def test_injected_resolver_is_used(self) -> None:
        resolver = StaticDestinationResolver({"Base Camp": Coordinate(28.0, 86.0)})
        viewer = ViewerContext(viewer_id=1, latitude=28.0, longitude=86.0)
        self.assertAlmostEqual(score_relevance(make_trip(destination="Base Camp"), viewer, resolver), 70)
        self.assertEqual(score_relevance(make_trip(destination="Kathmandu"), viewer, resolver), 50)

    def test_total_is_clamped(self) -> None:
        trip = make_trip(destination="Kathmandu", travel_styles=("CULTURAL",), budget_min=100, budget_max=300)
        viewer = ViewerContext(
            viewer_id=1,
            latitude=KATHMANDU.latitude,
            longitude=KATHMANDU.longitude,
            preferred_budget_min=100,
            preferred_budget_max=300,
            preferred_styles=("CULTURAL",),
        )
        self.assertEqual(score_relevance(trip, viewer), 100)


class TrustScorerTests(SimpleTestCase):
    def test_author_history_tiers(self) -> None:
        trip = make_trip()
        self.assertEqual(score_trust(trip, 0), 30)
        self.assertEqual(score_trust(trip, 1), 40)
        self.assertEqual(score_trust(trip, 3), 55)
        self.assertEqual(score_trust(trip, 5), 70)

    def test_completed_trip_by_veteran_is_capped(self) -> None:
        trip = make_trip(completed_at=timezone.now())
        self.assertEqual(score_trust(trip, 0), 70)
        self.assertEqual(score_trust(trip, 5), 100)


class FreshnessScorerTests(SimpleTestCase):
    def setUp(self) -> None:
        self.now = timezone.now()

    def test_missing_completion_is_neutral(self) -> None:
        self.assertEqual(score_freshness(None, now=self.now), 50)
        self.assertEqual(score_freshness(None, True, now=self.now), 50)

    def test_piecewise_decay(self) -> None:
        self.assertEqual(score_freshness(self.now, now=self.now), 100)
        self.assertEqual(score_freshness(self.now - timedelta(days=7), now=self.now), 100)
        self.assertAlmostEqual(score_freshness(self.now - timedelta(days=20), now=self.now), 74)
        self.assertAlmostEqual(score_freshness(self.now - timedelta(days=20), True, now=self.now), 87)
        self.assertAlmostEqual(score_freshness(self.now - timedelta(days=60), now=self.now), 39)
        self.assertAlmostEqual(score_freshness(self.now - timedelta(days=200), now=self.now), 13)
        self.assertEqual(score_freshness(self.now - timedelta(days=1000), now=self.now), 0)

    def test_future_completion_counts_as_fresh(self) -> None:
        self.assertEqual(score_freshness(self.now + timedelta(days=3), now=self.now), 100)

    def test_naive_datetimes_use_current_timezone(self) -> None:
        naive = timezone.make_naive(self.now - timedelta(days=10))
        self.assertAlmostEqual(score_freshness(naive, now=self.now), 94)

    def test_score_never_increases_with_age(self) -> None:
        for evergreen in (False, True):
            previous = 100.0
            for age in range(0, 400, 3):
                current = score_freshness(self.now - timedelta(days=age), evergreen, now=self.now)
                self.assertLessEqual(current, previous)
                previous = current

    def test_evergreen_classification(self) -> None:
        self.assertTrue(is_evergreen_trip(make_trip(travel_styles=("adventure",))))
        self.assertTrue(is_evergreen_trip(make_trip(destination="Everest Trek")))
        self.assertFalse(is_evergreen_trip(make_trip(travel_styles=("CULTURAL",), destination="Patan")))


class WeightProfileTests(SimpleTestCase):
    def test_every_profile_sums_to_one(self) -> None:
        self.assertEqual(set(WEIGHT_PROFILES), set(FEED_MODES))
        for mode, profile in WEIGHT_PROFILES.items():
            with self.subTest(mode=mode):
                self.assertLess(abs(profile.total_weight - 1.0), 1e-6)

    def test_normalize_feed_mode(self) -> None:
        self.assertEqual(normalize_feed_mode(None), "balanced")
        self.assertEqual(normalize_feed_mode("  "), "balanced")
        self.assertEqual(normalize_feed_mode(" Trek "), "trek")
        self.assertIsNone(normalize_feed_mode("viral"))

    def test_unknown_mode_raises(self) -> None:
        with self.assertRaises(UnknownFeedModeError) as caught:
            weight_profile_for_mode("viral")
        self.assertEqual(caught.exception.mode, "viral")
        self.assertIsInstance(caught.exception, ValueError)


class RankCandidatesTests(SimpleTestCase):
    def setUp(self) -> None:
        self.now = timezone.now()

    def test_empty_pool_ranks_to_empty_list(self) -> None:
        self.assertEqual(rank_candidates([], None, "balanced", now=self.now), [])

    def test_unknown_mode_is_rejected_before_scoring(self) -> None:
        with self.assertRaises(UnknownFeedModeError):
            rank_candidates([], None, "viral")  # type: ignore[arg-type]

    def test_candidate_without_trip_scores_zero(self) -> None:
        orphan = FeedCandidate(candidate_id=1, trip=None, engagement=EngagementCounts(likes=50))
        planned = FeedCandidate(candidate_id=2, trip=make_trip(days=1))

        ranked = rank_candidates([orphan, planned], None, now=self.now)

        self.assertEqual([item.candidate.candidate_id for item in ranked], [2, 1])
        self.assertEqual(ranked[1].breakdown, ZERO_BREAKDOWN)
        self.assertEqual(ranked[1].score, 0)

    def test_equal_scores_order_by_candidate_id(self) -> None:
        trip = make_trip(days=2)
        candidates = [FeedCandidate(candidate_id=candidate_id, trip=trip) for candidate_id in (7, 3, 5)]

        ranked = rank_candidates(candidates, None, now=self.now)

        self.assertEqual([item.candidate.candidate_id for item in ranked], [3, 5, 7])

    def test_completed_trip_ranks_at_or_above_uncompleted_twin(self) -> None:
        open_trip = FeedCandidate(candidate_id=1, trip=make_trip(days=4))
        completed_trip = FeedCandidate(
            candidate_id=2,
            trip=make_trip(days=4, completed_at=self.now - timedelta(days=1)),
        )

        ranked = rank_candidates([open_trip, completed_trip], None, "balanced", now=self.now)

        self.assertEqual(ranked[0].candidate.candidate_id, 2)
        self.assertGreaterEqual(ranked[0].score, ranked[1].score)

    def test_rich_veteran_trip_outranks_thin_trip_in_every_mode(self) -> None:
        strong = FeedCandidate(
            candidate_id=1,
            trip=make_trip(
                trip_id=1,
                author_id=10,
                destination="Pokhara",
                days=14,
                itinerary=detailed_itinerary(14),
                budget_min=2000,
                budget_max=4000,
                cost_breakdown={"total": 3500},
                completed_at=self.now - timedelta(days=2),
            ),
            engagement=EngagementCounts(bookmarks=50, comments=10, likes=40),
        )
        weak = FeedCandidate(
            candidate_id=2,
            trip=make_trip(trip_id=2, author_id=20, destination="Kathmandu", days=1),
            engagement=EngagementCounts(likes=1),
        )
        viewers = [
            None,
            ViewerContext(viewer_id=99, latitude=KATHMANDU.latitude, longitude=KATHMANDU.longitude),
        ]

        for mode in FEED_MODES:
            for viewer in viewers:
                with self.subTest(mode=mode, viewer=viewer):
                    ranked = rank_candidates(
                        [weak, strong],
                        viewer,
                        mode,
                        author_completed_trips={10: 5},
                        now=self.now,
                    )
                    self.assertEqual(ranked[0].candidate.candidate_id, 1)
                    for item in ranked:
                        for value in item.breakdown.to_dict().values():
                            self.assertGreaterEqual(value, 0)
                            self.assertLessEqual(value, 100)


def make_post(author: object, *, trip: Trip | None = None, minutes_ago: int = 0) -> Post:
    post = Post.objects.create(author=author, trip=trip, caption="Shared trip")
    Post.objects.filter(pk=post.pk).update(created_at=timezone.now() - timedelta(minutes=minutes_ago))
    post.refresh_from_db()
    return post


class ViewerContextTests(TestCase):
    def setUp(self) -> None:
        self.member = UserModel.objects.create_user(
            username="member1",
            email="member1@example.com",
            password="FeedPass!123456",
        )

    def test_guest_has_no_viewer_context(self) -> None:
        self.assertIsNone(build_viewer_context(AnonymousUser()))

    def test_member_without_history_or_preference(self) -> None:
        viewer = build_viewer_context(self.member)

        assert viewer is not None
        self.assertEqual(viewer.viewer_id, self.member.pk)
        self.assertEqual(viewer.preferred_styles, ())
        self.assertIsNone(viewer.preferred_budget_average)
        self.assertFalse(viewer.has_coordinates)
        self.assertEqual(viewer.completed_trips_count, 0)

    def test_saved_preference_fills_missing_history(self) -> None:
        MemberFeedPreference.objects.create(
            user=self.member,
            travel_styles=["relaxed", "cultural"],
            budget_min=200,
            budget_max=400,
            latitude=KATHMANDU.latitude,
            longitude=KATHMANDU.longitude,
        )

        viewer = build_viewer_context(self.member)

        assert viewer is not None
        self.assertEqual(viewer.preferred_styles, ("RELAXED", "CULTURAL"))
        self.assertEqual(viewer.preferred_budget_average, 300)
        self.assertEqual((viewer.latitude, viewer.longitude), (KATHMANDU.latitude, KATHMANDU.longitude))

    def test_trip_history_and_request_location_win(self) -> None:
        MemberFeedPreference.objects.create(
            user=self.member,
            travel_styles=["LUXURY"],
            budget_min=5000,
            budget_max=9000,
            latitude=KATHMANDU.latitude,
            longitude=KATHMANDU.longitude,
        )
        Trip.objects.create(
            author=self.member,
            source="Kathmandu",
            destination="Chitwan",
            days=3,
            travel_styles=["BACKPACKING"],
            budget_min=100,
            budget_max=300,
            status=TripStatus.COMPLETED,
        )

        viewer = build_viewer_context(self.member, latitude=28.2, longitude=83.9)

        assert viewer is not None
        self.assertEqual(viewer.preferred_styles, ("BACKPACKING",))
        self.assertEqual(viewer.preferred_budget_average, 200)
        self.assertEqual((viewer.latitude, viewer.longitude), (28.2, 83.9))
        self.assertEqual(viewer.completed_trips_count, 1)


class RankedFeedPayloadTests(TestCase):
    def setUp(self) -> None:
        self.author = UserModel.objects.create_user(
            username="author1",
            email="author1@example.com",
            password="FeedPass!123456",
        )
        self.member = UserModel.objects.create_user(
            username="member1",
            email="member1@example.com",
            password="FeedPass!123456",
        )

    def _trip(self, **overrides: object) -> Trip:
        values: dict[str, object] = {
            "author": self.author,
            "source": "Kathmandu",
            "destination": "Pokhara",
            "days": 2,
            "travel_styles": ["CULTURAL"],
        }
        values.update(overrides)
        return Trip.objects.create(**values)

    def test_pages_walk_the_recency_window(self) -> None:
        posts = [make_post(self.author, trip=self._trip(), minutes_ago=index) for index in range(7)]

        first_page = build_ranked_feed_payload(AnonymousUser(), limit=2)

        self.assertEqual(first_page["candidate_count"], 6)
        self.assertEqual(first_page["pagination"]["count"], 2)
        self.assertTrue(first_page["pagination"]["has_next_page"])
        self.assertEqual(first_page["pagination"]["next_cursor"], posts[5].pk)
        window_ids = {post.pk for post in posts[:6]}
        self.assertTrue({post["id"] for post in first_page["posts"]} <= window_ids)

        second_page = build_ranked_feed_payload(AnonymousUser(), limit=2, cursor=first_page["pagination"]["next_cursor"])

        self.assertEqual([post["id"] for post in second_page["posts"]], [posts[6].pk])
        self.assertFalse(second_page["pagination"]["has_next_page"])
        self.assertIsNone(second_page["pagination"]["next_cursor"])

    @override_settings(ROAMLY_FEED_OVERFETCH_FACTOR=1)
    def test_has_next_page_reflects_ranked_window_size(self) -> None:
        for index in range(3):
            make_post(self.author, trip=self._trip(), minutes_ago=index)

        payload = build_ranked_feed_payload(AnonymousUser(), limit=2)

        self.assertEqual(payload["candidate_count"], 2)
        self.assertFalse(payload["pagination"]["has_next_page"])
        self.assertIsNone(payload["pagination"]["next_cursor"])

    def test_richer_older_post_is_ranked_above_newer_thin_post(self) -> None:
        thin = make_post(self.author, minutes_ago=1)
        rich = make_post(
            self.author,
            trip=self._trip(
                days=5,
                itinerary=detailed_itinerary(5),
                budget_min=100,
                budget_max=400,
                status=TripStatus.COMPLETED,
            ),
            minutes_ago=30,
        )

        payload = build_ranked_feed_payload(AnonymousUser(), limit=10)

        self.assertEqual([post["id"] for post in payload["posts"]], [rich.pk, thin.pk])
        self.assertEqual(payload["posts"][1]["score"], 0)
        self.assertIsNone(payload["posts"][1]["trip"])
        self.assertEqual(payload["posts"][0]["trip"]["status"], TripStatus.COMPLETED)
        self.assertEqual(payload["posts"][0]["breakdown"]["trust"], 80)

    def test_member_flags_and_counts(self) -> None:
        post = make_post(self.author, trip=self._trip())
        PostLike.objects.create(member=self.member, post=post)
        PostBookmark.objects.create(member=self.member, post=post)
        PostComment.objects.create(author=self.author, post=post, text="Thanks!")

        payload = build_ranked_feed_payload(self.member, limit=5, mode="budget")

        entry = payload["posts"][0]
        self.assertTrue(entry["is_liked"])
        self.assertTrue(entry["is_bookmarked"])
        self.assertEqual(entry["counts"], {"likes": 1, "comments": 1, "bookmarks": 1})
        self.assertEqual(entry["author"]["username"], "author1")
        self.assertEqual(payload["mode"], "budget")
        self.assertNotIn("Guests", payload["reason"])

    def test_guest_reason_mentions_neutral_relevance(self) -> None:
        payload = build_ranked_feed_payload(AnonymousUser())

        self.assertEqual(payload["posts"], [])
        self.assertIn("Guests get neutral relevance.", payload["reason"])
        self.assertEqual(payload["pagination"], {"next_cursor": None, "has_next_page": False, "count": 0})

    def test_unknown_mode_raises_before_fetching(self) -> None:
        with self.assertRaises(UnknownFeedModeError):
            build_ranked_feed_payload(AnonymousUser(), mode="viral")  # type: ignore[arg-type]


class RankedFeedViewTests(TestCase):
    def setUp(self) -> None:
        self.author = UserModel.objects.create_user(
            username="author1",
            email="author1@example.com",
            password="FeedPass!123456",
        )
        trip = Trip.objects.create(author=self.author, source="Kathmandu", destination="Patan", days=1)
        self.post = make_post(self.author, trip=trip)

    def _error_fields(self, query: str) -> list[str]:
        response = self.client.get(f"{reverse('feed:ranked')}?{query}")
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body["ok"])
        self.assertEqual(body["message"], "Validation failed")
        return [error["field"] for error in body["errors"]]

    def test_feed_returns_ranked_payload(self) -> None:
        response = self.client.get(reverse("feed:ranked"), {"mode": "nearby", "lat": "27.67", "lng": "85.32"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["message"], "Feed retrieved successfully")
        self.assertEqual(body["data"]["mode"], "nearby")
        self.assertEqual(body["data"]["posts"][0]["id"], self.post.pk)
        self.assertEqual(
            set(body["data"]["posts"][0]["breakdown"]),
            {"trip_quality", "engagement", "relevance", "trust", "freshness", "total"},
        )

    def test_invalid_limits_are_rejected(self) -> None:
        self.assertEqual(self._error_fields("limit=0"), ["limit"])
        self.assertEqual(self._error_fields("limit=abc"), ["limit"])
        self.assertEqual(self._error_fields("limit=51"), ["limit"])

    def test_non_ascii_and_malformed_integers_are_rejected(self) -> None:
        for params, field in (
            ({"limit": "²"}, "limit"),
            ({"limit": "--5"}, "limit"),
            ({"limit": "1_0"}, "limit"),
            ({"cursor": "²"}, "cursor"),
            ({"cursor": "-3"}, "cursor"),
        ):
            with self.subTest(params=params):
                response = self.client.get(reverse("feed:ranked"), params)

                self.assertEqual(response.status_code, 400)
                self.assertEqual([error["field"] for error in response.json()["errors"]], [field])

    def test_invalid_mode_is_rejected(self) -> None:
        self.assertEqual(self._error_fields("mode=viral"), ["mode"])

    def test_invalid_and_unknown_cursors_are_rejected(self) -> None:
        self.assertEqual(self._error_fields("cursor=abc"), ["cursor"])
        self.assertEqual(self._error_fields(f"cursor={self.post.pk + 1000}"), ["cursor"])

    def test_coordinates_must_be_paired_and_in_range(self) -> None:
        self.assertEqual(self._error_fields("lat=27.7"), ["lat"])
        self.assertEqual(self._error_fields("lat=100&lng=85"), ["lat"])
        self.assertEqual(self._error_fields("lat=27&lng=nan"), ["lng"])

    def test_only_get_is_allowed(self) -> None:
        response = self.client.post(reverse("feed:ranked"))
        self.assertEqual(response.status_code, 405)

    def test_health_endpoint(self) -> None:
        response = self.client.get("/health/")
        self.assertEqual(response.json(), {"status": "ok", "service": "roamly"})

    def test_feed_verbose_query_prints_debug_lines(self) -> None:
        with patch("builtins.print") as mock_print:
            response = self.client.get(f"{reverse('feed:ranked')}?verbose=1")

        self.assertEqual(response.status_code, 200)
        self.assertGreaterEqual(mock_print.call_count, 2)

        printed_lines = "\n".join(str(args[0]) for args, _kwargs in mock_print.call_args_list)
        self.assertIn("[feed][verbose]", printed_lines)
        self.assertIn("top_score=", printed_lines)

    def test_feed_verbose_header_prints_debug_lines(self) -> None:
        with patch("builtins.print") as mock_print:
            response = self.client.get(reverse("feed:ranked"), headers={"X-Roamly-Verbose": "true"})

        self.assertEqual(response.status_code, 200)
        self.assertGreaterEqual(mock_print.call_count, 1)

    def test_feed_without_verbose_query_does_not_print_debug_lines(self) -> None:
        with patch("builtins.print") as mock_print:
            response = self.client.get(reverse("feed:ranked"))

        self.assertEqual(response.status_code, 200)
        mock_print.assert_not_called()


class FeedBootstrapCommandTests(TestCase):
    def test_bootstrap_feed_seeds_existing_members_with_verbose_output(self) -> None:
        for username in ("alice", "bob", "charlie", "diana", "eve"):
            UserModel.objects.create_user(
                username=username,
                email=f"{username}@example.com",
                password="DemoPass!12345",
            )

        stdout = StringIO()
        call_command("bootstrap_feed", "--verbose", stdout=stdout)
        output = stdout.getvalue()

        self.assertEqual(MemberFeedPreference.objects.count(), 5)
        self.assertEqual(Trip.objects.count(), 6)
        self.assertEqual(Post.objects.count(), 6)
        self.assertIn("[feed][verbose]", output)
        self.assertIn("created_users=0", output)

        alice_preference = MemberFeedPreference.objects.get(user__username="alice")
        self.assertEqual(alice_preference.travel_styles, ["ADVENTURE", "CULTURAL"])
        self.assertTrue(alice_preference.has_location())

    def test_bootstrap_feed_skips_missing_members_by_default(self) -> None:
        stdout = StringIO()
        call_command("bootstrap_feed", stdout=stdout)

        self.assertEqual(UserModel.objects.count(), 0)
        self.assertEqual(Trip.objects.count(), 0)
        self.assertIn("skipped=5", stdout.getvalue())
        self.assertNotIn("[feed][verbose]", stdout.getvalue())

    def test_bootstrap_feed_can_create_missing_members_and_is_idempotent(self) -> None:
        call_command("bootstrap_feed", "--create-missing-members", stdout=StringIO())

        for username in ("alice", "bob", "charlie", "diana", "eve"):
            self.assertTrue(UserModel.objects.filter(username=username).exists())
        counts = (
            Trip.objects.count(),
            Post.objects.count(),
            PostLike.objects.count(),
            PostComment.objects.count(),
            PostBookmark.objects.count(),
        )
        self.assertTrue(Trip.objects.filter(status=TripStatus.COMPLETED, completed_at__isnull=False).exists())
        self.assertTrue(all(trip.cost_breakdown for trip in Trip.objects.all()))

        call_command("bootstrap_feed", "--create-missing-members", stdout=StringIO())

        self.assertEqual(UserModel.objects.count(), 5)
        self.assertEqual(MemberFeedPreference.objects.count(), 5)
        self.assertEqual(
            counts,
            (
                Trip.objects.count(),
                Post.objects.count(),
                PostLike.objects.count(),
                PostComment.objects.count(),
                PostBookmark.objects.count(),
            ),
        )

        payload = build_ranked_feed_payload(UserModel.objects.get(username="bob"), limit=3, mode="trek")
        self.assertEqual(payload["pagination"]["count"], 3)
        self.assertTrue(payload["pagination"]["has_next_page"])
