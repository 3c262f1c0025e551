"""
Feed ranking engine.

Every candidate post is scored on five signals, each in [0, 100]:

- trip quality: how complete and detailed the trip plan is
- engagement: weighted likes/comments/bookmarks on a log scale
- relevance: travel-style, budget and distance fit for the viewer
- trust: author track record plus whether the trip was actually completed
- freshness: piecewise time decay, slower for evergreen trekking content

The signals are combined with a per-mode weight profile and the candidates are
sorted by the weighted total. Everything here is pure and synchronous: inputs
are immutable snapshots built by the feed layer, so ranking is safe to run
concurrently and never touches the database.
"""
from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Final, Literal, cast

from django.utils import timezone

from .geo import DEFAULT_DESTINATION_RESOLVER, DestinationResolver, distance_km

FeedMode = Literal["balanced", "nearby", "trek", "budget"]
FEED_MODES: Final[tuple[FeedMode, ...]] = ("balanced", "nearby", "trek", "budget")
DEFAULT_FEED_MODE: Final[FeedMode] = "balanced"

NEUTRAL_SCORE: Final[float] = 50.0
MAX_SCORE: Final[float] = 100.0
EVERGREEN_TRAVEL_STYLE: Final[str] = "ADVENTURE"
EVERGREEN_DESTINATION_KEYWORD: Final[str] = "trek"

BOOKMARK_WEIGHT: Final[int] = 5
COMMENT_WEIGHT: Final[int] = 3
LIKE_WEIGHT: Final[int] = 1
ENGAGEMENT_LOG_SCALE: Final[float] = 15.0

SECONDS_PER_DAY: Final[int] = 86_400


class UnknownFeedModeError(ValueError):
    def __init__(self, mode: object) -> None:
        super().__init__(f"Unknown feed mode {mode!r}; expected one of {', '.join(FEED_MODES)}.")
        self.mode = mode


@dataclass(frozen=True)
class TripCandidate:
    """
    Read-only snapshot of a trip as the ranking engine sees it.

    `itinerary` and `cost_breakdown` are the semi-structured payloads produced
    by the itinerary generator. They are only ever read, and any missing or
    malformed branch counts as absent.
    """

    trip_id: int
    author_id: int
    source: str
    destination: str
    days: int
    travel_styles: tuple[str, ...]
    itinerary: object = None
    budget_min: float | None = None
    budget_max: float | None = None
    cost_breakdown: object = None
    completed_at: datetime | None = None

    @property
    def budget_average(self) -> float | None:
        if not self.budget_min or not self.budget_max:
            return None
        return (float(self.budget_min) + float(self.budget_max)) / 2


@dataclass(frozen=True)
class EngagementCounts:
    likes: int = 0
    comments: int = 0
    bookmarks: int = 0


@dataclass(frozen=True)
class ViewerContext:
    viewer_id: int
    latitude: float | None = None
    longitude: float | None = None
    preferred_budget_min: float | None = None
    preferred_budget_max: float | None = None
    # Ranked, at most three entries.
    preferred_styles: tuple[str, ...] = ()
    completed_trips_count: int = 0

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def preferred_budget_average(self) -> float | None:
        if not self.preferred_budget_min or not self.preferred_budget_max:
            return None
        return (float(self.preferred_budget_min) + float(self.preferred_budget_max)) / 2


@dataclass(frozen=True)
class ScoreBreakdown:
    trip_quality: float
    engagement: float
    relevance: float
    trust: float
    freshness: float
    total: float

    def to_dict(self) -> dict[str, float]:
        return {
            "trip_quality": self.trip_quality,
            "engagement": self.engagement,
            "relevance": self.relevance,
            "trust": self.trust,
            "freshness": self.freshness,
            "total": self.total,
        }


ZERO_BREAKDOWN: Final[ScoreBreakdown] = ScoreBreakdown(
    trip_quality=0,
    engagement=0,
    relevance=0,
    trust=0,
    freshness=0,
    total=0,
)


@dataclass(frozen=True)
class WeightProfile:
    trip_quality: float
    engagement: float
    relevance: float
    trust: float
    freshness: float

    @property
    def total_weight(self) -> float:
        return self.trip_quality + self.engagement + self.relevance + self.trust + self.freshness

    def combine(
        self,
        *,
        trip_quality: float,
        engagement: float,
        relevance: float,
        trust: float,
        freshness: float,
    ) -> float:
        return (
            trip_quality * self.trip_quality
            + engagement * self.engagement
            + relevance * self.relevance
            + trust * self.trust
            + freshness * self.freshness
        )


WEIGHT_PROFILES: Final[dict[FeedMode, WeightProfile]] = {
    "balanced": WeightProfile(trip_quality=0.40, engagement=0.20, relevance=0.20, trust=0.10, freshness=0.10),
    "nearby": WeightProfile(trip_quality=0.30, engagement=0.15, relevance=0.40, trust=0.05, freshness=0.10),
    "trek": WeightProfile(trip_quality=0.45, engagement=0.15, relevance=0.15, trust=0.20, freshness=0.05),
    "budget": WeightProfile(trip_quality=0.35, engagement=0.20, relevance=0.30, trust=0.10, freshness=0.05),
}


@dataclass(frozen=True)
class FeedCandidate:
    candidate_id: int
    trip: TripCandidate | None
    engagement: EngagementCounts = field(default_factory=EngagementCounts)
    # Opaque to the engine; usually the source Post row.
    payload: object = None


@dataclass(frozen=True)
class RankedItem:
    candidate: FeedCandidate
    breakdown: ScoreBreakdown

    @property
    def score(self) -> float:
        return self.breakdown.total


def _as_mapping(value: object) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        return cast(Mapping[str, object], value)
    return {}


def _as_object_list(value: object) -> list[object]:
    if isinstance(value, (list, tuple)):
        return list(cast(Iterable[object], value))
    return []


def _has_items(value: object) -> bool:
    return len(_as_object_list(value)) > 0


def _first_present(mapping: Mapping[str, object], *names: str) -> object:
    for name in names:
        value = mapping.get(name)
        if value is not None:
            return value
    return None


def _safe_int(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return 0


def _normalized_style(value: object) -> str:
    return str(value or "").strip().upper()


def _as_aware_datetime(value: datetime) -> datetime:
    if timezone.is_naive(value):
        return timezone.make_aware(value, timezone.get_current_timezone())
    return value


def score_trip_quality(trip: TripCandidate) -> int:
    itinerary = _as_mapping(trip.itinerary)
    cost_breakdown = _as_mapping(trip.cost_breakdown)
    days = _safe_int(trip.days)
    score = 10

    if 1 <= days <= 3:
        score += 10
    elif 4 <= days <= 7:
        score += 15
    elif days >= 8:
        score += 12

    day_rows = [_as_mapping(day) for day in _as_object_list(itinerary.get("days"))]
    if day_rows:
        if len(day_rows) >= days:
            score += 10
        if any(_has_items(day.get("activities")) for day in day_rows):
            score += 10

    budget_min = trip.budget_min
    budget_max = trip.budget_max
    if budget_min is not None and budget_max is not None and budget_min > 0 and budget_max > budget_min:
        score += 10
        if cost_breakdown.get("total"):
            score += 5

    if any(_as_mapping(day.get("accommodation")).get("name") for day in day_rows):
        score += 10

    if any(_has_items(day.get("meals")) for day in day_rows):
        score += 10

    transportation = _as_mapping(itinerary.get("transportation"))
    if _first_present(transportation, "toDestination", "to_destination"):
        score += 5
    if _first_present(transportation, "withinDestination", "within_destination"):
        score += 5

    if _has_items(itinerary.get("tips")):
        score += 5
    if itinerary.get("overview"):
        score += 5

    return min(score, 100)


def score_engagement(counts: EngagementCounts) -> float:
    raw = (
        max(0, counts.bookmarks) * BOOKMARK_WEIGHT
        + max(0, counts.comments) * COMMENT_WEIGHT
        + max(0, counts.likes) * LIKE_WEIGHT
    )
    normalized = math.log(raw + 1) * ENGAGEMENT_LOG_SCALE
    return min(normalized, MAX_SCORE)


def score_relevance(
    trip: TripCandidate,
    viewer: ViewerContext | None,
    resolver: DestinationResolver = DEFAULT_DESTINATION_RESOLVER,
) -> float:
    if viewer is None:
        return NEUTRAL_SCORE

    score = NEUTRAL_SCORE

    trip_styles = {_normalized_style(style) for style in trip.travel_styles if _normalized_style(style)}
    preferred_styles = {_normalized_style(style) for style in viewer.preferred_styles if _normalized_style(style)}
    if trip_styles and preferred_styles:
        score += (len(trip_styles & preferred_styles) / len(trip_styles)) * 25

    trip_budget_average = trip.budget_average
    viewer_budget_average = viewer.preferred_budget_average
    if trip_budget_average is not None and viewer_budget_average is not None and viewer_budget_average > 0:
        budget_diff = abs(trip_budget_average - viewer_budget_average)
        similarity = max(0.0, 1 - budget_diff / (viewer_budget_average * 2))
        score += similarity * 25

    if viewer.has_coordinates:
        destination = resolver.resolve(trip.destination)
        if destination is not None:
            distance = distance_km(
                cast(float, viewer.latitude),
                cast(float, viewer.longitude),
                destination.latitude,
                destination.longitude,
            )
            if distance <= 50:
                score += 20
            elif distance <= 150:
                score += 10 * (1 - (distance - 50) / 100)

    return min(max(score, 0.0), MAX_SCORE)


def score_trust(trip: TripCandidate, author_completed_trips_count: int = 0) -> int:
    score = 30

    if author_completed_trips_count >= 1:
        score += 10
    if author_completed_trips_count >= 3:
        score += 15
    if author_completed_trips_count >= 5:
        score += 15

    if trip.completed_at is not None:
        score += 40

    return min(score, 100)


def score_freshness(
    completed_at: datetime | None,
    is_evergreen: bool = False,
    *,
    now: datetime | None = None,
) -> float:
    if completed_at is None:
        return NEUTRAL_SCORE

    current = _as_aware_datetime(now or timezone.now())
    age_days = (current - _as_aware_datetime(completed_at)).total_seconds() / SECONDS_PER_DAY
    decay_rate = 0.5 if is_evergreen else 1.0

    if age_days <= 7:
        score = MAX_SCORE
    elif age_days <= 30:
        score = 100 - (age_days - 7) * 2 * decay_rate
    elif age_days <= 90:
        score = 54 - (age_days - 30) * 0.5 * decay_rate
    else:
        score = 24 - (age_days - 90) * 0.1 * decay_rate

    return max(min(score, MAX_SCORE), 0.0)


def is_evergreen_trip(trip: TripCandidate) -> bool:
    if any(_normalized_style(style) == EVERGREEN_TRAVEL_STYLE for style in trip.travel_styles):
        return True
    return EVERGREEN_DESTINATION_KEYWORD in str(trip.destination or "").lower()


def normalize_feed_mode(raw_mode: object) -> FeedMode | None:
    if raw_mode is None:
        return DEFAULT_FEED_MODE
    normalized = str(raw_mode).strip().lower()
    if not normalized:
        return DEFAULT_FEED_MODE
    if normalized in FEED_MODES:
        return cast(FeedMode, normalized)
    return None


def weight_profile_for_mode(mode: object) -> WeightProfile:
    if isinstance(mode, str) and mode in WEIGHT_PROFILES:
        return WEIGHT_PROFILES[cast(FeedMode, mode)]
    raise UnknownFeedModeError(mode)


def score_candidate(
    candidate: FeedCandidate,
    viewer: ViewerContext | None,
    weights: WeightProfile,
    *,
    author_completed_trips_count: int = 0,
    now: datetime | None = None,
    resolver: DestinationResolver = DEFAULT_DESTINATION_RESOLVER,
) -> RankedItem:
    trip = candidate.trip
    if trip is None:
        return RankedItem(candidate=candidate, breakdown=ZERO_BREAKDOWN)

    trip_quality = float(score_trip_quality(trip))
    engagement = score_engagement(candidate.engagement)
    relevance = score_relevance(trip, viewer, resolver)
    trust = float(score_trust(trip, author_completed_trips_count))
    freshness = score_freshness(trip.completed_at, is_evergreen_trip(trip), now=now)

    total = weights.combine(
        trip_quality=trip_quality,
        engagement=engagement,
        relevance=relevance,
        trust=trust,
        freshness=freshness,
    )
    return RankedItem(
        candidate=candidate,
        breakdown=ScoreBreakdown(
            trip_quality=trip_quality,
            engagement=engagement,
            relevance=relevance,
            trust=trust,
            freshness=freshness,
            total=total,
        ),
    )


def rank_candidates(
    candidates: Iterable[FeedCandidate],
    viewer: ViewerContext | None,
    mode: FeedMode = DEFAULT_FEED_MODE,
    *,
    author_completed_trips: Mapping[int, int] | None = None,
    now: datetime | None = None,
    resolver: DestinationResolver = DEFAULT_DESTINATION_RESOLVER,
) -> list[RankedItem]:
    """
    Score and order candidates, best first.

    Equal totals are ordered by ascending candidate id so a page renders the
    same way on every request regardless of fetch order.
    """

    weights = weight_profile_for_mode(mode)
    completed_counts = author_completed_trips or {}
    effective_now = now or timezone.now()

    ranked: list[RankedItem] = []
    for candidate in candidates:
        author_count = 0
        if candidate.trip is not None:
            author_count = int(completed_counts.get(candidate.trip.author_id, 0) or 0)
        ranked.append(
            score_candidate(
                candidate,
                viewer,
                weights,
                author_completed_trips_count=author_count,
                now=effective_now,
                resolver=resolver,
            )
        )

    ranked.sort(key=lambda item: (-item.score, item.candidate.candidate_id))
    return ranked
