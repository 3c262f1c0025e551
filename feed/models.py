from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Final, TypedDict, cast

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from social.models import Post, engagement_counts_for_post, fetch_feed_window, viewer_interaction_sets
from trips.models import (
    MAX_PREFERRED_STYLES,
    clean_travel_styles,
    completed_trip_counts_for_authors,
    trip_history_preferences_for_member,
)

from .ranking import (
    DEFAULT_FEED_MODE,
    FeedCandidate,
    FeedMode,
    RankedItem,
    ViewerContext,
    rank_candidates,
    weight_profile_for_mode,
)

DEFAULT_FEED_LIMIT: Final[int] = 10
MAX_FEED_LIMIT: Final[int] = 50
DEFAULT_OVERFETCH_FACTOR: Final[int] = 3

MODE_REASONS: Final[dict[str, str]] = {
    "balanced": "Trip quality first, balanced with engagement, relevance, trust and freshness.",
    "nearby": "Relevance-heavy ranking that favors trips close to you and matching your style.",
    "trek": "Quality and trust weighted up for evergreen trekking content.",
    "budget": "Relevance weighted up so trips near your usual budget surface first.",
}


class FeedAuthorData(TypedDict):
    id: int
    username: str


class FeedTripData(TypedDict):
    id: int
    title: str
    source: str
    destination: str
    days: int
    travel_styles: list[str]
    budget_min: int | None
    budget_max: int | None
    status: str
    completed_at: str | None


class FeedCountsData(TypedDict):
    likes: int
    comments: int
    bookmarks: int


class FeedPostData(TypedDict):
    id: int
    caption: str
    media_url: str
    created_at: str
    url: str
    author: FeedAuthorData
    trip: FeedTripData | None
    counts: FeedCountsData
    is_liked: bool
    is_bookmarked: bool
    score: float
    breakdown: dict[str, float]


class FeedPaginationData(TypedDict):
    next_cursor: int | None
    has_next_page: bool
    count: int


class RankedFeedPayload(TypedDict):
    posts: list[FeedPostData]
    mode: str
    reason: str
    candidate_count: int
    pagination: FeedPaginationData


class MemberFeedPreference(models.Model):
    """
    Saved member defaults for feed personalization.

    Trip history is the primary signal for style and budget. These values fill
    the gaps for members without enough history, and the saved coordinates are
    used when a feed request does not send its own location.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="feed_preference",
    )
    travel_styles: models.JSONField[list[str]] = models.JSONField(
        default=list,
        blank=True,
        help_text="Preferred travel styles, most preferred first (stored uppercase).",
    )
    budget_min = models.PositiveIntegerField(blank=True, null=True)
    budget_max = models.PositiveIntegerField(blank=True, null=True)
    latitude = models.FloatField(blank=True, null=True)
    longitude = models.FloatField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("user__username",)

    def __str__(self) -> str:
        return f"Feed preference for @{self.user.get_username()}"

    def clean(self) -> None:
        super().clean()
        if self.budget_min is not None and self.budget_max is not None and self.budget_min > self.budget_max:
            raise ValidationError({"budget_max": "Maximum budget must be at least the minimum budget."})
        if (self.latitude is None) != (self.longitude is None):
            raise ValidationError("Latitude and longitude must be set together.")
        if self.latitude is not None and not -90 <= self.latitude <= 90:
            raise ValidationError({"latitude": "Latitude must be between -90 and 90."})
        if self.longitude is not None and not -180 <= self.longitude <= 180:
            raise ValidationError({"longitude": "Longitude must be between -180 and 180."})

    def clean_travel_styles(self) -> list[str]:
        raw_values = getattr(self, "travel_styles", [])
        if not isinstance(raw_values, list):
            return []
        return clean_travel_styles(cast(list[object], raw_values))[:MAX_PREFERRED_STYLES]

    def has_budget(self) -> bool:
        return bool(self.budget_min) and bool(self.budget_max)

    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def save(
        self,
        force_insert: bool = False,
        force_update: bool = False,
        using: str | None = None,
        update_fields: Iterable[str] | None = None,
    ) -> None:
        # Persist normalized uppercase styles, capped at three.
        self.travel_styles = self.clean_travel_styles()
        super().save(
            force_insert=force_insert,
            force_update=force_update,
            using=using,
            update_fields=update_fields,
        )


def _feed_setting_int(name: str, default: int) -> int:
    try:
        return int(getattr(settings, name, default))
    except (TypeError, ValueError):
        return default


def feed_limit_bounds() -> tuple[int, int]:
    max_limit = max(1, _feed_setting_int("ROAMLY_FEED_MAX_LIMIT", MAX_FEED_LIMIT))
    default_limit = min(max(1, _feed_setting_int("ROAMLY_FEED_DEFAULT_LIMIT", DEFAULT_FEED_LIMIT)), max_limit)
    return default_limit, max_limit


def _effective_limit(limit: int | None) -> int:
    default_limit, max_limit = feed_limit_bounds()
    if limit is None:
        return default_limit
    return min(max(int(limit), 1), max_limit)


def _member_saved_preference(user: object) -> MemberFeedPreference | None:
    typed_user = cast(Any, user)
    try:
        return cast(MemberFeedPreference, typed_user.feed_preference)
    except (MemberFeedPreference.DoesNotExist, AttributeError):
        return None


def build_viewer_context(
    user: object,
    *,
    latitude: float | None = None,
    longitude: float | None = None,
) -> ViewerContext | None:
    if not bool(getattr(user, "is_authenticated", False)):
        return None

    viewer_id = int(getattr(user, "pk", 0) or 0)
    if viewer_id <= 0:
        return None

    history = trip_history_preferences_for_member(user)
    preference = _member_saved_preference(user)

    preferred_styles = list(history["travel_styles"])
    if not preferred_styles and preference is not None:
        preferred_styles = preference.clean_travel_styles()

    budget_min = history["budget_min"]
    budget_max = history["budget_max"]
    if (budget_min is None or budget_max is None) and preference is not None and preference.has_budget():
        budget_min = float(preference.budget_min or 0)
        budget_max = float(preference.budget_max or 0)

    viewer_latitude: float | None = None
    viewer_longitude: float | None = None
    if latitude is not None and longitude is not None:
        viewer_latitude, viewer_longitude = float(latitude), float(longitude)
    elif preference is not None and preference.has_location():
        viewer_latitude, viewer_longitude = preference.latitude, preference.longitude

    return ViewerContext(
        viewer_id=viewer_id,
        latitude=viewer_latitude,
        longitude=viewer_longitude,
        preferred_budget_min=budget_min,
        preferred_budget_max=budget_max,
        preferred_styles=tuple(preferred_styles[:MAX_PREFERRED_STYLES]),
        completed_trips_count=history["completed_trips_count"],
    )


def _candidate_from_post(post: Post) -> FeedCandidate:
    trip = post.trip if post.trip_id else None
    return FeedCandidate(
        candidate_id=int(post.pk),
        trip=trip.to_trip_candidate() if trip is not None else None,
        engagement=engagement_counts_for_post(post),
        payload=post,
    )


def _trip_data(post: Post) -> FeedTripData | None:
    trip = post.trip if post.trip_id else None
    if trip is None:
        return None
    return {
        "id": int(trip.pk),
        "title": trip.title,
        "source": trip.source,
        "destination": trip.destination,
        "days": int(trip.days or 0),
        "travel_styles": trip.clean_travel_styles(),
        "budget_min": trip.budget_min,
        "budget_max": trip.budget_max,
        "status": trip.status,
        "completed_at": trip.completed_at.isoformat() if trip.completed_at else None,
    }


def _post_data(item: RankedItem, *, liked_ids: set[int], bookmarked_ids: set[int]) -> FeedPostData:
    post = cast(Post, item.candidate.payload)
    post_id = int(item.candidate.candidate_id)
    engagement = item.candidate.engagement
    created_at: datetime = post.created_at
    return {
        "id": post_id,
        "caption": post.caption,
        "media_url": post.media_url,
        "created_at": created_at.isoformat(),
        "url": post.get_absolute_url(),
        "author": {
            "id": int(post.author_id),
            "username": str(getattr(post.author, "username", "") or ""),
        },
        "trip": _trip_data(post),
        "counts": {
            "likes": engagement.likes,
            "comments": engagement.comments,
            "bookmarks": engagement.bookmarks,
        },
        "is_liked": post_id in liked_ids,
        "is_bookmarked": post_id in bookmarked_ids,
        "score": item.score,
        "breakdown": item.breakdown.to_dict(),
    }


def build_ranked_feed_payload(
    user: object,
    *,
    limit: int | None = None,
    cursor: int | None = None,
    mode: FeedMode = DEFAULT_FEED_MODE,
    latitude: float | None = None,
    longitude: float | None = None,
    now: datetime | None = None,
) -> RankedFeedPayload:
    """
    Build one ranked feed page.

    The source stream is newest-first. A window of `limit * overfetch` posts is
    fetched after the cursor, ranked, and the first `limit` ranked posts form
    the page. `next_cursor` points at the last post of the fetched window, so
    each page re-ranks its own recency window; order is not global across pages.
    """

    # Reject an unknown mode before touching storage.
    weight_profile_for_mode(mode)

    effective_limit = _effective_limit(limit)
    overfetch_factor = max(1, _feed_setting_int("ROAMLY_FEED_OVERFETCH_FACTOR", DEFAULT_OVERFETCH_FACTOR))
    window = fetch_feed_window(cursor=cursor, size=effective_limit * overfetch_factor)

    viewer = build_viewer_context(user, latitude=latitude, longitude=longitude)
    candidates = [_candidate_from_post(post) for post in window]
    author_counts = completed_trip_counts_for_authors(
        candidate.trip.author_id for candidate in candidates if candidate.trip is not None
    )
    ranked = rank_candidates(
        candidates,
        viewer,
        mode,
        author_completed_trips=author_counts,
        now=now,
    )

    page = ranked[:effective_limit]
    has_next_page = len(ranked) > effective_limit
    next_cursor = int(window[-1].pk) if has_next_page and window else None

    interactions = viewer_interaction_sets(user, [item.candidate.candidate_id for item in page])
    posts = [
        _post_data(
            item,
            liked_ids=interactions["liked_post_ids"],
            bookmarked_ids=interactions["bookmarked_post_ids"],
        )
        for item in page
    ]

    reason = MODE_REASONS.get(mode, MODE_REASONS[DEFAULT_FEED_MODE])
    if viewer is None:
        reason = f"{reason} Guests get neutral relevance."

    return {
        "posts": posts,
        "mode": mode,
        "reason": reason,
        "candidate_count": len(window),
        "pagination": {
            "next_cursor": next_cursor,
            "has_next_page": has_next_page,
            "count": len(posts),
        },
    }
