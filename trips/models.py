from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from typing import Final, TypedDict, cast

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Count
from django.utils import timezone

from feed.ranking import TripCandidate

MAX_PREFERRED_STYLES: Final[int] = 3


class TravelStyle(models.TextChoices):
    ADVENTURE = "ADVENTURE", "Adventure"
    CULTURAL = "CULTURAL", "Cultural"
    RELAXED = "RELAXED", "Relaxed"
    BACKPACKING = "BACKPACKING", "Backpacking"
    LUXURY = "LUXURY", "Luxury"


class TripStatus(models.TextChoices):
    GENERATED = "GENERATED", "Generated"
    SAVED = "SAVED", "Saved"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


class TripHistoryPreferences(TypedDict):
    budget_min: float | None
    budget_max: float | None
    travel_styles: list[str]
    completed_trips_count: int


def clean_travel_styles(values: Iterable[object]) -> list[str]:
    allowed = set(TravelStyle.values)
    cleaned: list[str] = []
    seen: set[str] = set()

    for raw in values:
        value = str(raw or "").strip().upper()
        if not value or value not in allowed or value in seen:
            continue
        seen.add(value)
        cleaned.append(value)

    return cleaned


def _as_object_list(value: object) -> list[object]:
    if isinstance(value, list):
        return cast(list[object], value)
    return []


def _as_dict(value: object) -> dict[str, object]:
    if isinstance(value, dict):
        return cast(dict[str, object], value)
    return {}


def _as_number(value: object) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return 0.0


class Trip(models.Model):
    """
    A planned, generated or completed trip owned by its author.

    `itinerary` keeps the generator's JSON payload as-is (days, activities,
    accommodation, meals, transportation, tips, overview). The feed only reads
    it through `to_trip_candidate()`.
    """

    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="trips",
    )
    title = models.CharField(max_length=180, blank=True)
    source = models.CharField(max_length=160)
    destination = models.CharField(max_length=160)
    days = models.PositiveSmallIntegerField(default=1)
    budget_min = models.PositiveIntegerField(blank=True, null=True)
    budget_max = models.PositiveIntegerField(blank=True, null=True)
    travel_styles: models.JSONField[list[str]] = models.JSONField(
        default=list,
        blank=True,
        help_text="Travel style tags (stored uppercase).",
    )
    itinerary: models.JSONField[dict[str, object]] = models.JSONField(default=dict, blank=True)
    cost_breakdown: models.JSONField[dict[str, object] | None] = models.JSONField(blank=True, null=True)
    status = models.CharField(
        max_length=12,
        choices=TripStatus.choices,
        default=TripStatus.GENERATED,
        db_index=True,
    )
    completed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=("author", "status"), name="trip_author_status_idx"),
            models.Index(fields=("author", "created_at"), name="trip_author_created_idx"),
        ]

    def __str__(self) -> str:
        label = self.title or f"{self.source} to {self.destination}"
        return f"Trip #{self.pk or 'new'}: {label}"

    def clean(self) -> None:
        super().clean()
        if self.budget_min is not None and self.budget_max is not None and self.budget_min > self.budget_max:
            raise ValidationError({"budget_max": "Maximum budget must be at least the minimum budget."})

        raw_styles = _as_object_list(getattr(self, "travel_styles", []))
        unknown = [str(item) for item in raw_styles if str(item or "").strip().upper() not in TravelStyle.values]
        if unknown:
            raise ValidationError({"travel_styles": f"Unknown travel styles: {', '.join(unknown)}."})

    def clean_travel_styles(self) -> list[str]:
        return clean_travel_styles(_as_object_list(getattr(self, "travel_styles", [])))

    def save(self, *args, **kwargs) -> None:  # type: ignore[no-untyped-def]
        self.travel_styles = self.clean_travel_styles()
        if not self.title.strip():
            self.title = f"{self.source} to {self.destination} - {self.days} days"
        super().save(*args, **kwargs)

    @property
    def is_completed(self) -> bool:
        return self.status == TripStatus.COMPLETED

    def mark_completed(self, *, now: datetime | None = None) -> None:
        if self.is_completed:
            raise ValidationError("Trip is already completed.")
        self.status = TripStatus.COMPLETED
        self.completed_at = now or timezone.now()
        self.save(update_fields=["status", "completed_at", "updated_at"])

    def to_trip_candidate(self) -> TripCandidate:
        return TripCandidate(
            trip_id=int(self.pk or 0),
            author_id=int(self.author_id or 0),
            source=self.source,
            destination=self.destination,
            days=int(self.days or 0),
            travel_styles=tuple(self.clean_travel_styles()),
            itinerary=self.itinerary,
            budget_min=float(self.budget_min) if self.budget_min is not None else None,
            budget_max=float(self.budget_max) if self.budget_max is not None else None,
            cost_breakdown=self.cost_breakdown,
            completed_at=self.completed_at,
        )


def cost_breakdown_from_itinerary(itinerary: object) -> dict[str, float] | None:
    """
    Sum generator cost estimates per category.

    Returns None when the itinerary carries no `totalEstimatedCost`, matching
    how generated trips are stored without a breakdown in that case.
    """

    payload = _as_dict(itinerary)
    total = _as_number(payload.get("totalEstimatedCost"))
    if not total:
        return None

    accommodation = 0.0
    activities = 0.0
    meals = 0.0
    for raw_day in _as_object_list(payload.get("days")):
        day = _as_dict(raw_day)
        accommodation += _as_number(_as_dict(day.get("accommodation")).get("estimatedCost"))
        activities += sum(
            _as_number(_as_dict(activity).get("estimatedCost"))
            for activity in _as_object_list(day.get("activities"))
        )
        meals += sum(_as_number(_as_dict(meal).get("estimatedCost")) for meal in _as_object_list(day.get("meals")))

    return {
        "accommodation": accommodation,
        "activities": activities,
        "meals": meals,
        "transportation": _as_number(_as_dict(payload.get("transportation")).get("estimatedCost")),
        "total": total,
    }


def completed_trip_counts_for_authors(author_ids: Iterable[int]) -> dict[int, int]:
    unique_ids = sorted({int(author_id) for author_id in author_ids if int(author_id or 0) > 0})
    if not unique_ids:
        return {}

    rows = (
        Trip.objects.filter(author_id__in=unique_ids, status=TripStatus.COMPLETED)
        .values("author_id")
        .annotate(total=Count("id"))
    )
    return {int(row["author_id"]): int(row["total"]) for row in rows}


def trip_history_preferences_for_member(user: object) -> TripHistoryPreferences:
    """
    Derive a member's budget and style leanings from their own trips.

    Budget is the mean of min/max over trips that carry a full positive range.
    Styles are ranked by frequency; equal counts keep the order in which the
    styles first appear, newest trip first.
    """

    empty: TripHistoryPreferences = {
        "budget_min": None,
        "budget_max": None,
        "travel_styles": [],
        "completed_trips_count": 0,
    }
    if not bool(getattr(user, "is_authenticated", False)):
        return empty

    member_id = int(getattr(user, "pk", 0) or 0)
    if member_id <= 0:
        return empty

    trips = list(
        Trip.objects.filter(author_id=member_id)
        .exclude(status=TripStatus.CANCELLED)
        .order_by("-created_at", "-pk")
    )

    budget_rows = [
        (trip.budget_min, trip.budget_max)
        for trip in trips
        if trip.budget_min and trip.budget_max
    ]
    budget_min: float | None = None
    budget_max: float | None = None
    if budget_rows:
        budget_min = sum(float(row[0] or 0) for row in budget_rows) / len(budget_rows)
        budget_max = sum(float(row[1] or 0) for row in budget_rows) / len(budget_rows)

    style_counts: Counter[str] = Counter()
    first_seen: dict[str, int] = {}
    for trip in trips:
        for style in trip.clean_travel_styles():
            style_counts[style] += 1
            first_seen.setdefault(style, len(first_seen))
    ranked_styles = sorted(style_counts, key=lambda style: (-style_counts[style], first_seen[style]))

    return {
        "budget_min": budget_min,
        "budget_max": budget_max,
        "travel_styles": ranked_styles[:MAX_PREFERRED_STYLES],
        "completed_trips_count": sum(1 for trip in trips if trip.is_completed),
    }
