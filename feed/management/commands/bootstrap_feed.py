from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, cast

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandParser
from django.db import transaction
from django.utils import timezone

from feed.geo import NEPAL_DESTINATIONS
from feed.models import MemberFeedPreference
from social.models import Post, PostBookmark, PostComment, PostLike
from trips.models import Trip, TripStatus, cost_breakdown_from_itinerary

UserModel = get_user_model()

DEFAULT_DEMO_PASSWORD = "RoamlyDemoPass!123"


@dataclass(frozen=True)
class FeedPreferenceSeed:
    username: str
    travel_styles: tuple[str, ...]
    budget_min: int
    budget_max: int
    home: str


@dataclass(frozen=True)
class TripSeed:
    author: str
    title: str
    source: str
    destination: str
    days: int
    travel_styles: tuple[str, ...]
    budget_min: int
    budget_max: int
    daily_cost: int
    caption: str
    completed_days_ago: int | None = None


DEMO_MEMBER_PREFERENCES: tuple[FeedPreferenceSeed, ...] = (
    FeedPreferenceSeed("alice", ("ADVENTURE", "CULTURAL"), 300, 600, "Kathmandu"),
    FeedPreferenceSeed("bob", ("BACKPACKING", "CULTURAL"), 100, 300, "Pokhara"),
    FeedPreferenceSeed("charlie", ("CULTURAL", "ADVENTURE"), 400, 800, "Patan"),
    FeedPreferenceSeed("diana", ("RELAXED", "CULTURAL"), 500, 1000, "Pokhara"),
    FeedPreferenceSeed("eve", ("CULTURAL", "RELAXED"), 200, 500, "Bhaktapur"),
)

DEMO_TRIPS: tuple[TripSeed, ...] = (
    TripSeed(
        author="alice",
        title="Annapurna foothills trek",
        source="Kathmandu",
        destination="Pokhara",
        days=8,
        travel_styles=("ADVENTURE",),
        budget_min=400,
        budget_max=900,
        daily_cost=70,
        caption="Eight days of ridgelines and tea houses above Pokhara.",
        completed_days_ago=5,
    ),
    TripSeed(
        author="bob",
        title="Chitwan on a shoestring",
        source="Kathmandu",
        destination="Chitwan",
        days=3,
        travel_styles=("BACKPACKING", "CULTURAL"),
        budget_min=100,
        budget_max=250,
        daily_cost=30,
        caption="Jungle walks and Tharu village dinners for under 250.",
        completed_days_ago=20,
    ),
    TripSeed(
        author="charlie",
        title="Durbar squares weekend",
        source="Kathmandu",
        destination="Bhaktapur",
        days=2,
        travel_styles=("CULTURAL",),
        budget_min=150,
        budget_max=300,
        daily_cost=60,
        caption="Pottery square at sunrise, Nyatapola at dusk.",
    ),
    TripSeed(
        author="diana",
        title="Slow days by Phewa lake",
        source="Kathmandu",
        destination="Pokhara",
        days=5,
        travel_styles=("RELAXED",),
        budget_min=600,
        budget_max=1200,
        daily_cost=180,
        caption="Lakeside mornings, paragliding once, and a lot of reading.",
        completed_days_ago=45,
    ),
    TripSeed(
        author="eve",
        title="Lumbini pilgrimage",
        source="Kathmandu",
        destination="Lumbini",
        days=2,
        travel_styles=("CULTURAL", "RELAXED"),
        budget_min=200,
        budget_max=400,
        daily_cost=80,
        caption="Monastery zone by bicycle.",
    ),
    TripSeed(
        author="alice",
        title="Nagarkot sunrise",
        source="Kathmandu",
        destination="Nagarkot",
        days=1,
        travel_styles=("ADVENTURE", "RELAXED"),
        budget_min=50,
        budget_max=120,
        daily_cost=60,
        caption="Overnight for the Himalaya sunrise.",
        completed_days_ago=120,
    ),
)

# Engagement rows reference posts by the title of their seeded trip.
DEMO_LIKES: tuple[tuple[str, str], ...] = (
    ("bob", "Annapurna foothills trek"),
    ("charlie", "Annapurna foothills trek"),
    ("diana", "Annapurna foothills trek"),
    ("eve", "Annapurna foothills trek"),
    ("alice", "Chitwan on a shoestring"),
    ("eve", "Chitwan on a shoestring"),
    ("alice", "Slow days by Phewa lake"),
    ("bob", "Durbar squares weekend"),
)
DEMO_COMMENTS: tuple[tuple[str, str, str], ...] = (
    ("bob", "Annapurna foothills trek", "Which tea house did you stay at on day three?"),
    ("diana", "Annapurna foothills trek", "Saving this for October."),
    ("alice", "Chitwan on a shoestring", "Great budget breakdown."),
    ("charlie", "Lumbini pilgrimage", "Did you rent the bicycle on site?"),
)
DEMO_BOOKMARKS: tuple[tuple[str, str], ...] = (
    ("charlie", "Annapurna foothills trek"),
    ("eve", "Annapurna foothills trek"),
    ("diana", "Chitwan on a shoestring"),
    ("bob", "Slow days by Phewa lake"),
)


def demo_itinerary(seed: TripSeed) -> dict[str, object]:
    days: list[dict[str, object]] = []
    for day_number in range(1, seed.days + 1):
        days.append(
            {
                "day": day_number,
                "title": f"{seed.destination} day {day_number}",
                "activities": [
                    {"name": f"Explore {seed.destination}", "estimatedCost": seed.daily_cost * 0.3},
                ],
                "accommodation": {"name": f"{seed.destination} guesthouse", "estimatedCost": seed.daily_cost * 0.4},
                "meals": [
                    {"type": "lunch", "estimatedCost": seed.daily_cost * 0.1},
                    {"type": "dinner", "estimatedCost": seed.daily_cost * 0.2},
                ],
            }
        )

    transportation_cost = 25
    return {
        "overview": f"{seed.days} days from {seed.source} to {seed.destination}.",
        "days": days,
        "transportation": {
            "toDestination": f"Tourist bus from {seed.source}",
            "withinDestination": "Walking and local taxis",
            "estimatedCost": transportation_cost,
        },
        "tips": [f"Carry cash; card acceptance in {seed.destination} is patchy."],
        "totalEstimatedCost": seed.daily_cost * seed.days + transportation_cost,
    }


class Command(BaseCommand):
    help = "Create or refresh demo members, preferences, trips and posts for the ranked feed."

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument(
            "--create-missing-members",
            action="store_true",
            help="Create missing seeded members before creating feed data.",
        )
        parser.add_argument(
            "--demo-password",
            default=DEFAULT_DEMO_PASSWORD,
            help="Password used only when --create-missing-members creates new users.",
        )
        parser.add_argument(
            "--verbose",
            action="store_true",
            help="Print detailed progress lines for each seed step.",
        )

    def _vprint(self, verbose_enabled: bool, message: str) -> None:
        if verbose_enabled:
            self.stdout.write(f"[feed][verbose] {message}")

    def _get_or_create_seed_user(
        self,
        username: str,
        *,
        create_missing_members: bool,
        demo_password: str,
        verbose_enabled: bool,
    ) -> tuple[Any | None, bool]:
        user = cast(Any | None, UserModel.objects.filter(username__iexact=username).first())
        if user:
            if user.username != username:
                user.username = username
                user.save(update_fields=["username"])
                self._vprint(verbose_enabled, f"Normalized username casing for @{username}")
            return user, False

        if not create_missing_members:
            self._vprint(
                verbose_enabled,
                f"Skipping @{username}; account does not exist and --create-missing-members is disabled.",
            )
            return None, False

        user = UserModel.objects.create_user(
            username=username,
            email=f"{username}@roamly.local",
            password=demo_password,
        )
        self._vprint(verbose_enabled, f"Created missing member @{username}")
        return user, True

    def _seed_trip(self, seed: TripSeed, author: Any, verbose_enabled: bool) -> tuple[Trip, bool]:
        existing = Trip.objects.filter(author=author, title=seed.title).first()
        if existing is not None:
            self._vprint(verbose_enabled, f"Trip '{seed.title}' already exists for @{seed.author}")
            return existing, False

        itinerary = demo_itinerary(seed)
        completed_at = None
        status = TripStatus.SAVED
        if seed.completed_days_ago is not None:
            status = TripStatus.COMPLETED
            completed_at = timezone.now() - timedelta(days=seed.completed_days_ago)

        trip = Trip.objects.create(
            author=author,
            title=seed.title,
            source=seed.source,
            destination=seed.destination,
            days=seed.days,
            travel_styles=list(seed.travel_styles),
            budget_min=seed.budget_min,
            budget_max=seed.budget_max,
            itinerary=itinerary,
            cost_breakdown=cost_breakdown_from_itinerary(itinerary),
            status=status,
            completed_at=completed_at,
        )
        self._vprint(verbose_enabled, f"Created trip '{seed.title}' ({trip.status}) for @{seed.author}")
        return trip, True

    def handle(self, *args, **options):  # type: ignore[no-untyped-def]
        verbose_enabled = bool(options.get("verbose"))
        create_missing_members = bool(options.get("create_missing_members"))
        demo_password = str(options.get("demo_password") or DEFAULT_DEMO_PASSWORD)

        self.stdout.write("Bootstrapping ranked feed demo records...")
        self._vprint(verbose_enabled, f"create_missing_members={create_missing_members}")

        created_users_count = 0
        seeded_preferences_count = 0
        updated_preferences_count = 0
        skipped_count = 0
        created_trips_count = 0
        created_posts_count = 0
        created_interactions_count = 0

        members: dict[str, Any] = {}
        posts_by_title: dict[str, Post] = {}

        with transaction.atomic():
            for seed in DEMO_MEMBER_PREFERENCES:
                user, user_created = self._get_or_create_seed_user(
                    seed.username,
                    create_missing_members=create_missing_members,
                    demo_password=demo_password,
                    verbose_enabled=verbose_enabled,
                )
                if user_created:
                    created_users_count += 1

                if user is None:
                    skipped_count += 1
                    continue
                members[seed.username] = user

                home = NEPAL_DESTINATIONS[seed.home]
                preference, created = MemberFeedPreference.objects.get_or_create(user=user)
                preference.travel_styles = list(seed.travel_styles)
                preference.budget_min = seed.budget_min
                preference.budget_max = seed.budget_max
                preference.latitude = home.latitude
                preference.longitude = home.longitude
                preference.full_clean()
                preference.save()

                if created:
                    seeded_preferences_count += 1
                    self._vprint(verbose_enabled, f"Created preference row for @{seed.username}")
                else:
                    updated_preferences_count += 1
                    self._vprint(verbose_enabled, f"Updated preference row for @{seed.username}")

            for trip_seed in DEMO_TRIPS:
                author = members.get(trip_seed.author)
                if author is None:
                    self._vprint(verbose_enabled, f"Skipping trip '{trip_seed.title}'; @{trip_seed.author} missing")
                    continue

                trip, trip_created = self._seed_trip(trip_seed, author, verbose_enabled)
                if trip_created:
                    created_trips_count += 1

                post, post_created = Post.objects.get_or_create(
                    trip=trip,
                    defaults={"author": author, "caption": trip_seed.caption},
                )
                if post_created:
                    created_posts_count += 1
                    self._vprint(verbose_enabled, f"Published post #{post.pk} for '{trip_seed.title}'")
                posts_by_title[trip_seed.title] = post

            for username, title in DEMO_LIKES:
                if username in members and title in posts_by_title:
                    _like, created = PostLike.objects.get_or_create(member=members[username], post=posts_by_title[title])
                    created_interactions_count += int(created)

            for username, title, text in DEMO_COMMENTS:
                if username in members and title in posts_by_title:
                    _comment, created = PostComment.objects.get_or_create(
                        author=members[username],
                        post=posts_by_title[title],
                        text=text,
                    )
                    created_interactions_count += int(created)

            for username, title in DEMO_BOOKMARKS:
                if username in members and title in posts_by_title:
                    _bookmark, created = PostBookmark.objects.get_or_create(
                        member=members[username],
                        post=posts_by_title[title],
                    )
                    created_interactions_count += int(created)

        self._vprint(verbose_enabled, f"Created {created_interactions_count} likes/comments/bookmarks")
        self.stdout.write(
            self.style.SUCCESS(
                "Feed bootstrap complete. "
                f"created_users={created_users_count}, "
                f"created_preferences={seeded_preferences_count}, "
                f"updated_preferences={updated_preferences_count}, "
                f"created_trips={created_trips_count}, "
                f"created_posts={created_posts_count}, "
                f"created_interactions={created_interactions_count}, "
                f"skipped={skipped_count}"
            )
        )
