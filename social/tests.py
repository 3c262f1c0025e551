from __future__ import annotations

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone

from trips.models import Trip

from .models import (
    FeedCursorNotFound,
    Post,
    PostBookmark,
    PostComment,
    PostLike,
    engagement_counts_for_post,
    fetch_feed_window,
    viewer_interaction_sets,
)

UserModel = get_user_model()


class FeedWindowTests(TestCase):
    def setUp(self) -> None:
        self.author = UserModel.objects.create_user(
            username="author1",
            email="author1@example.com",
            password="SocialPass!123456",
        )
        self.member = UserModel.objects.create_user(
            username="member1",
            email="member1@example.com",
            password="SocialPass!123456",
        )
        self.now = timezone.now()
        self.posts = [self._post(minutes_ago=index) for index in range(5)]

    def _post(self, *, minutes_ago: int) -> Post:
        post = Post.objects.create(author=self.author, caption=f"Post {minutes_ago}")
        Post.objects.filter(pk=post.pk).update(created_at=self.now - timedelta(minutes=minutes_ago))
        return post

    def test_window_is_newest_first_and_sized(self) -> None:
        window = fetch_feed_window(cursor=None, size=3)

        self.assertEqual([post.pk for post in window], [post.pk for post in self.posts[:3]])

    def test_cursor_resumes_after_anchor(self) -> None:
        window = fetch_feed_window(cursor=self.posts[1].pk, size=10)

        self.assertEqual([post.pk for post in window], [post.pk for post in self.posts[2:]])

    def test_equal_timestamps_fall_back_to_id_order(self) -> None:
        Post.objects.update(created_at=self.now)

        first = fetch_feed_window(cursor=None, size=2)
        rest = fetch_feed_window(cursor=first[-1].pk, size=10)

        ids = [post.pk for post in first + rest]
        self.assertEqual(ids, sorted(ids, reverse=True))
        self.assertEqual(len(ids), 5)

    def test_unknown_cursor_raises(self) -> None:
        with self.assertRaises(FeedCursorNotFound) as caught:
            fetch_feed_window(cursor=999_999, size=3)

        self.assertEqual(caught.exception.cursor, 999_999)

    def test_window_rows_carry_engagement_counts(self) -> None:
        post = self.posts[0]
        PostLike.objects.create(member=self.member, post=post)
        PostLike.objects.create(member=self.author, post=post)
        PostComment.objects.create(author=self.member, post=post, text="Nice")
        PostBookmark.objects.create(member=self.member, post=post)

        row = fetch_feed_window(cursor=None, size=1)[0]
        counts = engagement_counts_for_post(row)

        self.assertEqual((counts.likes, counts.comments, counts.bookmarks), (2, 1, 1))

    def test_window_includes_linked_trip(self) -> None:
        trip = Trip.objects.create(author=self.author, source="Kathmandu", destination="Lumbini", days=2)
        Post.objects.filter(pk=self.posts[0].pk).update(trip=trip)

        row = fetch_feed_window(cursor=None, size=1)[0]

        with self.assertNumQueries(0):
            self.assertEqual(row.trip.destination, "Lumbini")


class ViewerInteractionTests(TestCase):
    def setUp(self) -> None:
        self.member = UserModel.objects.create_user(
            username="member1",
            email="member1@example.com",
            password="SocialPass!123456",
        )
        self.liked = Post.objects.create(author=self.member, caption="Liked")
        self.saved = Post.objects.create(author=self.member, caption="Saved")
        PostLike.objects.create(member=self.member, post=self.liked)
        PostBookmark.objects.create(member=self.member, post=self.saved)

    def test_guest_gets_empty_sets(self) -> None:
        sets = viewer_interaction_sets(AnonymousUser(), [self.liked.pk, self.saved.pk])

        self.assertEqual(sets, {"liked_post_ids": set(), "bookmarked_post_ids": set()})

    def test_member_sets_are_limited_to_requested_posts(self) -> None:
        sets = viewer_interaction_sets(self.member, [self.liked.pk, self.saved.pk])
        self.assertEqual(sets["liked_post_ids"], {self.liked.pk})
        self.assertEqual(sets["bookmarked_post_ids"], {self.saved.pk})

        only_saved = viewer_interaction_sets(self.member, [self.saved.pk])
        self.assertEqual(only_saved["liked_post_ids"], set())

    def test_duplicate_like_is_rejected(self) -> None:
        with self.assertRaises(IntegrityError), transaction.atomic():
            PostLike.objects.create(member=self.member, post=self.liked)

    def test_post_url(self) -> None:
        self.assertEqual(self.liked.get_absolute_url(), f"/posts/{self.liked.pk}/")
