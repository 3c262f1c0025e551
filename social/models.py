from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Final, TypedDict, cast

from django.conf import settings
from django.db import models
from django.db.models import Count, Q
from django.db.models.constraints import BaseConstraint

from feed.ranking import EngagementCounts

MAX_CAPTION_LENGTH: Final[int] = 2000
MAX_COMMENT_LENGTH: Final[int] = 1000


class FeedCursorNotFound(LookupError):
    def __init__(self, cursor: int) -> None:
        super().__init__(f"Feed cursor {cursor} does not match an existing post.")
        self.cursor = cursor


class ViewerInteractionSets(TypedDict):
    liked_post_ids: set[int]
    bookmarked_post_ids: set[int]


class Post(models.Model):
    """
    Published share of a member's trip.

    Posts without a trip are allowed (plain photo shares); the ranking engine
    scores those at zero rather than rejecting them.
    """

    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="posts",
    )
    trip = models.OneToOneField(
        "trips.Trip",
        on_delete=models.SET_NULL,
        related_name="post",
        blank=True,
        null=True,
    )
    caption = models.TextField(max_length=MAX_CAPTION_LENGTH, blank=True)
    media_url = models.URLField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=("author", "created_at"), name="social_post_author_idx"),
        ]

    def __str__(self) -> str:
        author_username = str(getattr(self.author, "username", "") or "").strip()
        return f"Post #{self.pk or 'new'} by @{author_username}"

    def get_absolute_url(self) -> str:
        return f"/posts/{self.pk}/"


class PostLike(models.Model):
    member = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="post_likes",
    )
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name="likes")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "-id")
        constraints: list[BaseConstraint] = [
            cast(
                BaseConstraint,
                models.UniqueConstraint(fields=("member", "post"), name="social_unique_post_like"),
            ),
        ]

    def __str__(self) -> str:
        return f"Like(post={self.post_id}, member={self.member_id})"


class PostComment(models.Model):
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="post_comments",
    )
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name="comments")
    text = models.TextField(max_length=MAX_COMMENT_LENGTH)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("created_at", "id")
        indexes = [
            models.Index(fields=("post", "created_at"), name="social_comment_post_idx"),
        ]

    def __str__(self) -> str:
        return f"Comment #{self.pk or 'new'} on post {self.post_id}"


class PostBookmark(models.Model):
    member = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="post_bookmarks",
    )
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name="bookmarks")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "-id")
        constraints: list[BaseConstraint] = [
            cast(
                BaseConstraint,
                models.UniqueConstraint(fields=("member", "post"), name="social_unique_post_bookmark"),
            ),
        ]
        indexes = [
            models.Index(fields=("member", "created_at"), name="social_bookmark_member_idx"),
        ]

    def __str__(self) -> str:
        return f"Bookmark(post={self.post_id}, member={self.member_id})"


def fetch_feed_window(*, cursor: int | None, size: int) -> list[Post]:
    """
    Newest-first slice of posts that follows `cursor`, with engagement counts.

    Rows are annotated with `like_count`, `comment_count` and `bookmark_count`
    and carry their trip/author via select_related, so ranking needs no further
    queries per post.
    """

    effective_size = max(1, int(size or 1))
    queryset = (
        Post.objects.select_related("author", "trip")
        .annotate(
            like_count=Count("likes", distinct=True),
            comment_count=Count("comments", distinct=True),
            bookmark_count=Count("bookmarks", distinct=True),
        )
        .order_by("-created_at", "-pk")
    )

    if cursor is not None:
        anchor = Post.objects.filter(pk=cursor).values("pk", "created_at").first()
        if anchor is None:
            raise FeedCursorNotFound(cursor)
        queryset = queryset.filter(
            Q(created_at__lt=anchor["created_at"])
            | Q(created_at=anchor["created_at"], pk__lt=anchor["pk"])
        )

    return list(queryset[:effective_size])


def engagement_counts_for_post(post: Any) -> EngagementCounts:
    return EngagementCounts(
        likes=int(getattr(post, "like_count", 0) or 0),
        comments=int(getattr(post, "comment_count", 0) or 0),
        bookmarks=int(getattr(post, "bookmark_count", 0) or 0),
    )


def viewer_interaction_sets(user: object, post_ids: Iterable[int]) -> ViewerInteractionSets:
    empty: ViewerInteractionSets = {"liked_post_ids": set(), "bookmarked_post_ids": set()}
    if not bool(getattr(user, "is_authenticated", False)):
        return empty

    viewer_id = int(getattr(user, "pk", 0) or 0)
    ids = sorted({int(post_id) for post_id in post_ids if int(post_id or 0) > 0})
    if viewer_id <= 0 or not ids:
        return empty

    return {
        "liked_post_ids": set(
            PostLike.objects.filter(member_id=viewer_id, post_id__in=ids).values_list("post_id", flat=True)
        ),
        "bookmarked_post_ids": set(
            PostBookmark.objects.filter(member_id=viewer_id, post_id__in=ids).values_list("post_id", flat=True)
        ),
    }
