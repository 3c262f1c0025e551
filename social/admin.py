from typing import TYPE_CHECKING

from django.contrib import admin

from .models import Post, PostBookmark, PostComment, PostLike

if TYPE_CHECKING:
    _BasePostAdmin = admin.ModelAdmin[Post]
    _BasePostCommentAdmin = admin.ModelAdmin[PostComment]
else:
    _BasePostAdmin = admin.ModelAdmin
    _BasePostCommentAdmin = admin.ModelAdmin


@admin.register(Post)
class PostAdmin(_BasePostAdmin):
    list_display = ("id", "author", "trip", "like_total", "bookmark_total", "created_at")
    list_filter = ("created_at",)
    search_fields = ("caption", "author__username", "trip__destination")
    autocomplete_fields = ("author",)
    raw_id_fields = ("trip",)
    ordering = ("-created_at", "-id")
    readonly_fields = ("created_at", "updated_at")

    def like_total(self, obj: Post) -> int:
        return PostLike.objects.filter(post=obj).count()

    def bookmark_total(self, obj: Post) -> int:
        return PostBookmark.objects.filter(post=obj).count()


@admin.register(PostComment)
class PostCommentAdmin(_BasePostCommentAdmin):
    list_display = ("id", "post", "author", "created_at")
    search_fields = ("text", "author__username")
    autocomplete_fields = ("author",)
    raw_id_fields = ("post",)
    ordering = ("-created_at", "-id")
    readonly_fields = ("created_at",)
