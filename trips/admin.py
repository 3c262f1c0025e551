from typing import TYPE_CHECKING

from django.contrib import admin

from .models import Trip

if TYPE_CHECKING:
    _BaseTripAdmin = admin.ModelAdmin[Trip]
else:
    _BaseTripAdmin = admin.ModelAdmin


@admin.register(Trip)
class TripAdmin(_BaseTripAdmin):
    list_display = (
        "id",
        "title",
        "author",
        "destination",
        "days",
        "status",
        "completed_at",
        "updated_at",
    )
    list_filter = ("status", "completed_at")
    search_fields = ("title", "source", "destination", "author__username")
    autocomplete_fields = ("author",)
    readonly_fields = ("created_at", "updated_at")
    ordering = ("-created_at", "-id")
