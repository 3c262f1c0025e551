from typing import TYPE_CHECKING

from django.contrib import admin

from .models import MemberFeedPreference

if TYPE_CHECKING:
    _BaseMemberFeedPreferenceAdmin = admin.ModelAdmin[MemberFeedPreference]
else:
    _BaseMemberFeedPreferenceAdmin = admin.ModelAdmin


@admin.register(MemberFeedPreference)
class MemberFeedPreferenceAdmin(_BaseMemberFeedPreferenceAdmin):
    list_display = (
        "user",
        "style_list",
        "budget_min",
        "budget_max",
        "has_location",
        "updated_at",
    )
    search_fields = ("user__username",)
    readonly_fields = ("created_at", "updated_at")

    def style_list(self, obj: MemberFeedPreference) -> str:
        return ", ".join(obj.clean_travel_styles())

    @admin.display(boolean=True)
    def has_location(self, obj: MemberFeedPreference) -> bool:
        return obj.has_location()
