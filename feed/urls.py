from __future__ import annotations

from django.urls import path

from . import views

app_name = "feed"

urlpatterns = [
    path("feed/", views.ranked_feed_view, name="ranked"),
]
