# pyright: reportMissingImports=false, reportMissingModuleSource=false
from __future__ import annotations

from django.contrib import admin
from django.http import HttpRequest, JsonResponse
from django.urls import URLPattern, URLResolver, include, path


def health(_request: HttpRequest) -> JsonResponse:
    return JsonResponse({"status": "ok", "service": "roamly"})


urlpatterns: list[URLPattern | URLResolver] = [
    path("health/", health, name="health"),
    path("posts/", include("feed.urls")),
    path("admin/", admin.site.urls),
]
