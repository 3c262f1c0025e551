from __future__ import annotations

import math
from typing import Final, TypedDict

from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET

from social.models import FeedCursorNotFound

from .models import build_ranked_feed_payload, feed_limit_bounds
from .ranking import FEED_MODES, FeedMode, normalize_feed_mode

VERBOSE_FLAGS: Final[set[str]] = {"1", "true", "yes", "on"}


class FieldError(TypedDict):
    field: str
    message: str


class FeedQuery(TypedDict):
    limit: int
    cursor: int | None
    mode: FeedMode
    latitude: float | None
    longitude: float | None


def _is_verbose_request(request: HttpRequest) -> bool:
    candidate = request.GET.get("verbose") or request.headers.get("X-Roamly-Verbose") or ""
    return candidate.strip().lower() in VERBOSE_FLAGS


def _vprint(request: HttpRequest, message: str) -> None:
    if _is_verbose_request(request):
        print(f"[feed][verbose] {message}", flush=True)


def _parse_float(raw_value: str) -> float | None:
    try:
        value = float(raw_value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def _parse_int(raw_value: str) -> int | None:
    digits = raw_value[1:] if raw_value.startswith("-") else raw_value
    if not digits.isascii() or not digits.isdigit():
        return None
    return int(raw_value)


def _parse_feed_query(request: HttpRequest) -> tuple[FeedQuery | None, list[FieldError]]:
    errors: list[FieldError] = []
    default_limit, max_limit = feed_limit_bounds()

    limit = default_limit
    raw_limit = str(request.GET.get("limit", "") or "").strip()
    if raw_limit:
        parsed_limit = _parse_int(raw_limit)
        if parsed_limit is None:
            errors.append({"field": "limit", "message": "Limit must be an integer."})
        else:
            limit = parsed_limit
            if limit < 1:
                errors.append({"field": "limit", "message": "Limit must be at least 1."})
            elif limit > max_limit:
                errors.append({"field": "limit", "message": f"Limit must not exceed {max_limit}."})

    cursor: int | None = None
    raw_cursor = str(request.GET.get("cursor", "") or "").strip()
    if raw_cursor:
        parsed_cursor = _parse_int(raw_cursor)
        if parsed_cursor is None or parsed_cursor <= 0:
            errors.append({"field": "cursor", "message": "Cursor must be a post id."})
        else:
            cursor = parsed_cursor

    mode = normalize_feed_mode(request.GET.get("mode"))
    if mode is None:
        errors.append({"field": "mode", "message": f"Mode must be one of: {', '.join(FEED_MODES)}."})

    latitude: float | None = None
    longitude: float | None = None
    raw_latitude = str(request.GET.get("lat", "") or "").strip()
    raw_longitude = str(request.GET.get("lng", "") or "").strip()
    if bool(raw_latitude) != bool(raw_longitude):
        errors.append({"field": "lat", "message": "Latitude and longitude must be sent together."})
    elif raw_latitude:
        latitude = _parse_float(raw_latitude)
        longitude = _parse_float(raw_longitude)
        if latitude is None or not -90 <= latitude <= 90:
            errors.append({"field": "lat", "message": "Latitude must be a number between -90 and 90."})
        if longitude is None or not -180 <= longitude <= 180:
            errors.append({"field": "lng", "message": "Longitude must be a number between -180 and 180."})

    if errors or mode is None:
        return None, errors

    return {
        "limit": limit,
        "cursor": cursor,
        "mode": mode,
        "latitude": latitude,
        "longitude": longitude,
    }, []


def _validation_failed(errors: list[FieldError]) -> JsonResponse:
    return JsonResponse(
        {
            "ok": False,
            "message": "Validation failed",
            "errors": errors,
        },
        status=400,
    )


@require_GET
def ranked_feed_view(request: HttpRequest) -> JsonResponse:
    query, errors = _parse_feed_query(request)
    if query is None:
        _vprint(request, f"Rejected feed request errors={[error['field'] for error in errors]}")
        return _validation_failed(errors)

    viewer_state = "member" if request.user.is_authenticated else "guest"
    _vprint(
        request,
        "Ranking feed for viewer_state={viewer_state}; mode={mode}; limit={limit}; cursor={cursor}".format(
            viewer_state=viewer_state,
            mode=query["mode"],
            limit=query["limit"],
            cursor=query["cursor"],
        ),
    )

    try:
        payload = build_ranked_feed_payload(
            request.user,
            limit=query["limit"],
            cursor=query["cursor"],
            mode=query["mode"],
            latitude=query["latitude"],
            longitude=query["longitude"],
        )
    except FeedCursorNotFound:
        _vprint(request, f"Cursor {query['cursor']} no longer matches a post")
        return _validation_failed([{"field": "cursor", "message": "Cursor does not match an existing post."}])

    top_score = payload["posts"][0]["score"] if payload["posts"] else None
    _vprint(
        request,
        "Feed ranked candidates={candidates}; page={page}; top_score={top_score}; next_cursor={next_cursor}".format(
            candidates=payload["candidate_count"],
            page=payload["pagination"]["count"],
            top_score=top_score,
            next_cursor=payload["pagination"]["next_cursor"],
        ),
    )

    return JsonResponse(
        {
            "ok": True,
            "message": "Feed retrieved successfully",
            "data": payload,
        }
    )
