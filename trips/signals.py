from __future__ import annotations

from typing import Any

from django.db.models.signals import pre_save
from django.dispatch import receiver
from django.utils import timezone

from .models import Trip, TripStatus


@receiver(pre_save, sender=Trip)
def stamp_completion_time(sender: type[Trip], instance: Trip, **kwargs: Any) -> None:
    # Trips flipped to COMPLETED outside mark_completed (admin, fixtures) still need a timestamp.
    if instance.status != TripStatus.COMPLETED or instance.completed_at is not None:
        return
    instance.completed_at = timezone.now()
