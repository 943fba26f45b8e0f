"""Shared builders for the tournaments test suites."""
from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model

from tournaments import models, services


def make_user(username: str, role: str = models.Profile.Role.COACH, *, email: str | None = None):
    user = get_user_model().objects.create_user(
        username=username,
        email=email if email is not None else f"{username}@example.com",
        password="pass-1234",
    )
    if email != "":
        models.Profile.objects.create(
            user=user,
            email=user.email,
            full_name=username.title(),
            role=role,
        )
    return user


def make_event(organizer, title: str = "Spring Open", *, days: int = 2, is_public: bool = True) -> models.Event:
    start = date(2030, 5, 1)
    return services.create_event(
        organizer,
        {
            "title": title,
            "event_type": models.Event.EventType.TOURNAMENT,
            "location": "Main Hall",
            "start_date": start,
            "end_date": date(2030, 5, days),
            "is_public": is_public,
        },
    )


def make_student(dojo: models.Dojo, name: str = "Aiko Tanaka", *, complete: bool = True) -> models.Student:
    if not complete:
        return models.Student.objects.create(dojo=dojo, name=name)
    return models.Student.objects.create(
        dojo=dojo,
        name=name,
        gender=models.Student.Gender.FEMALE,
        rank="brown",
        weight=Decimal("52.50"),
        date_of_birth=date(2010, 4, 12),
    )


def approve(coach, event: models.Event) -> models.EventApplication:
    return models.EventApplication.objects.create(
        event=event,
        coach=coach,
        status=models.EventApplication.Status.APPROVED,
    )
