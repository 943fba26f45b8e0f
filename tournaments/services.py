"""Domain operations for events, applications, rosters and entries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, Mapping

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied
from django.core.paginator import Page, Paginator
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, QuerySet
from django.http import Http404
from django.utils import timezone

from . import access, models

logger = logging.getLogger(__name__)

__all__ = [
    "EntryFilters",
    "EntryStats",
    "SubmissionSummary",
    "generate_event_days",
    "create_event",
    "delete_event",
    "pending_applications",
    "update_application_status",
    "filter_entries",
    "paginate",
    "event_entries",
    "update_entry_status",
    "bulk_update_entry_status",
    "coach_label",
    "export_rows",
    "browse_events",
    "apply_to_event",
    "has_approved_application",
    "update_student",
    "student_roster",
    "coach_event_entries",
    "entry_stats",
    "registerable_students",
    "bulk_create_entries",
    "upsert_entry",
    "missing_student_fields",
    "bulk_submit_entries",
    "submit_event_entries",
    "bulk_delete_entries",
    "delete_entry",
    "dashboard_stats",
]

REVIEW_STATUSES = (models.Entry.Status.APPROVED, models.Entry.Status.REJECTED)
DECISION_STATUSES = (models.EventApplication.Status.APPROVED, models.EventApplication.Status.REJECTED)
RESET_STATUSES = (models.Entry.Status.SUBMITTED, models.Entry.Status.APPROVED)

EXPORT_COLUMNS = ("Student", "Dojo", "Category", "Day", "Type", "Status", "Coach", "Email")


@dataclass(frozen=True)
class EntryFilters:
    """Entry table filters; ``None`` means the filter is not applied."""

    query: str | None = None
    status: str | None = None
    day: str | None = None
    coach: str | None = None

    @classmethod
    def from_params(cls, data: Mapping[str, str], *, query_key: str = "q") -> "EntryFilters":
        def _value(key: str) -> str | None:
            raw = (data.get(key) or "").strip()
            if not raw or raw.lower() == "all":
                return None
            return raw

        return cls(
            query=_value(query_key),
            status=_value("status"),
            day=_value("day"),
            coach=_value("coach"),
        )


@dataclass(frozen=True)
class EntryStats:
    total: int = 0
    draft: int = 0
    submitted: int = 0
    approved: int = 0
    rejected: int = 0


@dataclass(frozen=True)
class SubmissionSummary:
    """Outcome of a bulk submission."""

    submitted: int
    skipped: int


# Events -------------------------------------------------------------------


def generate_event_days(event: models.Event) -> list[models.EventDay]:
    """Create one ``EventDay`` per calendar day of the event, named "Day N"."""

    if event.end_date < event.start_date:
        return []
    total = (event.end_date - event.start_date).days + 1
    days = [
        models.EventDay(
            event=event,
            date=event.start_date + timedelta(days=offset),
            name=f"Day {offset + 1}",
        )
        for offset in range(total)
    ]
    return models.EventDay.objects.bulk_create(days)


@transaction.atomic
def create_event(organizer, data: Mapping[str, object]) -> models.Event:
    event = models.Event.objects.create(organizer=organizer, **data)
    days = generate_event_days(event)
    logger.info("Event %s created by %s with %d day(s)", event.pk, organizer.pk, len(days))
    return event


def delete_event(user, event: models.Event) -> None:
    if not event.is_owned_by(user):
        raise PermissionDenied("Only the event organizer can delete this event.")
    logger.info("Deleting event %s (%s)", event.pk, event.title)
    event.delete()


def _require_manager(user, event: models.Event) -> None:
    if not access.can_manage_event(user, event):
        raise PermissionDenied("You cannot manage this event.")


# Applications -------------------------------------------------------------


def pending_applications(user) -> QuerySet[models.EventApplication]:
    return (
        models.EventApplication.objects.filter(
            event__in=access.manageable_events(user),
            status=models.EventApplication.Status.PENDING,
        )
        .select_related("event", "coach", "coach__profile")
        .order_by("-created_at")
    )


def update_application_status(user, application: models.EventApplication, status: str) -> models.EventApplication:
    if status not in DECISION_STATUSES:
        raise ValueError(f"Unsupported application status: {status}")
    _require_manager(user, application.event)
    application.status = status
    application.save(update_fields=["status"])
    logger.info("Application %s marked %s by %s", application.pk, status, user.pk)
    return application


# Entries review -----------------------------------------------------------


def filter_entries(entries: QuerySet[models.Entry], filters: EntryFilters) -> QuerySet[models.Entry]:
    """Apply search, status, day and coach filters to an entry queryset."""

    if filters.query:
        entries = entries.filter(student__name__icontains=filters.query)
    if filters.status:
        entries = entries.filter(status=filters.status)
    if filters.day and filters.day.isdigit():
        entries = entries.filter(event_day_id=filters.day)
    if filters.coach and filters.coach.isdigit():
        entries = entries.filter(coach_id=filters.coach)
    return entries


def paginate(items, page_number, per_page: int | None = None) -> Page:
    """Return the requested page, clamped into the valid range."""

    size = per_page or getattr(settings, "ENTRYDESK_PAGE_SIZE", 50)
    return Paginator(items, size).get_page(page_number)


def event_entries(event: models.Event) -> QuerySet[models.Entry]:
    return (
        event.entries.select_related(
            "student",
            "student__dojo",
            "category",
            "event_day",
            "coach",
            "coach__profile",
        )
        .order_by("-created_at", "pk")
    )


def update_entry_status(user, entry: models.Entry, status: str) -> models.Entry:
    if status not in REVIEW_STATUSES:
        raise ValueError(f"Unsupported entry status: {status}")
    _require_manager(user, entry.event)
    entry.status = status
    entry.save(update_fields=["status", "updated_at"])
    return entry


@transaction.atomic
def bulk_update_entry_status(user, entry_ids: Iterable[int], status: str) -> int:
    """Approve or reject many entries at once.

    Every entry must belong to an event the user manages; otherwise nothing is
    updated and ``PermissionDenied`` is raised.
    """

    ids = {int(pk) for pk in entry_ids}
    if not ids:
        return 0
    if status not in REVIEW_STATUSES:
        raise ValueError(f"Unsupported entry status: {status}")
    allowed = models.Entry.objects.filter(pk__in=ids, event__in=access.manageable_events(user))
    if allowed.count() != len(ids):
        logger.warning("User %s attempted a bulk status change on foreign entries", user.pk)
        raise PermissionDenied("Some entries do not belong to your events.")
    updated = allowed.update(status=status, updated_at=timezone.now())
    logger.info("User %s marked %d entries %s", user.pk, updated, status)
    return updated


def coach_label(coach) -> str:
    profile = getattr(coach, "profile", None)
    if profile and profile.full_name:
        return profile.full_name
    return coach.get_full_name() or coach.get_username()


def export_rows(entries: Iterable[models.Entry]) -> list[dict[str, str]]:
    """Flatten entries into spreadsheet rows keyed by ``EXPORT_COLUMNS``."""

    rows: list[dict[str, str]] = []
    for entry in entries:
        coach = entry.coach
        profile = getattr(coach, "profile", None)
        rows.append(
            {
                "Student": entry.student.name,
                "Dojo": entry.student.dojo.name,
                "Category": entry.category.name if entry.category else "",
                "Day": entry.event_day.name if entry.event_day else "",
                "Type": entry.get_participation_type_display(),
                "Status": entry.status,
                "Coach": coach_label(coach),
                "Email": profile.email if profile else coach.email,
            }
        )
    return rows


# Coach: events browser ----------------------------------------------------


def browse_events(coach) -> list[dict[str, object]]:
    """Public events with the coach's application attached to each."""

    applications = {
        application.event_id: application
        for application in models.EventApplication.objects.filter(coach=coach)
    }
    return [
        {"event": event, "application": applications.get(event.pk)}
        for event in models.Event.objects.filter(is_public=True).order_by("start_date", "title")
    ]


def apply_to_event(user, event: models.Event) -> tuple[models.EventApplication, bool]:
    """Request to participate in a public event.

    Returns ``(application, created)``; ``created`` is ``False`` when the coach
    had already applied, including when a concurrent request won the insert.
    """

    access.get_user_profile(user)
    if not event.is_public:
        raise Http404("Event not found.")

    existing = models.EventApplication.objects.filter(event=event, coach=user).first()
    if existing:
        return existing, False
    try:
        with transaction.atomic():
            application = models.EventApplication.objects.create(event=event, coach=user)
    except IntegrityError:
        logger.info("Duplicate application for event %s by %s", event.pk, user.pk)
        return models.EventApplication.objects.get(event=event, coach=user), False
    logger.info("Coach %s applied to event %s", user.pk, event.pk)
    return application, True


def has_approved_application(coach, event: models.Event) -> bool:
    return models.EventApplication.objects.filter(
        event=event,
        coach=coach,
        status=models.EventApplication.Status.APPROVED,
    ).exists()


# Coach: roster ------------------------------------------------------------


@transaction.atomic
def update_student(student: models.Student, data: Mapping[str, object]) -> int:
    """Save student changes and return how many entries were reset to draft."""

    for field, value in data.items():
        setattr(student, field, value)
    student.save()
    reset = student.entries.filter(status__in=RESET_STATUSES).update(
        status=models.Entry.Status.DRAFT,
        updated_at=timezone.now(),
    )
    if reset:
        logger.info("Reset %d entries to draft after editing student %s", reset, student.pk)
    return reset


def student_roster(coach, query: str | None = None) -> QuerySet[models.Student]:
    students = models.Student.objects.filter(dojo__coach=coach).select_related("dojo")
    if query:
        students = students.filter(name__icontains=query)
    return students.order_by("-created_at", "-pk")


# Coach: event dashboard ---------------------------------------------------


def coach_event_entries(coach, event: models.Event) -> QuerySet[models.Entry]:
    return (
        models.Entry.objects.filter(event=event, coach=coach)
        .select_related("student", "student__dojo", "category", "event_day")
        .order_by("-created_at", "pk")
    )


def entry_stats(entries: QuerySet[models.Entry]) -> EntryStats:
    status = models.Entry.Status
    totals = entries.aggregate(
        total=Count("pk"),
        draft=Count("pk", filter=Q(status=status.DRAFT)),
        submitted=Count("pk", filter=Q(status=status.SUBMITTED)),
        approved=Count("pk", filter=Q(status=status.APPROVED)),
        rejected=Count("pk", filter=Q(status=status.REJECTED)),
    )
    return EntryStats(**totals)


def registerable_students(
    coach,
    event: models.Event,
    *,
    search: str | None = None,
    dojo: str | None = None,
    gender: str | None = None,
    rank: str | None = None,
) -> QuerySet[models.Student]:
    """Roster students without an entry in ``event``, optionally filtered."""

    students = (
        models.Student.objects.filter(dojo__coach=coach)
        .exclude(entries__event=event)
        .select_related("dojo")
        .order_by("name", "pk")
    )
    if search:
        students = students.filter(name__icontains=search)
    if dojo:
        students = students.filter(dojo_id=dojo)
    if gender:
        students = students.filter(gender=gender)
    if rank:
        students = students.filter(rank__iexact=rank)
    return students


@transaction.atomic
def bulk_create_entries(
    coach,
    event: models.Event,
    student_ids: Iterable[int],
    participation_type: str,
    event_day: models.EventDay | None = None,
) -> int:
    """Create draft entries for the coach's students not yet entered in ``event``."""

    if event_day is None and event.days.exists():
        raise ValueError("Select an event day for these entries.")
    if event_day is not None and event_day.event_id != event.pk:
        raise ValueError("That day does not belong to this event.")

    ids = {int(pk) for pk in student_ids}
    students = (
        models.Student.objects.filter(pk__in=ids, dojo__coach=coach)
        .exclude(entries__event=event)
    )
    entries = [
        models.Entry(
            event=event,
            coach=coach,
            student=student,
            event_day=event_day,
            participation_type=participation_type,
            status=models.Entry.Status.DRAFT,
        )
        for student in students
    ]
    models.Entry.objects.bulk_create(entries)
    logger.info("Coach %s registered %d students for event %s", coach.pk, len(entries), event.pk)
    return len(entries)


def upsert_entry(
    coach,
    event: models.Event,
    student: models.Student,
    *,
    category: models.Category | None = None,
    event_day: models.EventDay | None = None,
    participation_type: str = models.Entry.ParticipationType.BOTH,
) -> tuple[models.Entry, bool]:
    """Update the student's entry in ``event`` or create one; either way it becomes a draft."""

    entry = models.Entry.objects.filter(event=event, student=student).first()
    created = entry is None
    if created:
        entry = models.Entry(event=event, student=student)
    entry.coach = coach
    entry.category = category
    entry.event_day = event_day
    entry.participation_type = participation_type
    entry.status = models.Entry.Status.DRAFT
    entry.save()
    return entry, created


def missing_student_fields(student: models.Student) -> list[str]:
    """Labels of the fields that block submission for ``student``."""

    missing = []
    if student.weight is None:
        missing.append("Weight")
    if not (student.rank or "").strip():
        missing.append("Rank")
    if student.date_of_birth is None:
        missing.append("DOB")
    if not student.gender:
        missing.append("Gender")
    if not (student.name or "").strip():
        missing.append("Name")
    return missing


def _submit_drafts(drafts: QuerySet[models.Entry]) -> SubmissionSummary:
    eligible: list[int] = []
    skipped = 0
    for entry in drafts.select_related("student"):
        if missing_student_fields(entry.student):
            skipped += 1
        else:
            eligible.append(entry.pk)
    submitted = 0
    if eligible:
        submitted = models.Entry.objects.filter(pk__in=eligible).update(
            status=models.Entry.Status.SUBMITTED,
            updated_at=timezone.now(),
        )
    return SubmissionSummary(submitted=submitted, skipped=skipped)


@transaction.atomic
def bulk_submit_entries(coach, entry_ids: Iterable[int]) -> SubmissionSummary:
    ids = {int(pk) for pk in entry_ids}
    drafts = models.Entry.objects.filter(pk__in=ids, coach=coach, status=models.Entry.Status.DRAFT)
    summary = _submit_drafts(drafts)
    logger.info("Coach %s submitted %d entries (%d skipped)", coach.pk, summary.submitted, summary.skipped)
    return summary


@transaction.atomic
def submit_event_entries(coach, event: models.Event) -> SubmissionSummary:
    drafts = models.Entry.objects.filter(event=event, coach=coach, status=models.Entry.Status.DRAFT)
    return _submit_drafts(drafts)


def bulk_delete_entries(coach, entry_ids: Iterable[int]) -> int:
    ids = {int(pk) for pk in entry_ids}
    if not ids:
        return 0
    deleted, _ = models.Entry.objects.filter(pk__in=ids, coach=coach).delete()
    return deleted


def delete_entry(coach, entry_id: int) -> int:
    deleted, _ = models.Entry.objects.filter(pk=entry_id, coach=coach).delete()
    return deleted


# Dashboard ----------------------------------------------------------------


def dashboard_stats(user, profile: models.Profile) -> list[dict[str, object]]:
    if profile.is_organizer:
        return [
            {"label": "Events", "value": access.manageable_events(user).count()},
            {"label": "Pending approvals", "value": pending_applications(user).count()},
        ]
    return [
        {"label": "Dojos", "value": models.Dojo.objects.filter(coach=user).count()},
        {"label": "Students", "value": models.Student.objects.filter(dojo__coach=user).count()},
    ]


# Demo data ----------------------------------------------------------------


DEMO_PASSWORD = "entrydesk-demo"


def _demo_user(username: str, email: str, full_name: str, role: str):
    user, created = get_user_model().objects.get_or_create(username=username, defaults={"email": email})
    if created:
        user.set_password(DEMO_PASSWORD)
        user.save(update_fields=["password"])
    models.Profile.objects.update_or_create(
        user=user,
        defaults={"email": email, "full_name": full_name, "role": role},
    )
    return user


@transaction.atomic
def seed_demo_data() -> models.Event:
    """Create an organizer, a coach and a small approved tournament to explore."""

    organizer = _demo_user("organizer", "organizer@example.com", "Olivia Organizer", models.Profile.Role.ORGANIZER)
    coach = _demo_user("coach", "coach@example.com", "Kenji Coach", models.Profile.Role.COACH)

    event = models.Event.objects.filter(organizer=organizer, title="Spring Open").first()
    if event is None:
        event = create_event(
            organizer,
            {
                "title": "Spring Open",
                "description": "Regional kata and kumite open.",
                "event_type": models.Event.EventType.TOURNAMENT,
                "location": "City Sports Hall",
                "start_date": timezone.localdate() + timedelta(days=30),
                "end_date": timezone.localdate() + timedelta(days=31),
                "is_public": True,
            },
        )
        models.Category.objects.bulk_create(
            [
                models.Category(event=event, name="Cadet Boys Kumite", gender=models.Category.Gender.MALE, min_age=14, max_age=15),
                models.Category(event=event, name="Cadet Girls Kumite", gender=models.Category.Gender.FEMALE, min_age=14, max_age=15),
                models.Category(event=event, name="Open Kata", gender=models.Category.Gender.MIXED),
            ]
        )

    models.EventApplication.objects.update_or_create(
        event=event,
        coach=coach,
        defaults={"status": models.EventApplication.Status.APPROVED},
    )
    dojo, _ = models.Dojo.objects.get_or_create(coach=coach, name="Shinbukan Dojo")
    roster = (
        ("Aiko Tanaka", "female", "brown", "52.5", "2010-04-12"),
        ("Ben Okafor", "male", "green", "61", "2011-09-03"),
        ("Chris Dale", "male", "", None, None),
    )
    for name, gender, rank, weight, dob in roster:
        models.Student.objects.get_or_create(
            dojo=dojo,
            name=name,
            defaults={
                "gender": gender,
                "rank": rank,
                "weight": weight,
                "date_of_birth": dob,
            },
        )
    return event
