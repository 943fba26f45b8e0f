"""Database models for the EntryDesk tournament registration app."""
from __future__ import annotations

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class Profile(models.Model):
    """Role-bearing row attached to an authenticated identity."""

    class Role(models.TextChoices):
        ORGANIZER = "organizer", "Organizer"
        COACH = "coach", "Coach"
        ADMIN = "admin", "Admin"

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="profile")
    email = models.EmailField()
    full_name = models.CharField(max_length=150)
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.COACH)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("full_name",)

    def __str__(self) -> str:
        return self.full_name or self.email

    @property
    def is_organizer(self) -> bool:
        return self.role in (self.Role.ORGANIZER, self.Role.ADMIN)

    @property
    def is_coach(self) -> bool:
        return self.role == self.Role.COACH


class Event(models.Model):
    """A tournament, seminar or grading owned by a single organizer."""

    class EventType(models.TextChoices):
        TOURNAMENT = "tournament", "Tournament"
        SEMINAR = "seminar", "Seminar"
        TEST = "test", "Test"

    organizer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="organized_events")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    event_type = models.CharField(max_length=16, choices=EventType.choices, default=EventType.TOURNAMENT)
    location = models.CharField(max_length=200, blank=True)
    start_date = models.DateField()
    end_date = models.DateField()
    is_public = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("start_date", "title")

    def __str__(self) -> str:
        return self.title

    def is_owned_by(self, user) -> bool:
        return self.organizer_id == getattr(user, "pk", None)


class EventDay(models.Model):
    """One calendar day of an event."""

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="days")
    date = models.DateField()
    name = models.CharField(max_length=64)

    class Meta:
        ordering = ("event", "date")

    def __str__(self) -> str:
        return self.name or self.date.isoformat()


class EventApplication(models.Model):
    """A coach's request to bring athletes to an event."""

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="applications")
    coach = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="event_applications")
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["event", "coach"], name="unique_application_per_coach"),
        ]
        ordering = ("-created_at",)

    def __str__(self) -> str:
        return f"{self.coach} → {self.event} ({self.status})"


class Dojo(models.Model):
    """A coach's school or training location."""

    coach = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="dojos")
    name = models.CharField(max_length=150)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("name",)

    def __str__(self) -> str:
        return self.name


class Student(models.Model):
    """An athlete on a dojo roster."""

    class Gender(models.TextChoices):
        MALE = "male", "Male"
        FEMALE = "female", "Female"

    dojo = models.ForeignKey(Dojo, on_delete=models.CASCADE, related_name="students")
    name = models.CharField(max_length=150)
    gender = models.CharField(max_length=8, choices=Gender.choices, blank=True)
    rank = models.CharField(max_length=64, blank=True)
    weight = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        blank=True,
        null=True,
        validators=[MinValueValidator(0)],
    )
    date_of_birth = models.DateField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "name")

    def __str__(self) -> str:
        return self.name


class Category(models.Model):
    """A competition division defined for an event."""

    class Gender(models.TextChoices):
        MALE = "male", "Male"
        FEMALE = "female", "Female"
        MIXED = "mixed", "Mixed"

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="categories")
    name = models.CharField(max_length=150)
    gender = models.CharField(max_length=8, choices=Gender.choices, default=Gender.MIXED)
    min_age = models.PositiveIntegerField(blank=True, null=True)
    max_age = models.PositiveIntegerField(blank=True, null=True)
    min_weight = models.DecimalField(max_digits=5, decimal_places=2, blank=True, null=True)
    max_weight = models.DecimalField(max_digits=5, decimal_places=2, blank=True, null=True)
    min_rank = models.CharField(max_length=64, blank=True)
    max_rank = models.CharField(max_length=64, blank=True)

    class Meta:
        ordering = ("event", "name")
        verbose_name_plural = "categories"

    def __str__(self) -> str:
        return self.name


class Entry(models.Model):
    """A student's registration for an event, optionally tied to a category and day."""

    class ParticipationType(models.TextChoices):
        KATA = "kata", "Kata"
        KUMITE = "kumite", "Kumite"
        BOTH = "both", "Both"

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SUBMITTED = "submitted", "Submitted"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="entries")
    coach = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="entries")
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="entries")
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="entries",
    )
    event_day = models.ForeignKey(
        EventDay,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="entries",
    )
    participation_type = models.CharField(
        max_length=8,
        choices=ParticipationType.choices,
        default=ParticipationType.BOTH,
    )
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.DRAFT)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)
        verbose_name_plural = "entries"

    def __str__(self) -> str:
        return f"{self.student} - {self.event} ({self.status})"
