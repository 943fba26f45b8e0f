from __future__ import annotations

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from tournaments import models

from .utils import make_event, make_student, make_user


class EntryApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.coach = make_user("kenji")
        self.event = make_event(make_user("olivia", models.Profile.Role.ORGANIZER))
        self.dojo = models.Dojo.objects.create(coach=self.coach, name="Shinbukan")
        self.complete = models.Entry.objects.create(
            event=self.event, coach=self.coach, student=make_student(self.dojo, "Aiko Tanaka")
        )
        self.incomplete = models.Entry.objects.create(
            event=self.event, coach=self.coach, student=make_student(self.dojo, "Chris Dale", complete=False)
        )
        self.client.force_authenticate(self.coach)

    def test_anonymous_requests_are_rejected(self) -> None:
        response = APIClient().get("/api/entries/")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_includes_missing_fields(self) -> None:
        response = self.client.get("/api/entries/", {"event": self.event.pk})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        by_name = {row["student_name"]: row for row in response.json()}
        self.assertEqual(by_name["Aiko Tanaka"]["missing_fields"], [])
        self.assertEqual(by_name["Chris Dale"]["missing_fields"], ["Weight", "Rank", "DOB", "Gender"])
        self.assertEqual(by_name["Aiko Tanaka"]["category_name"], "")

    def test_bulk_submit(self) -> None:
        response = self.client.post(
            "/api/entries/bulk-submit/",
            {"entry_ids": [self.complete.pk, self.incomplete.pk]},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json(), {"submitted": 1, "skipped": 1})

    def test_bulk_submit_validates_ids(self) -> None:
        response = self.client.post("/api/entries/bulk-submit/", {"entry_ids": ["x"]}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_delete(self) -> None:
        response = self.client.post("/api/entries/bulk-delete/", {"entry_ids": [self.complete.pk]}, format="json")

        self.assertEqual(response.json(), {"deleted": 1})
        self.assertFalse(models.Entry.objects.filter(pk=self.complete.pk).exists())

    def test_students_endpoint_searches_roster(self) -> None:
        response = self.client.get("/api/students/", {"q": "chris"})

        self.assertEqual([row["name"] for row in response.json()], ["Chris Dale"])
        self.assertEqual(response.json()[0]["dojo_name"], "Shinbukan")

    def test_organizer_cannot_use_coach_endpoints(self) -> None:
        self.client.force_authenticate(make_user("oscar", models.Profile.Role.ORGANIZER))

        response = self.client.get("/api/entries/")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class EventEntryApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        self.organizer = make_user("olivia", models.Profile.Role.ORGANIZER)
        coach = make_user("kenji")
        self.event = make_event(self.organizer)
        dojo = models.Dojo.objects.create(coach=coach, name="Shinbukan")
        self.entry = models.Entry.objects.create(
            event=self.event, coach=coach, student=make_student(dojo), status=models.Entry.Status.SUBMITTED
        )
        other_event = make_event(make_user("oscar", models.Profile.Role.ORGANIZER), "Other Cup")
        self.foreign = models.Entry.objects.create(event=other_event, coach=coach, student=make_student(dojo, "Ben"))
        self.client.force_authenticate(self.organizer)

    def test_list_is_scoped_to_managed_events(self) -> None:
        response = self.client.get("/api/event-entries/")

        self.assertEqual([row["id"] for row in response.json()], [self.entry.pk])
        self.assertEqual(response.json()[0]["coach_name"], "Kenji")

    def test_bulk_status(self) -> None:
        response = self.client.post(
            "/api/event-entries/bulk-status/",
            {"entry_ids": [self.entry.pk], "status": "approved"},
            format="json",
        )

        self.assertEqual(response.json(), {"updated": 1})
        self.entry.refresh_from_db()
        self.assertEqual(self.entry.status, models.Entry.Status.APPROVED)

    def test_bulk_status_with_foreign_entry(self) -> None:
        response = self.client.post(
            "/api/event-entries/bulk-status/",
            {"entry_ids": [self.entry.pk, self.foreign.pk], "status": "approved"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.entry.refresh_from_db()
        self.assertEqual(self.entry.status, models.Entry.Status.SUBMITTED)

    def test_bulk_status_rejects_unknown_status(self) -> None:
        response = self.client.post(
            "/api/event-entries/bulk-status/",
            {"entry_ids": [self.entry.pk], "status": "draft"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_coach_is_forbidden(self) -> None:
        self.client.force_authenticate(make_user("sora"))

        response = self.client.get("/api/event-entries/")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
