from __future__ import annotations

from django.test import TestCase

from tournaments import forms, models

from .utils import make_event, make_user


class EventFormTests(TestCase):
    def _data(self, **overrides):
        data = {
            "title": "Spring Open",
            "description": "",
            "event_type": models.Event.EventType.TOURNAMENT,
            "location": "Main Hall",
            "start_date": "2030-05-02",
            "end_date": "2030-05-03",
            "is_public": "on",
        }
        data.update(overrides)
        return data

    def test_valid_dates(self) -> None:
        form = forms.EventForm(data=self._data())
        self.assertTrue(form.is_valid(), form.errors)

    def test_end_before_start(self) -> None:
        form = forms.EventForm(data=self._data(end_date="2030-05-01"))

        self.assertFalse(form.is_valid())
        self.assertIn("end_date", form.errors)

    def test_widgets_are_styled(self) -> None:
        form = forms.EventForm()
        self.assertIn("input", form.fields["title"].widget.attrs["class"])
        self.assertIn("checkbox", form.fields["is_public"].widget.attrs["class"])


class CategoryFormTests(TestCase):
    def test_minimum_above_maximum(self) -> None:
        form = forms.CategoryForm(
            data={
                "name": "Cadets",
                "gender": models.Category.Gender.MIXED,
                "min_age": "16",
                "max_age": "14",
                "min_weight": "60",
                "max_weight": "50",
            }
        )

        self.assertFalse(form.is_valid())
        self.assertIn("max_age", form.errors)
        self.assertIn("max_weight", form.errors)

    def test_open_bounds_are_fine(self) -> None:
        form = forms.CategoryForm(data={"name": "Open", "gender": models.Category.Gender.MIXED, "min_age": "10"})
        self.assertTrue(form.is_valid(), form.errors)


class StudentFormTests(TestCase):
    def setUp(self) -> None:
        self.coach = make_user("kenji")
        self.dojo = models.Dojo.objects.create(coach=self.coach, name="Shinbukan")
        self.other_dojo = models.Dojo.objects.create(coach=make_user("sora"), name="Elsewhere")

    def test_own_dojo_is_accepted(self) -> None:
        form = forms.StudentForm(data={"dojo": self.dojo.pk, "name": "Aiko", "weight": "52.5"}, coach=self.coach)
        self.assertTrue(form.is_valid(), form.errors)

    def test_foreign_dojo_is_rejected(self) -> None:
        form = forms.StudentForm(data={"dojo": self.other_dojo.pk, "name": "Aiko"}, coach=self.coach)

        self.assertFalse(form.is_valid())
        self.assertEqual(form.errors["dojo"], ["Invalid Dojo selected"])

    def test_negative_weight_is_rejected(self) -> None:
        form = forms.StudentForm(data={"dojo": self.dojo.pk, "name": "Aiko", "weight": "-1"}, coach=self.coach)

        self.assertFalse(form.is_valid())
        self.assertIn("weight", form.errors)


class ImportRowFormTests(TestCase):
    def test_included_row_needs_a_name(self) -> None:
        form = forms.ImportRowForm(data={"include": "on", "name": " "})
        self.assertFalse(form.is_valid())
        self.assertEqual(form.errors["name"], ["Name is required."])

    def test_excluded_row_may_be_blank(self) -> None:
        self.assertTrue(forms.ImportRowForm(data={"name": ""}).is_valid())

    def test_review_row_revalidates(self) -> None:
        form = forms.ImportRowForm(data={"include": "on", "name": "Ben", "gender": "M", "weight": "heavy"})
        self.assertTrue(form.is_valid())

        row = form.review_row()

        self.assertEqual(row["gender"], "male")
        self.assertIn("weight", row["warnings"])


class RegisterStudentsFormTests(TestCase):
    def setUp(self) -> None:
        self.event = make_event(make_user("olivia", models.Profile.Role.ORGANIZER))
        self.day = self.event.days.order_by("date").first()

    def test_requires_students_and_day(self) -> None:
        form = forms.RegisterStudentsForm(data={"participation_type": "both"}, event=self.event)

        self.assertFalse(form.is_valid())
        self.assertEqual(form.errors["student_ids"], ["Select at least one student."])
        self.assertIn("event_day", form.errors)

    def test_ids_are_deduplicated(self) -> None:
        form = forms.RegisterStudentsForm(
            data={"student_ids": ["3", "1", "3"], "participation_type": "kata", "event_day": self.day.pk},
            event=self.event,
        )

        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data["student_ids"], [1, 3])

    def test_garbage_ids_are_invalid(self) -> None:
        form = forms.RegisterStudentsForm(
            data={"student_ids": ["abc"], "participation_type": "kata", "event_day": self.day.pk},
            event=self.event,
        )

        self.assertFalse(form.is_valid())
        self.assertEqual(form.errors["student_ids"], ["Invalid selection."])
