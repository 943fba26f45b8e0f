"""Forms for the EntryDesk tournaments app."""
from __future__ import annotations

from django import forms
from django.core.exceptions import ValidationError

from . import models, spreadsheets


TEXT_INPUT_CLASSES = "input"
CHECKBOX_CLASSES = "checkbox"


def _style_fields(form: forms.BaseForm) -> None:
    for field in form.fields.values():
        widget = field.widget
        if isinstance(widget, (forms.HiddenInput, forms.MultipleHiddenInput)):
            continue
        css = CHECKBOX_CLASSES if isinstance(widget, forms.CheckboxInput) else TEXT_INPUT_CLASSES
        existing = widget.attrs.get("class", "")
        widget.attrs["class"] = f"{existing} {css}".strip()


class IdListField(forms.Field):
    """Collects a list of primary keys posted under one name."""

    widget = forms.MultipleHiddenInput

    def to_python(self, value) -> list[int]:
        if not value:
            return []
        if isinstance(value, (str, int)):
            value = [value]
        try:
            return sorted({int(item) for item in value})
        except (TypeError, ValueError):
            raise ValidationError("Invalid selection.")


class EventForm(forms.ModelForm):
    """Organizer-facing event details."""

    class Meta:
        model = models.Event
        fields = (
            "title",
            "description",
            "event_type",
            "location",
            "start_date",
            "end_date",
            "is_public",
        )
        widgets = {
            "start_date": forms.DateInput(attrs={"type": "date"}),
            "end_date": forms.DateInput(attrs={"type": "date"}),
            "description": forms.Textarea(attrs={"rows": 3}),
        }

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        _style_fields(self)

    def clean(self):
        cleaned_data = super().clean()
        start = cleaned_data.get("start_date")
        end = cleaned_data.get("end_date")
        if start and end and end < start:
            self.add_error("end_date", "End date cannot be before the start date.")
        return cleaned_data


class CategoryForm(forms.ModelForm):
    class Meta:
        model = models.Category
        fields = (
            "name",
            "gender",
            "min_age",
            "max_age",
            "min_weight",
            "max_weight",
            "min_rank",
            "max_rank",
        )

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        _style_fields(self)

    def clean(self):
        cleaned_data = super().clean()
        for low, high, label in (("min_age", "max_age", "age"), ("min_weight", "max_weight", "weight")):
            minimum = cleaned_data.get(low)
            maximum = cleaned_data.get(high)
            if minimum is not None and maximum is not None and minimum > maximum:
                self.add_error(high, f"Maximum {label} must be greater than or equal to the minimum {label}.")
        return cleaned_data


class DojoForm(forms.ModelForm):
    class Meta:
        model = models.Dojo
        fields = ("name",)

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        _style_fields(self)


class StudentForm(forms.ModelForm):
    """Roster details; the dojo must belong to the acting coach."""

    class Meta:
        model = models.Student
        fields = ("dojo", "name", "gender", "rank", "weight", "date_of_birth")
        widgets = {
            "date_of_birth": forms.DateInput(attrs={"type": "date"}),
        }

    def __init__(self, *args, coach, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.coach = coach
        dojo_field = self.fields["dojo"]
        dojo_field.queryset = models.Dojo.objects.filter(coach=coach).order_by("name")
        dojo_field.error_messages["invalid_choice"] = "Invalid Dojo selected"
        _style_fields(self)

    def clean_dojo(self):
        dojo: models.Dojo = self.cleaned_data["dojo"]
        if dojo.coach_id != self.coach.pk:
            raise ValidationError("Invalid Dojo selected")
        return dojo


class StudentUploadForm(forms.Form):
    """Step one of the roster import: pick a dojo and a spreadsheet."""

    dojo = forms.ModelChoiceField(
        queryset=models.Dojo.objects.none(),
        error_messages={"invalid_choice": "Invalid Dojo selected"},
    )
    file = forms.FileField()

    def __init__(self, *args, coach, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.fields["dojo"].queryset = models.Dojo.objects.filter(coach=coach).order_by("name")
        _style_fields(self)

    def clean_file(self):
        uploaded = self.cleaned_data["file"]
        if not uploaded.name.lower().endswith((".xlsx", ".csv")):
            raise ValidationError("Upload an .xlsx or .csv file.")
        return uploaded


class ImportRowForm(forms.Form):
    """One editable row of the import review table."""

    include = forms.BooleanField(required=False, initial=True)
    name = forms.CharField(max_length=150, required=False)
    gender = forms.CharField(max_length=16, required=False)
    rank = forms.CharField(max_length=64, required=False)
    weight = forms.CharField(max_length=32, required=False)
    dob = forms.CharField(max_length=32, required=False)

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        _style_fields(self)

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get("include") and not (cleaned_data.get("name") or "").strip():
            self.add_error("name", "Name is required.")
        return cleaned_data

    def review_row(self) -> dict:
        """The row re-normalised and re-validated from the submitted values."""

        return spreadsheets.build_row(
            name=self.cleaned_data.get("name", ""),
            gender=self.cleaned_data.get("gender", ""),
            rank=self.cleaned_data.get("rank", ""),
            weight=self.cleaned_data.get("weight", ""),
            dob=self.cleaned_data.get("dob") or None,
        )


ImportRowFormSet = forms.formset_factory(ImportRowForm, extra=0)


class DecisionForm(forms.Form):
    """Approve or reject an application or an entry."""

    status = forms.ChoiceField(
        choices=(
            ("approved", "Approve"),
            ("rejected", "Reject"),
        )
    )


class BulkEntryForm(forms.Form):
    entry_ids = IdListField(required=False)


class BulkStatusForm(BulkEntryForm, DecisionForm):
    pass


class RegisterStudentsForm(forms.Form):
    """Coach panel for entering several roster students into an event."""

    student_ids = IdListField(error_messages={"required": "Select at least one student."})
    participation_type = forms.ChoiceField(
        choices=models.Entry.ParticipationType.choices,
        initial=models.Entry.ParticipationType.BOTH,
    )
    event_day = forms.ModelChoiceField(queryset=models.EventDay.objects.none(), required=False)

    def __init__(self, *args, event: models.Event, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        days = event.days.order_by("date")
        self.fields["event_day"].queryset = days
        self.fields["event_day"].required = days.exists()
        _style_fields(self)


class EntryForm(forms.Form):
    """Create or update a single entry for one of the coach's students."""

    student = forms.ModelChoiceField(queryset=models.Student.objects.none())
    category = forms.ModelChoiceField(queryset=models.Category.objects.none(), required=False)
    event_day = forms.ModelChoiceField(queryset=models.EventDay.objects.none(), required=False)
    participation_type = forms.ChoiceField(
        choices=models.Entry.ParticipationType.choices,
        initial=models.Entry.ParticipationType.BOTH,
    )

    def __init__(self, *args, event: models.Event, coach, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.fields["student"].queryset = models.Student.objects.filter(dojo__coach=coach).order_by("name")
        self.fields["category"].queryset = event.categories.order_by("name")
        days = event.days.order_by("date")
        self.fields["event_day"].queryset = days
        self.fields["event_day"].required = days.exists()
        _style_fields(self)
