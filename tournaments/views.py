"""Server-rendered pages and form handlers for EntryDesk."""
from __future__ import annotations

import dataclasses
import logging

from django.contrib import messages
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.db.models import Count, Q
from django.http import HttpRequest, HttpResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.urls import reverse
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_POST

from . import access, forms, models, services, spreadsheets
from .access import role_required

logger = logging.getLogger(__name__)

ORGANIZER = models.Profile.Role.ORGANIZER
COACH = models.Profile.Role.COACH

IMPORT_SESSION_KEY = "tournaments.student-import"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

organizer_required = role_required(ORGANIZER, redirect_to="tournaments:dashboard")
coach_required = role_required(COACH, redirect_to="tournaments:dashboard")


def _param(request: HttpRequest, key: str) -> str | None:
    value = (request.GET.get(key) or "").strip()
    if not value or value.lower() == "all":
        return None
    return value


def _querystring(request: HttpRequest) -> str:
    """Current GET parameters without the page number, for pagination links."""

    params = request.GET.copy()
    params.pop("page", None)
    return params.urlencode()


def _safe_next(request: HttpRequest, fallback: str) -> str:
    target = request.POST.get("next") or request.GET.get("next")
    if target and url_has_allowed_host_and_scheme(target, allowed_hosts={request.get_host()}):
        return target
    return fallback


def _plural(count: int, word: str, plural: str | None = None) -> str:
    return f"{count} {word if count == 1 else (plural or word + 's')}"


def _attachment(content, content_type: str, filename: str) -> HttpResponse:
    response = HttpResponse(content, content_type=content_type)
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


# Dashboard ---------------------------------------------------------------


@role_required(*models.Profile.Role.values)
def dashboard(request: HttpRequest) -> HttpResponse:
    """Landing page with role-specific counters."""

    profile = request.profile
    context: dict[str, object] = {
        "profile": profile,
        "stats": services.dashboard_stats(request.user, profile),
    }
    if profile.is_organizer:
        context["events"] = access.manageable_events(request.user).order_by("start_date")[:5]
        context["pending"] = services.pending_applications(request.user)[:5]
    else:
        context["applications"] = (
            models.EventApplication.objects.filter(coach=request.user)
            .select_related("event")
            .order_by("-created_at")[:5]
        )
    return render(request, "tournaments/dashboard.html", context)


# Organizer: events -------------------------------------------------------


def _managed_event(request: HttpRequest, pk: int) -> models.Event:
    return get_object_or_404(access.manageable_events(request.user), pk=pk)


@organizer_required
def event_list(request: HttpRequest) -> HttpResponse:
    events = (
        access.manageable_events(request.user)
        .annotate(
            entry_count=Count("entries", distinct=True),
            pending_count=Count(
                "applications",
                filter=Q(applications__status=models.EventApplication.Status.PENDING),
                distinct=True,
            ),
        )
        .order_by("start_date", "title")
    )
    return render(request, "tournaments/event_list.html", {"events": events})


@organizer_required
def event_create(request: HttpRequest) -> HttpResponse:
    form = forms.EventForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        try:
            event = services.create_event(request.user, form.cleaned_data)
        except DatabaseError:
            logger.exception("Failed to create event for user %s", request.user.pk)
            messages.error(request, "Failed to create event.")
        else:
            messages.success(request, f"Created event {event.title}.")
            return redirect("tournaments:event-detail", pk=event.pk)
    return render(request, "tournaments/event_form.html", {"form": form})


@organizer_required
def event_detail(request: HttpRequest, pk: int) -> HttpResponse:
    event = _managed_event(request, pk)
    context = {
        "event": event,
        "days": event.days.order_by("date"),
        "category_count": event.categories.count(),
        "pending_count": event.applications.filter(status=models.EventApplication.Status.PENDING).count(),
        "stats": services.entry_stats(event.entries.all()),
        "can_delete": event.is_owned_by(request.user),
    }
    return render(request, "tournaments/event_detail.html", context)


@organizer_required
@require_POST
def event_delete(request: HttpRequest, pk: int) -> HttpResponse:
    event = _managed_event(request, pk)
    title = event.title
    services.delete_event(request.user, event)
    messages.success(request, f"Deleted event {title}.")
    return redirect("tournaments:event-list")


# Organizer: categories ---------------------------------------------------


@organizer_required
def event_categories(request: HttpRequest, pk: int) -> HttpResponse:
    event = _managed_event(request, pk)
    form = forms.CategoryForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        category = form.save(commit=False)
        category.event = event
        category.save()
        messages.success(request, f"Added category {category.name}.")
        return redirect("tournaments:event-categories", pk=event.pk)
    context = {
        "event": event,
        "categories": event.categories.order_by("name"),
        "form": form,
    }
    return render(request, "tournaments/categories.html", context)


@organizer_required
def category_update(request: HttpRequest, pk: int, category_pk: int) -> HttpResponse:
    event = _managed_event(request, pk)
    category = get_object_or_404(models.Category, pk=category_pk, event=event)
    form = forms.CategoryForm(request.POST or None, instance=category)
    if request.method == "POST" and form.is_valid():
        form.save()
        messages.success(request, f"Updated category {category.name}.")
        return redirect("tournaments:event-categories", pk=event.pk)
    return render(request, "tournaments/category_form.html", {"event": event, "category": category, "form": form})


@organizer_required
@require_POST
def category_delete(request: HttpRequest, pk: int, category_pk: int) -> HttpResponse:
    event = _managed_event(request, pk)
    category = get_object_or_404(models.Category, pk=category_pk, event=event)
    name = category.name
    category.delete()
    messages.success(request, f"Deleted category {name}.")
    return redirect("tournaments:event-categories", pk=event.pk)


# Organizer: applications -------------------------------------------------


@organizer_required
def approvals(request: HttpRequest) -> HttpResponse:
    """Pending applications across every event the user manages."""

    return render(
        request,
        "tournaments/approvals.html",
        {"applications": services.pending_applications(request.user), "event": None},
    )


@organizer_required
def event_applications(request: HttpRequest, pk: int) -> HttpResponse:
    event = _managed_event(request, pk)
    applications = event.applications.select_related("coach", "coach__profile").order_by("-created_at")
    return render(request, "tournaments/approvals.html", {"applications": applications, "event": event})


@organizer_required
@require_POST
def application_status(request: HttpRequest, pk: int) -> HttpResponse:
    application = get_object_or_404(
        models.EventApplication.objects.select_related("event"),
        pk=pk,
        event__in=access.manageable_events(request.user),
    )
    destination = _safe_next(request, reverse("tournaments:approvals"))
    form = forms.DecisionForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Choose approve or reject.")
        return redirect(destination)
    services.update_application_status(request.user, application, form.cleaned_data["status"])
    messages.success(request, f"Application {application.get_status_display().lower()}.")
    return redirect(destination)


# Organizer: entries review -----------------------------------------------


def _filtered_event_entries(request: HttpRequest, event: models.Event):
    filters = services.EntryFilters.from_params(request.GET)
    return filters, services.filter_entries(services.event_entries(event), filters)


@organizer_required
def event_entries(request: HttpRequest, pk: int) -> HttpResponse:
    event = _managed_event(request, pk)
    filters, entries = _filtered_event_entries(request, event)
    page = services.paginate(entries, request.GET.get("page"))
    coaches = (
        get_user_model().objects.filter(entries__event=event)
        .select_related("profile")
        .distinct()
        .order_by("username")
    )
    context = {
        "event": event,
        "filters": filters,
        "page": page,
        "days": event.days.order_by("date"),
        "coaches": coaches,
        "statuses": models.Entry.Status.choices,
        "querystring": _querystring(request),
    }
    return render(request, "tournaments/event_entries.html", context)


@organizer_required
@require_POST
def entries_bulk_status(request: HttpRequest, pk: int) -> HttpResponse:
    event = _managed_event(request, pk)
    destination = _safe_next(request, reverse("tournaments:event-entries", kwargs={"pk": event.pk}))
    form = forms.BulkStatusForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Invalid selection.")
        return redirect(destination)
    entry_ids = form.cleaned_data["entry_ids"]
    if not entry_ids:
        messages.info(request, "No entries selected.")
        return redirect(destination)
    status = form.cleaned_data["status"]
    updated = services.bulk_update_entry_status(request.user, entry_ids, status)
    messages.success(request, f"Marked {_plural(updated, 'entry', 'entries')} as {status}.")
    return redirect(destination)


@organizer_required
@require_POST
def entry_status(request: HttpRequest, pk: int) -> HttpResponse:
    entry = get_object_or_404(
        models.Entry.objects.select_related("event", "student"),
        pk=pk,
        event__in=access.manageable_events(request.user),
    )
    destination = _safe_next(request, reverse("tournaments:event-entries", kwargs={"pk": entry.event_id}))
    form = forms.DecisionForm(request.POST)
    if form.is_valid():
        services.update_entry_status(request.user, entry, form.cleaned_data["status"])
        messages.success(request, f"{entry.student.name} {entry.get_status_display().lower()}.")
    else:
        messages.error(request, "Choose approve or reject.")
    return redirect(destination)


@organizer_required
def entries_export(request: HttpRequest, pk: int) -> HttpResponse:
    event = _managed_event(request, pk)
    _, entries = _filtered_event_entries(request, event)
    rows = services.export_rows(entries)
    if request.GET.get("format") == "csv":
        return _attachment(spreadsheets.entries_csv(rows), "text/csv", "entries_export.csv")
    return _attachment(spreadsheets.entries_workbook(rows), XLSX_CONTENT_TYPE, "entries_export.xlsx")


# Coach: events browser ---------------------------------------------------


@coach_required
def events_browser(request: HttpRequest) -> HttpResponse:
    return render(request, "tournaments/events_browser.html", {"rows": services.browse_events(request.user)})


@coach_required
@require_POST
def event_apply(request: HttpRequest, pk: int) -> HttpResponse:
    event = get_object_or_404(models.Event, pk=pk)
    try:
        _, created = services.apply_to_event(request.user, event)
    except DatabaseError:
        logger.exception("Failed to apply to event %s for coach %s", event.pk, request.user.pk)
        messages.error(request, "Failed to apply to event.")
        return redirect("tournaments:events-browser")
    if created:
        messages.success(request, f"Applied to {event.title}.")
    else:
        messages.info(request, "Already applied")
    return redirect("tournaments:events-browser")


# Coach: dojos ------------------------------------------------------------


@coach_required
def dojo_list(request: HttpRequest) -> HttpResponse:
    form = forms.DojoForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        dojo = form.save(commit=False)
        dojo.coach = request.user
        dojo.save()
        messages.success(request, f"Created dojo {dojo.name}.")
        return redirect("tournaments:dojo-list")
    dojos = models.Dojo.objects.filter(coach=request.user).annotate(student_count=Count("students")).order_by("name")
    return render(request, "tournaments/dojos.html", {"dojos": dojos, "form": form})


@coach_required
def dojo_update(request: HttpRequest, pk: int) -> HttpResponse:
    dojo = get_object_or_404(models.Dojo, pk=pk, coach=request.user)
    form = forms.DojoForm(request.POST or None, instance=dojo)
    if request.method == "POST" and form.is_valid():
        form.save()
        messages.success(request, f"Updated dojo {dojo.name}.")
        return redirect("tournaments:dojo-list")
    return render(request, "tournaments/dojo_form.html", {"dojo": dojo, "form": form})


@coach_required
@require_POST
def dojo_delete(request: HttpRequest, pk: int) -> HttpResponse:
    dojo = get_object_or_404(models.Dojo, pk=pk, coach=request.user)
    name = dojo.name
    dojo.delete()
    messages.success(request, f"Deleted dojo {name}.")
    return redirect("tournaments:dojo-list")


# Coach: students ---------------------------------------------------------


@coach_required
def student_list(request: HttpRequest) -> HttpResponse:
    form = forms.StudentForm(request.POST or None, coach=request.user)
    if request.method == "POST" and form.is_valid():
        student = form.save()
        messages.success(request, f"Added {student.name}.")
        return redirect("tournaments:student-list")
    query = _param(request, "q")
    page = services.paginate(services.student_roster(request.user, query), request.GET.get("page"))
    context = {
        "form": form,
        "page": page,
        "query": query or "",
        "querystring": _querystring(request),
    }
    return render(request, "tournaments/students.html", context)


@coach_required
def student_update(request: HttpRequest, pk: int) -> HttpResponse:
    student = get_object_or_404(models.Student, pk=pk, dojo__coach=request.user)
    form = forms.StudentForm(request.POST or None, instance=student, coach=request.user)
    if request.method == "POST" and form.is_valid():
        try:
            reset = services.update_student(student, form.cleaned_data)
        except DatabaseError:
            logger.exception("Failed to update student %s", student.pk)
            messages.error(request, "Failed to update student.")
        else:
            message = f"Updated {student.name}."
            if reset:
                message += f" {_plural(reset, 'entry', 'entries')} returned to draft."
            messages.success(request, message)
            return redirect("tournaments:student-list")
    return render(request, "tournaments/student_form.html", {"student": student, "form": form})


@coach_required
@require_POST
def student_delete(request: HttpRequest, pk: int) -> HttpResponse:
    student = get_object_or_404(models.Student, pk=pk, dojo__coach=request.user)
    name = student.name
    student.delete()
    messages.success(request, f"Deleted {name}.")
    return redirect("tournaments:student-list")


@coach_required
def student_import(request: HttpRequest) -> HttpResponse:
    """Upload step of the roster import."""

    form = forms.StudentUploadForm(request.POST or None, request.FILES or None, coach=request.user)
    if request.method == "POST" and form.is_valid():
        try:
            rows = spreadsheets.parse_student_rows(form.cleaned_data["file"])
        except ValueError as exc:
            form.add_error("file", str(exc))
        else:
            if rows:
                request.session[IMPORT_SESSION_KEY] = {"dojo": form.cleaned_data["dojo"].pk, "rows": rows}
                return redirect("tournaments:student-import-review")
            form.add_error("file", "No rows with a student name were found.")
    return render(request, "tournaments/student_import.html", {"form": form})


@coach_required
def student_import_review(request: HttpRequest) -> HttpResponse:
    """Review step: edit rows, drop the unwanted ones, then import."""

    pending = request.session.get(IMPORT_SESSION_KEY)
    if not pending:
        messages.error(request, "Upload a spreadsheet to start an import.")
        return redirect("tournaments:student-import")
    dojo = get_object_or_404(models.Dojo, pk=pending["dojo"], coach=request.user)

    if request.method == "POST":
        formset = forms.ImportRowFormSet(request.POST)
        if formset.is_valid():
            rows = []
            for row_form in formset:
                row = row_form.review_row()
                row["include"] = bool(row_form.cleaned_data.get("include"))
                rows.append(row)
            if request.POST.get("action") == "import":
                selected = [row for row in rows if row["include"]]
                result = spreadsheets.import_students(dojo, selected)
                request.session.pop(IMPORT_SESSION_KEY, None)
                messages.success(request, f"Imported {_plural(result['created'], 'student')} into {dojo.name}.")
                for error in result["errors"]:
                    messages.error(request, error)
                return redirect("tournaments:student-list")
            request.session[IMPORT_SESSION_KEY] = {"dojo": dojo.pk, "rows": rows}
            formset = forms.ImportRowFormSet(initial=_review_initial(rows))
        else:
            rows = pending["rows"]
    else:
        rows = pending["rows"]
        formset = forms.ImportRowFormSet(initial=_review_initial(rows))

    context = {
        "dojo": dojo,
        "formset": formset,
        "review": list(zip(formset.forms, [row.get("warnings", {}) for row in rows])),
        "warning_count": sum(1 for row in rows if row.get("warnings")),
    }
    return render(request, "tournaments/student_import_review.html", context)


def _review_initial(rows: list[dict]) -> list[dict]:
    return [
        {
            "include": row.get("include", True),
            "name": row.get("name", ""),
            "gender": row.get("gender", ""),
            "rank": row.get("rank", ""),
            "weight": row.get("weight", ""),
            "dob": row.get("dob", ""),
        }
        for row in rows
    ]


@coach_required
def student_import_template(request: HttpRequest) -> HttpResponse:
    return _attachment(spreadsheets.template_workbook(), XLSX_CONTENT_TYPE, "student_import_template.xlsx")


# Coach: entries ----------------------------------------------------------


@coach_required
def coach_entries(request: HttpRequest) -> HttpResponse:
    """Events the coach has been approved for, with entry counts."""

    applications = (
        models.EventApplication.objects.filter(
            coach=request.user,
            status=models.EventApplication.Status.APPROVED,
        )
        .select_related("event")
        .order_by("event__start_date")
    )
    cards = [
        {
            "event": application.event,
            "stats": services.entry_stats(services.coach_event_entries(request.user, application.event)),
        }
        for application in applications
    ]
    return render(request, "tournaments/coach_entries.html", {"cards": cards})


def _approved_event(request: HttpRequest, pk: int) -> models.Event | None:
    event = get_object_or_404(models.Event, pk=pk)
    if services.has_approved_application(request.user, event):
        return event
    messages.error(request, "You need an approved application to manage entries for this event.")
    return None


@coach_required
def coach_event(request: HttpRequest, pk: int) -> HttpResponse:
    event = _approved_event(request, pk)
    if event is None:
        return redirect("tournaments:events-browser")

    entries = services.coach_event_entries(request.user, event)
    filters = dataclasses.replace(services.EntryFilters.from_params(request.GET, query_key="search"), coach=None)
    page = services.paginate(services.filter_entries(entries, filters), request.GET.get("page"))
    rows = [{"entry": entry, "missing": services.missing_student_fields(entry.student)} for entry in page]

    register_filters = {key: _param(request, f"reg_{key}") for key in ("search", "dojo", "gender", "rank")}
    if register_filters["dojo"] and not register_filters["dojo"].isdigit():
        register_filters["dojo"] = None
    students = services.registerable_students(request.user, event, **register_filters)
    roster = models.Student.objects.filter(dojo__coach=request.user)

    context = {
        "event": event,
        "stats": services.entry_stats(entries),
        "filters": filters,
        "page": page,
        "rows": rows,
        "statuses": models.Entry.Status.choices,
        "days": event.days.order_by("date"),
        "students": students,
        "register_filters": register_filters,
        "dojos": models.Dojo.objects.filter(coach=request.user).order_by("name"),
        "genders": models.Student.Gender.choices,
        "ranks": roster.exclude(rank="").order_by("rank").values_list("rank", flat=True).distinct(),
        "register_form": forms.RegisterStudentsForm(event=event),
        "entry_form": forms.EntryForm(event=event, coach=request.user),
        "querystring": _querystring(request),
    }
    return render(request, "tournaments/coach_event.html", context)


@coach_required
@require_POST
def coach_event_register(request: HttpRequest, pk: int) -> HttpResponse:
    event = _approved_event(request, pk)
    if event is None:
        return redirect("tournaments:events-browser")
    destination = _safe_next(request, reverse("tournaments:coach-event", kwargs={"pk": event.pk}))
    form = forms.RegisterStudentsForm(request.POST, event=event)
    if not form.is_valid():
        for errors in form.errors.values():
            for error in errors:
                messages.error(request, error)
        return redirect(destination)
    try:
        created = services.bulk_create_entries(
            request.user,
            event,
            form.cleaned_data["student_ids"],
            form.cleaned_data["participation_type"],
            form.cleaned_data["event_day"],
        )
    except ValueError as exc:
        messages.error(request, str(exc))
    except DatabaseError:
        logger.exception("Failed to register students for event %s", event.pk)
        messages.error(request, "Failed to save entry")
    else:
        messages.success(request, f"Registered {_plural(created, 'student')}.")
    return redirect(destination)


@coach_required
@require_POST
def coach_entry_save(request: HttpRequest, pk: int) -> HttpResponse:
    event = _approved_event(request, pk)
    if event is None:
        return redirect("tournaments:events-browser")
    destination = _safe_next(request, reverse("tournaments:coach-event", kwargs={"pk": event.pk}))
    form = forms.EntryForm(request.POST, event=event, coach=request.user)
    if not form.is_valid():
        for errors in form.errors.values():
            for error in errors:
                messages.error(request, error)
        return redirect(destination)
    try:
        entry, created = services.upsert_entry(
            request.user,
            event,
            form.cleaned_data["student"],
            category=form.cleaned_data["category"],
            event_day=form.cleaned_data["event_day"],
            participation_type=form.cleaned_data["participation_type"],
        )
    except DatabaseError:
        logger.exception("Failed to save entry for event %s", event.pk)
        messages.error(request, "Failed to save entry")
    else:
        verb = "Added" if created else "Updated"
        messages.success(request, f"{verb} entry for {entry.student.name}.")
    return redirect(destination)


def _submission_messages(request: HttpRequest, summary: services.SubmissionSummary) -> None:
    if summary.submitted:
        messages.success(request, f"Submitted {summary.submitted} of your entries.")
    if summary.skipped:
        messages.warning(
            request,
            f"Skipped {summary.skipped} with missing student details (weight, rank, DOB or gender).",
        )
    if not summary.submitted and not summary.skipped:
        messages.info(request, "No draft entries to submit.")


@coach_required
@require_POST
def coach_event_submit(request: HttpRequest, pk: int) -> HttpResponse:
    event = _approved_event(request, pk)
    if event is None:
        return redirect("tournaments:events-browser")
    _submission_messages(request, services.submit_event_entries(request.user, event))
    return redirect("tournaments:coach-event", pk=event.pk)


@coach_required
@require_POST
def coach_entries_submit(request: HttpRequest) -> HttpResponse:
    destination = _safe_next(request, reverse("tournaments:coach-entries"))
    form = forms.BulkEntryForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Invalid selection.")
        return redirect(destination)
    _submission_messages(request, services.bulk_submit_entries(request.user, form.cleaned_data["entry_ids"]))
    return redirect(destination)


@coach_required
@require_POST
def coach_entries_delete(request: HttpRequest) -> HttpResponse:
    destination = _safe_next(request, reverse("tournaments:coach-entries"))
    form = forms.BulkEntryForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Invalid selection.")
        return redirect(destination)
    deleted = services.bulk_delete_entries(request.user, form.cleaned_data["entry_ids"])
    messages.success(request, f"Deleted {_plural(deleted, 'entry', 'entries')}.")
    return redirect(destination)


@coach_required
@require_POST
def coach_entry_delete(request: HttpRequest, pk: int) -> HttpResponse:
    destination = _safe_next(request, reverse("tournaments:coach-entries"))
    if services.delete_entry(request.user, pk):
        messages.success(request, "Entry removed.")
    else:
        messages.error(request, "Entry not found.")
    return redirect(destination)
