"""URL configuration for the tournaments app."""
from django.urls import path

from . import views

app_name = "tournaments"

urlpatterns = [
    path("dashboard/", views.dashboard, name="dashboard"),
    # Organizer
    path("events/", views.event_list, name="event-list"),
    path("events/new/", views.event_create, name="event-create"),
    path("events/<int:pk>/", views.event_detail, name="event-detail"),
    path("events/<int:pk>/delete/", views.event_delete, name="event-delete"),
    path("events/<int:pk>/categories/", views.event_categories, name="event-categories"),
    path(
        "events/<int:pk>/categories/<int:category_pk>/edit/",
        views.category_update,
        name="category-update",
    ),
    path(
        "events/<int:pk>/categories/<int:category_pk>/delete/",
        views.category_delete,
        name="category-delete",
    ),
    path("events/<int:pk>/approvals/", views.event_applications, name="event-applications"),
    path("events/<int:pk>/entries/", views.event_entries, name="event-entries"),
    path("events/<int:pk>/entries/status/", views.entries_bulk_status, name="entries-bulk-status"),
    path("events/<int:pk>/entries/export/", views.entries_export, name="entries-export"),
    path("entries/<int:pk>/status/", views.entry_status, name="entry-status"),
    path("approvals/", views.approvals, name="approvals"),
    path("applications/<int:pk>/status/", views.application_status, name="application-status"),
    # Coach
    path("browse/", views.events_browser, name="events-browser"),
    path("browse/<int:pk>/apply/", views.event_apply, name="event-apply"),
    path("dojos/", views.dojo_list, name="dojo-list"),
    path("dojos/<int:pk>/edit/", views.dojo_update, name="dojo-update"),
    path("dojos/<int:pk>/delete/", views.dojo_delete, name="dojo-delete"),
    path("students/", views.student_list, name="student-list"),
    path("students/import/", views.student_import, name="student-import"),
    path("students/import/review/", views.student_import_review, name="student-import-review"),
    path("students/import/template/", views.student_import_template, name="student-import-template"),
    path("students/<int:pk>/edit/", views.student_update, name="student-update"),
    path("students/<int:pk>/delete/", views.student_delete, name="student-delete"),
    path("my-entries/", views.coach_entries, name="coach-entries"),
    path("my-entries/submit/", views.coach_entries_submit, name="coach-entries-submit"),
    path("my-entries/delete/", views.coach_entries_delete, name="coach-entries-delete"),
    path("my-entries/<int:pk>/delete/", views.coach_entry_delete, name="coach-entry-delete"),
    path("my-entries/events/<int:pk>/", views.coach_event, name="coach-event"),
    path("my-entries/events/<int:pk>/register/", views.coach_event_register, name="coach-event-register"),
    path("my-entries/events/<int:pk>/entry/", views.coach_entry_save, name="coach-entry-save"),
    path("my-entries/events/<int:pk>/submit/", views.coach_event_submit, name="coach-event-submit"),
]
