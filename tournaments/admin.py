"""Admin registrations for the tournaments application."""
from django.contrib import admin

from . import models


@admin.register(models.Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ("full_name", "email", "role", "created_at")
    list_filter = ("role",)
    search_fields = ("full_name", "email", "user__username")


class EventDayInline(admin.TabularInline):
    model = models.EventDay
    extra = 0


class CategoryInline(admin.TabularInline):
    model = models.Category
    extra = 0


@admin.register(models.Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("title", "event_type", "organizer", "start_date", "end_date", "is_public")
    list_filter = ("event_type", "is_public", "start_date")
    search_fields = ("title", "location", "organizer__email")
    inlines = [EventDayInline, CategoryInline]


@admin.register(models.EventApplication)
class EventApplicationAdmin(admin.ModelAdmin):
    list_display = ("event", "coach", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("event__title", "coach__email")


@admin.register(models.Dojo)
class DojoAdmin(admin.ModelAdmin):
    list_display = ("name", "coach", "created_at")
    search_fields = ("name", "coach__email")


@admin.register(models.Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ("name", "dojo", "gender", "rank", "weight", "date_of_birth")
    list_filter = ("gender", "dojo")
    search_fields = ("name", "rank")


@admin.register(models.Entry)
class EntryAdmin(admin.ModelAdmin):
    list_display = ("student", "event", "category", "event_day", "participation_type", "status", "updated_at")
    list_filter = ("status", "participation_type", "event")
    search_fields = ("student__name", "event__title")
    list_select_related = ("student", "event", "category", "event_day")
