"""Serializers for the EntryDesk REST endpoints."""

from __future__ import annotations

from rest_framework import serializers

from . import services
from .models import Entry, Student


class StudentSerializer(serializers.ModelSerializer):
    dojo_name = serializers.CharField(source="dojo.name", read_only=True)
    missing_fields = serializers.SerializerMethodField()

    class Meta:
        model = Student
        fields = [
            "id",
            "name",
            "dojo",
            "dojo_name",
            "gender",
            "rank",
            "weight",
            "date_of_birth",
            "missing_fields",
            "created_at",
        ]

    def get_missing_fields(self, obj: Student) -> list[str]:
        return services.missing_student_fields(obj)


class EntrySerializer(serializers.ModelSerializer):
    event_title = serializers.CharField(source="event.title", read_only=True)
    student_name = serializers.CharField(source="student.name", read_only=True)
    dojo_name = serializers.CharField(source="student.dojo.name", read_only=True)
    category_name = serializers.CharField(source="category.name", read_only=True, default="")
    day_name = serializers.CharField(source="event_day.name", read_only=True, default="")
    missing_fields = serializers.SerializerMethodField()

    class Meta:
        model = Entry
        fields = [
            "id",
            "event",
            "event_title",
            "student",
            "student_name",
            "dojo_name",
            "category",
            "category_name",
            "event_day",
            "day_name",
            "participation_type",
            "status",
            "missing_fields",
            "created_at",
            "updated_at",
        ]

    def get_missing_fields(self, obj: Entry) -> list[str]:
        return services.missing_student_fields(obj.student)


class EventEntrySerializer(EntrySerializer):
    coach_name = serializers.SerializerMethodField()

    class Meta(EntrySerializer.Meta):
        fields = EntrySerializer.Meta.fields + ["coach", "coach_name"]

    def get_coach_name(self, obj: Entry) -> str:
        return services.coach_label(obj.coach)


class EntryIdsSerializer(serializers.Serializer):
    entry_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=True)


class BulkStatusSerializer(EntryIdsSerializer):
    status = serializers.ChoiceField(choices=list(services.REVIEW_STATUSES))
