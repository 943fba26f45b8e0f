from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from . import access, services
from .models import Entry, Profile
from .serializers import (
    BulkStatusSerializer,
    EntryIdsSerializer,
    EntrySerializer,
    EventEntrySerializer,
    StudentSerializer,
)


class HasRole(permissions.BasePermission):
    """Allow authenticated users whose profile carries one of ``roles``."""

    roles: tuple[str, ...] = ()
    message = "Your role cannot use this endpoint."

    def has_permission(self, request, view) -> bool:
        if not request.user or not request.user.is_authenticated:
            return False
        try:
            profile = access.get_user_profile(request.user)
        except ValueError:
            return False
        return profile.role in self.roles


class IsCoach(HasRole):
    roles = (Profile.Role.COACH,)


class IsOrganizer(HasRole):
    roles = (Profile.Role.ORGANIZER, Profile.Role.ADMIN)


class StudentViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = StudentSerializer
    permission_classes = [permissions.IsAuthenticated, IsCoach]

    def get_queryset(self):
        query = (self.request.query_params.get("q") or "").strip() or None
        return services.student_roster(self.request.user, query)


class EntryViewSet(viewsets.ReadOnlyModelViewSet):
    """The coach's own entries, with bulk submit and delete actions."""

    serializer_class = EntrySerializer
    permission_classes = [permissions.IsAuthenticated, IsCoach]

    def get_queryset(self):
        entries = Entry.objects.filter(coach=self.request.user).select_related(
            "event", "student", "student__dojo", "category", "event_day"
        )
        event = self.request.query_params.get("event")
        if event and event.isdigit():
            entries = entries.filter(event_id=event)
        filters = services.EntryFilters.from_params(self.request.query_params)
        return services.filter_entries(entries, filters).order_by("-created_at", "pk")

    @action(detail=False, methods=["post"], url_path="bulk-submit")
    def bulk_submit(self, request):
        serializer = EntryIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        summary = services.bulk_submit_entries(request.user, serializer.validated_data["entry_ids"])
        return Response({"submitted": summary.submitted, "skipped": summary.skipped})

    @action(detail=False, methods=["post"], url_path="bulk-delete")
    def bulk_delete(self, request):
        serializer = EntryIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        deleted = services.bulk_delete_entries(request.user, serializer.validated_data["entry_ids"])
        return Response({"deleted": deleted})


class EventEntryViewSet(viewsets.ReadOnlyModelViewSet):
    """Entries across the events the organizer manages."""

    serializer_class = EventEntrySerializer
    permission_classes = [permissions.IsAuthenticated, IsOrganizer]

    def get_queryset(self):
        entries = Entry.objects.filter(event__in=access.manageable_events(self.request.user)).select_related(
            "event", "student", "student__dojo", "category", "event_day", "coach", "coach__profile"
        )
        event = self.request.query_params.get("event")
        if event and event.isdigit():
            entries = entries.filter(event_id=event)
        filters = services.EntryFilters.from_params(self.request.query_params)
        return services.filter_entries(entries, filters).order_by("-created_at", "pk")

    @action(detail=False, methods=["post"], url_path="bulk-status")
    def bulk_status(self, request):
        serializer = BulkStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = services.bulk_update_entry_status(
            request.user,
            serializer.validated_data["entry_ids"],
            serializer.validated_data["status"],
        )
        return Response({"updated": updated}, status=status.HTTP_200_OK)
