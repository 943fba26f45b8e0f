"""Profile lookup and role gating for EntryDesk views."""
from __future__ import annotations

import logging
from functools import wraps

from django.contrib.auth.views import redirect_to_login
from django.core.exceptions import PermissionDenied
from django.db.models import QuerySet
from django.shortcuts import redirect

from .models import Event, Profile

logger = logging.getLogger(__name__)


def get_user_profile(user) -> Profile:
    """Return the profile for ``user``, creating a coach profile on first use."""

    try:
        return user.profile
    except Profile.DoesNotExist:
        pass

    email = (getattr(user, "email", "") or "").strip()
    if not email:
        raise ValueError("Missing email on user; cannot create profile")

    full_name = (user.get_full_name() or "").strip() or email.split("@")[0] or user.get_username()
    role = Profile.Role.ADMIN if user.is_superuser else Profile.Role.COACH
    profile, created = Profile.objects.get_or_create(
        user=user,
        defaults={"email": email, "full_name": full_name, "role": role},
    )
    if created:
        logger.info("Created %s profile for %s", profile.role, email)
    return profile


def _expand_roles(roles) -> set[str]:
    allowed = set(roles)
    if Profile.Role.ORGANIZER in allowed:
        allowed.add(Profile.Role.ADMIN)
    return allowed


def role_required(*roles: str, redirect_to: str | None = None):
    """Restrict a view to authenticated users holding one of ``roles``.

    Anonymous users are sent to the login page. Users with another role are
    redirected to ``redirect_to`` when given, otherwise refused with a 403.
    Admins pass any organizer gate. The resolved profile is stored on
    ``request.profile``.
    """

    allowed = _expand_roles(roles)

    def decorator(view_func):
        @wraps(view_func)
        def _wrapped_view(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return redirect_to_login(request.get_full_path())
            try:
                profile = get_user_profile(request.user)
            except ValueError:
                logger.warning("User %s has no email; refusing access", request.user.pk)
                raise PermissionDenied("Your account has no email address.")
            if profile.role not in allowed:
                if redirect_to:
                    return redirect(redirect_to)
                raise PermissionDenied("You do not have access to this page.")
            request.profile = profile
            return view_func(request, *args, **kwargs)

        return _wrapped_view

    return decorator


def is_admin(user) -> bool:
    profile = getattr(user, "profile", None)
    return bool(profile and profile.role == Profile.Role.ADMIN)


def manageable_events(user) -> QuerySet[Event]:
    """Events the user may review: every event for admins, otherwise their own."""

    if is_admin(user):
        return Event.objects.all()
    return Event.objects.filter(organizer=user)


def can_manage_event(user, event: Event) -> bool:
    return event.is_owned_by(user) or is_admin(user)
