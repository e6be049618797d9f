from django.http import HttpRequest
from ninja_extra import ControllerBase
from ninja_extra.permissions import BasePermission

from events.models import Event, Registration


class RootPermission(BasePermission):
    def has_permission(self, request: HttpRequest, controller: ControllerBase) -> bool:
        """Must implement abstract method. This is due to an error in Ninja Extra.

        This Method will be ignored, only has_object_permission will be called.
        """
        return True


class IsEventOrganizer(RootPermission):
    def has_object_permission(self, request: HttpRequest, controller: ControllerBase, obj: Event) -> bool:
        """The event's organizer and staff may administer its registrations."""
        user = request.user
        return bool(user.is_staff or user.is_superuser or obj.organizer_id == user.id)


class IsRegistrationOwner(RootPermission):
    def has_object_permission(self, request: HttpRequest, controller: ControllerBase, obj: Registration) -> bool:
        """Only the participant may act on their own registration."""
        return bool(obj.participant_id == request.user.id)
