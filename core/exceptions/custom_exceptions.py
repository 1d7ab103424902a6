"""
Custom exceptions for the SlotKeeper scheduling engine.

This module defines the hierarchy of exceptions raised by the booking engine
so hosts (HTTP handlers, queue consumers) can map them to consistent responses.
"""

from django.utils.translation import gettext_lazy as _
from rest_framework import status


class APIException(Exception):
    """Base exception for all engine exceptions."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = _("An unexpected error occurred.")

    def __init__(self, message=None, status_code=None, errors=None):
        self.message = message or self.default_message
        if status_code:
            self.status_code = status_code
        self.errors = errors
        super().__init__(self.message)

    def to_dict(self):
        """Convert exception to dictionary representation."""
        error_dict = {
            "message": str(self.message),
            "status_code": self.status_code,
            "code": self.__class__.__name__,
        }

        if self.errors:
            error_dict["errors"] = self.errors

        return error_dict


class ResourceNotFoundException(APIException):
    """Exception raised when a requested appointment is not found."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = _("The requested resource was not found.")


class ValidationException(APIException):
    """
    Exception raised for malformed booking input.

    Always raised before any state is mutated. ``reason`` is a stable code
    (``invalid_interval``, ``past_start``, ``duration_out_of_bounds``,
    ``multi_day_span``, ``outside_business_hours``).
    """

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = _("Validation failed.")

    def __init__(self, message=None, reason="invalid", errors=None):
        self.reason = reason
        super().__init__(message=message, errors=errors)

    def to_dict(self):
        error_dict = super().to_dict()
        error_dict["reason"] = self.reason
        return error_dict


class ServiceUnavailableException(APIException):
    """Exception raised when the commit lock for a contention domain can't be taken."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = _("The service is currently unavailable.")


class InvalidOperationException(APIException):
    """Exception raised when an operation is invalid in the current state."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = _("This operation is not valid in the current state.")


class NoAvailabilityException(APIException):
    """Exception raised when the requested slot is occupied or blocked."""

    status_code = status.HTTP_409_CONFLICT
    default_message = _("No availability found for the requested time period.")

    def __init__(self, message=None, reason=None, alternatives=None, errors=None):
        self.reason = reason
        self.alternatives = list(alternatives or [])
        super().__init__(message=message, errors=errors)

    def to_dict(self):
        error_dict = super().to_dict()
        error_dict["reason"] = self.reason
        error_dict["alternatives"] = [
            alternative.to_dict() for alternative in self.alternatives
        ]
        return error_dict


class SchedulingConflictException(APIException):
    """Exception raised when detected conflicts can't all be cleared."""

    status_code = status.HTTP_409_CONFLICT
    default_message = _("A scheduling conflict was detected.")

    def __init__(self, message=None, conflicts=None, alternatives=None, errors=None):
        self.conflicts = list(conflicts or [])
        self.alternatives = list(alternatives or [])
        super().__init__(message=message, errors=errors)

    def to_dict(self):
        error_dict = super().to_dict()
        error_dict["conflicts"] = [conflict.to_dict() for conflict in self.conflicts]
        error_dict["alternatives"] = [
            alternative.to_dict() for alternative in self.alternatives
        ]
        return error_dict


class ExternalServiceException(APIException):
    """Exception raised when an external collaborator fails or times out."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = _("Error occurred with an external service.")

    def __init__(self, message=None, collaborator=None, errors=None):
        self.collaborator = collaborator
        super().__init__(message=message, errors=errors)
