"""
SlotKeeper – centralised custom exceptions.

Import these from `core.exceptions` across the project instead of redefining
ad-hoc `Exception` subclasses in each app.
"""

from .custom_exceptions import (
    APIException,
    ExternalServiceException,
    InvalidOperationException,
    NoAvailabilityException,
    ResourceNotFoundException,
    SchedulingConflictException,
    ServiceUnavailableException,
    ValidationException,
)

__all__ = [
    "APIException",
    "ExternalServiceException",
    "InvalidOperationException",
    "NoAvailabilityException",
    "ResourceNotFoundException",
    "SchedulingConflictException",
    "ServiceUnavailableException",
    "ValidationException",
]
