# apps/bookingapp/conf.py
"""
Scheduling configuration.

Everything is read from the ``SCHEDULING`` dict in Django settings and merged
over the defaults below, so a project only overrides what it needs.
"""

from django.conf import settings

DEFAULTS = {
    "MIN_DURATION_MINUTES": 15,
    "MAX_DURATION_MINUTES": 480,
    "SLOT_GRANULARITY_MINUTES": 15,
    "RESCHEDULE_SEARCH_DAYS": 14,
    "ALTERNATIVE_SEARCH_DAYS": 7,
    "MAX_ALTERNATIVES": 5,
    # Python weekday -> ("HH:MM", "HH:MM") or None when closed
    "BUSINESS_HOURS": {
        0: ("09:00", "17:00"),
        1: ("09:00", "17:00"),
        2: ("09:00", "17:00"),
        3: ("09:00", "17:00"),
        4: ("09:00", "17:00"),
        5: None,
        6: None,
    },
    # [{"start": iso, "end": iso, "reason": str, "owner_id": optional}]
    "BLOCKED_INTERVALS": [],
    # {"rooms": ["room-a", "room-b"]}
    "RESOURCE_POOLS": {},
    "DEFAULT_REMINDERS": [
        {"channel": "email", "timing": "24_hours_before"},
        {"channel": "sms", "timing": "2_hours_before"},
        {"channel": "push", "timing": "15_minutes_before"},
    ],
    "LOCK_TIMEOUT_SECONDS": 10,
    "LOCK_EXPIRES_SECONDS": 60,
    "COLLABORATOR_TIMEOUT_SECONDS": 5,
    "STORE_BACKEND": "apps.bookingapp.services.store.DjangoAppointmentStore",
    "NOTIFICATION_DISPATCHER": (
        "apps.bookingapp.services.collaborators.EmailNotificationDispatcher"
    ),
    "CALENDAR_SYNC_PROVIDER": "apps.bookingapp.services.collaborators.DisabledCalendarSync",
    "AVAILABILITY_RULE_PROVIDER": (
        "apps.bookingapp.services.collaborators.SettingsAvailabilityRuleProvider"
    ),
}


def get_scheduling_settings():
    """Return the effective scheduling configuration."""
    configured = getattr(settings, "SCHEDULING", {})
    return {**DEFAULTS, **configured}
