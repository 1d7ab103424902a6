# apps/bookingapp/tests/test_collaborators.py
from datetime import time, timedelta
from unittest.mock import Mock

from django.core import mail
from django.test import SimpleTestCase, override_settings

from algorithms.availability.time_range import TimeOfDayRange
from apps.bookingapp.services.collaborators import (
    DisabledCalendarSync,
    EmailNotificationDispatcher,
    LoggingChannelBackend,
    SettingsAvailabilityRuleProvider,
    StaticAvailabilityRuleProvider,
    load_collaborator,
    parse_business_hours,
)
from core.exceptions import ExternalServiceException

from .helpers import DAY, UTC, at, confirmed, weekday_rule


class EmailNotificationDispatcherTest(SimpleTestCase):
    """Test cases for channel dispatch"""

    def setUp(self):
        self.dispatcher = EmailNotificationDispatcher(from_email="bookings@example.com")

    def test_email_goes_through_django_mail(self):
        sent = self.dispatcher.dispatch(
            "email",
            {
                "subject": "Appointment confirmed",
                "message": "See you soon",
                "recipients": ["alice@example.com", "bob"],
            },
        )

        self.assertEqual(sent, 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["alice@example.com"])
        self.assertEqual(mail.outbox[0].from_email, "bookings@example.com")
        self.assertEqual(mail.outbox[0].subject, "Appointment confirmed")

    def test_email_without_addresses_is_skipped(self):
        self.assertEqual(self.dispatcher.dispatch("email", {"recipients": ["bob"]}), 0)
        self.assertEqual(len(mail.outbox), 0)

    def test_default_channels(self):
        self.assertEqual(self.dispatcher.channels, ["email", "push", "sms"])
        self.assertTrue(self.dispatcher.dispatch("sms", {"message": "Hi", "recipients": ["+1"]}))

    def test_unknown_channel(self):
        with self.assertRaises(ExternalServiceException) as ctx:
            self.dispatcher.dispatch("fax", {})
        self.assertEqual(ctx.exception.collaborator, "notifications")

    def test_registered_backend(self):
        backend = Mock()
        self.dispatcher.register_channel("sms", backend)

        self.dispatcher.dispatch("sms", {"message": "Hi"})

        backend.send.assert_called_once_with({"message": "Hi"})

    @override_settings(
        SCHEDULING={
            "CHANNEL_BACKENDS": {
                "whatsapp": "apps.bookingapp.services.collaborators.LoggingChannelBackend"
            }
        }
    )
    def test_backends_from_settings(self):
        dispatcher = EmailNotificationDispatcher()

        self.assertEqual(dispatcher.channels, ["email", "whatsapp"])
        self.assertIsInstance(dispatcher._backends["whatsapp"], LoggingChannelBackend)


class AvailabilityRuleProviderTest(SimpleTestCase):
    def test_parse_business_hours(self):
        hours = parse_business_hours({"0": ("08:00", "12:00"), 6: None})

        self.assertEqual(hours[0], TimeOfDayRange(time(8), time(12)))
        self.assertIsNone(hours[6])

    def test_settings_provider(self):
        provider = SettingsAvailabilityRuleProvider(
            config={
                "BUSINESS_HOURS": {0: ("08:00", "12:00")},
                "BLOCKED_INTERVALS": [
                    {"start": "2030-01-07T10:00", "end": "2030-01-07T11:00", "reason": "Training"},
                    {
                        "start": "2030-01-07T11:00",
                        "end": "2030-01-07T12:00",
                        "owner_id": "owner-2",
                    },
                ],
            },
            tzinfo=UTC,
        )

        rule = provider.get_rule("owner-1", DAY)

        self.assertEqual(rule.window_for(DAY).start, at(8))
        self.assertIsNone(rule.window_for(DAY + timedelta(days=1)))
        self.assertEqual(len(rule.blocked), 1)
        self.assertEqual(rule.blocked[0].interval.start, at(10))
        self.assertEqual(rule.blocked[0].reason, "Training")

        self.assertEqual(len(provider.get_rule("owner-2", DAY).blocked), 2)

    def test_static_provider_overrides(self):
        special = weekday_rule()
        provider = StaticAvailabilityRuleProvider(weekday_rule(), overrides={"owner-2": special})

        self.assertIs(provider.get_rule("owner-2", DAY), special)
        self.assertIsNot(provider.get_rule("owner-1", DAY), special)


class CollaboratorLoadingTest(SimpleTestCase):
    def test_load_from_dotted_path(self):
        calendar = load_collaborator("apps.bookingapp.services.collaborators.DisabledCalendarSync")

        self.assertIsInstance(calendar, DisabledCalendarSync)
        self.assertTrue(calendar.push(confirmed((10, 0), (11, 0))).success)

    def test_load_from_callable(self):
        backend = load_collaborator(LoggingChannelBackend, "push")
        self.assertEqual(backend.channel, "push")
