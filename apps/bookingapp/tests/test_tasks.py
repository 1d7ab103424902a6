# apps/bookingapp/tests/test_tasks.py
from unittest.mock import Mock, patch

from django.core.cache import cache
from django.test import SimpleTestCase

from apps.bookingapp.tasks import fire_due_reminders, restore_reminders
from utils.distributed_locks import distributed_lock


class ReminderTasksTest(SimpleTestCase):
    def setUp(self):
        cache.clear()
        self.engine = Mock()
        patcher = patch("apps.bookingapp.tasks.get_booking_engine", return_value=self.engine)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_fire_due_reminders(self):
        self.engine.fire_due_reminders.return_value = [Mock(), Mock()]

        self.assertEqual(fire_due_reminders(), "Processed 2 reminders")
        self.engine.fire_due_reminders.assert_called_once()

    def test_fire_due_reminders_skips_when_another_worker_runs(self):
        with distributed_lock("reminders:fire_due", timeout=0.1):
            self.assertIsNone(fire_due_reminders())

        self.engine.fire_due_reminders.assert_not_called()

    def test_restore_reminders(self):
        self.engine.reminders.restore.return_value = 4

        self.assertEqual(restore_reminders(), "Restored 4 reminders")
