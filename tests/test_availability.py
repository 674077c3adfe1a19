import unittest
from datetime import datetime, timedelta, timezone

from monitoreo.timeline.availability import (
    resolve_status,
    event_status,
    template_event_status,
    event_status_to_availability,
)
from monitoreo.timeline.dates import get_timezone
from monitoreo.timeline.models import (
    AvailabilityStatus,
    EventStatus,
    ResolvedEventStatus,
    TimelineStatus,
)

NOW = datetime(2024, 3, 10, 0, 0, tzinfo=timezone.utc)
LIMA = get_timezone("America/Lima")


def iso(value):
    return value.isoformat()


class TestResolveStatus(unittest.TestCase):

    def test_closed_wins_over_any_dates(self):
        cases = [
            {"status": "closed"},
            {"status": "closed", "startAt": "2099-01-01"},
            {"status": "closed", "endAt": "2099-01-01"},
            {"status": "closed", "startAt": "2000-01-01", "endAt": "2099-12-31"},
        ]
        for availability in cases:
            with self.subTest(availability=availability):
                self.assertEqual(resolve_status(availability, NOW), TimelineStatus.CLOSED)

    def test_scheduled_wins_over_any_dates(self):
        cases = [
            {"status": "scheduled"},
            {"status": "scheduled", "startAt": "2000-01-01"},
            {"status": "scheduled", "endAt": "2000-01-02"},
            {"status": "scheduled", "startAt": "2000-01-01", "endAt": "2099-12-31"},
        ]
        for availability in cases:
            with self.subTest(availability=availability):
                self.assertEqual(resolve_status(availability, NOW), TimelineStatus.SCHEDULED)

    def test_future_start_is_scheduled(self):
        availability = {"status": "active", "startAt": iso(NOW + timedelta(days=1))}
        self.assertEqual(resolve_status(availability, NOW), TimelineStatus.SCHEDULED)

    def test_past_end_is_closed(self):
        availability = {"status": "active", "endAt": iso(NOW - timedelta(days=1))}
        self.assertEqual(resolve_status(availability, NOW), TimelineStatus.CLOSED)

    def test_empty_or_missing_availability_is_active(self):
        self.assertEqual(resolve_status({}, NOW), TimelineStatus.ACTIVE)
        self.assertEqual(resolve_status(None, NOW), TimelineStatus.ACTIVE)

    def test_only_future_start_without_status_is_scheduled(self):
        availability = {"startAt": iso(NOW + timedelta(days=3))}
        self.assertEqual(resolve_status(availability, NOW), TimelineStatus.SCHEDULED)

    def test_dates_in_range_without_status_fall_back_to_scheduled(self):
        availability = {
            "startAt": iso(NOW - timedelta(days=1)),
            "endAt": iso(NOW + timedelta(days=1)),
        }
        self.assertEqual(resolve_status(availability, NOW), TimelineStatus.SCHEDULED)

    def test_active_inside_range_is_active(self):
        availability = {
            "status": "active",
            "startAt": iso(NOW - timedelta(days=1)),
            "endAt": iso(NOW + timedelta(days=1)),
        }
        self.assertEqual(resolve_status(availability, NOW), TimelineStatus.ACTIVE)

    def test_unknown_status_is_treated_as_missing(self):
        self.assertEqual(resolve_status({"status": "borrador"}, NOW), TimelineStatus.ACTIVE)
        self.assertEqual(resolve_status({"status": "hidden"}, NOW), TimelineStatus.ACTIVE)

    def test_invalid_dates_are_ignored(self):
        availability = {"status": "active", "startAt": "no es fecha", "endAt": "2024-13-45"}
        self.assertEqual(resolve_status(availability, NOW), TimelineStatus.ACTIVE)
        self.assertEqual(resolve_status({"startAt": "xx"}, NOW), TimelineStatus.ACTIVE)

    def test_example_templates(self):
        templates = {
            "A": ({"status": "active", "startAt": "2024-03-01", "endAt": "2024-03-05"}, "closed"),
            "B": ({"status": "active", "startAt": "2024-03-15"}, "scheduled"),
            "C": ({"status": "active"}, "active"),
            "D": ({"status": "closed", "startAt": "2099-01-01"}, "closed"),
        }
        for name, (availability, expected) in templates.items():
            with self.subTest(template=name):
                self.assertEqual(resolve_status(availability, NOW, LIMA).value, expected)

    def test_accepts_string_now(self):
        availability = {"status": "active", "endAt": "2024-03-05"}
        self.assertEqual(resolve_status(availability, "2024-03-10T00:00:00Z"), TimelineStatus.CLOSED)

    def test_accepts_snake_case_fields(self):
        availability = {"status": "active", "start_at": iso(NOW + timedelta(hours=2))}
        self.assertEqual(resolve_status(availability, NOW), TimelineStatus.SCHEDULED)


class TestEventStatus(unittest.TestCase):

    def test_hidden_and_closed_take_precedence_over_expiry(self):
        past = iso(NOW - timedelta(days=5))
        self.assertEqual(event_status({"status": "hidden", "end_at": past}, NOW), ResolvedEventStatus.HIDDEN)
        self.assertEqual(event_status({"status": "closed", "end_at": past}, NOW), ResolvedEventStatus.CLOSED)

    def test_past_end_is_expired(self):
        event = {"status": "active", "end_at": iso(NOW - timedelta(minutes=1))}
        self.assertEqual(event_status(event, NOW), ResolvedEventStatus.EXPIRED)

    def test_future_or_missing_end_is_active(self):
        self.assertEqual(event_status({"status": "active", "end_at": iso(NOW + timedelta(days=1))}, NOW),
                         ResolvedEventStatus.ACTIVE)
        self.assertEqual(event_status({"status": "active"}, NOW), ResolvedEventStatus.ACTIVE)
        self.assertEqual(event_status({"end_at": "fecha rota"}, NOW), ResolvedEventStatus.ACTIVE)


class TestStatusMapping(unittest.TestCase):

    def test_template_event_status(self):
        self.assertEqual(template_event_status({"status": "closed"}), EventStatus.CLOSED)
        self.assertEqual(template_event_status({"status": "hidden"}), EventStatus.HIDDEN)
        self.assertEqual(template_event_status({"status": "scheduled"}), EventStatus.ACTIVE)
        self.assertEqual(template_event_status(None), EventStatus.ACTIVE)

    def test_event_status_to_availability(self):
        self.assertEqual(event_status_to_availability("closed"), AvailabilityStatus.CLOSED)
        self.assertEqual(event_status_to_availability("hidden"), AvailabilityStatus.HIDDEN)
        self.assertEqual(event_status_to_availability("active"), AvailabilityStatus.ACTIVE)
        self.assertEqual(event_status_to_availability(None), AvailabilityStatus.ACTIVE)


if __name__ == '__main__':
    unittest.main()
