import unittest
from datetime import date, timedelta

from monitoreo.timeline.calendar_window import (
    GRID_DAYS,
    build_month_grid,
    bucket_by_day,
    in_window,
    shift_month,
    window_bounds,
)
from monitoreo.timeline.dates import get_timezone

LIMA = get_timezone("America/Lima")


class TestBuildMonthGrid(unittest.TestCase):

    def test_grid_has_42_days_starting_on_monday(self):
        for year in (2023, 2024, 2025, 2100):
            for month in range(1, 13):
                with self.subTest(year=year, month=month):
                    grid = build_month_grid(date(year, month, 17))
                    self.assertEqual(len(grid), GRID_DAYS)
                    self.assertEqual(grid[0].weekday(), 0)
                    for previous, current in zip(grid, grid[1:]):
                        self.assertEqual(current - previous, timedelta(days=1))

    def test_grid_covers_every_day_of_the_month_once(self):
        for anchor in (date(2024, 2, 1), date(2023, 2, 28), date(2024, 9, 30), date(2026, 3, 1)):
            with self.subTest(anchor=anchor):
                grid = build_month_grid(anchor)
                month_days = [day for day in grid if day.month == anchor.month and day.year == anchor.year]
                next_month = date(anchor.year + anchor.month // 12, anchor.month % 12 + 1, 1)
                expected_length = (next_month - anchor.replace(day=1)).days
                self.assertEqual(len(month_days), expected_length)
                self.assertEqual(len(set(month_days)), expected_length)

    def test_leap_february(self):
        grid = build_month_grid(date(2024, 2, 15))
        self.assertEqual(grid[0], date(2024, 1, 29))
        self.assertEqual(grid[-1], date(2024, 3, 10))

    def test_month_starting_on_monday_has_no_leading_padding(self):
        grid = build_month_grid(date(2024, 4, 20))
        self.assertEqual(grid[0], date(2024, 4, 1))

    def test_only_month_and_year_matter(self):
        self.assertEqual(build_month_grid(date(2024, 7, 1)), build_month_grid(date(2024, 7, 31)))


class TestShiftMonth(unittest.TestCase):

    def test_shift_across_years(self):
        self.assertEqual(shift_month(date(2024, 12, 15), 1), date(2025, 1, 1))
        self.assertEqual(shift_month(date(2024, 1, 31), -1), date(2023, 12, 1))
        self.assertEqual(shift_month(date(2024, 5, 5), 0), date(2024, 5, 1))
        self.assertEqual(shift_month(date(2024, 3, 31), -1), date(2024, 2, 1))


class TestBucketByDay(unittest.TestCase):

    def setUp(self):
        self.days = [date(2024, 3, 1) + timedelta(days=offset) for offset in range(7)]

    def test_range_is_inclusive_on_both_ends(self):
        item = {"id": "rango", "start_at": "2024-03-02T15:00:00", "end_at": "2024-03-04T08:00:00"}
        buckets = bucket_by_day([item], self.days, LIMA)
        self.assertEqual(buckets[date(2024, 3, 1)], [])
        self.assertEqual(buckets[date(2024, 3, 2)], [item])
        self.assertEqual(buckets[date(2024, 3, 3)], [item])
        self.assertEqual(buckets[date(2024, 3, 4)], [item])
        self.assertEqual(buckets[date(2024, 3, 5)], [])

    def test_single_date_is_one_day(self):
        only_start = {"id": "inicio", "start_at": "2024-03-03T10:00:00"}
        only_end = {"id": "fin", "end_at": "2024-03-06T10:00:00"}
        buckets = bucket_by_day([only_start, only_end], self.days, LIMA)
        self.assertEqual([day for day, items in buckets.items() if only_start in items], [date(2024, 3, 3)])
        self.assertEqual([day for day, items in buckets.items() if only_end in items], [date(2024, 3, 6)])

    def test_items_without_valid_dates_are_excluded(self):
        items = [{"id": "sin-fechas"}, {"id": "rota", "start_at": "mañana"}]
        buckets = bucket_by_day(items, self.days, LIMA)
        self.assertTrue(all(bucket == [] for bucket in buckets.values()))
        self.assertEqual(set(buckets), set(self.days))

    def test_one_invalid_date_excludes_the_item(self):
        items = [
            {"id": "inicio-roto", "start_at": "mañana", "end_at": "2024-03-05T10:00"},
            {"id": "fin-roto", "start_at": "2024-03-02", "end_at": "pronto"},
            {"id": "plantilla-rota", "availability": {"startAt": "2024-03-03", "endAt": "x"}},
        ]
        buckets = bucket_by_day(items, self.days, LIMA)
        self.assertTrue(all(bucket == [] for bucket in buckets.values()))

    def test_template_availability_dates_are_used(self):
        template = {"id": "plantilla", "availability": {"startAt": "2024-03-05", "endAt": "2024-03-06"}}
        buckets = bucket_by_day([template], self.days, LIMA)
        self.assertEqual(buckets[date(2024, 3, 5)], [template])
        self.assertEqual(buckets[date(2024, 3, 6)], [template])
        self.assertEqual(buckets[date(2024, 3, 7)], [])

    def test_utc_instants_are_bucketed_by_local_day(self):
        # 03:00 UTC del 3 de marzo sigue siendo 2 de marzo en Lima
        item = {"id": "utc", "start_at": "2024-03-03T03:00:00Z"}
        buckets = bucket_by_day([item], self.days, LIMA)
        self.assertEqual(buckets[date(2024, 3, 2)], [item])
        self.assertEqual(buckets[date(2024, 3, 3)], [])

    def test_repeated_calls_give_equal_results(self):
        items = [
            {"id": "a", "start_at": "2024-03-01", "end_at": "2024-03-03"},
            {"id": "b", "end_at": "2024-03-07"},
        ]
        first = bucket_by_day(items, self.days, LIMA)
        second = bucket_by_day(items, self.days, LIMA)
        self.assertEqual(first, second)
        self.assertIsNot(first, second)


class TestInWindow(unittest.TestCase):

    def setUp(self):
        self.today = date(2024, 3, 10)

    def day(self, offset):
        return (self.today + timedelta(days=offset)).isoformat()

    def test_item_spanning_the_whole_week_is_inside(self):
        item = {"start_at": self.day(0), "end_at": self.day(6) + "T23:00:00"}
        self.assertTrue(in_window(item, self.today, 7, LIMA))

    def test_item_after_the_week_is_outside(self):
        item = {"start_at": self.day(7), "end_at": self.day(10)}
        self.assertFalse(in_window(item, self.today, 7, LIMA))

    def test_item_that_ended_yesterday_is_outside(self):
        item = {"start_at": self.day(-5), "end_at": self.day(-1) + "T23:59:00"}
        self.assertFalse(in_window(item, self.today, 7, LIMA))

    def test_long_item_covering_the_window_is_inside(self):
        item = {"start_at": self.day(-30), "end_at": self.day(30)}
        self.assertTrue(in_window(item, self.today, 7, LIMA))

    def test_single_instant_and_missing_dates(self):
        self.assertTrue(in_window({"end_at": self.day(6) + "T12:00:00"}, self.today, 7, LIMA))
        self.assertFalse(in_window({}, self.today, 7, LIMA))
        self.assertFalse(in_window({"start_at": "nunca"}, self.today, 7, LIMA))

    def test_one_invalid_date_is_outside(self):
        self.assertFalse(in_window({"start_at": "mañana", "end_at": self.day(2) + "T10:00"}, self.today, 7, LIMA))
        self.assertFalse(in_window({"start_at": self.day(1), "end_at": "pronto"}, self.today, 7, LIMA))

    def test_window_bounds(self):
        start, end = window_bounds(self.today, 7, LIMA)
        self.assertEqual(start.date(), self.today)
        self.assertEqual(end.date(), date(2024, 3, 16))
        self.assertEqual((start.hour, start.minute), (0, 0))
        self.assertEqual((end.hour, end.minute), (23, 59))


if __name__ == '__main__':
    unittest.main()
