import unittest
from datetime import date, datetime, timedelta, timezone

from maintenance_booking import (
    BookingType,
    CarSnapshot,
    ReservationRecord,
    ReservationStatus,
    TimeWindow,
    ValidationError,
    has_conflict,
    has_time_overlap,
    local_day,
    parse_slot_start,
)

UTC = timezone.utc
ZONE = "America/Argentina/Buenos_Aires"


def _record(
    start: datetime,
    status: ReservationStatus = ReservationStatus.RESERVED,
    booking_type: BookingType = BookingType.MAINTENANCE,
) -> ReservationRecord:
    return ReservationRecord(
        reservation_id="r",
        status=status,
        start_time=start,
        end_time=start + timedelta(hours=1),
        car=CarSnapshot(plate="ABC123"),
        user_email="ana@x.com",
        created_at=start - timedelta(days=1),
        updated_at=start - timedelta(days=1),
        booking_type=booking_type,
    )


class TestTimeOverlap(unittest.TestCase):
    def setUp(self) -> None:
        self.exist_start = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
        self.exist_end = datetime(2024, 3, 1, 13, 0, tzinfo=UTC)

    def test_exactly_touching_boundary_passes(self) -> None:
        self.assertFalse(
            has_time_overlap(
                datetime(2024, 3, 1, 13, 0, tzinfo=UTC),
                datetime(2024, 3, 1, 14, 0, tzinfo=UTC),
                self.exist_start,
                self.exist_end,
            )
        )
        self.assertFalse(
            has_time_overlap(
                datetime(2024, 3, 1, 11, 0, tzinfo=UTC),
                datetime(2024, 3, 1, 12, 0, tzinfo=UTC),
                self.exist_start,
                self.exist_end,
            )
        )

    def test_partially_overlapping_fails(self) -> None:
        self.assertTrue(
            has_time_overlap(
                datetime(2024, 3, 1, 12, 30, tzinfo=UTC),
                datetime(2024, 3, 1, 13, 30, tzinfo=UTC),
                self.exist_start,
                self.exist_end,
            )
        )

    def test_overlap_is_symmetric(self) -> None:
        windows = [
            (datetime(2024, 3, 1, 11, 0, tzinfo=UTC), datetime(2024, 3, 1, 12, 0, tzinfo=UTC)),
            (datetime(2024, 3, 1, 11, 30, tzinfo=UTC), datetime(2024, 3, 1, 12, 30, tzinfo=UTC)),
            (datetime(2024, 3, 1, 12, 15, tzinfo=UTC), datetime(2024, 3, 1, 12, 45, tzinfo=UTC)),
            (datetime(2024, 3, 1, 14, 0, tzinfo=UTC), datetime(2024, 3, 1, 15, 0, tzinfo=UTC)),
        ]
        for start, end in windows:
            with self.subTest(start=start, end=end):
                self.assertEqual(
                    has_time_overlap(start, end, self.exist_start, self.exist_end),
                    has_time_overlap(self.exist_start, self.exist_end, start, end),
                )

    def test_window_overlaps_itself(self) -> None:
        window = TimeWindow(self.exist_start, self.exist_end)
        self.assertTrue(window.overlaps(window))

    def test_invalid_range_raises(self) -> None:
        with self.assertRaises(ValueError):
            has_time_overlap(self.exist_end, self.exist_start, self.exist_start, self.exist_end)
        with self.assertRaises(ValueError):
            TimeWindow(self.exist_start, self.exist_start)


class TestSlotParsing(unittest.TestCase):
    def test_parse_converts_local_time_to_utc(self) -> None:
        start = parse_slot_start("2024-03-01", "09:00", ZONE)
        self.assertEqual(start, datetime(2024, 3, 1, 12, 0, tzinfo=UTC))

    def test_parse_accepts_seconds(self) -> None:
        self.assertEqual(parse_slot_start("2024-03-01", "09:00:00", "UTC"), datetime(2024, 3, 1, 9, 0, tzinfo=UTC))

    def test_parse_rejects_garbage(self) -> None:
        with self.assertRaises(ValidationError):
            parse_slot_start("01/03/2024", "9am", ZONE)

    def test_local_day_uses_reference_timezone(self) -> None:
        late_evening_local = datetime(2024, 3, 2, 1, 30, tzinfo=UTC)
        self.assertEqual(local_day(late_evening_local, ZONE), date(2024, 3, 1))


class TestHasConflict(unittest.TestCase):
    def setUp(self) -> None:
        self.start = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
        self.end = self.start + timedelta(hours=1)

    def test_overlapping_reserved_conflicts(self) -> None:
        existing = [_record(self.start + timedelta(minutes=30))]
        self.assertTrue(has_conflict(self.start, self.end, existing, ZONE))

    def test_active_and_complete_conflict(self) -> None:
        for status in (ReservationStatus.ACTIVE, ReservationStatus.COMPLETE):
            with self.subTest(status=status):
                self.assertTrue(has_conflict(self.start, self.end, [_record(self.start, status)], ZONE))

    def test_cancelled_never_conflicts(self) -> None:
        existing = [_record(self.start, ReservationStatus.CANCELLED)]
        self.assertFalse(has_conflict(self.start, self.end, existing, ZONE))

    def test_contiguous_slot_does_not_conflict(self) -> None:
        existing = [_record(self.start - timedelta(hours=1)), _record(self.end)]
        self.assertFalse(has_conflict(self.start, self.end, existing, ZONE))

    def test_other_day_is_ignored_when_same_day_only(self) -> None:
        # 23:30 local on Feb 29 runs into Mar 1 local midnight.
        candidate_start = datetime(2024, 3, 1, 3, 0, tzinfo=UTC)
        existing = [_record(datetime(2024, 3, 1, 2, 30, tzinfo=UTC))]

        self.assertFalse(has_conflict(candidate_start, candidate_start + timedelta(hours=1), existing, ZONE))
        self.assertTrue(
            has_conflict(
                candidate_start,
                candidate_start + timedelta(hours=1),
                existing,
                ZONE,
                same_day_only=False,
            )
        )

    def test_booking_type_filter(self) -> None:
        existing = [_record(self.start)]
        self.assertTrue(has_conflict(self.start, self.end, existing, ZONE, booking_type=BookingType.MAINTENANCE))


if __name__ == "__main__":
    unittest.main()
