from __future__ import annotations

from contextlib import ExitStack, contextmanager
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, Iterator, Mapping
import threading

from .booking import REFERENCE_TIMEZONE, SLOT_LENGTH, has_conflict, local_day, parse_slot_start, resolve_zone
from .errors import ConflictError, InvalidStateError, NotFoundError, StorageError, ValidationError
from .models import (
    BillingStatus,
    BookingType,
    CarSnapshot,
    ReservationRecord,
    ReservationStatus,
    can_transition,
)
from .repository import MaintenanceRepository, UserDirectory
from .tickets import TicketEvent, TicketEventKind

WORKLIST_STATUSES = frozenset({ReservationStatus.RESERVED, ReservationStatus.ACTIVE})

_CANCEL_GUARDS = {
    ReservationStatus.ACTIVE: "cannot cancel active",
    ReservationStatus.COMPLETE: "cannot cancel completed",
    ReservationStatus.CANCELLED: "already cancelled",
}


class _KeyedLocks:
    """One lock per key, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, ...], list[Any]] = {}

    @contextmanager
    def _held(self, key: tuple[str, ...]) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, *keys: tuple[str, ...]) -> Iterator[None]:
        # Sorted acquisition keeps two requests from locking in opposite order.
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self._held(key))
            yield


class ReservationLifecycleManager:
    """Creates reservations and owns every reservation status change."""

    def __init__(
        self,
        repository: MaintenanceRepository,
        users: UserDirectory,
        now_provider: Callable[[], datetime] | None = None,
        zone: str | tzinfo = REFERENCE_TIMEZONE,
    ) -> None:
        self.repository = repository
        self.users = users
        self.zone = resolve_zone(zone)
        self._clock: Callable[[], datetime] = now_provider or (lambda: datetime.now(timezone.utc))
        self._locks = _KeyedLocks()

    def _now(self) -> datetime:
        return self._clock().astimezone(timezone.utc)

    def create(
        self,
        car: CarSnapshot | Mapping[str, Any] | None,
        operator_email: str | None,
        day: str | None,
        time: str | None,
    ) -> str:
        if not car or not operator_email or not day or not time:
            raise ValidationError("car, operator email, day and time are all required.")

        snapshot = car if isinstance(car, CarSnapshot) else CarSnapshot.from_dict(dict(car))
        if not snapshot.plate:
            raise ValidationError("car must include a plate.")

        operator_email = operator_email.strip()
        if self.users.get_user_by_email(operator_email) is None:
            raise NotFoundError("operator")

        start_time = parse_slot_start(day, time, self.zone)
        end_time = start_time + SLOT_LENGTH
        slot_day = local_day(start_time, self.zone).isoformat()

        with self._locks.hold(("operator", operator_email, slot_day), ("car", snapshot.plate, slot_day)):
            operator_history = self.repository.get_by_email(operator_email)
            if has_conflict(start_time, end_time, operator_history, self.zone, booking_type=BookingType.MAINTENANCE):
                raise ConflictError("operator busy")

            car_history = self.repository.get_by_plate(snapshot.plate)
            if has_conflict(start_time, end_time, car_history, self.zone):
                raise ConflictError("car busy")

            now = self._now()
            record = ReservationRecord(
                reservation_id="",
                status=ReservationStatus.RESERVED,
                start_time=start_time,
                end_time=end_time,
                car=snapshot,
                user_email=operator_email,
                created_at=now,
                updated_at=now,
                billing_status=BillingStatus.ON_HOLD,
                booking_type=BookingType.MAINTENANCE,
                fuel_start=0.0,
                end_fuel=None,
            )
            reservation_id = self.repository.create(record)

        if not reservation_id:
            raise StorageError("Could not create the reservation.")
        return reservation_id

    def cancel(self, reservation_id: str | None) -> bool:
        reservation = self.get(reservation_id)

        message = _CANCEL_GUARDS.get(reservation.status)
        if message is not None:
            raise InvalidStateError(message)
        if self._now() > reservation.start_time:
            raise InvalidStateError("cannot cancel past reservation")

        self._transition(reservation, ReservationStatus.CANCELLED)
        return True

    def activate(self, reservation_id: str | None) -> ReservationRecord:
        reservation = self.get(reservation_id)
        if reservation.status == ReservationStatus.ACTIVE:
            return reservation
        return self._transition(reservation, ReservationStatus.ACTIVE)

    def complete(self, reservation_id: str | None, end_fuel: float | None = None) -> ReservationRecord:
        reservation = self.get(reservation_id)
        fields: dict[str, Any] = {}
        if end_fuel is not None:
            fields["end_fuel"] = float(end_fuel)
        return self._transition(reservation, ReservationStatus.COMPLETE, **fields)

    def _require_transition(self, reservation: ReservationRecord, target: ReservationStatus) -> None:
        if not can_transition(reservation.status, target):
            raise InvalidStateError(
                f"cannot move reservation from {reservation.status.value} to {target.value}"
            )

    def _transition(self, reservation: ReservationRecord, target: ReservationStatus, **fields: Any) -> ReservationRecord:
        self._require_transition(reservation, target)
        now = self._now()
        changed = self.repository.update_status(
            reservation.reservation_id,
            target,
            expected_status=reservation.status,
            updated_at=now,
            **fields,
        )
        if not changed:
            # Another writer may have moved the reservation since it was read.
            current = self.repository.get_by_id(reservation.reservation_id)
            if current is not None and current.status != reservation.status:
                raise InvalidStateError(
                    f"reservation moved to {current.status.value} before it could become {target.value}"
                )
            raise StorageError(f"Could not update reservation {reservation.reservation_id}.")
        updated = self.repository.get_by_id(reservation.reservation_id)
        if updated is None:
            raise StorageError(f"Reservation {reservation.reservation_id} vanished after update.")
        return updated

    # Ticket events

    def check_ticket_event(self, event: TicketEvent) -> None:
        reservation = self.get(event.reservation_id)
        if reservation.plate != event.ticket.plate:
            raise ValidationError("ticket plate does not match the reservation's car.")

        if event.kind == TicketEventKind.OPENED:
            existing = self.repository.get_service_ticket(event.ticket.plate, reservation.reservation_id)
            # A stored ticket may only be replayed when its open never reached the reservation.
            if existing is not None and existing.ticket_id != event.ticket.ticket_id:
                raise InvalidStateError("service ticket already opened for this reservation")
            self._require_transition(reservation, ReservationStatus.ACTIVE)
        elif event.kind == TicketEventKind.CLOSED:
            self._require_transition(reservation, ReservationStatus.COMPLETE)

    def apply_ticket_event(self, event: TicketEvent) -> None:
        if event.kind == TicketEventKind.OPENED:
            self.activate(event.reservation_id)
        elif event.kind == TicketEventKind.CLOSED:
            self.complete(event.reservation_id, end_fuel=event.end_fuel)

    # Queries

    def list_all(self) -> list[ReservationRecord]:
        return self.repository.get_all()

    def list_operator_worklist(self, operator_email: str | None) -> list[ReservationRecord]:
        """Today's maintenance reservations for one operator that still need work."""
        if not operator_email:
            raise ValidationError("operator email is required.")

        today = local_day(self._now(), self.zone)
        worklist = [
            record
            for record in self.repository.get_by_email(operator_email)
            if local_day(record.start_time, self.zone) == today
            and record.booking_type == BookingType.MAINTENANCE
            and record.status in WORKLIST_STATUSES
        ]
        return sorted(worklist, key=lambda record: record.start_time)

    def get(self, reservation_id: str | None) -> ReservationRecord:
        if not reservation_id:
            raise ValidationError("reservation id is required.")
        reservation = self.repository.get_by_id(reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation not found: {reservation_id}")
        return reservation
