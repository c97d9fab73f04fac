"""In-memory repository used when persistent storage is not wanted (tests, demos)."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any, Sequence
import threading
from uuid import uuid4

from .models import CarSnapshot, ReservationRecord, ReservationStatus, ServiceTicketRecord, UserRecord


class InMemoryMaintenanceRepository:
    """Keeps reservations, tickets, operators and cars in process memory."""

    def __init__(self) -> None:
        self.reservations: dict[str, ReservationRecord] = {}
        self.tickets: dict[str, ServiceTicketRecord] = {}
        self.users: dict[str, UserRecord] = {}
        self.cars: dict[str, CarSnapshot] = {}
        self._lock = threading.Lock()

    def get_all(self) -> list[ReservationRecord]:
        return list(self.reservations.values())

    def get_by_email(self, email: str) -> list[ReservationRecord]:
        return [record for record in self.reservations.values() if record.user_email == email]

    def get_by_plate(self, plate: str) -> list[ReservationRecord]:
        return [record for record in self.reservations.values() if record.plate == plate]

    def get_by_id(self, reservation_id: str) -> ReservationRecord | None:
        return self.reservations.get(reservation_id)

    def create(self, record: ReservationRecord) -> str | None:
        stored = replace(record, reservation_id=record.reservation_id or uuid4().hex)
        with self._lock:
            self.reservations[stored.reservation_id] = stored
        return stored.reservation_id

    def update_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        expected_status: ReservationStatus | None = None,
        **fields: Any,
    ) -> int:
        with self._lock:
            current = self.reservations.get(reservation_id)
            if current is None:
                return 0
            if expected_status is not None and current.status != expected_status:
                return 0
            updated = replace(current, status=status, **fields)
            if updated == current:
                return 0
            self.reservations[reservation_id] = updated
        return 1

    def save_service_ticket(self, record: ServiceTicketRecord) -> str | None:
        stored = replace(record, ticket_id=record.ticket_id or uuid4().hex)
        with self._lock:
            self.tickets[stored.ticket_id] = stored
        return stored.ticket_id

    def get_service_ticket(self, plate: str, reservation_id: str) -> ServiceTicketRecord | None:
        for record in self.tickets.values():
            if record.plate == plate and record.reservation_id == reservation_id:
                return record
        return None

    def get_service_ticket_by_id(self, ticket_id: str) -> ServiceTicketRecord | None:
        return self.tickets.get(ticket_id)

    def update_service_ticket(
        self,
        ticket_id: str,
        tasks: Sequence[str],
        end_date: datetime,
        user_email: str | None = None,
    ) -> int:
        with self._lock:
            current = self.tickets.get(ticket_id)
            if current is None:
                return 0
            self.tickets[ticket_id] = replace(
                current,
                tasks=tuple(tasks),
                end_date=end_date,
                user_email=user_email if user_email is not None else current.user_email,
            )
        return 1

    def get_user_by_email(self, email: str) -> UserRecord | None:
        return self.users.get(email)

    def add_user(self, user: UserRecord) -> UserRecord:
        self.users[user.email] = user
        return user

    def get_all_cars(self) -> list[CarSnapshot]:
        return list(self.cars.values())

    def add_car(self, car: CarSnapshot) -> CarSnapshot:
        self.cars[car.plate] = car
        return car
