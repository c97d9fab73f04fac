from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Callable, Iterable, Protocol, Sequence

from .booking import REFERENCE_TIMEZONE, resolve_zone
from .errors import InvalidStateError, NotFoundError, StorageError, ValidationError
from .models import ServiceTicketRecord
from .repository import MaintenanceRepository


class TicketEventKind(str, Enum):
    OPENED = "OPENED"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class TicketEvent:
    kind: TicketEventKind
    ticket: ServiceTicketRecord
    end_fuel: float | None = None

    @property
    def reservation_id(self) -> str:
        return self.ticket.reservation_id


class TicketSubscriber(Protocol):
    def check_ticket_event(self, event: TicketEvent) -> None:
        """Raise a BookingError if the event must not happen."""
        ...

    def apply_ticket_event(self, event: TicketEvent) -> None: ...


class ServiceTicketManager:
    """Opens and closes maintenance tickets against existing reservations.

    Subscribers are asked to check every event before the ticket is written
    and are notified once the write succeeded.
    """

    def __init__(
        self,
        repository: MaintenanceRepository,
        now_provider: Callable[[], datetime] | None = None,
        zone: str | tzinfo = REFERENCE_TIMEZONE,
        subscribers: Iterable[TicketSubscriber] = (),
    ) -> None:
        self.repository = repository
        self.zone = resolve_zone(zone)
        self._clock: Callable[[], datetime] = now_provider or (lambda: datetime.now(timezone.utc))
        self._subscribers: list[TicketSubscriber] = list(subscribers)

    def subscribe(self, subscriber: TicketSubscriber) -> None:
        self._subscribers.append(subscriber)

    def _now(self) -> datetime:
        return self._clock().astimezone(self.zone)

    def _check(self, event: TicketEvent) -> None:
        for subscriber in self._subscribers:
            subscriber.check_ticket_event(event)

    def _publish(self, event: TicketEvent) -> None:
        for subscriber in self._subscribers:
            subscriber.apply_ticket_event(event)

    def open(self, plate: str | None, reservation_id: str | None) -> str:
        plate = (plate or "").strip()
        reservation_id = (reservation_id or "").strip()
        if not plate or not reservation_id:
            raise ValidationError("plate and reservation_id are required.")

        stored = self.repository.get_service_ticket(plate, reservation_id)
        if stored is not None and not stored.is_closed:
            # Retry of an open whose notification failed: subscribers decide if it still applies.
            self._check(TicketEvent(TicketEventKind.OPENED, stored))
            self._publish(TicketEvent(TicketEventKind.OPENED, stored))
            return stored.ticket_id

        ticket = ServiceTicketRecord(
            ticket_id="",
            plate=plate,
            reservation_id=reservation_id,
            start_date=self._now(),
        )
        self._check(TicketEvent(TicketEventKind.OPENED, ticket))

        ticket_id = self.repository.save_service_ticket(ticket)
        if not ticket_id:
            raise StorageError("Could not save the service ticket.")

        self._publish(TicketEvent(TicketEventKind.OPENED, replace(ticket, ticket_id=ticket_id)))
        return ticket_id

    def close(
        self,
        ticket_id: str,
        tasks: Sequence[str] | None,
        user_email: str | None = None,
        end_fuel: float | None = None,
    ) -> ServiceTicketRecord:
        ticket_id = (ticket_id or "").strip()
        if not ticket_id:
            raise ValidationError("ticket_id is required.")

        ticket = self.repository.get_service_ticket_by_id(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Service ticket not found: {ticket_id}")

        cleaned = _clean_tasks(tasks)
        if ticket.is_closed:
            raise InvalidStateError("service ticket already closed")

        end_date = self._now()
        closed = replace(
            ticket,
            tasks=tuple(cleaned),
            end_date=end_date,
            user_email=user_email if user_email is not None else ticket.user_email,
        )
        event = TicketEvent(TicketEventKind.CLOSED, closed, end_fuel=end_fuel)
        self._check(event)

        updated = self.repository.update_service_ticket(ticket_id, cleaned, end_date, user_email=user_email)
        if not updated:
            raise StorageError("Could not close the service ticket.")

        self._publish(event)
        return closed

    def get(self, ticket_id: str) -> ServiceTicketRecord:
        if not ticket_id:
            raise ValidationError("ticket_id is required.")
        ticket = self.repository.get_service_ticket_by_id(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Service ticket not found: {ticket_id}")
        return ticket

    def find(self, plate: str, reservation_id: str) -> ServiceTicketRecord:
        if not plate or not reservation_id:
            raise ValidationError("plate and reservation_id are required.")
        ticket = self.repository.get_service_ticket(plate, reservation_id)
        if ticket is None:
            raise NotFoundError(f"No service ticket for {plate} / {reservation_id}")
        return ticket


def _clean_tasks(tasks: Sequence[str] | None) -> list[str]:
    if tasks is None or isinstance(tasks, str):
        raise ValidationError("tasks must be a non-empty list.")
    cleaned = [str(task).strip() for task in tasks]
    if not cleaned or not all(cleaned):
        raise ValidationError("tasks must be a non-empty list of non-blank items.")
    return cleaned
