"""Storage contracts consumed by the lifecycle and ticket managers."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, Sequence

from .models import CarSnapshot, ReservationRecord, ReservationStatus, ServiceTicketRecord, UserRecord


class MaintenanceRepository(Protocol):
    def get_all(self) -> list[ReservationRecord]: ...

    def get_by_email(self, email: str) -> list[ReservationRecord]: ...

    def get_by_plate(self, plate: str) -> list[ReservationRecord]: ...

    def get_by_id(self, reservation_id: str) -> ReservationRecord | None: ...

    def create(self, record: ReservationRecord) -> str | None:
        """Persist ``record`` and return the identifier it was stored under."""
        ...

    def update_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        expected_status: ReservationStatus | None = None,
        **fields: Any,
    ) -> int:
        """Set the status (and optional extra fields); return the number of rows changed.

        When ``expected_status`` is given nothing is written unless the stored
        status still equals it.
        """
        ...

    def save_service_ticket(self, record: ServiceTicketRecord) -> str | None: ...

    def get_service_ticket(self, plate: str, reservation_id: str) -> ServiceTicketRecord | None: ...

    def get_service_ticket_by_id(self, ticket_id: str) -> ServiceTicketRecord | None: ...

    def update_service_ticket(
        self,
        ticket_id: str,
        tasks: Sequence[str],
        end_date: datetime,
        user_email: str | None = None,
    ) -> int: ...


class UserDirectory(Protocol):
    def get_user_by_email(self, email: str) -> UserRecord | None: ...


class CarRegistry(Protocol):
    def get_all_cars(self) -> list[CarSnapshot]: ...
