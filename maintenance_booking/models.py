from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ReservationStatus(str, Enum):
    RESERVED = "RESERVED"
    ACTIVE = "ACTIVE"
    COMPLETE = "COMPLETE"
    CANCELLED = "CANCELLED"


class BillingStatus(str, Enum):
    ON_HOLD = "ON_HOLD"


class BookingType(str, Enum):
    MAINTENANCE = "MAINTENANCE"


ALLOWED_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.RESERVED: frozenset({ReservationStatus.ACTIVE, ReservationStatus.CANCELLED}),
    ReservationStatus.ACTIVE: frozenset({ReservationStatus.COMPLETE}),
    ReservationStatus.COMPLETE: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
}

# Statuses that still occupy their window.
BLOCKING_STATUSES = frozenset({ReservationStatus.RESERVED, ReservationStatus.ACTIVE, ReservationStatus.COMPLETE})


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


@dataclass(frozen=True)
class CarSnapshot:
    """Car details copied into a reservation at booking time."""

    plate: str
    brand: str = ""
    model: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"plate": self.plate, "brand": self.brand, "model": self.model}
        payload.update(self.extra)
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "CarSnapshot":
        extra = {key: value for key, value in data.items() if key not in {"plate", "brand", "model"}}
        return CarSnapshot(
            plate=str(data.get("plate") or "").strip(),
            brand=str(data.get("brand") or ""),
            model=str(data.get("model") or ""),
            extra=extra,
        )


@dataclass(frozen=True)
class UserRecord:
    email: str
    name: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"email": self.email, "name": self.name}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "UserRecord":
        return UserRecord(email=str(data["email"]), name=str(data.get("name") or ""))


@dataclass(frozen=True)
class ReservationRecord:
    reservation_id: str
    status: ReservationStatus
    start_time: datetime
    end_time: datetime
    car: CarSnapshot
    user_email: str
    created_at: datetime
    updated_at: datetime
    billing_status: BillingStatus = BillingStatus.ON_HOLD
    booking_type: BookingType = BookingType.MAINTENANCE
    fuel_start: float = 0.0
    end_fuel: float | None = None
    start_parking_name: str = ""

    def __post_init__(self) -> None:
        if self.start_time >= self.end_time:
            raise ValueError("Reservation start time must be earlier than end time.")

    @property
    def plate(self) -> str:
        return self.car.plate

    def to_dict(self) -> dict[str, Any]:
        return {
            "reservation_id": self.reservation_id,
            "status": self.status.value,
            "start_time": self.start_time.isoformat(timespec="seconds"),
            "end_time": self.end_time.isoformat(timespec="seconds"),
            "start_parking_name": self.start_parking_name,
            "billing_status": self.billing_status.value,
            "fuel_start": self.fuel_start,
            "end_fuel": self.end_fuel,
            "car": self.car.to_dict(),
            "user": {"email": self.user_email},
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "updated_at": self.updated_at.isoformat(timespec="seconds"),
            "booking_type": self.booking_type.value,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ReservationRecord":
        user = data.get("user") or {}
        end_fuel = data.get("end_fuel")
        created_at = datetime.fromisoformat(str(data["created_at"]))
        return ReservationRecord(
            reservation_id=str(data["reservation_id"]),
            status=ReservationStatus(str(data["status"])),
            start_time=datetime.fromisoformat(str(data["start_time"])),
            end_time=datetime.fromisoformat(str(data["end_time"])),
            car=CarSnapshot.from_dict(data.get("car") or {}),
            user_email=str(user.get("email") or ""),
            created_at=created_at,
            updated_at=datetime.fromisoformat(str(data.get("updated_at") or data["created_at"])),
            billing_status=BillingStatus(str(data.get("billing_status") or BillingStatus.ON_HOLD.value)),
            booking_type=BookingType(str(data.get("booking_type") or BookingType.MAINTENANCE.value)),
            fuel_start=float(data.get("fuel_start") or 0.0),
            end_fuel=float(end_fuel) if end_fuel is not None else None,
            start_parking_name=str(data.get("start_parking_name") or ""),
        )


@dataclass(frozen=True)
class ServiceTicketRecord:
    ticket_id: str
    plate: str
    reservation_id: str
    start_date: datetime
    user_email: str = ""
    end_date: datetime | None = None
    tasks: tuple[str, ...] = ()

    @property
    def is_closed(self) -> bool:
        return self.end_date is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticket_id": self.ticket_id,
            "plate": self.plate,
            "reservation_id": self.reservation_id,
            "user_email": self.user_email,
            "start_date": self.start_date.isoformat(timespec="seconds"),
            "end_date": self.end_date.isoformat(timespec="seconds") if self.end_date is not None else None,
            "tasks": list(self.tasks),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ServiceTicketRecord":
        end_date = data.get("end_date")
        return ServiceTicketRecord(
            ticket_id=str(data["ticket_id"]),
            plate=str(data["plate"]),
            reservation_id=str(data["reservation_id"]),
            start_date=datetime.fromisoformat(str(data["start_date"])),
            user_email=str(data.get("user_email") or ""),
            end_date=datetime.fromisoformat(str(end_date)) if end_date else None,
            tasks=tuple(str(task) for task in data.get("tasks") or []),
        )
