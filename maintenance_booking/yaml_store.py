from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence
import shutil
import threading
from uuid import uuid4

import yaml

from .errors import StorageError
from .models import CarSnapshot, ReservationRecord, ReservationStatus, ServiceTicketRecord, UserRecord


class MaintenanceYamlRepository:
    """File-backed store for reservations, service tickets, operators and cars.

    Every collection is a YAML list on disk. Writes go through a temp file and
    an atomic replace, and every mutation is appended to an event journal.
    """

    def __init__(self, base_dir: str | Path = "data") -> None:
        self.base_dir = Path(base_dir)
        self.reservations_file = self.base_dir / "reservations.yaml"
        self.tickets_file = self.base_dir / "service_tickets.yaml"
        self.users_file = self.base_dir / "users.yaml"
        self.cars_file = self.base_dir / "cars.yaml"
        self.log_file = self.base_dir / "maintenance_events.yaml"
        self._lock = threading.RLock()
        self._ensure_files()

    def _ensure_files(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        for path in (self.reservations_file, self.tickets_file, self.users_file, self.cars_file, self.log_file):
            if not path.exists():
                path.write_text("[]\n", encoding="utf-8")

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text("[]\n", encoding="utf-8")
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            elif path != self.log_file:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise StorageError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError:
            pass

        path.write_text("[]\n", encoding="utf-8")
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now(timezone.utc)).isoformat(timespec="seconds")
        with self._lock:
            events = self._read_yaml_list(self.log_file)
            events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
            self._write_yaml_list(self.log_file, events)

    def get_events(self) -> list[dict[str, Any]]:
        return self._read_yaml_list(self.log_file)

    # Reservations

    def get_all(self) -> list[ReservationRecord]:
        with self._lock:
            rows = self._read_yaml_list(self.reservations_file)
        return [ReservationRecord.from_dict(row) for row in rows]

    def get_by_email(self, email: str) -> list[ReservationRecord]:
        return [record for record in self.get_all() if record.user_email == email]

    def get_by_plate(self, plate: str) -> list[ReservationRecord]:
        return [record for record in self.get_all() if record.plate == plate]

    def get_by_id(self, reservation_id: str) -> ReservationRecord | None:
        for record in self.get_all():
            if record.reservation_id == reservation_id:
                return record
        return None

    def create(self, record: ReservationRecord) -> str | None:
        stored = replace(record, reservation_id=record.reservation_id or uuid4().hex)
        with self._lock:
            rows = self._read_yaml_list(self.reservations_file)
            if any(str(row.get("reservation_id")) == stored.reservation_id for row in rows):
                raise StorageError(f"Reservation id already exists: {stored.reservation_id}")
            rows.append(stored.to_dict())
            self._write_yaml_list(self.reservations_file, rows)

            self._log_event(
                "RESERVATION_CREATED",
                {
                    "reservation_id": stored.reservation_id,
                    "plate": stored.plate,
                    "user_email": stored.user_email,
                    "start_time": stored.start_time.isoformat(timespec="minutes"),
                    "end_time": stored.end_time.isoformat(timespec="minutes"),
                },
                stored.created_at,
            )
        return stored.reservation_id

    def update_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        expected_status: ReservationStatus | None = None,
        **fields: Any,
    ) -> int:
        with self._lock:
            rows = self._read_yaml_list(self.reservations_file)
            for index, row in enumerate(rows):
                if str(row.get("reservation_id")) != reservation_id:
                    continue

                current = ReservationRecord.from_dict(row)
                if expected_status is not None and current.status != expected_status:
                    return 0
                updated = replace(current, status=status, **fields)
                if updated == current:
                    return 0

                rows[index] = updated.to_dict()
                self._write_yaml_list(self.reservations_file, rows)
                self._log_event(
                    "RESERVATION_STATUS_CHANGED",
                    {
                        "reservation_id": reservation_id,
                        "from": current.status.value,
                        "to": status.value,
                    },
                    updated.updated_at,
                )
                return 1
        return 0

    # Service tickets

    def _get_tickets(self) -> list[ServiceTicketRecord]:
        with self._lock:
            rows = self._read_yaml_list(self.tickets_file)
        return [ServiceTicketRecord.from_dict(row) for row in rows]

    def save_service_ticket(self, record: ServiceTicketRecord) -> str | None:
        stored = replace(record, ticket_id=record.ticket_id or uuid4().hex)
        with self._lock:
            rows = self._read_yaml_list(self.tickets_file)
            rows.append(stored.to_dict())
            self._write_yaml_list(self.tickets_file, rows)
            self._log_event(
                "SERVICE_TICKET_OPENED",
                {
                    "ticket_id": stored.ticket_id,
                    "plate": stored.plate,
                    "reservation_id": stored.reservation_id,
                },
            )
        return stored.ticket_id

    def get_service_ticket(self, plate: str, reservation_id: str) -> ServiceTicketRecord | None:
        for record in self._get_tickets():
            if record.plate == plate and record.reservation_id == reservation_id:
                return record
        return None

    def get_service_ticket_by_id(self, ticket_id: str) -> ServiceTicketRecord | None:
        for record in self._get_tickets():
            if record.ticket_id == ticket_id:
                return record
        return None

    def update_service_ticket(
        self,
        ticket_id: str,
        tasks: Sequence[str],
        end_date: datetime,
        user_email: str | None = None,
    ) -> int:
        with self._lock:
            rows = self._read_yaml_list(self.tickets_file)
            for index, row in enumerate(rows):
                if str(row.get("ticket_id")) != ticket_id:
                    continue

                current = ServiceTicketRecord.from_dict(row)
                updated = replace(
                    current,
                    tasks=tuple(tasks),
                    end_date=end_date,
                    user_email=user_email if user_email is not None else current.user_email,
                )
                rows[index] = updated.to_dict()
                self._write_yaml_list(self.tickets_file, rows)
                self._log_event(
                    "SERVICE_TICKET_CLOSED",
                    {
                        "ticket_id": ticket_id,
                        "reservation_id": current.reservation_id,
                        "task_count": len(updated.tasks),
                    },
                )
                return 1
        return 0

    # Operators and cars

    def get_user_by_email(self, email: str) -> UserRecord | None:
        for row in self._read_yaml_list(self.users_file):
            if str(row.get("email")) == email:
                return UserRecord.from_dict(row)
        return None

    def add_user(self, user: UserRecord) -> UserRecord:
        with self._lock:
            rows = [row for row in self._read_yaml_list(self.users_file) if str(row.get("email")) != user.email]
            rows.append(user.to_dict())
            self._write_yaml_list(self.users_file, rows)
        return user

    def get_all_cars(self) -> list[CarSnapshot]:
        return [CarSnapshot.from_dict(row) for row in self._read_yaml_list(self.cars_file)]

    def add_car(self, car: CarSnapshot) -> CarSnapshot:
        with self._lock:
            rows = [row for row in self._read_yaml_list(self.cars_file) if str(row.get("plate")) != car.plate]
            rows.append(car.to_dict())
            self._write_yaml_list(self.cars_file, rows)
        return car
