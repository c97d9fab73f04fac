from __future__ import annotations

from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Callable
import os

from flask import Flask, jsonify, request

from .booking import REFERENCE_TIMEZONE
from .errors import BookingError, ConflictError, InvalidStateError, NotFoundError, StorageError, ValidationError
from .lifecycle import ReservationLifecycleManager
from .tickets import ServiceTicketManager
from .yaml_store import MaintenanceYamlRepository

ERROR_STATUS_CODES: dict[type[BookingError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    InvalidStateError: 409,
    StorageError: 500,
}


def status_code_for(error: BookingError) -> int:
    for error_type, status in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return status
    return 500


def create_app(
    data_dir: str | Path = "data",
    now_provider: Callable[[], datetime] | None = None,
    zone: str | tzinfo = REFERENCE_TIMEZONE,
) -> Flask:
    app = Flask(__name__)
    repository = MaintenanceYamlRepository(data_dir)
    reservations = ReservationLifecycleManager(repository, repository, now_provider=now_provider, zone=zone)
    tickets = ServiceTicketManager(repository, now_provider=now_provider, zone=zone, subscribers=[reservations])

    @app.errorhandler(BookingError)
    def handle_booking_error(error: BookingError) -> Any:
        return jsonify({"ok": False, "error": error.kind, "message": error.message}), status_code_for(error)

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,DELETE,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.get("/api/reservations")
    def list_reservations() -> Any:
        records = reservations.list_all()
        return jsonify({"ok": True, "reservations": [record.to_dict() for record in records]})

    @app.get("/api/reservations/mine")
    def list_my_reservations() -> Any:
        email = str(request.args.get("email", "")).strip()
        records = reservations.list_operator_worklist(email)
        return jsonify({"ok": True, "reservations": [record.to_dict() for record in records]})

    @app.get("/api/reservations/<reservation_id>")
    def get_reservation(reservation_id: str) -> Any:
        record = reservations.get(reservation_id)
        return jsonify({"ok": True, "reservation": record.to_dict()})

    @app.post("/api/reservations")
    def create_reservation() -> Any:
        payload = request.get_json(silent=True) or {}
        car = payload.get("car")
        if car is not None and not isinstance(car, dict):
            raise ValidationError("car must be an object with a plate.")

        reservation_id = reservations.create(
            car,
            _optional_text(payload.get("employee_mail")),
            _optional_text(payload.get("reservation_day")),
            _optional_text(payload.get("reservation_time")),
        )
        return jsonify({"ok": True, "reservation_id": reservation_id}), 201

    @app.delete("/api/reservations/<reservation_id>")
    def cancel_reservation(reservation_id: str) -> Any:
        cancelled = reservations.cancel(reservation_id)
        return jsonify({"ok": True, "cancelled": cancelled})

    @app.get("/api/cars")
    def list_cars() -> Any:
        return jsonify({"ok": True, "cars": [car.to_dict() for car in repository.get_all_cars()]})

    @app.post("/api/services")
    def open_service_ticket() -> Any:
        payload = request.get_json(silent=True) or {}
        ticket_id = tickets.open(
            _optional_text(payload.get("plate")),
            _optional_text(payload.get("reservation_id")),
        )
        return jsonify({"ok": True, "ticket_id": ticket_id}), 201

    @app.get("/api/services/plate/<plate>/reservation/<reservation_id>")
    def find_service_ticket(plate: str, reservation_id: str) -> Any:
        ticket = tickets.find(plate, reservation_id)
        return jsonify({"ok": True, "ticket": ticket.to_dict()})

    @app.patch("/api/services/<ticket_id>")
    def close_service_ticket(ticket_id: str) -> Any:
        payload = request.get_json(silent=True) or {}
        tasks = payload.get("tasks")
        if tasks is not None and not isinstance(tasks, list):
            raise ValidationError("tasks must be a list.")

        end_fuel = payload.get("end_fuel")
        try:
            end_fuel = float(end_fuel) if end_fuel is not None else None
        except (TypeError, ValueError) as error:
            raise ValidationError("end_fuel must be a number.") from error

        closed = tickets.close(
            ticket_id,
            tasks,
            user_email=_optional_text(payload.get("user_email")),
            end_fuel=end_fuel,
        )
        return jsonify({"ok": True, "ticket": closed.to_dict()})

    return app


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


if __name__ == "__main__":
    app = create_app(os.environ.get("MAINTENANCE_DATA_DIR", "data"))
    app.run(host="127.0.0.1", port=5000, debug=False)
