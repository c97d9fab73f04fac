from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from maintenance_booking import MaintenanceYamlRepository, ReservationLifecycleManager, ServiceTicketManager

mcp = FastMCP(
    "Maintenance Booking MCP Server",
    instructions="Book, cancel and track vehicle maintenance slots.",
    json_response=True,
)

DATA_DIR = Path(os.environ.get("MAINTENANCE_DATA_DIR", Path(__file__).parent / "data"))
REPOSITORY = MaintenanceYamlRepository(DATA_DIR)
RESERVATIONS = ReservationLifecycleManager(REPOSITORY, REPOSITORY)
TICKETS = ServiceTicketManager(REPOSITORY, subscribers=[RESERVATIONS])


@mcp.resource("maintenance://cars")
async def list_cars() -> list[dict[str, Any]]:
    """List the cars available for maintenance bookings."""
    return [car.to_dict() for car in REPOSITORY.get_all_cars()]


@mcp.tool()
def list_reservations(plate: str | None = None) -> list[dict[str, Any]]:
    """Return all reservations, optionally filtered by car plate."""
    records = RESERVATIONS.list_all()
    return [record.to_dict() for record in records if plate is None or record.plate == plate]


@mcp.tool()
def operator_worklist(email: str) -> list[dict[str, Any]]:
    """Return today's open maintenance reservations for one operator."""
    return [record.to_dict() for record in RESERVATIONS.list_operator_worklist(email)]


@mcp.tool()
def book_maintenance_slot(plate: str, operator_email: str, day: str, time: str) -> dict[str, str]:
    """Book a one-hour slot. ``day`` is YYYY-MM-DD and ``time`` HH:MM, Buenos Aires time."""
    cars = {car.plate: car for car in REPOSITORY.get_all_cars()}
    car = cars.get(plate) or {"plate": plate}
    reservation_id = RESERVATIONS.create(car, operator_email, day, time)
    return {"reservation_id": reservation_id}


@mcp.tool()
def cancel_reservation(reservation_id: str) -> dict[str, bool]:
    """Cancel a reservation that has not started yet."""
    return {"cancelled": RESERVATIONS.cancel(reservation_id)}


@mcp.tool()
def open_service_ticket(plate: str, reservation_id: str) -> dict[str, str]:
    """Start maintenance work on a reservation."""
    return {"ticket_id": TICKETS.open(plate, reservation_id)}


@mcp.tool()
def close_service_ticket(
    ticket_id: str,
    tasks: list[str],
    user_email: str | None = None,
    end_fuel: float | None = None,
) -> dict[str, Any]:
    """Finish maintenance work, recording the tasks that were done and the fuel level left."""
    return TICKETS.close(ticket_id, tasks, user_email=user_email, end_fuel=end_fuel).to_dict()


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
