from .booking import (
	REFERENCE_TIMEZONE,
	SLOT_LENGTH,
	TimeWindow,
	has_conflict,
	has_time_overlap,
	local_day,
	parse_slot_start,
)
from .errors import BookingError, ConflictError, InvalidStateError, NotFoundError, StorageError, ValidationError
from .lifecycle import ReservationLifecycleManager
from .memory import InMemoryMaintenanceRepository
from .models import (
	BillingStatus,
	BookingType,
	CarSnapshot,
	ReservationRecord,
	ReservationStatus,
	ServiceTicketRecord,
	UserRecord,
)
from .tickets import ServiceTicketManager, TicketEvent, TicketEventKind
from .yaml_store import MaintenanceYamlRepository

__all__ = [
	"REFERENCE_TIMEZONE",
	"SLOT_LENGTH",
	"TimeWindow",
	"has_conflict",
	"has_time_overlap",
	"local_day",
	"parse_slot_start",
	"BookingError",
	"ConflictError",
	"InvalidStateError",
	"NotFoundError",
	"StorageError",
	"ValidationError",
	"ReservationLifecycleManager",
	"InMemoryMaintenanceRepository",
	"BillingStatus",
	"BookingType",
	"CarSnapshot",
	"ReservationRecord",
	"ReservationStatus",
	"ServiceTicketRecord",
	"UserRecord",
	"ServiceTicketManager",
	"TicketEvent",
	"TicketEventKind",
	"MaintenanceYamlRepository",
]
