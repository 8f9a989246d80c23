from app.models.user import User, UserRole
from app.models.station import Station
from app.models.reading import Reading
from app.models.fault import Fault, FaultPriority, FaultStatus
from app.models.sync_log import SyncLog

__all__ = [
	"User",
	"UserRole",
	"Station",
	"Reading",
	"Fault",
	"FaultPriority",
	"FaultStatus",
	"SyncLog",
]
