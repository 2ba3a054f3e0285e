import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from timetrack.utils.timestamps import now_utc_iso


class EventType(str, Enum):
    SESSION = "session"
    MEETING = "meeting"
    TASK = "task"
    OTHER = "other"


def _opt_str(x) -> Optional[str]:
    if x is None or x == "":
        return None
    return str(x)


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    date: str                           # YYYY-MM-DD
    hours: float
    description: str
    type: EventType = EventType.SESSION
    client_id: Optional[str] = None
    client_name: Optional[str] = None   # copied at creation, may drift from the client
    start_time: Optional[str] = None    # HH:MM, not checked against end_time
    end_time: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @staticmethod
    def create(
        *,
        date: str,
        hours: float,
        description: str,
        type: EventType = EventType.SESSION,
        client_id: Optional[str] = None,
        client_name: Optional[str] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
    ) -> "CalendarEvent":
        now = now_utc_iso()
        return CalendarEvent(
            id=str(uuid.uuid4()),
            date=date,
            hours=float(hours),
            description=description.strip(),
            type=EventType(type),
            client_id=client_id or None,
            client_name=client_name,
            start_time=start_time or None,
            end_time=end_time or None,
            created_at=now,
            updated_at=now,
        )

    def to_local(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "clientId": self.client_id,
            "clientName": self.client_name,
            "hours": self.hours,
            "description": self.description,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "type": self.type.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @staticmethod
    def from_local(d: dict) -> "CalendarEvent":
        return CalendarEvent(
            id=str(d["id"]),
            date=str(d.get("date", "")),
            hours=float(d.get("hours") or 0.0),
            description=str(d.get("description", "") or ""),
            type=EventType(d.get("type") or EventType.OTHER.value),
            client_id=_opt_str(d.get("clientId")),
            client_name=_opt_str(d.get("clientName")),
            start_time=_opt_str(d.get("startTime")),
            end_time=_opt_str(d.get("endTime")),
            created_at=d.get("created_at"),
            updated_at=d.get("updated_at"),
        )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "client_id": self.client_id or "",
            "client_name": self.client_name or "",
            "hours": self.hours,
            "description": self.description,
            "start_time": self.start_time or "",
            "end_time": self.end_time or "",
            "type": self.type.value,
            "created_at": self.created_at or "",
            "updated_at": self.updated_at or "",
        }

    @staticmethod
    def from_row(row: dict) -> "CalendarEvent":
        return CalendarEvent(
            id=str(row["id"]),
            date=str(row.get("date", "")),
            hours=float(row.get("hours") or 0.0),
            description=str(row.get("description", "") or ""),
            type=EventType(row.get("type") or EventType.OTHER.value),
            client_id=_opt_str(row.get("client_id")),
            client_name=_opt_str(row.get("client_name")),
            start_time=_opt_str(row.get("start_time")),
            end_time=_opt_str(row.get("end_time")),
            created_at=row.get("created_at") or None,
            updated_at=row.get("updated_at") or None,
        )
