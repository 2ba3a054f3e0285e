import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Optional

from timetrack.utils.timestamps import now_utc_iso


def _to_float(x) -> float:
    if x is None or x == "":
        return 0.0
    return float(x)


# -----------------------------
# Data model
# -----------------------------
@dataclass(frozen=True)
class Session:
    id: str
    date: str                    # YYYY-MM-DD
    hours: float
    description: str = ""

    @staticmethod
    def create(*, hours: float, description: str = "", on: Optional[date] = None) -> "Session":
        return Session(
            id=str(uuid.uuid4()),
            date=(on or date.today()).isoformat(),
            hours=float(hours),
            description=description.strip(),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "date": self.date, "hours": self.hours, "description": self.description}

    @staticmethod
    def from_dict(d: dict, index: int = 0) -> "Session":
        # Older records were written without session ids
        return Session(
            id=str(d.get("id") or f"legacy-{index}"),
            date=str(d.get("date", "") or ""),
            hours=_to_float(d.get("hours")),
            description=str(d.get("description", "") or ""),
        )


@dataclass(frozen=True)
class Client:
    id: str
    name: str
    total_hours: float = 0.0
    sessions: tuple[Session, ...] = field(default_factory=tuple)  # newest first
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @staticmethod
    def create(*, name: str) -> "Client":
        now = now_utc_iso()
        return Client(
            id=str(uuid.uuid4()),
            name=name.strip(),
            total_hours=0.0,
            sessions=(),
            created_at=now,
            updated_at=now,
        )

    def find_session(self, session_id: str) -> Optional[Session]:
        return next((s for s in self.sessions if s.id == session_id), None)

    # Every session mutation patches total_hours by the same delta.

    def with_session_added(self, session: Session) -> "Client":
        return replace(
            self,
            total_hours=self.total_hours + session.hours,
            sessions=(session, *self.sessions),
            updated_at=now_utc_iso(),
        )

    def with_session_replaced(self, session: Session) -> "Client":
        old = self.find_session(session.id)
        return replace(
            self,
            total_hours=self.total_hours + (session.hours - old.hours),
            sessions=tuple(session if s.id == session.id else s for s in self.sessions),
            updated_at=now_utc_iso(),
        )

    def with_session_removed(self, session_id: str) -> "Client":
        old = self.find_session(session_id)
        return replace(
            self,
            total_hours=self.total_hours - old.hours,
            sessions=tuple(s for s in self.sessions if s.id != session_id),
            updated_at=now_utc_iso(),
        )

    # ---- local cache (camelCase) ----

    def to_local(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "totalHours": self.total_hours,
            "sessions": [s.to_dict() for s in self.sessions],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @staticmethod
    def from_local(d: dict) -> "Client":
        return Client(
            id=str(d["id"]),
            name=str(d.get("name", "")),
            total_hours=_to_float(d.get("totalHours")),
            sessions=tuple(Session.from_dict(s, i) for i, s in enumerate(d.get("sessions") or [])),
            created_at=d.get("created_at"),
            updated_at=d.get("updated_at"),
        )

    # ---- remote rows (snake_case) ----

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "total_hours": self.total_hours,
            "sessions": json.dumps([s.to_dict() for s in self.sessions], ensure_ascii=False),
            "created_at": self.created_at or "",
            "updated_at": self.updated_at or "",
        }

    @staticmethod
    def from_row(row: dict) -> "Client":
        sessions = row.get("sessions") or []
        if isinstance(sessions, str):
            sessions = json.loads(sessions) if sessions.strip() else []
        return Client(
            id=str(row["id"]),
            name=str(row.get("name", "")),
            total_hours=_to_float(row.get("total_hours")),
            sessions=tuple(Session.from_dict(s, i) for i, s in enumerate(sessions)),
            created_at=row.get("created_at") or None,
            updated_at=row.get("updated_at") or None,
        )
