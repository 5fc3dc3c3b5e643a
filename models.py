from __future__ import annotations

from datetime import date, datetime, time
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


Record = Dict[str, str]


# -----------------------------
# Collections (persisted layout)
# -----------------------------
COLLECTION_FIELDS: Dict[str, List[str]] = {
    "users": ["id", "name", "department", "role", "email"],
    "bookings": [
        "id",
        "resource",
        "date",
        "startTime",
        "endTime",
        "user",
        "department",
        "type",
        "purpose",
        "invitees",
    ],
    "resources": ["id", "name", "type"],
    "admins": ["username", "password", "name"],
}

KEY_FIELDS: Dict[str, str] = {
    "users": "id",
    "bookings": "id",
    "resources": "id",
    "admins": "username",
}

# Seeded on first run. The admin credential is plaintext, kept for
# compatibility with existing data files; do not deploy it as-is.
DEFAULT_RECORDS: Dict[str, List[Record]] = {
    "users": [
        {"id": "1", "name": "John Smith", "department": "Marketing", "role": "individual", "email": "john@company.com"},
        {"id": "2", "name": "Sarah Johnson", "department": "Sales", "role": "individual", "email": "sarah@company.com"},
        {"id": "3", "name": "Marketing Dept", "department": "Marketing", "role": "dept", "email": "marketing@company.com"},
        {"id": "4", "name": "Sales Dept", "department": "Sales", "role": "dept", "email": "sales@company.com"},
    ],
    "resources": [
        {"id": "boardroom", "name": "Main Board Room", "type": "room"},
        {"id": "car", "name": "Company Car 1", "type": "vehicle"},
    ],
    "admins": [
        {"username": "admin", "password": "admin123", "name": "System Administrator"},
    ],
    "bookings": [],
}

USER_ROLES = ("individual", "dept")


# -----------------------------
# Date / time helpers
# -----------------------------
_TIME_FORMATS = ("%H:%M:%S", "%H:%M")


def parse_date(value: str) -> date:
    """Parse a calendar date in ISO form (YYYY-MM-DD)."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError("date must be a non-empty string")
    return date.fromisoformat(value.strip())


def parse_time_of_day(value: str) -> time:
    """
    Parse a 24-hour time of day. Accepts 'H:MM', 'HH:MM' and 'HH:MM:SS',
    so '9:00' and '09:00' compare equal.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("time must be a non-empty string")

    s = value.strip()
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(s, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"invalid time of day: {value!r}")


# -----------------------------
# Conflict check
# -----------------------------
def has_conflict(existing: Iterable[Record], candidate: Record) -> bool:
    """
    True if the candidate booking collides with any existing booking for
    the same resource on the same date.

    With s/e the candidate's start/end and bs/be an existing booking's,
    a collision is any of:
      bs <= s < be     (existing covers the candidate's start)
      bs < e <= be     (existing covers the candidate's end)
      s <= bs, be <= e (existing lies inside the candidate)
    Touching endpoints (e == bs or be == s) do not collide.
    """
    day = parse_date(candidate["date"])
    s = parse_time_of_day(candidate["startTime"])
    e = parse_time_of_day(candidate["endTime"])

    for b in existing:
        if b.get("resource") != candidate.get("resource"):
            continue
        if parse_date(b.get("date", "")) != day:
            continue

        bs = parse_time_of_day(b.get("startTime", ""))
        be = parse_time_of_day(b.get("endTime", ""))
        if (bs <= s and be > s) or (bs < e and be >= e) or (bs >= s and be <= e):
            return True
    return False


# -----------------------------
# API models (transport layer)
# -----------------------------
class BookingIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    resource: str = ""
    date: str = ""
    start_time: str = Field("", alias="startTime")
    end_time: str = Field("", alias="endTime")
    user: str = ""
    department: str = ""
    type: str = ""
    purpose: str = ""
    invitees: str = ""


class BookingOut(BookingIn):
    pass


class BookingUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resource: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = Field(None, alias="startTime")
    end_time: Optional[str] = Field(None, alias="endTime")
    user: Optional[str] = None
    department: Optional[str] = None
    type: Optional[str] = None
    purpose: Optional[str] = None
    invitees: Optional[str] = None


def _check_role(v: Optional[str]) -> Optional[str]:
    if v and v not in USER_ROLES:
        raise ValueError(f"role must be one of: {', '.join(USER_ROLES)}")
    return v


class UserIn(BaseModel):
    id: str = ""
    name: str = ""
    department: str = ""
    role: str = ""
    email: str = ""

    @field_validator("role")
    @classmethod
    def role_must_be_known(cls, v: str) -> str:
        return _check_role(v)


class UserOut(UserIn):
    pass


class UserUpdate(BaseModel):
    name: Optional[str] = None
    department: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None

    @field_validator("role")
    @classmethod
    def role_must_be_known(cls, v: Optional[str]) -> Optional[str]:
        return _check_role(v)


class ResourceIn(BaseModel):
    id: str = ""
    name: str = ""
    type: str = ""  # room, vehicle, ... (open set)


class ResourceOut(ResourceIn):
    pass


class ResourceUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None


class AdminOut(BaseModel):
    username: str
    name: str = ""
    role: str = "admin"


class LoginIn(BaseModel):
    username: str = ""
    password: str = ""


class LoginOut(BaseModel):
    success: bool
    user: Optional[AdminOut] = None
    error: Optional[str] = None
