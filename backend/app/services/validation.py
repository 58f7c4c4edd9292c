"""Field checks that return a human-readable message instead of raising.

The first failing rule wins; callers turn the message into a 400.
"""

from datetime import datetime, timezone
import re
from typing import Any

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[0-9]{10,15}$")

TOURNAMENT_STATUSES = ("upcoming", "ongoing", "completed")


def is_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_RE.match(value))


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def validate_registration(
    *,
    team_name: str | None,
    team_members: Any,
    captain: Any,
    contact_info: Any,
) -> str | None:
    if not team_name:
        return "Team name is required"
    if len(team_name) < 3:
        return "Team name must be at least 3 characters"
    if len(team_name) > 50:
        return "Team name cannot exceed 50 characters"

    if not isinstance(team_members, list):
        return "Team members must be an array"
    if not team_members:
        return "At least one team member is required"

    for i, member in enumerate(team_members, start=1):
        if not isinstance(member, dict):
            return f"Team member {i} is invalid"
        if _blank(member.get("name")):
            return f"Team member {i} name is required"
        if _blank(member.get("email")):
            return f"Team member {i} email is required"
        if _blank(member.get("gameId")):
            return f"Team member {i} game ID is required"

    if not isinstance(captain, dict) or not captain:
        return "Captain information is required"
    if not captain.get("name"):
        return "Captain name is required"
    if not captain.get("email"):
        return "Captain email is required"
    if not is_email(captain["email"]):
        return "Invalid captain email format"

    if not isinstance(contact_info, dict) or not contact_info:
        return "Contact information is required"
    if not contact_info.get("email"):
        return "Contact email is required"
    if not is_email(contact_info["email"]):
        return "Invalid contact email format"

    phone = contact_info.get("phone")
    if phone and not PHONE_RE.match(re.sub(r"\s+", "", str(phone))):
        return "Invalid phone number format"

    return None


def validate_tournament(data: dict[str, Any], now: datetime | None = None) -> str | None:
    if not data.get("name"):
        return "Tournament name is required"
    if not data.get("game"):
        return "Game is required"
    if not data.get("start_date"):
        return "Start date is required"
    if not data.get("end_date"):
        return "End date is required"
    if not data.get("registration_deadline"):
        return "Registration deadline is required"
    if not data.get("prize_pool"):
        return "Prize pool is required"

    team_size = data.get("team_size")
    if not isinstance(team_size, int) or team_size < 1:
        return "Team size must be a positive number"
    max_teams = data.get("max_teams")
    if not isinstance(max_teams, int) or max_teams < 1:
        return "Maximum teams must be a positive number"

    status = data.get("status")
    if status and status not in TOURNAMENT_STATUSES:
        return "Invalid tournament status"

    now = now or datetime.now(timezone.utc)
    start = _aware(data["start_date"])
    end = _aware(data["end_date"])
    deadline = _aware(data["registration_deadline"])

    if deadline < now:
        return "Registration deadline cannot be in the past"
    if start < now:
        return "Start date cannot be in the past"
    if end < start:
        return "End date cannot be before start date"
    if deadline > start:
        return "Registration deadline must be before the start date"

    return None


# Columns an update may change but never clear.
_UPDATE_REQUIRED = {
    "name": "Tournament name is required",
    "game": "Game is required",
    "team_size": "Team size must be a positive number",
    "max_teams": "Maximum teams must be a positive number",
    "registration_fee": "Registration fee cannot be negative",
    "status": "Invalid tournament status",
    "is_public": "Visibility must be true or false",
    "featured": "Featured must be true or false",
}


def validate_tournament_update(changes: dict[str, Any]) -> str | None:
    """Check only the fields present in a partial update."""
    for key, message in _UPDATE_REQUIRED.items():
        if key in changes and changes[key] is None:
            return message

    for key in ("name", "game"):
        if key in changes and _blank(changes[key]):
            return _UPDATE_REQUIRED[key]
    for key in ("team_size", "max_teams"):
        if key in changes and changes[key] < 1:
            return _UPDATE_REQUIRED[key]
    if changes.get("registration_fee", 0) < 0:
        return _UPDATE_REQUIRED["registration_fee"]
    if "status" in changes and changes["status"] not in TOURNAMENT_STATUSES:
        return "Invalid tournament status"

    return None
