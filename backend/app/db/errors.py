"""Translation of database errors into SQLSTATE codes and HTTP responses.

Postgres drivers expose the SQLSTATE directly (``pgcode`` on psycopg2,
``sqlstate`` on psycopg 3). SQLite only reports a message, so the common
constraint failures are recognised by text.
"""

from sqlalchemy.exc import DBAPIError

UNIQUE_VIOLATION = "23505"
NOT_NULL_VIOLATION = "23502"
FOREIGN_KEY_VIOLATION = "23503"
CHECK_VIOLATION = "23514"
INVALID_TEXT_REPRESENTATION = "22P02"
# PostgREST "no rows returned" sentinel, kept for parity with clients that send it.
NOT_FOUND = "PGRST116"

_SQLITE_MESSAGES = {
    "UNIQUE constraint failed": UNIQUE_VIOLATION,
    "NOT NULL constraint failed": NOT_NULL_VIOLATION,
    "FOREIGN KEY constraint failed": FOREIGN_KEY_VIOLATION,
    "CHECK constraint failed": CHECK_VIOLATION,
}

_STATUS = {
    UNIQUE_VIOLATION: 409,
    NOT_NULL_VIOLATION: 400,
    FOREIGN_KEY_VIOLATION: 400,
    CHECK_VIOLATION: 400,
    INVALID_TEXT_REPRESENTATION: 400,
    NOT_FOUND: 404,
}

_MESSAGES = {
    UNIQUE_VIOLATION: "A record with this information already exists",
    NOT_NULL_VIOLATION: "Missing required fields",
    FOREIGN_KEY_VIOLATION: "Invalid reference to related data",
    CHECK_VIOLATION: "Value not allowed for this field",
    INVALID_TEXT_REPRESENTATION: "Invalid data format",
    NOT_FOUND: "Resource not found",
}


def sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None

    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return str(code)

    text = str(orig)
    for needle, mapped in _SQLITE_MESSAGES.items():
        if needle in text:
            return mapped
    return None


def http_status_for(code: str | None) -> int:
    return _STATUS.get(code or "", 500)


def message_for(code: str | None, default: str = "Database error occurred") -> str:
    return _MESSAGES.get(code or "", default)
