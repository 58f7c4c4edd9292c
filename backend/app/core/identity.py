"""Caller identity and its mapping onto registration/profile user ids.

Identity providers hand out subjects that are not always UUIDs (OAuth
``sub`` values, legacy ObjectIds, bare emails). Rows are keyed by a UUID,
so a non-UUID subject is mapped through a version-5 UUID over a fixed
namespace. The mapping is resolved once per request, when the caller is
authenticated; handlers only ever see the resulting ``Identity``.
"""

from dataclasses import dataclass
import re
import uuid

# Standard DNS namespace. Changing it orphans every row keyed by a derived id.
USER_ID_NAMESPACE = uuid.UUID("6ba7b810-9dad-11d1-80b4-00c04fd430c8")


# Canonical 8-4-4-4-12 form only; braced, urn: and bare-hex spellings are plain subjects.
_UUID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}\Z")


def is_uuid(value: str | None) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.match(value))


def normalize_user_id(subject: str) -> str:
    """Return ``subject`` if it is already a UUID, else its deterministic uuid5."""
    if is_uuid(subject):
        return subject
    return str(uuid.uuid5(USER_ID_NAMESPACE, subject))


@dataclass(frozen=True)
class Identity:
    subject: str
    user_id: str
    email: str | None = None
    name: str | None = None
    is_admin: bool = False

    @classmethod
    def resolve(
        cls,
        subject: str,
        *,
        email: str | None = None,
        name: str | None = None,
        is_admin: bool = False,
    ) -> "Identity":
        return cls(
            subject=subject,
            user_id=normalize_user_id(subject),
            email=email or None,
            name=name or None,
            is_admin=is_admin,
        )

    @property
    def candidate_ids(self) -> list[str]:
        # Older rows may carry the raw subject or the email in user_id.
        out = [self.user_id]
        for v in (self.subject, self.email):
            if v and v not in out:
                out.append(v)
        return out
