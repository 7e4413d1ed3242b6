import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.exceptions import AccessDeniedException, DenialReason
from ..models.room import Room
from ..utils.datetime_utils import as_utc, utc_now

ACCESS_KEY_ALPHABET = string.ascii_uppercase + string.digits
ACCESS_KEY_LENGTH = 8


@dataclass(frozen=True)
class JoinDecision:
    allowed: bool
    reason: Optional[DenialReason] = None

    def raise_if_denied(self):
        if not self.allowed:
            raise AccessDeniedException(self.reason)

ALLOWED = JoinDecision(allowed=True)


def generate_access_key() -> str:
    """Returns an 8 character code drawn uniformly from A-Z and 0-9."""
    return "".join(secrets.choice(ACCESS_KEY_ALPHABET) for _ in range(ACCESS_KEY_LENGTH))


def is_key_expired(room: Room, now: datetime = None) -> bool:
    expires_at = as_utc(room.key_expires_at)
    if expires_at is None:
        return False
    return expires_at < (now or utc_now())


def validate_join(room: Room, supplied_key: Optional[str], now: datetime = None) -> JoinDecision:
    """
    Decides whether a non-member may join ``room``.

    Public rooms always admit. Private rooms are checked in order: a key must
    be supplied, the stored key must not be expired, and the keys must match.
    """
    if not room.is_private:
        return ALLOWED
    if not supplied_key:
        return JoinDecision(allowed=False, reason=DenialReason.MISSING_KEY)
    if is_key_expired(room, now):
        return JoinDecision(allowed=False, reason=DenialReason.EXPIRED)
    if not room.access_key or not secrets.compare_digest(room.access_key.encode(), supplied_key.encode()):
        return JoinDecision(allowed=False, reason=DenialReason.MISMATCH)
    return ALLOWED
