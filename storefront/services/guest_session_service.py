"""
Guest session identity.

Pseudonymous session id for unauthenticated visitors, stored client-side
(the signed Flask session cookie by default) together with an expiry
timestamp. No database access happens here.
"""
import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Callable, MutableMapping, Optional

from storefront.utils.dates import utcnow, parse_iso

logger = logging.getLogger(__name__)

STORAGE_KEY = 'guest_session_id'
EXPIRY_KEY = f'{STORAGE_KEY}_expiry'
DEFAULT_EXPIRY_DAYS = 7

_ALPHABET = string.ascii_lowercase + string.digits


class GuestSessionStore:
    """
    Reads and writes the guest session id in a client-local mapping.

    Every operation degrades to None / no-op when the storage cannot be
    reached (e.g. no request context); none of them raise.
    """

    def __init__(
        self,
        storage: Optional[MutableMapping] = None,
        expiry_days: int = DEFAULT_EXPIRY_DAYS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._storage = storage
        self.expiry_days = expiry_days
        self._clock = clock

    def _get_storage(self) -> Optional[MutableMapping]:
        if self._storage is not None:
            return self._storage
        try:
            from flask import session
            # Touch the proxy so a missing request context surfaces here
            session.get(STORAGE_KEY)
            return session
        except RuntimeError:
            return None

    def _new_session_id(self) -> str:
        millis = int(self._clock().timestamp() * 1000)
        suffix = ''.join(secrets.choice(_ALPHABET) for _ in range(9))
        return f"guest_{millis}_{suffix}"

    def _is_expired(self, storage: MutableMapping) -> bool:
        raw = storage.get(EXPIRY_KEY)
        if not raw:
            return False
        try:
            expiry = parse_iso(raw)
        except (TypeError, ValueError):
            logger.warning(f"[GUEST] Unreadable expiry '{raw}', treating session as expired")
            return True
        return self._clock() > expiry

    def get_or_create_session_id(self) -> Optional[str]:
        """
        Return the stored guest session id, minting a new one when none is
        stored or the stored one has expired.
        """
        storage = self._get_storage()
        if storage is None:
            return None
        try:
            session_id = storage.get(STORAGE_KEY)
            if session_id and self._is_expired(storage):
                logger.info("[GUEST] Session expired, issuing a new one")
                self.clear_session()
                return self.get_or_create_session_id()

            if not session_id:
                session_id = self._new_session_id()
                expiry = self._clock() + timedelta(days=self.expiry_days)
                storage[STORAGE_KEY] = session_id
                storage[EXPIRY_KEY] = expiry.isoformat()
            return session_id
        except Exception as e:
            logger.warning(f"[GUEST] Session storage unavailable: {e}")
            return None

    def clear_session(self) -> None:
        """Remove the id and its expiry."""
        storage = self._get_storage()
        if storage is None:
            return
        try:
            storage.pop(STORAGE_KEY, None)
            storage.pop(EXPIRY_KEY, None)
        except Exception as e:
            logger.warning(f"[GUEST] Could not clear session: {e}")

    def has_active_session(self) -> bool:
        """True when an id is stored. Does not mint one."""
        return self.peek_session_id() is not None

    def peek_session_id(self) -> Optional[str]:
        """Stored id or None. Does not mint one."""
        storage = self._get_storage()
        if storage is None:
            return None
        try:
            return storage.get(STORAGE_KEY) or None
        except Exception:
            return None
