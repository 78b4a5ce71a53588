# solarcrm/services/otp.py
"""
In-memory one-time-password registry.

One OtpStore is owned by the application (app.state.otp_store) and handed to
the auth routes through a dependency. Records live only in process memory:
they are consumed on a successful verify, dropped when a verify finds them
expired or over the attempt limit, and overwritten by a new request. There
is no background sweeper; abandoned numbers stay until restart (or until
purge_expired() is called).
"""
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

logger = logging.getLogger(__name__)


class OtpError(Exception):
    pass


class OtpNotFound(OtpError):
    pass


class OtpExpired(OtpError):
    pass


class OtpTooManyAttempts(OtpError):
    pass


class OtpInvalidCode(OtpError):
    pass


@dataclass
class OtpRecord:
    code: str
    expires_at: float
    attempts: int = 0


def generate_code() -> str:
    """Uniform 6-digit numeric code (100000..999999)."""
    return str(100000 + secrets.randbelow(900000))


class OtpStore:
    def __init__(
        self,
        ttl_seconds: int = 300,
        max_attempts: int = 5,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self._clock = clock
        self._records: Dict[str, OtpRecord] = {}
        self._lock = threading.Lock()

    def issue(self, key: str) -> OtpRecord:
        record = OtpRecord(code=generate_code(), expires_at=self._clock() + self.ttl_seconds)
        with self._lock:
            self._records[key] = record
        return record

    def verify(self, key: str, code: str) -> None:
        """
        Returns None on success (record consumed). Raises an OtpError subclass
        otherwise; a wrong code keeps the record and bumps its attempt count.
        """
        supplied = (code or "").strip()
        with self._lock:
            record = self._records.get(key)
            if record is None:
                raise OtpNotFound(key)
            if self._clock() > record.expires_at:
                del self._records[key]
                raise OtpExpired(key)
            if record.attempts >= self.max_attempts:
                del self._records[key]
                raise OtpTooManyAttempts(key)
            if not secrets.compare_digest(record.code.encode(), supplied.encode()):
                record.attempts += 1
                raise OtpInvalidCode(key)
            del self._records[key]

    def get(self, key: str):
        with self._lock:
            return self._records.get(key)

    def pending(self) -> int:
        with self._lock:
            return len(self._records)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [k for k, r in self._records.items() if now > r.expires_at]
            for k in stale:
                del self._records[k]
        if stale:
            logger.info("[otp] purged %d expired records", len(stale))
        return len(stale)
