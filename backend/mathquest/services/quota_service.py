"""
Admission control for problem generation.

Two independent limits decide whether a request may reach problem sourcing:

- General play: a rolling window per identity, held in process memory. The
  counters reset on restart and are not shared between instances.
- Daily challenge: one play per (identity, daily seed), enforced by the
  primary key of the ip_play_limits table so concurrent requests cannot both
  get through.

Daily-challenge traffic never consumes general-play quota.
"""

import enum
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

import structlog
from sqlalchemy import delete, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mathquest.config import Settings, settings
from mathquest.logging_config import fingerprint
from mathquest.models.daily_play import DailyPlay

logger = structlog.get_logger()


class Admission(str, enum.Enum):
    ALLOWED = "allowed"
    DENIED_DAILY = "already_played_today"
    DENIED_GENERAL = "quota_exceeded"
    DENIED_THROTTLE = "throttled"

    @property
    def allowed(self) -> bool:
        return self is Admission.ALLOWED


@dataclass
class Window:
    started_at: float
    count: int


class WindowStore(Protocol):
    """Storage for rolling-window counters, keyed by identity."""

    def get(self, key: str) -> Window | None: ...

    def put(self, key: str, window: Window) -> None: ...

    def prune(self, expired: Callable[[Window], bool]) -> int: ...


class InMemoryWindowStore:
    def __init__(self) -> None:
        self._windows: dict[str, Window] = {}

    def get(self, key: str) -> Window | None:
        return self._windows.get(key)

    def put(self, key: str, window: Window) -> None:
        self._windows[key] = window

    def prune(self, expired: Callable[[Window], bool]) -> int:
        stale = [key for key, window in self._windows.items() if expired(window)]
        for key in stale:
            del self._windows[key]
        return len(stale)


class QuotaLedger:
    """
    Decides Admission for each generate-problem request.

    Owner identities are always admitted and never counted. The clock must be
    monotonic; tests pass a fake one.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        spacing_seconds: float,
        owner_identities: Iterable[str] = (),
        store: WindowStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self.spacing_seconds = spacing_seconds
        self.owner_identities = frozenset(owner_identities)
        self._store = store if store is not None else InMemoryWindowStore()
        self._clock = clock
        self._lock = threading.Lock()
        self._total_plays = 0
        self._players: set[str] = set()

    @classmethod
    def from_settings(cls, config: Settings) -> "QuotaLedger":
        return cls(
            limit=config.general_play_limit,
            window_seconds=config.general_window_hours * 3600,
            spacing_seconds=config.first_request_spacing_seconds,
            owner_identities=config.owner_ips,
        )

    def is_owner(self, identity: str) -> bool:
        return identity in self.owner_identities

    def admit(
        self,
        db: Session,
        identity: str,
        is_daily_challenge: bool = False,
        daily_seed: str | None = None,
    ) -> Admission:
        if self.is_owner(identity):
            logger.info("owner_access", identity=fingerprint(identity))
            return Admission.ALLOWED

        if is_daily_challenge and daily_seed:
            outcome = self._admit_daily(db, identity, daily_seed)
        else:
            outcome = self._admit_general(identity)

        if outcome.allowed:
            self._record_play(identity)
        return outcome

    def _admit_daily(self, db: Session, identity: str, daily_seed: str) -> Admission:
        # Registered before generation so a failed or abandoned play still counts
        try:
            db.execute(insert(DailyPlay).values(ip_address=identity, daily_seed=daily_seed))
            db.commit()
        except IntegrityError:
            db.rollback()
            return Admission.DENIED_DAILY
        return Admission.ALLOWED

    def _admit_general(self, identity: str) -> Admission:
        now = self._clock()
        with self._lock:
            window = self._store.get(identity)
            if window is None or self._is_expired(window, now):
                self._store.put(identity, Window(started_at=now, count=1))
                return Admission.ALLOWED
            if window.count >= self.limit:
                return Admission.DENIED_GENERAL
            if window.count == 1 and now - window.started_at < self.spacing_seconds:
                return Admission.DENIED_THROTTLE
            window.count += 1
            self._store.put(identity, window)
            return Admission.ALLOWED

    def _is_expired(self, window: Window, now: float) -> bool:
        return now - window.started_at >= self.window_seconds

    def remaining(self, identity: str) -> int:
        """General-play requests left in the identity's current window."""
        if self.is_owner(identity):
            return self.limit
        now = self._clock()
        with self._lock:
            window = self._store.get(identity)
            if window is None or self._is_expired(window, now):
                return self.limit
            return max(0, self.limit - window.count)

    def prune(self) -> int:
        """Drop windows that have run out. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            return self._store.prune(lambda window: self._is_expired(window, now))

    def _record_play(self, identity: str) -> None:
        with self._lock:
            self._total_plays += 1
            self._players.add(fingerprint(identity))

    def play_stats(self) -> dict:
        with self._lock:
            return {"total_plays": self._total_plays, "unique_players": len(self._players)}


def purge_stale_daily_plays(db: Session, retention_days: int) -> int:
    """Delete daily-play records older than the retention period. Returns count."""
    cutoff = datetime.now(UTC).date() - timedelta(days=retention_days)
    result = db.execute(delete(DailyPlay).where(DailyPlay.play_date < cutoff))
    db.commit()
    return result.rowcount


quota_ledger = QuotaLedger.from_settings(settings)


def get_quota_ledger() -> QuotaLedger:
    """Dependency returning the process-wide ledger."""
    return quota_ledger
