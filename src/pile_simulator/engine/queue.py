"""Bounded admission queue — one per pile.

Invariant, at every instant:

  len(waiting) + (1 if active else 0) ≤ capacity

``enqueue`` either admits the whole request or raises ``AdmissionRejected``
and leaves the queue untouched.  ``promote`` moves the head of ``waiting``
into the active slot; ordering is by arrival instant, ties by submission
order, never by charge type.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime

from pile_simulator.engine.session import ChargeSession, SessionStatus
from pile_simulator.errors import AdmissionRejected, InvalidTransition, SessionNotFound


class AdmissionQueue:
    """FIFO of waiting sessions plus at most one active (charging) session."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._waiting: deque[ChargeSession] = deque()
        self._active: ChargeSession | None = None

    # ── Inspection ──────────────────────────────────────────────────────

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def active(self) -> ChargeSession | None:
        return self._active

    @property
    def waiting(self) -> tuple[ChargeSession, ...]:
        return tuple(self._waiting)

    @property
    def occupancy(self) -> int:
        return len(self._waiting) + (1 if self._active is not None else 0)

    @property
    def is_full(self) -> bool:
        return self.occupancy >= self._capacity

    def __len__(self) -> int:
        return self.occupancy

    def __contains__(self, request_id: int) -> bool:
        return self.find(request_id) is not None

    def find(self, request_id: int) -> ChargeSession | None:
        if self._active is not None and self._active.id == request_id:
            return self._active
        for session in self._waiting:
            if session.id == request_id:
                return session
        return None

    # ── Operations ──────────────────────────────────────────────────────

    def enqueue(self, session: ChargeSession) -> None:
        """Admit a queued session behind every session that arrived no later."""
        if session.status is not SessionStatus.QUEUED:
            raise InvalidTransition(f"session {session.id} is {session.status.value}, not queued")
        if session.id in self:
            raise AdmissionRejected(session.id, "duplicate_id")
        if self.is_full:
            raise AdmissionRejected(session.id, "queue_full")

        arrival = session.request.arrival_instant
        position = len(self._waiting)
        if arrival is not None:
            while position > 0:
                ahead = self._waiting[position - 1].request.arrival_instant
                if ahead is None or ahead <= arrival:
                    break
                position -= 1
        self._waiting.insert(position, session)

    def promote(self, now: datetime) -> ChargeSession | None:
        """Start the head of ``waiting`` when the pile is free; None when nothing moved."""
        if self._active is not None or not self._waiting:
            return None
        session = self._waiting.popleft()
        session.start(now)
        self._active = session
        return session

    def complete(self, now: datetime) -> ChargeSession:
        """Charging → completed; frees the active slot."""
        session = self._require_active("complete")
        session.complete(now)
        self._active = None
        return session

    def interrupt(self, now: datetime) -> ChargeSession:
        """Charging → interrupted; frees the active slot."""
        session = self._require_active("interrupt")
        session.interrupt(now)
        self._active = None
        return session

    def cancel(self, request_id: int, now: datetime) -> ChargeSession:
        """Remove a waiting session without any billing effect."""
        for session in self._waiting:
            if session.id == request_id:
                self._waiting.remove(session)
                session.cancel(now)
                return session
        raise SessionNotFound(request_id)

    def _require_active(self, action: str) -> ChargeSession:
        if self._active is None:
            raise InvalidTransition(f"cannot {action}: no session is charging")
        return self._active
