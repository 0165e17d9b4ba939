"""In-memory store for interactive debates with bounded size and lifetime."""

import logging
import time
import uuid
from collections.abc import Callable

from brainstorm.models import Session

logger = logging.getLogger(__name__)

SESSION_TTL_SEC = 10 * 60
MAX_SESSIONS = 50


class SessionError(Exception):
    """Raised for session-protocol misuse the caller can correct."""

    def __init__(self, session_id: str, message: str) -> None:
        self.session_id = session_id
        super().__init__(message)


class SessionNotFound(SessionError):
    """Unknown, expired, or already deleted session id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            session_id,
            f"Session {session_id} not found or expired. Sessions expire after "
            f"{SESSION_TTL_SEC // 60} minutes. Start a new brainstorm session.",
        )


class SessionComplete(SessionError):
    """The session has already produced its final result."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            session_id, f"Brainstorm session {session_id} is already complete. Start a new one."
        )


class SessionStore:
    """Sessions keyed by opaque id.

    Expiry is detected lazily on ``get`` and swept on ``create``; there is no
    background timer. Callers serialize requests for the same session id.
    """

    def __init__(
        self,
        ttl_sec: float = SESSION_TTL_SEC,
        max_sessions: int = MAX_SESSIONS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_sec = ttl_sec
        self.max_sessions = max_sessions
        self._clock = clock
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _expired(self, session: Session, now: float) -> bool:
        return now - session.created_at >= self.ttl_sec

    def _clean_expired(self) -> None:
        now = self._clock()
        for sid in [sid for sid, s in self._sessions.items() if self._expired(s, now)]:
            logger.debug("Session %s expired", sid)
            del self._sessions[sid]

    def create(
        self,
        topic: str,
        model_identifiers: list[str],
        total_rounds: int,
        synthesizer: str,
        instruction: str | None = None,
    ) -> Session:
        self._clean_expired()

        if len(self._sessions) >= self.max_sessions:
            oldest = min(self._sessions.values(), key=lambda s: s.created_at)
            logger.info("Session store full, evicting oldest session %s", oldest.id)
            del self._sessions[oldest.id]

        now = self._clock()
        session = Session(
            id=str(uuid.uuid4()),
            topic=topic,
            model_identifiers=list(model_identifiers),
            total_rounds=total_rounds,
            synthesizer=synthesizer,
            instruction=instruction,
            created_at=now,
            started_at=now,
        )
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> Session | None:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if self._expired(session, self._clock()):
            del self._sessions[session_id]
            return None
        return session

    def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
