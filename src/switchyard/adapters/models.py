"""Conversation state shared by SDK-backed adapters."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Message:
    """A standard conversational message turn."""

    role: str
    content: str = ""


@dataclass
class SessionStore:
    """In-memory chat histories keyed by session id.

    Histories only grow after a completed turn, so a failed call leaves the
    session as it was.
    """

    _sessions: dict[str, list[Message]] = field(default_factory=dict)

    def history(self, session_id: str | None) -> list[Message]:
        """Return a copy of the turns recorded for *session_id*."""
        if session_id is None:
            return []
        return list(self._sessions.get(session_id, ()))

    def record(self, session_id: str | None, prompt: str, reply: str) -> None:
        """Append a user/assistant exchange to *session_id*."""
        if session_id is None:
            return
        turns = self._sessions.setdefault(session_id, [])
        turns.append(Message(role="user", content=prompt))
        turns.append(Message(role="assistant", content=reply))

    def end(self, session_id: str) -> bool:
        """Drop *session_id*; return whether it existed."""
        return self._sessions.pop(session_id, None) is not None

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
