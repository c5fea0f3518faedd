"""Session state, mutations and local persistence."""

import logging
from typing import Callable

from pydantic import TypeAdapter

from neurochat.models import Message, Session, StoreState
from neurochat.storage import KeyValueCache

SESSIONS_KEY = "chat_sessions"
ACTIVE_KEY = "active_session_id"
INTERRUPTED_TEXT = "Response interrupted."

_SESSION_LIST = TypeAdapter(list[Session])

logger = logging.getLogger(__name__)

Observer = Callable[[StoreState], None]


def _default_title(count: int) -> str:
    return f"New chat {count + 1}"


def _settle_pending(session: Session) -> Session:
    """Finalizes messages left pending by a run that never finished streaming."""
    if not any(m.pending for m in session.messages):
        return session
    messages = tuple(
        m.model_copy(update={"pending": False, "text": m.text or INTERRUPTED_TEXT})
        if m.pending
        else m
        for m in session.messages
    )
    return session.model_copy(update={"messages": messages})


class ConversationStore:
    """
    Owns every session and message.

    Each mutation builds a complete new StoreState, swaps it in, writes it to
    the cache and only then notifies observers, so an observer never sees a
    half-applied change. Unknown ids are silently ignored.
    """

    def __init__(self, cache: KeyValueCache):
        self.cache = cache
        self._state: StoreState = StoreState()
        self._observers: list[Observer] = []
        self._restore()

    # <~~ACCESSORS~~>
    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def sessions(self) -> tuple[Session, ...]:
        return self._state.sessions

    @property
    def active_session_id(self) -> str | None:
        return self._state.active_session_id

    @property
    def active_session(self) -> Session | None:
        return self.get_session(self._state.active_session_id)

    def get_session(self, session_id: str | None) -> Session | None:
        for s in self._state.sessions:
            if s.id == session_id:
                return s
        return None

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Registers an observer, returns a callable that removes it."""
        self._observers.append(observer)

        def unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # <~~MUTATIONS~~>
    def create_session(self) -> Session:
        """New session at the top of the list, made active."""
        session = Session(title=_default_title(len(self._state.sessions)))
        self._commit(
            StoreState(
                sessions=(session, *self._state.sessions),
                active_session_id=session.id,
            )
        )
        return session

    def delete_session(self, session_id: str):
        """
        Removes a session. A deleted active session hands over to its
        predecessor, else its successor, else the first remaining session.
        Deleting the last session replaces it with a fresh one.
        """
        sessions = self._state.sessions
        index = next((i for i, s in enumerate(sessions) if s.id == session_id), None)
        if index is None:
            return
        remaining = sessions[:index] + sessions[index + 1 :]
        active = self._state.active_session_id

        if active == session_id:
            if index > 0:
                active = sessions[index - 1].id
            elif index + 1 < len(sessions):
                active = sessions[index + 1].id
            elif remaining:
                active = remaining[0].id
            else:
                active = None

        if not remaining:
            fresh = Session(title=_default_title(0))
            remaining, active = (fresh,), fresh.id

        self._commit(StoreState(sessions=remaining, active_session_id=active))

    def switch_active(self, session_id: str):
        if self.get_session(session_id) is None:
            return
        self._commit(self._state.model_copy(update={"active_session_id": session_id}))

    def rename_session(self, session_id: str, new_title: str):
        """Blank titles are ignored."""
        title = new_title.strip()
        if not title:
            return
        self._replace_session(
            session_id, lambda s: s.model_copy(update={"title": title})
        )

    def append_message(self, session_id: str, message: Message):
        self._replace_session(
            session_id,
            lambda s: s.model_copy(update={"messages": (*s.messages, message)}),
        )

    def update_last_message(
        self, session_id: str, update_fn: Callable[[Message], Message]
    ):
        """Replaces the last message of a session with update_fn(last)."""

        def apply(session: Session) -> Session:
            if not session.messages:
                return session
            last = update_fn(session.messages[-1])
            return session.model_copy(
                update={"messages": (*session.messages[:-1], last)}
            )

        self._replace_session(session_id, apply)

    # <~~INTERNALS~~>
    def _replace_session(self, session_id: str, fn: Callable[[Session], Session]):
        if self.get_session(session_id) is None:
            return
        sessions = tuple(fn(s) if s.id == session_id else s for s in self._state.sessions)
        self._commit(self._state.model_copy(update={"sessions": sessions}))

    def _commit(self, state: StoreState):
        previous = self._state
        self._state = state
        self._persist(previous)
        for observer in list(self._observers):
            observer(state)

    def _persist(self, previous: StoreState):
        """Best effort: a failed write is logged, the in-memory state stands."""
        state = self._state
        try:
            if state.sessions is not previous.sessions:
                self.cache.set(
                    SESSIONS_KEY, _SESSION_LIST.dump_json(list(state.sessions)).decode()
                )
            if (
                state.active_session_id
                and state.active_session_id != previous.active_session_id
            ):
                self.cache.set(ACTIVE_KEY, state.active_session_id)
        except OSError as e:
            logger.error(f"Could not write the session cache: {e}")

    def _restore(self):
        """Loads the cached sessions, or starts with one fresh session."""
        sessions: tuple[Session, ...] = ()
        last_active = None
        try:
            raw = self.cache.get(SESSIONS_KEY)
            if raw:
                sessions = tuple(_SESSION_LIST.validate_json(raw))
            last_active = self.cache.get(ACTIVE_KEY)
        except (OSError, ValueError) as e:
            logger.warning(f"Discarding unreadable session cache: {e}")
            sessions = ()

        if not sessions:
            self.create_session()
            return

        sessions = tuple(_settle_pending(s) for s in sessions)
        if not any(s.id == last_active for s in sessions):
            last_active = sessions[0].id
        self._state = StoreState(sessions=sessions, active_session_id=last_active)
