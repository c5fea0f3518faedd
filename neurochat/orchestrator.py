"""The send flow: validates, stages the placeholder, streams into it, finalizes."""

from neurochat.completion_client import CompletionClient
from neurochat.conversation_store import ConversationStore
from neurochat.errors import GENERIC_MSG
from neurochat.globals import log_exception
from neurochat.models import FileAttachment, Message, MessageRole

NO_RESPONSE_TEXT = "No response received."
TITLE_LENGTH = 30


def derive_title(text: str) -> str:
    """First 30 characters of the text, with an ellipsis when cut."""
    text = text.strip()
    if len(text) > TITLE_LENGTH:
        return text[:TITLE_LENGTH] + "..."
    return text


class ChatOrchestrator:
    """Bridges the ConversationStore and the CompletionClient. One send at a time."""

    def __init__(self, store: ConversationStore, client: CompletionClient):
        self.store = store
        self.client = client
        self.is_sending: bool = False
        # Banner slot for the UI, separate from the error bubble in the session
        self.last_error: str | None = None

    def clear_error(self):
        self.last_error = None

    def send(self, text: str, attachment: FileAttachment | None = None) -> bool:
        """
        Runs one exchange against the active session.

        Returns False when the send is rejected: no active session, a send
        already in flight, or nothing to send.
        """
        session = self.store.active_session
        if session is None or self.is_sending or (not text.strip() and not attachment):
            return False

        session_id = session.id
        self.is_sending = True
        self.last_error = None
        # Only real turns are replayed to the service
        history = [
            m
            for m in session.messages
            if m.role in (MessageRole.USER, MessageRole.ASSISTANT) and not m.pending
        ]

        self.store.append_message(
            session_id,
            Message(role=MessageRole.USER, text=text, attachment=attachment),
        )
        self.store.append_message(
            session_id, Message(role=MessageRole.ASSISTANT, pending=True)
        )

        full_text = ""

        def on_chunk(cleaned: str):
            nonlocal full_text
            full_text = cleaned
            self.store.update_last_message(
                session_id, lambda m: m.model_copy(update={"text": cleaned})
            )

        def on_error(error_text: str):
            self._fail(session_id, error_text)

        try:
            self.client.send(history, text, on_chunk, on_error, attachment)
        except Exception as e:
            log_exception(e, "Error in ChatOrchestrator.send()")
            self._fail(session_id, f"{GENERIC_MSG} Details: {e}")
        finally:
            self.store.update_last_message(
                session_id, lambda m: self._finalize(m, full_text)
            )
            self.is_sending = False

        finished = self.store.get_session(session_id)
        if finished and len(finished.messages) <= 2 and text.strip():
            self.store.rename_session(session_id, derive_title(text))
        return True

    def _fail(self, session_id: str, error_text: str):
        self.last_error = error_text
        self.store.update_last_message(
            session_id,
            lambda m: m.model_copy(
                update={"role": MessageRole.ERROR, "text": error_text, "pending": False}
            ),
        )

    @staticmethod
    def _finalize(message: Message, full_text: str) -> Message:
        # _fail already swapped any partial reply for the error text; keep it
        if message.role == MessageRole.ERROR:
            return message.model_copy(update={"pending": False})
        return message.model_copy(
            update={
                "role": MessageRole.ASSISTANT,
                "text": full_text or NO_RESPONSE_TEXT,
                "pending": False,
            }
        )
