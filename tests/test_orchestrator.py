"""The send flow, end to end and against scripted clients."""

import httpx

from neurochat.models import FileAttachment, MessageRole
from neurochat.orchestrator import NO_RESPONSE_TEXT, ChatOrchestrator, derive_title

from conftest import sse_body, stream_response


class ScriptedClient:
    """Stands in for CompletionClient: replays chunks, then an optional error."""

    def __init__(self, chunks=(), error=None, raises=None, during_chunk=None):
        self.chunks = chunks
        self.error = error
        self.raises = raises
        self.during_chunk = during_chunk
        self.calls = []

    def send(self, history, text, on_chunk, on_error, attachment=None):
        self.calls.append((list(history), text, attachment))
        for chunk in self.chunks:
            on_chunk(chunk)
            if self.during_chunk:
                self.during_chunk()
        if self.raises:
            raise self.raises
        if self.error:
            on_error(self.error)
            return ""
        return self.chunks[-1] if self.chunks else ""


# 1. End to end through the real client


def test_hello_end_to_end(store, make_client):
    client = make_client(lambda request: stream_response(sse_body("He", "llo")))
    orchestrator = ChatOrchestrator(store, client)
    pending_texts = []
    store.subscribe(
        lambda state: pending_texts.append(state.sessions[0].messages[-1].text)
        if state.sessions[0].messages and state.sessions[0].messages[-1].pending
        else None
    )

    assert orchestrator.send("Hello") is True

    session = store.active_session
    assert len(session.messages) == 2
    user, reply = session.messages
    assert (user.role, user.text) == (MessageRole.USER, "Hello")
    assert (reply.role, reply.text, reply.pending) == (
        MessageRole.ASSISTANT,
        "Hello",
        False,
    )
    assert session.title == "Hello"
    assert "He" in pending_texts and "Hello" in pending_texts
    assert orchestrator.is_sending is False
    assert orchestrator.last_error is None


def test_unauthorized_end_to_end_leaves_error_bubble(store, make_client):
    client = make_client(lambda request: httpx.Response(401, json={}))
    orchestrator = ChatOrchestrator(store, client)

    orchestrator.send("Hi")

    reply = store.active_session.messages[-1]
    assert reply.role == MessageRole.ERROR
    assert reply.pending is False
    assert "Authorization" in reply.text
    assert orchestrator.last_error == reply.text


# 2. Validation


def test_rejects_empty_input(store):
    client = ScriptedClient(["x"])
    orchestrator = ChatOrchestrator(store, client)
    assert orchestrator.send("   ") is False
    assert client.calls == []
    assert store.active_session.messages == ()


def test_attachment_alone_is_enough(store):
    client = ScriptedClient(["Looks like a cat."])
    orchestrator = ChatOrchestrator(store, client)
    image = FileAttachment(name="cat.png", mime_type="image/png", content="AAAA")

    assert orchestrator.send("", image) is True

    user = store.active_session.messages[0]
    assert user.attachment == image
    assert client.calls[0][2] == image
    # Blank text never renames the session
    assert store.active_session.title == "New chat 1"


def test_rejects_while_in_flight(store):
    results = []
    orchestrator = ChatOrchestrator(store, None)
    orchestrator.client = ScriptedClient(
        ["a"], during_chunk=lambda: results.append(orchestrator.send("again"))
    )

    orchestrator.send("first")

    assert results == [False]
    assert len(store.active_session.messages) == 2


def test_rejects_without_active_session(store):
    orchestrator = ChatOrchestrator(store, ScriptedClient(["x"]))
    store._state = store.state.model_copy(update={"active_session_id": None})
    assert orchestrator.send("hello") is False


# 3. Finalization


def test_empty_stream_gets_fallback_text(store):
    orchestrator = ChatOrchestrator(store, ScriptedClient([]))
    orchestrator.send("ping")
    reply = store.active_session.messages[-1]
    assert reply.text == NO_RESPONSE_TEXT
    assert reply.role == MessageRole.ASSISTANT
    assert reply.pending is False


def test_error_callback_keeps_error_text(store):
    orchestrator = ChatOrchestrator(
        store, ScriptedClient(["half"], error="Cannot reach the completion service.")
    )
    orchestrator.send("ping")
    reply = store.active_session.messages[-1]
    assert reply.role == MessageRole.ERROR
    assert reply.text == "Cannot reach the completion service."
    assert orchestrator.last_error == reply.text


def test_exception_from_client_becomes_error_bubble(store):
    orchestrator = ChatOrchestrator(store, ScriptedClient(raises=RuntimeError("kaboom")))
    assert orchestrator.send("ping") is True
    reply = store.active_session.messages[-1]
    assert reply.role == MessageRole.ERROR
    assert "kaboom" in reply.text
    assert orchestrator.is_sending is False


def test_reply_lands_in_original_session_after_switch(store):
    original = store.active_session_id
    other = store.create_session()
    store.switch_active(original)

    orchestrator = ChatOrchestrator(store, None)
    orchestrator.client = ScriptedClient(
        ["answer"], during_chunk=lambda: store.switch_active(other.id)
    )
    orchestrator.send("question")

    assert store.active_session_id == other.id
    assert store.get_session(other.id).messages == ()
    assert store.get_session(original).messages[-1].text == "answer"
    assert store.get_session(original).title == "question"


# 4. History and titles


def test_history_excludes_new_turn_and_error_bubbles(store):
    client = ScriptedClient(["one"])
    orchestrator = ChatOrchestrator(store, client)
    orchestrator.send("first")
    client.error, client.chunks = "boom", []
    orchestrator.send("second")
    client.error, client.chunks = None, ["three"]
    orchestrator.send("third")

    history, text, _ = client.calls[-1]
    assert text == "third"
    assert [(m.role, m.text) for m in history] == [
        (MessageRole.USER, "first"),
        (MessageRole.ASSISTANT, "one"),
        (MessageRole.USER, "second"),
    ]


def test_title_only_set_on_first_exchange(store):
    orchestrator = ChatOrchestrator(store, ScriptedClient(["ok"]))
    orchestrator.send("First question")
    orchestrator.send("Second question")
    assert store.active_session.title == "First question"


def test_derive_title_truncates_with_ellipsis():
    assert derive_title("  short  ") == "short"
    long = "a" * 31
    assert derive_title(long) == "a" * 30 + "..."
    assert derive_title("b" * 30) == "b" * 30
