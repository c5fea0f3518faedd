"""Chat completion requests against an OpenAI-compatible streaming endpoint."""

from enum import Enum
from typing import Callable, Iterator, Sequence

import httpx
from openai import OpenAI
from openai.types.chat import ChatCompletionMessageParam

from neurochat.errors import classify_error
from neurochat.globals import log_exception, retrieve_key
from neurochat.models import FileAttachment, Message, MessageRole
from neurochat.stream_decoder import extract_delta, iter_events
from neurochat.tag_filter import strip_reasoning


class SendState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


def format_user_content(text: str, attachment: FileAttachment | None = None) -> str:
    """Folds an attachment into the outgoing user message."""
    if attachment is None:
        return text
    if attachment.is_image:
        return (
            f"Attached image file: {attachment.name} (Type: {attachment.mime_type}).\n"
            f"Content (base64):\n{attachment.content}\n\n---\n\n{text}"
        )
    if attachment.is_text:
        return (
            f"Contents of file {attachment.name}:\n{attachment.content}"
            f"\n\n---\n\n{text}"
        )
    return (
        f"Attached file: {attachment.name} (Type: {attachment.mime_type}). "
        "Take its contents into account when answering, if relevant."
        f"\n\n---\n\n{text}"
    )


def build_messages(
    system_prompt: str,
    history: Sequence[Message],
    text: str,
    attachment: FileAttachment | None = None,
) -> list[ChatCompletionMessageParam]:
    """System instruction, then history, then the new user turn."""
    messages: list[ChatCompletionMessageParam] = [
        {"role": "system", "content": system_prompt}
    ]
    for msg in history:
        if msg.role == MessageRole.ASSISTANT:
            messages.append({"role": "assistant", "content": msg.text})
        else:
            messages.append({"role": "user", "content": msg.text})
    messages.append({"role": "user", "content": format_user_content(text, attachment)})
    return messages


class CompletionClient:
    """
    Streams one completion at a time.

    The raw event stream is read through the openai client's streaming
    response and decoded by StreamDecoder. Every content delta is appended to
    an accumulator and the whole accumulator is re-filtered, so each snapshot
    is the cumulative cleaned text so far.
    """

    def __init__(
        self,
        config,
        http_client: httpx.Client | None = None,
        api_key: str | None = None,
    ):
        self.config = config
        self.http_client = http_client
        # Last key given explicitly; outlives profile switches
        self.api_key: str | None = api_key
        self.state: SendState = SendState.IDLE
        self.client: OpenAI = self._build_client()

    def _build_client(self) -> OpenAI:
        return OpenAI(
            base_url=self.config.endpoint,
            api_key=self.api_key or retrieve_key(),
            max_retries=0,
            http_client=self.http_client,
        )

    def reconnect(self, api_key: str | None = None):
        """Rebuilds the HTTP client after a profile or API key change."""
        if api_key:
            self.api_key = api_key
        self.client = self._build_client()

    def stream(
        self,
        history: Sequence[Message],
        text: str,
        attachment: FileAttachment | None = None,
    ) -> Iterator[str]:
        """Yields cumulative cleaned text snapshots. Raises ChatError on failure."""
        self.state = SendState.SENDING
        messages = build_messages(self.config.system_prompt, history, text, attachment)
        accumulated = ""
        try:
            with self.client.chat.completions.with_streaming_response.create(
                model=self.config.model_name,
                messages=messages,
                stream=True,
                max_completion_tokens=self.config.max_completion_tokens,
                temperature=self.config.temperature,
                top_p=self.config.top_p,
                extra_headers={"Accept": "text/event-stream"},
            ) as response:
                self.state = SendState.STREAMING
                for payload in iter_events(response.iter_bytes()):
                    delta = extract_delta(payload)
                    if delta:
                        accumulated += delta
                        yield strip_reasoning(accumulated)
        except Exception as e:
            self.state = SendState.FAILED
            raise classify_error(e) from e
        self.state = SendState.COMPLETED

    def send(
        self,
        history: Sequence[Message],
        text: str,
        on_chunk: Callable[[str], None],
        on_error: Callable[[str], None],
        attachment: FileAttachment | None = None,
    ) -> str:
        """
        Push-style wrapper around stream().

        on_chunk receives every cumulative snapshot. Failures never propagate:
        they are logged, reported once through on_error, and "" is returned.
        """
        final = ""
        snapshots = self.stream(history, text, attachment)
        try:
            for snapshot in snapshots:
                final = snapshot
                on_chunk(snapshot)
        except Exception as e:
            # Errors raised by on_chunk land here too, with the stream still open
            self.state = SendState.FAILED
            error = classify_error(e)
            log_exception(e, "Error in CompletionClient.send()")
            on_error(error.message)
            return ""
        finally:
            snapshots.close()
        return final
