"""Strips <think>...</think> reasoning spans from model output."""

import re

# Closed spans first, then whatever is left of an unterminated trailing span
THINK_BLOCK = re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL)
THINK_TAIL = re.compile(r"<think>.*", re.IGNORECASE | re.DOTALL)


def strip_reasoning(text: str) -> str:
    """
    Removes every reasoning span, plus a trailing one that was never closed.

    Tags can straddle stream chunks, so callers pass the full accumulated text
    on every chunk, never just the newest fragment.
    """
    text = THINK_BLOCK.sub("", text)
    text = THINK_TAIL.sub("", text)
    return text.strip()
