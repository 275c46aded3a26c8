"""Approximate token counting using tiktoken."""

from functools import lru_cache

import tiktoken

# Flat estimate for an attached image or document
ATTACHMENT_TOKENS = 256


@lru_cache()
def _get_encoding() -> tiktoken.Encoding:
    # cl100k_base is a reasonable approximation for most models
    return tiktoken.get_encoding("cl100k_base")


def count_tokens(text: str) -> int:
    return len(_get_encoding().encode(text))


def count_content_tokens(content: str | list[dict]) -> int:
    if isinstance(content, str):
        return count_tokens(content)
    total = 0
    for part in content:
        if part["type"] == "text":
            total += count_tokens(part["text"])
        else:
            total += ATTACHMENT_TOKENS
    return total
