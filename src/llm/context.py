"""Turn stored thread messages into model input, within a token budget."""

import logging

import httpx

from src.llm.token_counter import count_content_tokens

logger = logging.getLogger(__name__)

# Default token budget (conservative for smaller models)
DEFAULT_MAX_TOKENS = 6000

DOCUMENT_TYPES = ("application/pdf", "text/plain")


def _is_document(media_type: str) -> bool:
    return media_type.startswith(DOCUMENT_TYPES)


def _is_image(media_type: str) -> bool:
    return media_type.startswith("image/")


def filter_parts(parts: list[dict], supports_images: bool = False, supports_documents: bool = False) -> list[dict]:
    """Drop file parts the model cannot take."""
    kept = []
    for part in parts:
        if part.get("type") == "file":
            media_type = part.get("media_type", "")
            if _is_document(media_type) and not supports_documents:
                continue
            if _is_image(media_type) and not supports_images:
                continue
        kept.append(part)
    return kept


async def _fetch(http: httpx.AsyncClient, url: str) -> bytes:
    response = await http.get(url)
    response.raise_for_status()
    return response.content


async def _convert_part(http: httpx.AsyncClient, part: dict, inline_images: bool = False) -> dict | None:
    if part.get("type") == "text":
        return {"type": "text", "text": part["text"]}
    if part.get("type") != "file":
        return None

    media_type = part.get("media_type", "")
    if _is_image(media_type):
        image = {"type": "image_url", "url": part["url"], "media_type": media_type}
        if inline_images:
            image["data"] = await _fetch(http, part["url"])
        return image
    if media_type.startswith("text/plain"):
        text = (await _fetch(http, part["url"])).decode("utf-8", errors="replace")
        name = part.get("filename") or "document"
        return {"type": "text", "text": f"<document name=\"{name}\">\n{text}\n</document>"}
    if media_type.startswith("application/pdf"):
        return {"type": "file", "mime_type": media_type, "data": await _fetch(http, part["url"])}
    return None


async def convert_messages_for_model(
    messages: list[dict],
    supports_images: bool = False,
    supports_documents: bool = False,
    inline_images: bool = False,
    http: httpx.AsyncClient | None = None,
) -> list[dict]:
    """Convert stored messages to OpenAI-style {"role", "content"} dicts.

    Plain-text-only messages get string content; anything with attachments
    gets a list of parts. Documents are downloaded, and so are images when
    ``inline_images`` is set.
    """
    owns_client = http is None
    http = http or httpx.AsyncClient(timeout=30.0, follow_redirects=True)
    try:
        converted = []
        for message in messages:
            parts = filter_parts(message.get("parts") or [], supports_images, supports_documents)
            content = [p for p in [await _convert_part(http, part, inline_images) for part in parts] if p is not None]
            if all(p["type"] == "text" for p in content):
                content = "\n".join(p["text"] for p in content)
            converted.append({"role": message["role"], "content": content})
        return converted
    finally:
        if owns_client:
            await http.aclose()


def build_context(conversation_messages: list[dict], max_tokens: int = DEFAULT_MAX_TOKENS) -> list[dict]:
    """Keep a message list within the token budget.

    Strategy: always include the first message + as many recent messages as
    fit within the remaining budget. The system prompt is passed separately.
    """
    if not conversation_messages:
        return []

    first_msg = conversation_messages[0]
    first_tokens = count_content_tokens(first_msg["content"]) + 4

    # Build from the end (most recent messages first)
    recent: list[dict] = []
    used = 0

    for msg in reversed(conversation_messages[1:]):
        msg_tokens = count_content_tokens(msg["content"]) + 4
        if used + msg_tokens + first_tokens > max_tokens:
            break
        recent.insert(0, msg)
        used += msg_tokens

    if len(recent) < len(conversation_messages) - 1:
        logger.info("Trimmed %d messages from context", len(conversation_messages) - 1 - len(recent))

    # If first message still fits, include it
    if first_tokens <= max_tokens - used:
        return [first_msg] + recent
    return recent
