"""Thread orchestration: context preparation, resumption, completion, titles."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from src.config.settings import get_settings
from src.db import queries
from src.db.models import ROLE_USER, STATUS_READY, STATUS_STREAMING
from src.db.transaction import transaction
from src.llm.client import get_llm_client
from src.llm.context import convert_messages_for_model
from src.llm.prompts import TITLE_GENERATION_PROMPT, TITLE_MAX_LENGTH, TITLE_TEMPERATURE
from src.threads.schemas import ThreadMessage
from src.usage.limits import Limits, get_limits, remaining_credits
from src.utils.errors import APIError, conflict, forbidden, internal, not_found
from src.utils.latch import Latch

logger = logging.getLogger(__name__)


@dataclass
class ThreadContext:
    model: dict
    history: list[dict]
    settings: dict
    usage: dict
    limits: Limits
    thread: dict


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _all(*aws):
    """Await everything, then raise the first failure if any."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


def verify_ownership(thread: dict, user_id: str) -> None:
    if thread["user_id"] != user_id:
        raise forbidden("User is not the owner of the thread")


async def _prepare(
    tx,
    *,
    is_anonymous: bool,
    user_id: str,
    thread_id: str,
    stream_id: str,
    model_id: str,
    message: ThreadMessage,
) -> ThreadContext:
    logger.info("Preparing thread context")
    thread, existing, model, settings, usage, customer = await _all(
        queries.get_thread_by_id(tx, thread_id),
        queries.get_message_by_id(tx, message.id),
        queries.get_model_by_id(tx, model_id),
        queries.get_settings_by_user_id(tx, user_id),
        queries.get_usage_by_user_id(tx, user_id),
        queries.get_user_customer_by_user_id(tx, user_id),
    )

    if not settings:
        raise not_found(f"Settings for user ({user_id}) does not exist")
    if not usage:
        raise not_found(f"Usage for user ({user_id}) does not exist")
    if not model:
        raise not_found(f"Model with ({model_id}) does not exist")

    if not thread:
        logger.info("Creating thread")
        thread = await queries.create_thread(tx, thread_id=thread_id, user_id=user_id)

    if thread["status"] == STATUS_STREAMING:
        raise conflict("Thread is already streaming")
    verify_ownership(thread, user_id)
    if existing and existing["thread_id"] != thread_id:
        raise forbidden("Message does not belong to the thread")
    if existing and existing["role"] != ROLE_USER:
        raise forbidden("Only user messages can be edited")

    limits = get_limits(customer, is_anonymous)
    if remaining_credits(limits, usage, model) < 0:
        raise forbidden("You have reached your credit limit.")

    logger.info("Update thread status to streaming")
    now = _now()
    await queries.update_thread(tx, thread_id, status=STATUS_STREAMING, stream_id=stream_id, updated_at=now)

    payload = message.model_dump()
    if existing:
        logger.info("Updating message and deleting trailing messages")
        await _all(
            queries.update_message(tx, message.id, payload, updated_at=now),
            queries.delete_trailing_messages(tx, thread_id, message.id, existing["created_at"]),
        )
    else:
        logger.info("Creating message")
        await queries.create_message(tx, thread_id=thread_id, user_id=user_id, message=payload)

    history = await queries.get_thread_message_history(tx, thread_id)
    return ThreadContext(model=model, history=history, settings=settings, usage=usage, limits=limits, thread=thread)


async def prepare_thread_context(
    db,
    *,
    is_anonymous: bool,
    user_id: str,
    thread_id: str,
    stream_id: str,
    model_id: str,
    message: ThreadMessage,
) -> ThreadContext:
    """Validate the request and mark the thread as streaming, all or nothing.

    APIErrors from validation reach the caller unchanged; anything else is
    reported as a generic 500.
    """
    try:
        async with transaction(db) as tx:
            return await _prepare(
                tx,
                is_anonymous=is_anonymous,
                user_id=user_id,
                thread_id=thread_id,
                stream_id=stream_id,
                model_id=model_id,
                message=message,
            )
    except APIError:
        raise
    except Exception as e:
        logger.exception("Failed to prepare thread context for thread %s", thread_id)
        raise internal("Failed to prepare thread context") from e


async def prepare_resume_thread_context(db, *, thread_id: str, user_id: str) -> str:
    """Return the stream id a client may reattach to."""
    thread = await queries.get_thread_by_id(db, thread_id)
    if not thread:
        raise not_found("Thread not found")
    verify_ownership(thread, user_id)
    if thread["status"] != STATUS_STREAMING:
        raise conflict("Thread is not streaming")
    if not thread.get("stream_id"):
        raise not_found("Thread is not streaming")
    return thread["stream_id"]


async def save_message_and_reset_thread_status(db, *, thread_id: str, user_id: str, message: dict) -> None:
    async with transaction(db) as tx:
        logger.info("Saving message and resetting thread status")
        await _all(
            queries.create_message(tx, thread_id=thread_id, user_id=user_id, message=message),
            queries.update_thread(tx, thread_id, status=STATUS_READY, stream_id=None, updated_at=_now()),
        )


async def reset_thread_status(db, thread_id: str) -> None:
    logger.info("Resetting thread status")
    await queries.update_thread(db, thread_id, status=STATUS_READY, stream_id=None, updated_at=_now())


def _clean_title(text: str) -> str:
    title = text.strip().strip("\"'").replace(":", "").replace('"', "")
    return " ".join(title.split())[:TITLE_MAX_LENGTH]


async def generate_thread_title(db, thread_id: str, message: ThreadMessage, latch: Latch) -> str:
    """Summarise the first message into a title and store it.

    The latch stays closed for the whole run. Failures leave an empty title.
    """
    latch.close()
    try:
        logger.info("Generating thread title")
        settings = get_settings()
        try:
            client = get_llm_client(settings.TITLE_PROVIDER)
            messages = await convert_messages_for_model([message.model_dump()])
            result = await client.generate(
                messages,
                settings.TITLE_MODEL,
                system=TITLE_GENERATION_PROMPT,
                temperature=TITLE_TEMPERATURE,
            )
            title = _clean_title(result["content"])
        except Exception:
            logger.exception("Error generating thread title")
            title = ""

        try:
            await queries.update_thread_title(db, thread_id, title)
        except Exception:
            logger.exception("Error updating thread title")
        return title
    finally:
        latch.open()


async def get_thread_view(db, thread_id: str, user_id: str) -> tuple[dict, list[dict]]:
    thread = await queries.get_thread_by_id(db, thread_id)
    if not thread:
        raise not_found("Thread not found")
    verify_ownership(thread, user_id)
    messages = await queries.get_thread_message_history(db, thread_id)
    return thread, messages


async def list_threads(db, user_id: str, page: int, per_page: int) -> list[dict]:
    return await queries.list_threads_by_user(db, user_id, page, per_page)
