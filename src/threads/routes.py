"""Thread endpoints: chat, resume, view, list."""

import asyncio
import logging
import uuid

from fastapi import APIRouter, Depends, Query
from starlette.responses import Response, StreamingResponse

from src.auth.dependencies import CurrentUser, get_current_user
from src.config.settings import get_settings
from src.db.client import get_db
from src.db.models import ROLE_ASSISTANT, STATUS_STREAMING
from src.llm.client import get_llm_client
from src.llm.context import build_context, convert_messages_for_model
from src.llm.prompts import build_system_prompt
from src.streams.resumable import create_resumable_stream, get_resumable_stream
from src.threads.schemas import ChatRequest, ThreadListResponse, ThreadView
from src.threads.service import (
    generate_thread_title,
    get_thread_view,
    list_threads,
    prepare_resume_thread_context,
    prepare_thread_context,
    reset_thread_status,
    save_message_and_reset_thread_status,
)
from src.threads.streaming import (
    format_content_block_delta,
    format_content_block_start,
    format_content_block_stop,
    format_error,
    format_message_delta,
    format_message_start,
    format_message_stop,
    format_thread_title,
)
from src.usage.service import decrement_usage, increment_usage
from src.utils.latch import Latch

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/threads", tags=["Threads"])

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"}


@router.get("", summary="List threads", description="List the authenticated user's threads, most recently updated first.")
async def list_all(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
):
    threads = await list_threads(db, user.id, page, per_page)
    return ThreadListResponse(data=threads, page=page, per_page=per_page)


@router.get("/{thread_id}", response_model=ThreadView, summary="Get a thread", description="Thread with its ordered message ids and streaming flag.")
async def get(thread_id: str, user: CurrentUser = Depends(get_current_user), db=Depends(get_db)):
    thread, messages = await get_thread_view(db, thread_id, user.id)
    return ThreadView(
        thread=thread,
        message_ids=[m["id"] for m in messages],
        is_streaming=thread["status"] == STATUS_STREAMING,
        messages=messages,
    )


@router.post("/{thread_id}/chat", summary="Send a message", description="Append or edit a user message and stream the assistant reply over SSE.")
async def chat(
    thread_id: str,
    body: ChatRequest,
    user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
):
    settings = get_settings()
    stream_id = str(uuid.uuid4())

    ctx = await prepare_thread_context(
        db,
        is_anonymous=user.is_anonymous,
        user_id=user.id,
        thread_id=thread_id,
        stream_id=stream_id,
        model_id=body.model_id,
        message=body.message,
    )
    model = ctx.model
    cost = model.get("credits") or 0
    try:
        await increment_usage(db, user.id, "credits", cost)
    except Exception:
        await reset_thread_status(db, thread_id)
        raise

    # Title the thread from its first message
    latch = Latch()
    title_task = None
    if len(ctx.history) == 1:
        title_task = asyncio.create_task(generate_thread_title(db, thread_id, body.message, latch))
        # let the task close the latch before anything waits on it
        await asyncio.sleep(0)

    system_prompt = build_system_prompt(ctx.settings.get("custom_instructions"))
    temperature = ctx.settings.get("temperature")
    message_id = str(uuid.uuid4())

    async def event_generator():
        full_content = ""
        output_tokens = 0
        finish_reason = "stop"
        failed = False

        try:
            yield format_message_start(message_id, model["id"], thread_id, stream_id)
            yield format_content_block_start()

            try:
                client = get_llm_client(model["provider"])
                history = await convert_messages_for_model(
                    ctx.history,
                    supports_images=bool(model.get("supports_images")),
                    supports_documents=bool(model.get("supports_documents")),
                    inline_images=client.inline_images,
                )
                context = build_context(history, settings.CONTEXT_MAX_TOKENS)
                async for chunk in client.generate_stream(
                    context, model["id"], system=system_prompt, temperature=temperature,
                ):
                    if chunk["type"] == "delta":
                        full_content += chunk["content"]
                        yield format_content_block_delta(chunk["content"])
                    elif chunk["type"] == "finish":
                        finish_reason = chunk.get("finish_reason", "stop")
                        output_tokens = chunk.get("usage", {}).get("output_tokens", 0)
            except Exception:
                logger.exception("Error during streaming")
                failed = True
                yield format_error("stream_error", "The model failed to respond")

            if not failed:
                yield format_content_block_stop()
                yield format_message_delta(finish_reason, output_tokens)

            await latch.wait()
            if title_task is not None and title_task.done() and not title_task.cancelled() and title_task.result():
                yield format_thread_title(thread_id, title_task.result())
            yield format_message_stop()
        finally:
            await _finish(db, user.id, thread_id, message_id, full_content, failed, cost)

    stream = await create_resumable_stream(stream_id, event_generator())
    return StreamingResponse(
        stream,
        media_type="text/event-stream",
        headers={**SSE_HEADERS, "X-Stream-Id": stream_id},
    )


async def _finish(db, user_id: str, thread_id: str, message_id: str, content: str, failed: bool, cost: int) -> None:
    """Persist the reply and release the thread; never raises."""
    try:
        if content:
            await save_message_and_reset_thread_status(
                db,
                thread_id=thread_id,
                user_id=user_id,
                message={"id": message_id, "role": ROLE_ASSISTANT, "parts": [{"type": "text", "text": content}]},
            )
        else:
            await reset_thread_status(db, thread_id)
        if failed and not content and cost:
            await decrement_usage(db, user_id, "credits", cost)
    except Exception:
        logger.exception("Failed to finalise stream for thread %s", thread_id)


@router.get("/{thread_id}/stream", summary="Resume a stream", description="Reattach to the thread's in-flight response stream.")
async def resume(thread_id: str, user: CurrentUser = Depends(get_current_user), db=Depends(get_db)):
    stream_id = await prepare_resume_thread_context(db, thread_id=thread_id, user_id=user.id)
    stream = await get_resumable_stream(stream_id)
    if stream is None:
        return Response(status_code=204)
    return StreamingResponse(stream, media_type="text/event-stream", headers={**SSE_HEADERS, "X-Stream-Id": stream_id})
