from __future__ import annotations

import logging
from typing import AsyncIterator, Iterator

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from starlette.concurrency import iterate_in_threadpool, run_in_threadpool

from ...config import ConciergeSettings, load_settings
from ...core.state_machine import SegmentationPolicy
from ...domain.chat_models import ChatQuery
from ...domain.events import MessageIds
from ...errors import ConfigurationError, UnknownVariantError, UpstreamError, UpstreamStatusError
from ...observability.metrics import STREAM_FAILURES
from ...services.chat_ai import CompletionClient, CompletionPayload, UpstreamStream
from ...services.policies import TopicPolicy, build_policy
from ...services.prompts import build_chat_payload, build_topics_payload
from ...services.streaming import CompletionPipeline

LOG = logging.getLogger("concierge.api")

STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"
STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
}

router = APIRouter(tags=["chat"])


def get_settings() -> ConciergeSettings:
    return load_settings()


def get_completion_client(settings: ConciergeSettings = Depends(get_settings)) -> CompletionClient:
    return CompletionClient(settings)


async def _relay(frames: Iterator[bytes], upstream: UpstreamStream) -> AsyncIterator[bytes]:
    # Runs until the stream ends or the client disconnects; either way the
    # upstream connection is released.
    try:
        async for frame in iterate_in_threadpool(frames):
            yield frame
    finally:
        upstream.close()
        frames.close()


async def _stream_completion(
    client: CompletionClient,
    payload: CompletionPayload,
    policy: SegmentationPolicy,
    settings: ConciergeSettings,
) -> StreamingResponse:
    try:
        upstream = await run_in_threadpool(client.open_stream, payload)
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except UpstreamStatusError as exc:
        STREAM_FAILURES.labels(reason="status").inc()
        if settings.silent_upstream_errors:
            LOG.warning("upstream_error_silenced", extra={"status": exc.status_code, "variant": policy.name})
            return StreamingResponse(iter(()), media_type=STREAM_MEDIA_TYPE, headers=STREAM_HEADERS)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": "Completion provider rejected the request", "status": exc.status_code},
        ) from exc
    except UpstreamError as exc:
        STREAM_FAILURES.labels(reason="upstream").inc()
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    pipeline = CompletionPipeline(policy, MessageIds(len(payload.messages)))
    frames = pipeline.frames(upstream.chunks())
    return StreamingResponse(_relay(frames, upstream), media_type=STREAM_MEDIA_TYPE, headers=STREAM_HEADERS)


@router.post("/chat", response_class=StreamingResponse)
async def chat(
    query: ChatQuery,
    variant: str = Query("query", description="Segmenter variant: chat, preview or query"),
    settings: ConciergeSettings = Depends(get_settings),
    client: CompletionClient = Depends(get_completion_client),
) -> StreamingResponse:
    try:
        policy = build_policy(variant)
    except UnknownVariantError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    if isinstance(policy, TopicPolicy):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Use /topics for topic suggestions",
        )
    payload = build_chat_payload(query, settings)
    LOG.info("chat_request", extra={"variant": policy.name, "messages": len(payload.messages)})
    return await _stream_completion(client, payload, policy, settings)


@router.post("/topics", response_class=StreamingResponse)
async def topics(
    query: ChatQuery,
    settings: ConciergeSettings = Depends(get_settings),
    client: CompletionClient = Depends(get_completion_client),
) -> StreamingResponse:
    payload = build_topics_payload(query, settings)
    LOG.info("topics_request", extra={"messages": len(payload.messages)})
    return await _stream_completion(client, payload, TopicPolicy(), settings)
