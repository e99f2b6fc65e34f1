"""
Generation endpoints.

POST /api/v1/generate      - stream the session as server-sent events
POST /api/v1/generate/sync - run the session and return one result
"""
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, StreamingResponse

from appforge.api.dependencies import get_orchestrator, get_rate_limiter
from appforge.core.exceptions import RateLimitExceededError
from appforge.llm.retry import describe_failure
from appforge.models.schemas.events import CompleteEvent, ErrorEvent, format_sse
from appforge.models.schemas.input_output import ErrorResponse, GenerationRequest, GenerationResult
from appforge.services.orchestrator import GenerationOrchestrator
from appforge.utils.logging import get_logger, log_context
from appforge.utils.rate_limiter import RateLimiter

router = APIRouter()
logger = get_logger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def enforce_rate_limit(user_id: str, rate_limiter: RateLimiter) -> None:
    """
    Count one request for the user.

    Raises:
        RateLimitExceededError: When the user is over the limit
    """
    try:
        allowed, rate_info = await rate_limiter.check_rate_limit(user_id)
    except Exception as e:
        logger.error("api.rate_limit.check_failed", extra={"error": str(e)}, exc_info=e)
        return

    if not allowed:
        logger.warning(
            "api.rate_limit.exceeded",
            extra={"limit": rate_info.get("limit"), "retry_after": rate_info.get("retry_after")},
        )
        raise RateLimitExceededError(
            f"Rate limit exceeded. Try again in {rate_info.get('retry_after', 0)} seconds.",
            retry_after=rate_info.get("retry_after", 0),
        )

    logger.debug("api.rate_limit.passed", extra={"remaining": rate_info.get("remaining")})


def rate_limited_response(exc: RateLimitExceededError) -> JSONResponse:
    body = ErrorResponse(error=str(exc), retryable=True, retry_after=exc.retry_after)
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=body.model_dump(),
        headers={"Retry-After": str(exc.retry_after)},
    )


async def sse_stream(orchestrator: GenerationOrchestrator, request: GenerationRequest) -> AsyncIterator[str]:
    """Render orchestrator events as SSE frames; always ends with a complete frame."""
    completed = False
    try:
        async for event in orchestrator.stream(request):
            if isinstance(event, CompleteEvent):
                completed = True
            yield format_sse(event)
    except Exception as e:
        message, retryable = describe_failure(e)
        logger.error("api.generate.stream_failed", extra={"request_id": request.request_id}, exc_info=e)
        yield format_sse(ErrorEvent(error=message, retryable=retryable))
    if not completed:
        yield format_sse(CompleteEvent(error=True, mode=request.mode))


@router.post(
    "/generate",
    tags=["Generation"],
    summary="Generate an app (streaming)",
    description="Plan, generate and optionally review an app, streamed as server-sent events.",
    responses={429: {"model": ErrorResponse}},
)
async def generate(
    request: GenerationRequest,
    http_request: Request,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
):
    with log_context(
        correlation_id=request.request_id,
        session_id=request.session_id,
        project_id=request.project_id,
        user_id=request.user_id,
        endpoint="/api/v1/generate",
    ):
        logger.info(
            "api.generate.received",
            extra={
                "prompt_length": len(request.prompt),
                "platform": request.platform,
                "mode": request.mode,
                "existing_files": len(request.existing_files),
                "client_ip": http_request.client.host if http_request.client else None,
            },
        )

        try:
            await enforce_rate_limit(request.user_id, rate_limiter)
        except RateLimitExceededError as e:
            return rate_limited_response(e)

    return StreamingResponse(
        sse_stream(orchestrator, request),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post(
    "/generate/sync",
    response_model=GenerationResult,
    tags=["Generation"],
    summary="Generate an app (single response)",
    responses={429: {"model": ErrorResponse}},
)
async def generate_sync(
    request: GenerationRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
):
    with log_context(
        correlation_id=request.request_id,
        project_id=request.project_id,
        user_id=request.user_id,
        endpoint="/api/v1/generate/sync",
    ):
        try:
            await enforce_rate_limit(request.user_id, rate_limiter)
        except RateLimitExceededError as e:
            return rate_limited_response(e)

        try:
            result = await orchestrator.run(request)
        except Exception as e:
            message, retryable = describe_failure(e)
            logger.error("api.generate_sync.failed", exc_info=e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=ErrorResponse(error=message, retryable=retryable).model_dump(),
            )

        logger.info(
            "api.generate_sync.completed",
            extra={"files": len(result.files), "incomplete": result.incomplete, "error": result.error},
        )
        return result
