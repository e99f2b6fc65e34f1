"""
Chat endpoints.

POST /api/v1/chat/classify - decide whether a chat message asks for app generation
"""
from fastapi import APIRouter

from appforge.models.schemas.input_output import ClassifyRequest, ClassifyResponse
from appforge.services.analysis.intent_classifier import classify_message
from appforge.utils.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post(
    "/chat/classify",
    response_model=ClassifyResponse,
    tags=["Chat"],
    summary="Classify a chat message",
    description="Route a message to app generation or to plain conversation.",
)
async def classify(request: ClassifyRequest) -> ClassifyResponse:
    decision = classify_message(request.message)
    logger.debug(
        "api.chat.classified",
        extra={"is_generation": decision.is_generation, "rule": decision.rule},
    )
    return ClassifyResponse(
        is_generation=decision.is_generation,
        rule=decision.rule,
        matched=decision.matched,
    )
