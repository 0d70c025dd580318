"""
AI generation endpoints backed by Gemini.

POST /api/generate/section      - write one PRD section from the product context
POST /api/generate/description  - 2-3 sentence product description
POST /api/generate/enhance      - rewrite text following an instruction

A missing API key is reported as 400; any upstream failure as 502.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies.gateways import get_generator
from app.models.schemas import (
    EnhanceRequest,
    GenerateDescriptionRequest,
    GenerateSectionRequest,
    GenerationResponse,
)
from app.services.generation import GenerationError, GenerationGateway, MissingCredentialError

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_http(exc: GenerationError) -> HTTPException:
    if isinstance(exc, MissingCredentialError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="API Key missing. Please configure it in Settings.",
        )
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


@router.post("/section", response_model=GenerationResponse)
async def generate_section(
    body: GenerateSectionRequest,
    generator: GenerationGateway = Depends(get_generator),
) -> GenerationResponse:
    try:
        text = await generator.generate_section(body.title, body.context)
    except GenerationError as exc:
        raise _to_http(exc)
    return GenerationResponse(text=text)


@router.post("/description", response_model=GenerationResponse)
async def generate_description(
    body: GenerateDescriptionRequest,
    generator: GenerationGateway = Depends(get_generator),
) -> GenerationResponse:
    try:
        text = await generator.generate_description(body.product_name)
    except GenerationError as exc:
        raise _to_http(exc)
    return GenerationResponse(text=text)


@router.post("/enhance", response_model=GenerationResponse)
async def enhance(
    body: EnhanceRequest,
    generator: GenerationGateway = Depends(get_generator),
) -> GenerationResponse:
    try:
        text = await generator.enhance(body.text, body.instruction)
    except GenerationError as exc:
        raise _to_http(exc)
    return GenerationResponse(text=text)
