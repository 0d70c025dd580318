"""
PRD endpoints.

Route summary
-------------
GET    /api/prds/{prd_id}                 - load a PRD (normalized)
PUT    /api/prds/{prd_id}                 - upsert a PRD
POST   /api/prds/import                   - validate + store an exported PRD
POST   /api/prds/{prd_id}/comments        - add a comment, returns all comments
POST   /api/prds/{prd_id}/upvote          - add/remove one upvote
PUT    /api/prds/{prd_id}/status          - set the approval status
GET    /api/prds/{prd_id}/export?format=  - download as json/markdown/text/html
"""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status

from app.dependencies.gateways import get_persistence
from app.models.schemas import (
    PRD,
    Comment,
    ExportFormat,
    StatusUpdateRequest,
    StatusUpdateResponse,
    UpvoteRequest,
    UpvoteResponse,
)
from app.services.exporter import ImportValidationError, export_prd, parse_import
from app.services.persistence import PersistenceGateway, PRDNotFoundError
from app.services.section_catalog import normalize_prd

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Helpers ──────────────────────────────────────────────────────────────────

async def _load(persistence: PersistenceGateway, prd_id: str) -> PRD:
    record = await persistence.fetch_by_id(prd_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"PRD {prd_id} not found",
        )
    return normalize_prd(record)


def _not_found(exc: PRDNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


# ═══════════════════════════════════════════════════════════════════════════════
# DOCUMENTS
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/import", response_model=PRD, status_code=status.HTTP_201_CREATED)
async def import_prd(
    body: Any = Body(...),
    persistence: PersistenceGateway = Depends(get_persistence),
) -> PRD:
    """Validate a previously exported PRD, normalize it and store it."""
    try:
        prd = parse_import(body)
    except ImportValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return await persistence.save(prd)


@router.get("/{prd_id}", response_model=PRD)
async def get_prd(
    prd_id: str,
    persistence: PersistenceGateway = Depends(get_persistence),
) -> PRD:
    return await _load(persistence, prd_id)


@router.put("/{prd_id}", response_model=PRD)
async def save_prd(
    prd_id: str,
    body: Dict[str, Any] = Body(...),
    persistence: PersistenceGateway = Depends(get_persistence),
) -> PRD:
    """
    Upsert a PRD. The body is normalized like any stored record, so unknown
    sections are dropped and catalog metadata is restored.
    """
    body_id = body.get("id")
    if body_id not in (None, "", prd_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Body id {body_id!r} does not match path id {prd_id!r}",
        )
    prd = normalize_prd({**body, "id": prd_id})
    saved = await persistence.save(prd)
    logger.info("Saved PRD %s (%s)", saved.id, saved.product_name or "untitled")
    return saved


# ═══════════════════════════════════════════════════════════════════════════════
# PUBLIC VIEW ACTIONS
# ═══════════════════════════════════════════════════════════════════════════════

@router.post(
    "/{prd_id}/comments",
    response_model=List[Comment],
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    prd_id: str,
    comment: Comment,
    persistence: PersistenceGateway = Depends(get_persistence),
) -> List[Comment]:
    try:
        return await persistence.add_comment(prd_id, comment)
    except PRDNotFoundError as exc:
        raise _not_found(exc)


@router.post("/{prd_id}/upvote", response_model=UpvoteResponse)
async def toggle_upvote(
    prd_id: str,
    body: UpvoteRequest,
    persistence: PersistenceGateway = Depends(get_persistence),
) -> UpvoteResponse:
    try:
        count = await persistence.toggle_upvote(prd_id, body.increment)
    except PRDNotFoundError as exc:
        raise _not_found(exc)
    return UpvoteResponse(upvotes=count)


@router.put("/{prd_id}/status", response_model=StatusUpdateResponse)
async def update_status(
    prd_id: str,
    body: StatusUpdateRequest,
    persistence: PersistenceGateway = Depends(get_persistence),
) -> StatusUpdateResponse:
    try:
        await persistence.update_status(prd_id, body.status)
    except PRDNotFoundError as exc:
        raise _not_found(exc)
    return StatusUpdateResponse(prd_id=prd_id, approval_status=body.status)


# ═══════════════════════════════════════════════════════════════════════════════
# EXPORT
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/{prd_id}/export")
async def export(
    prd_id: str,
    format: ExportFormat = Query(ExportFormat.MARKDOWN),
    persistence: PersistenceGateway = Depends(get_persistence),
) -> Response:
    """Render the PRD as a downloadable file."""
    prd = await _load(persistence, prd_id)
    content, media_type, filename = export_prd(prd, format)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
