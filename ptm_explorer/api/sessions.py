import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from ptm_explorer.analysis.observations import EvidenceClass
from ptm_explorer.analysis.sequence_window import WINDOW_RADIUS_MAX, WINDOW_RADIUS_MIN
from ptm_explorer.config import Settings, get_settings
from ptm_explorer.dependencies import (
    get_enrichment_service,
    get_repository,
    get_upload_processor,
    get_view_service,
    not_found_as_404,
)
from ptm_explorer.services.enrichment import EnrichmentService
from ptm_explorer.services.protein_view import ProteinViewService, SiteFilters
from ptm_explorer.services.repository import Repository
from ptm_explorer.services.upload import UploadProcessor

router = APIRouter(prefix="/sessions", tags=["sessions"])
logger = logging.getLogger("ptm-explorer.sessions")


class CreateSessionRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    file_name: Optional[str] = Field(None, alias="fileName")

    model_config = {"populate_by_name": True}


def _site_filters(
    condition: Optional[str] = Query(None),
    modification_type: Optional[str] = Query(None, alias="modificationType"),
    evidence_class: Optional[EvidenceClass] = Query(None, alias="type"),
) -> SiteFilters:
    return SiteFilters(
        condition=condition or None,
        modification_type=modification_type or None,
        evidence_class=evidence_class,
    )


def _window_radius(
    window: Optional[int] = Query(None, ge=WINDOW_RADIUS_MIN, le=WINDOW_RADIUS_MAX),
    settings: Settings = Depends(get_settings),
) -> int:
    return window if window is not None else settings.WINDOW_RADIUS_DEFAULT


# ── Sessions ─────────────────────────────────────────────────────────────


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_session(
    body: CreateSessionRequest,
    repository: Repository = Depends(get_repository),
):
    session = await repository.create_session(body.name.strip(), body.file_name)
    logger.info(f"[Session {session.id}] Created: {session.name}")
    return session.to_dict()


@router.get("")
async def list_sessions(repository: Repository = Depends(get_repository)):
    sessions = await repository.list_sessions()
    return [s.to_dict() for s in sessions]


@router.get("/{session_id}")
async def get_session(session_id: str, repository: Repository = Depends(get_repository)):
    session = await repository.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session.to_dict()


@router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    processor: UploadProcessor = Depends(get_upload_processor),
):
    if not await processor.delete(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    logger.info(f"[Session {session_id}] Deleted")
    return {"success": True}


# ── Upload ───────────────────────────────────────────────────────────────


@router.post("/{session_id}/upload")
async def upload_report(
    session_id: str,
    file: UploadFile = File(...),
    processor: UploadProcessor = Depends(get_upload_processor),
    settings: Settings = Depends(get_settings),
):
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit",
        )

    with not_found_as_404():
        result = await processor.process(session_id, content, file.filename)

    if not result.success:
        return JSONResponse(status_code=400, content=result.to_dict())
    return result.to_dict()


# ── Proteins ─────────────────────────────────────────────────────────────


@router.get("/{session_id}/proteins")
async def list_proteins(session_id: str, views: ProteinViewService = Depends(get_view_service)):
    with not_found_as_404():
        return await views.list_proteins(session_id)


@router.get("/{session_id}/proteins/{uniprot_id}")
async def get_protein_sites(
    session_id: str,
    uniprot_id: str,
    window_radius: int = Depends(_window_radius),
    filters: SiteFilters = Depends(_site_filters),
    views: ProteinViewService = Depends(get_view_service),
):
    with not_found_as_404():
        view = await views.protein_view(session_id, uniprot_id, window_radius, filters)
    return view.to_dict()


@router.get("/{session_id}/proteins/{uniprot_id}/export")
async def export_protein_sites(
    session_id: str,
    uniprot_id: str,
    window_radius: int = Depends(_window_radius),
    filters: SiteFilters = Depends(_site_filters),
    views: ProteinViewService = Depends(get_view_service),
):
    with not_found_as_404():
        csv_text = await views.export_csv(session_id, uniprot_id, window_radius, filters)
    filename = f"{uniprot_id}_ptm_sites.csv"
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{session_id}/fetch-sequences")
async def fetch_missing_sequences(
    session_id: str,
    enrichment: EnrichmentService = Depends(get_enrichment_service),
):
    with not_found_as_404():
        return await enrichment.fetch_missing_sequences(session_id)


# ── Summaries ────────────────────────────────────────────────────────────


@router.get("/{session_id}/ptm-summary")
async def ptm_summary(session_id: str, views: ProteinViewService = Depends(get_view_service)):
    with not_found_as_404():
        return await views.modification_summary(session_id)


@router.get("/{session_id}/search")
async def search_proteins(
    session_id: str,
    q: str = Query(""),
    views: ProteinViewService = Depends(get_view_service),
):
    if not q.strip():
        raise HTTPException(status_code=400, detail="Search query required")
    with not_found_as_404():
        return await views.search(session_id, q)
