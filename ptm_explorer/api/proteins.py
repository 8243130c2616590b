import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ptm_explorer.dependencies import get_enrichment_service, get_repository, not_found_as_404
from ptm_explorer.services.enrichment import EnrichmentService
from ptm_explorer.services.repository import Repository

router = APIRouter(prefix="/proteins", tags=["proteins"])
logger = logging.getLogger("ptm-explorer.proteins")


class FetchSequenceRequest(BaseModel):
    session_id: str = Field(..., min_length=1, alias="sessionId")

    model_config = {"populate_by_name": True}


class FetchKnownSitesRequest(BaseModel):
    session_id: Optional[str] = Field(None, alias="sessionId")

    model_config = {"populate_by_name": True}


@router.post("/{uniprot_id}/fetch-sequence")
async def fetch_sequence(
    uniprot_id: str,
    body: FetchSequenceRequest,
    enrichment: EnrichmentService = Depends(get_enrichment_service),
):
    with not_found_as_404():
        result = await enrichment.fetch_sequence(body.session_id, uniprot_id)

    if not result.ok:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(result.error))

    protein = result.value
    return {
        "success": True,
        "uniprotId": protein.uniprot_id,
        "sequence": protein.sequence,
        "length": protein.sequence_length,
        "protein": protein.to_dict(),
    }


@router.post("/{uniprot_id}/fetch-known-ptms")
async def fetch_known_ptms(
    uniprot_id: str,
    body: Optional[FetchKnownSitesRequest] = Body(None),
    enrichment: EnrichmentService = Depends(get_enrichment_service),
):
    session_id = body.session_id if body else None
    with not_found_as_404():
        result = await enrichment.fetch_known_sites(uniprot_id, session_id)

    if not result.ok:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(result.error))

    return {
        "success": True,
        "uniprotId": uniprot_id,
        "count": len(result.value),
        "knownPtms": [site.to_dict() for site in result.value],
    }


@router.get("/{uniprot_id}/known-ptms")
async def list_known_ptms(uniprot_id: str, repository: Repository = Depends(get_repository)):
    sites = await repository.list_known_sites(uniprot_id)
    return [site.to_dict() for site in sites]
