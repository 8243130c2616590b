from contextlib import contextmanager

from fastapi import Depends, HTTPException, Request, status

from ptm_explorer.errors import ProteinNotFound, SessionNotFound
from ptm_explorer.services.enrichment import EnrichmentGateway, EnrichmentService
from ptm_explorer.services.protein_view import ProteinViewService
from ptm_explorer.services.repository import Repository
from ptm_explorer.services.upload import UploadProcessor


def get_repository(request: Request) -> Repository:
    return request.app.state.repository


def get_upload_processor(request: Request) -> UploadProcessor:
    return request.app.state.upload_processor


def get_gateway(request: Request) -> EnrichmentGateway:
    return request.app.state.gateway


def get_view_service(repository: Repository = Depends(get_repository)) -> ProteinViewService:
    return ProteinViewService(repository)


def get_enrichment_service(
    repository: Repository = Depends(get_repository),
    gateway: EnrichmentGateway = Depends(get_gateway),
) -> EnrichmentService:
    return EnrichmentService(repository, gateway)


@contextmanager
def not_found_as_404():
    """Translate lookup misses into 404 responses."""
    try:
        yield
    except SessionNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    except ProteinNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Protein not found in session")
