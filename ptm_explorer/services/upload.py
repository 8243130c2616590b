"""
Upload pipeline: parse → validate → store raw observations and proteins →
refresh session totals.

Structural problems (missing columns, unreadable file) fail the whole upload
and leave nothing behind. Row problems are collected and reported while the
remaining rows are ingested.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ptm_explorer.analysis.tsv_parser import parse_ptm_report
from ptm_explorer.domain import DEFAULT_ORGANISM, ProteinRecord
from ptm_explorer.errors import (
    MissingColumns,
    RowValidationError,
    SessionNotFound,
    StructuralValidationError,
)

from .repository import Repository

logger = logging.getLogger("ptm-explorer.upload")


@dataclass
class UploadResult:
    success: bool
    proteins: int = 0
    ptm_sites: int = 0
    validation_errors: List[RowValidationError] = field(default_factory=list)
    error: Optional[str] = None
    missing_columns: Optional[List[str]] = None
    max_reported_errors: int = 10

    def to_dict(self) -> dict:
        if not self.success:
            body = {"success": False, "error": self.error}
            if self.missing_columns:
                body["missingColumns"] = self.missing_columns
            return body

        body = {
            "success": True,
            "processed": {"proteins": self.proteins, "ptmSites": self.ptm_sites},
        }
        if self.validation_errors:
            body["validationErrors"] = [
                e.to_dict() for e in self.validation_errors[: self.max_reported_errors]
            ]
            body["totalValidationErrors"] = len(self.validation_errors)
        return body


class UploadProcessor:
    """Ingests PTM site reports into sessions, one upload per session at a time."""

    def __init__(self, repository: Repository, max_reported_errors: int = 10):
        self.repository = repository
        self.max_reported_errors = max_reported_errors
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def forget(self, session_id: str) -> None:
        self._locks.pop(session_id, None)

    async def delete(self, session_id: str) -> bool:
        """Delete a session once any upload into it has finished."""
        async with self._lock_for(session_id):
            deleted = await self.repository.delete_session(session_id)
        self.forget(session_id)
        return deleted

    async def process(
        self,
        session_id: str,
        content: Union[bytes, str],
        file_name: Optional[str] = None,
    ) -> UploadResult:
        session = await self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)

        async with self._lock_for(session_id):
            return await self._process_locked(session_id, content, file_name)

    async def _process_locked(
        self,
        session_id: str,
        content: Union[bytes, str],
        file_name: Optional[str],
    ) -> UploadResult:
        start_time = time.time()
        if await self.repository.update_session(session_id, status="processing") is None:
            raise SessionNotFound(session_id)
        logger.info(f"[Session {session_id}] Upload started: {file_name or '<unnamed>'}")

        try:
            parsed = parse_ptm_report(content)
        except MissingColumns as e:
            await self.repository.update_session(session_id, status="failed")
            logger.warning(f"[Session {session_id}] Upload rejected: {e}")
            return UploadResult(
                success=False,
                error="Missing required columns in TSV file",
                missing_columns=e.missing,
                max_reported_errors=self.max_reported_errors,
            )
        except StructuralValidationError as e:
            await self.repository.update_session(session_id, status="failed")
            logger.warning(f"[Session {session_id}] Upload rejected: {e}")
            return UploadResult(
                success=False,
                error=str(e),
                max_reported_errors=self.max_reported_errors,
            )

        try:
            new_proteins = []
            for accession, meta in parsed.protein_metadata.items():
                # First sighting wins; existing records keep their metadata
                if await self.repository.get_protein(session_id, accession) is not None:
                    continue
                new_proteins.append(ProteinRecord(
                    session_id=session_id,
                    uniprot_id=accession,
                    protein_name=meta.protein_name,
                    gene_name=meta.gene_name,
                    organism=meta.organism or DEFAULT_ORGANISM,
                ))

            await self.repository.record_upload(session_id, new_proteins, parsed.observations)

            total_proteins, total_sites = await self.repository.session_totals(session_id)
            update = {
                "status": "completed",
                "total_proteins": total_proteins,
                "total_ptm_sites": total_sites,
            }
            if file_name:
                update["file_name"] = file_name
            await self.repository.update_session(session_id, **update)
        except SessionNotFound:
            logger.warning(f"[Session {session_id}] Session removed during upload; nothing stored")
            raise
        except Exception as e:
            logger.error(f"[Session {session_id}] Upload failed: {e}", exc_info=True)
            await self.repository.update_session(session_id, status="failed")
            raise

        elapsed = time.time() - start_time
        logger.info(
            f"[Session {session_id}] Upload completed in {elapsed:.2f}s: "
            f"{len(parsed.observations):,} sites, {len(parsed.protein_metadata):,} proteins, "
            f"{len(parsed.row_errors):,} rejected rows"
        )
        return UploadResult(
            success=True,
            proteins=len(parsed.protein_metadata),
            ptm_sites=len(parsed.observations),
            validation_errors=parsed.row_errors,
            max_reported_errors=self.max_reported_errors,
        )
