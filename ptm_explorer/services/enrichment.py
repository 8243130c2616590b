"""
Protein enrichment from an external reference source.

Failures never touch stored state: the sequence stays absent and previously
stored known sites stay as they were. Fetches for different accessions are
independent and run concurrently.
"""

import asyncio
import logging
from typing import List, Optional, Protocol

from ptm_explorer.domain import KnownSite, ProteinRecord, utcnow
from ptm_explorer.tools.uniprot import FetchResult

from .protein_view import ProteinViewService
from .repository import Repository

logger = logging.getLogger("ptm-explorer.enrichment")


class EnrichmentGateway(Protocol):
    async def fetch_sequence(self, protein_id: str) -> FetchResult[str]: ...

    async def fetch_metadata(self, protein_id: str) -> FetchResult[dict]: ...

    async def fetch_known_sites(self, protein_id: str) -> FetchResult[List[KnownSite]]: ...


def _fill_missing_metadata(protein: ProteinRecord, metadata: dict) -> None:
    # Upload-time metadata takes precedence; UniProt only fills gaps
    if not protein.protein_name and metadata.get("protein_name"):
        protein.protein_name = metadata["protein_name"]
    if not protein.gene_name and metadata.get("gene_name"):
        protein.gene_name = metadata["gene_name"]
    if not protein.description and metadata.get("description"):
        protein.description = metadata["description"]


class EnrichmentService:
    def __init__(self, repository: Repository, gateway: EnrichmentGateway):
        self.repository = repository
        self.gateway = gateway
        self._lookup = ProteinViewService(repository)

    async def fetch_sequence(self, session_id: str, uniprot_id: str) -> FetchResult[ProteinRecord]:
        protein = await self._lookup.require_protein(session_id, uniprot_id)

        result = await self.gateway.fetch_sequence(uniprot_id)
        if not result.ok:
            return FetchResult(error=result.error)

        protein.sequence = result.value
        protein.sequence_length = len(result.value)
        protein.last_updated = utcnow()

        metadata = await self.gateway.fetch_metadata(uniprot_id)
        if metadata.ok:
            _fill_missing_metadata(protein, metadata.value)
        else:
            logger.warning(f"Metadata fetch failed for {uniprot_id}: {metadata.error}")

        await self.repository.update_protein(protein)
        logger.info(f"[Session {session_id}] Sequence stored for {uniprot_id} ({protein.sequence_length} aa)")
        return FetchResult.success(protein)

    async def fetch_missing_sequences(self, session_id: str) -> dict:
        """Fetch sequences for every protein of the session that has none yet."""
        await self._lookup.require_session(session_id)
        pending = [p.uniprot_id for p in await self.repository.list_proteins(session_id) if not p.sequence]

        results = await asyncio.gather(*(self.fetch_sequence(session_id, acc) for acc in pending))

        failed = {acc: str(r.error) for acc, r in zip(pending, results) if not r.ok}
        logger.info(
            f"[Session {session_id}] Sequence enrichment: {len(pending) - len(failed)}/{len(pending)} fetched"
        )
        return {
            "requested": len(pending),
            "fetched": len(pending) - len(failed),
            "failed": [{"uniprotId": acc, "error": err} for acc, err in failed.items()],
        }

    async def fetch_known_sites(
        self, uniprot_id: str, session_id: Optional[str] = None
    ) -> FetchResult[List[KnownSite]]:
        if session_id is not None:
            await self._lookup.require_protein(session_id, uniprot_id)

        result = await self.gateway.fetch_known_sites(uniprot_id)
        if not result.ok:
            return result

        stored = await self.repository.upsert_known_sites(result.value)
        logger.info(f"Known sites stored for {uniprot_id}: {stored}")
        return result
