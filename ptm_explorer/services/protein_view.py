"""Read side: consolidated, sequence-annotated PTM sites per protein, summaries and search."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ptm_explorer.analysis.consolidation import (
    ConsolidatedSite,
    condition_labels,
    consolidate,
    filter_sites,
    merge_site_maps,
)
from ptm_explorer.analysis.export import sites_to_csv
from ptm_explorer.analysis.observations import EvidenceClass, RawObservation
from ptm_explorer.analysis.sequence_window import (
    DEFAULT_WINDOW_RADIUS,
    describe_window,
    validate_radius,
)
from ptm_explorer.domain import KnownSite, ProteinRecord
from ptm_explorer.errors import ProteinNotFound, SessionNotFound

from .repository import Repository

logger = logging.getLogger("ptm-explorer.protein-view")


def known_site_observation(site: KnownSite) -> RawObservation:
    return RawObservation(
        uniprot_id=site.uniprot_id,
        site_location=site.site_location,
        modification_type=site.modification_type,
        site_aa=site.site_aa,
        evidence_class=EvidenceClass.KNOWN,
        references=tuple(site.pubmed_ids),
    )


@dataclass
class SiteFilters:
    condition: Optional[str] = None
    modification_type: Optional[str] = None
    evidence_class: Optional[EvidenceClass] = None


@dataclass
class ProteinSiteView:
    protein: ProteinRecord
    sites: List[ConsolidatedSite]
    observation_count: int
    window_radius: int = DEFAULT_WINDOW_RADIUS
    conditions: List[str] = field(default_factory=list)
    modification_types: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        sequence = self.protein.sequence
        return {
            "protein": self.protein.to_dict(),
            "windowRadius": self.window_radius,
            "observationCount": self.observation_count,
            "siteCount": len(self.sites),
            "conditions": self.conditions,
            "modificationTypes": self.modification_types,
            "sites": [
                {
                    **site.to_dict(),
                    "sequenceWindow": describe_window(sequence, site.site_location, self.window_radius),
                }
                for site in self.sites
            ],
        }


class ProteinViewService:
    def __init__(self, repository: Repository):
        self.repository = repository

    async def require_session(self, session_id: str) -> None:
        if await self.repository.get_session(session_id) is None:
            raise SessionNotFound(session_id)

    async def require_protein(self, session_id: str, uniprot_id: str) -> ProteinRecord:
        await self.require_session(session_id)
        protein = await self.repository.get_protein(session_id, uniprot_id)
        if protein is None:
            raise ProteinNotFound(uniprot_id, session_id)
        return protein

    async def protein_view(
        self,
        session_id: str,
        uniprot_id: str,
        window_radius: int = DEFAULT_WINDOW_RADIUS,
        filters: Optional[SiteFilters] = None,
    ) -> ProteinSiteView:
        validate_radius(window_radius)
        protein = await self.require_protein(session_id, uniprot_id)
        filters = filters or SiteFilters()

        observations = await self.repository.list_observations(session_id, uniprot_id)
        known = await self.repository.list_known_sites(uniprot_id)

        # Experimental and known sites are folded separately; their keys never collide
        sites = merge_site_maps(
            consolidate(observations),
            consolidate(known_site_observation(k) for k in known),
        )
        all_sites = list(sites.values())
        selected = filter_sites(
            all_sites,
            condition=filters.condition,
            modification_type=filters.modification_type,
            evidence_class=filters.evidence_class,
        )
        logger.debug(
            f"[Session {session_id}] {uniprot_id}: {len(observations)} observations, "
            f"{len(known)} known, {len(selected)}/{len(all_sites)} sites shown"
        )

        return ProteinSiteView(
            protein=protein,
            sites=selected,
            observation_count=len(observations),
            window_radius=window_radius,
            conditions=condition_labels(all_sites),
            modification_types=sorted({s.modification_type for s in all_sites}),
        )

    async def export_csv(
        self,
        session_id: str,
        uniprot_id: str,
        window_radius: int = DEFAULT_WINDOW_RADIUS,
        filters: Optional[SiteFilters] = None,
    ) -> str:
        view = await self.protein_view(session_id, uniprot_id, window_radius, filters)
        return sites_to_csv(view.sites, view.protein.sequence, window_radius)

    async def list_proteins(self, session_id: str) -> List[dict]:
        await self.require_session(session_id)
        proteins = await self.repository.list_proteins(session_id)
        counts = await self.repository.count_observations(session_id)
        return [
            {**p.to_dict(), "ptmSiteCount": counts.get(p.uniprot_id, 0)}
            for p in proteins
        ]

    async def modification_summary(self, session_id: str) -> List[dict]:
        await self.require_session(session_id)
        summary = await self.repository.modification_summary(session_id)
        return [{"modificationType": mod, "count": count} for mod, count in summary]

    async def search(self, session_id: str, query: str) -> List[dict]:
        await self.require_session(session_id)
        proteins = await self.repository.search_proteins(session_id, query.strip())
        return [p.to_dict() for p in proteins]
