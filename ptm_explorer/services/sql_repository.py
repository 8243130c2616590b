"""SQLAlchemy (async) implementation of the Repository interface."""

import logging
import math
import uuid
from collections import Counter
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ptm_explorer.analysis.observations import RawObservation
from ptm_explorer.domain import AnalysisSession, KnownSite, ProteinRecord, utcnow
from ptm_explorer.errors import SessionNotFound
from ptm_explorer.models import (
    AnalysisSessionModel,
    KnownPtmModel,
    ProteinModel,
    PtmObservationModel,
)

from .repository import Repository, _check_session_fields, _sorted_summary

logger = logging.getLogger("ptm-explorer.repository.sql")


def _to_session(row: AnalysisSessionModel) -> AnalysisSession:
    return AnalysisSession(
        id=row.id,
        name=row.name,
        file_name=row.file_name,
        status=row.status,
        total_proteins=row.total_proteins or 0,
        total_ptm_sites=row.total_ptm_sites or 0,
        uploaded_at=row.uploaded_at,
    )


def _to_protein(row: ProteinModel) -> ProteinRecord:
    return ProteinRecord(
        session_id=row.session_id,
        uniprot_id=row.uniprot_id,
        protein_name=row.protein_name,
        gene_name=row.gene_name,
        organism=row.organism,
        sequence=row.sequence,
        sequence_length=row.sequence_length,
        description=row.description,
        last_updated=row.last_updated,
    )


def _to_observation(row: PtmObservationModel) -> RawObservation:
    return RawObservation(
        uniprot_id=row.uniprot_id,
        site_location=row.site_location,
        modification_type=row.modification_type,
        site_aa=row.site_aa or "",
        site_probability=row.site_probability,
        quantity=row.quantity,
        flanking_region=row.flanking_region,
        multiplicity=row.multiplicity or 1,
        experiment_name=row.experiment_name,
        condition=row.condition,
    )


def _to_known(row: KnownPtmModel) -> KnownSite:
    return KnownSite(
        uniprot_id=row.uniprot_id,
        site_location=row.site_location,
        modification_type=row.modification_type,
        site_aa=row.site_aa or "",
        pubmed_ids=list(row.pubmed_ids or []),
        is_direct_site=bool(row.is_direct_site),
        notes=row.notes,
        source=row.source,
    )


def _storable_float(value: Optional[float]) -> Optional[float]:
    # MySQL FLOAT cannot hold NaN/inf; non-finite values carry no quantity anyway
    if value is None or not math.isfinite(value):
        return None
    return value


class SqlRepository(Repository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ── Sessions ─────────────────────────────────────────────────────────

    async def create_session(self, name: str, file_name: Optional[str] = None) -> AnalysisSession:
        async with self._session_factory() as db:
            row = AnalysisSessionModel(
                id=str(uuid.uuid4()),
                name=name,
                file_name=file_name,
                status="processing",
                total_proteins=0,
                total_ptm_sites=0,
                uploaded_at=utcnow(),
            )
            db.add(row)
            await db.commit()
            await db.refresh(row)
            return _to_session(row)

    async def get_session(self, session_id: str) -> Optional[AnalysisSession]:
        async with self._session_factory() as db:
            row = await db.get(AnalysisSessionModel, session_id)
            return _to_session(row) if row else None

    async def list_sessions(self) -> List[AnalysisSession]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(AnalysisSessionModel).order_by(AnalysisSessionModel.uploaded_at.desc())
            )
            return [_to_session(r) for r in result.scalars().all()]

    async def update_session(self, session_id: str, **fields) -> Optional[AnalysisSession]:
        _check_session_fields(fields)
        async with self._session_factory() as db:
            row = await db.get(AnalysisSessionModel, session_id)
            if row is None:
                return None
            for name, value in fields.items():
                setattr(row, name, value)
            await db.commit()
            await db.refresh(row)
            return _to_session(row)

    async def delete_session(self, session_id: str) -> bool:
        async with self._session_factory() as db:
            await db.execute(
                delete(PtmObservationModel).where(PtmObservationModel.session_id == session_id)
            )
            await db.execute(delete(ProteinModel).where(ProteinModel.session_id == session_id))
            result = await db.execute(
                delete(AnalysisSessionModel).where(AnalysisSessionModel.id == session_id)
            )
            await db.commit()
            return result.rowcount > 0

    # ── Proteins ─────────────────────────────────────────────────────────

    async def _protein_row(
        self, db: AsyncSession, session_id: str, uniprot_id: str
    ) -> Optional[ProteinModel]:
        result = await db.execute(
            select(ProteinModel).where(
                ProteinModel.session_id == session_id,
                ProteinModel.uniprot_id == uniprot_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_protein(self, session_id: str, uniprot_id: str) -> Optional[ProteinRecord]:
        async with self._session_factory() as db:
            row = await self._protein_row(db, session_id, uniprot_id)
            return _to_protein(row) if row else None

    async def list_proteins(self, session_id: str) -> List[ProteinRecord]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(ProteinModel)
                .where(ProteinModel.session_id == session_id)
                .order_by(ProteinModel.id)
            )
            return [_to_protein(r) for r in result.scalars().all()]

    async def update_protein(self, protein: ProteinRecord) -> None:
        async with self._session_factory() as db:
            row = await self._protein_row(db, protein.session_id, protein.uniprot_id)
            if row is None:
                return
            row.protein_name = protein.protein_name
            row.gene_name = protein.gene_name
            row.organism = protein.organism
            row.sequence = protein.sequence
            row.sequence_length = protein.sequence_length
            row.description = protein.description
            row.last_updated = protein.last_updated
            await db.commit()

    async def search_proteins(self, session_id: str, query: str) -> List[ProteinRecord]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(ProteinModel)
                .where(
                    ProteinModel.session_id == session_id,
                    or_(
                        ProteinModel.protein_name.icontains(query, autoescape=True),
                        ProteinModel.gene_name.icontains(query, autoescape=True),
                        ProteinModel.uniprot_id.icontains(query, autoescape=True),
                    ),
                )
                .order_by(ProteinModel.id)
            )
            return [_to_protein(r) for r in result.scalars().all()]

    # ── Observations ─────────────────────────────────────────────────────

    async def record_upload(
        self,
        session_id: str,
        proteins: List[ProteinRecord],
        observations: List[RawObservation],
    ) -> None:
        async with self._session_factory() as db:
            # Row lock on MySQL; a concurrent delete waits for this commit
            session_row = await db.execute(
                select(AnalysisSessionModel.id)
                .where(AnalysisSessionModel.id == session_id)
                .with_for_update()
            )
            if session_row.scalar_one_or_none() is None:
                raise SessionNotFound(session_id)

            result = await db.execute(
                select(ProteinModel.uniprot_id).where(ProteinModel.session_id == session_id)
            )
            existing = set(result.scalars().all())

            for protein in proteins:
                if protein.uniprot_id in existing:
                    continue
                existing.add(protein.uniprot_id)
                db.add(ProteinModel(
                    session_id=session_id,
                    uniprot_id=protein.uniprot_id,
                    protein_name=protein.protein_name,
                    gene_name=protein.gene_name,
                    organism=protein.organism,
                    sequence=protein.sequence,
                    sequence_length=protein.sequence_length,
                    description=protein.description,
                    last_updated=protein.last_updated,
                ))

            db.add_all([
                PtmObservationModel(
                    session_id=session_id,
                    uniprot_id=obs.uniprot_id,
                    site_location=obs.site_location,
                    site_aa=obs.site_aa,
                    modification_type=obs.modification_type,
                    site_probability=_storable_float(obs.site_probability),
                    quantity=_storable_float(obs.quantity),
                    flanking_region=obs.flanking_region,
                    multiplicity=obs.multiplicity,
                    experiment_name=obs.experiment_name,
                    condition=obs.condition,
                )
                for obs in observations
            ])
            await db.commit()

    async def list_observations(
        self, session_id: str, uniprot_id: Optional[str] = None
    ) -> List[RawObservation]:
        query = select(PtmObservationModel).where(PtmObservationModel.session_id == session_id)
        if uniprot_id is not None:
            query = query.where(PtmObservationModel.uniprot_id == uniprot_id)
        async with self._session_factory() as db:
            result = await db.execute(query.order_by(PtmObservationModel.id))
            return [_to_observation(r) for r in result.scalars().all()]

    async def count_observations(self, session_id: str) -> Dict[str, int]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(PtmObservationModel.uniprot_id, func.count(PtmObservationModel.id))
                .where(PtmObservationModel.session_id == session_id)
                .group_by(PtmObservationModel.uniprot_id)
            )
            return {acc: count for acc, count in result.all()}

    async def modification_summary(self, session_id: str) -> List[Tuple[str, int]]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(PtmObservationModel.modification_type, func.count(PtmObservationModel.id))
                .where(PtmObservationModel.session_id == session_id)
                .group_by(PtmObservationModel.modification_type)
            )
            return _sorted_summary(Counter(dict(result.all())))

    # ── Known sites ──────────────────────────────────────────────────────

    async def upsert_known_sites(self, sites: List[KnownSite]) -> int:
        async with self._session_factory() as db:
            for site in sites:
                result = await db.execute(
                    select(KnownPtmModel).where(
                        KnownPtmModel.uniprot_id == site.uniprot_id,
                        KnownPtmModel.site_location == site.site_location,
                        KnownPtmModel.modification_type == site.modification_type,
                    )
                )
                row = result.scalar_one_or_none()
                if row is None:
                    db.add(KnownPtmModel(
                        uniprot_id=site.uniprot_id,
                        site_location=site.site_location,
                        modification_type=site.modification_type,
                        site_aa=site.site_aa,
                        pubmed_ids=list(site.pubmed_ids),
                        is_direct_site=site.is_direct_site,
                        notes=site.notes,
                        source=site.source,
                    ))
                    await db.flush()
                    continue

                merged = _to_known(row).updated_with(site)
                row.site_aa = merged.site_aa
                row.pubmed_ids = merged.pubmed_ids
                row.is_direct_site = merged.is_direct_site
                row.notes = merged.notes
                row.source = merged.source
            await db.commit()
        return len(sites)

    async def list_known_sites(self, uniprot_id: str) -> List[KnownSite]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(KnownPtmModel)
                .where(KnownPtmModel.uniprot_id == uniprot_id)
                .order_by(KnownPtmModel.site_location, KnownPtmModel.id)
            )
            return [_to_known(r) for r in result.scalars().all()]
