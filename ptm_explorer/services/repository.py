"""
Storage interface for sessions, proteins, raw observations and known sites.

The upload and query services only talk to ``Repository``; the backing store
is chosen at startup (``MemoryRepository`` here, ``SqlRepository`` for a
database). Consolidated sites are never stored: they are re-derived from the
raw observations on every read.
"""

import dataclasses
import logging
import uuid
from abc import ABC, abstractmethod
from collections import Counter
from typing import Dict, List, Optional, Tuple

from ptm_explorer.analysis.observations import RawObservation
from ptm_explorer.domain import AnalysisSession, KnownSite, ProteinRecord
from ptm_explorer.errors import SessionNotFound

logger = logging.getLogger("ptm-explorer.repository")

SESSION_FIELDS = {"name", "file_name", "status", "total_proteins", "total_ptm_sites"}


class Repository(ABC):
    # ── Sessions ─────────────────────────────────────────────────────────

    @abstractmethod
    async def create_session(self, name: str, file_name: Optional[str] = None) -> AnalysisSession: ...

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[AnalysisSession]: ...

    @abstractmethod
    async def list_sessions(self) -> List[AnalysisSession]: ...

    @abstractmethod
    async def update_session(self, session_id: str, **fields) -> Optional[AnalysisSession]: ...

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool:
        """Remove the session with all of its proteins and observations."""

    # ── Proteins ─────────────────────────────────────────────────────────

    @abstractmethod
    async def get_protein(self, session_id: str, uniprot_id: str) -> Optional[ProteinRecord]: ...

    @abstractmethod
    async def list_proteins(self, session_id: str) -> List[ProteinRecord]: ...

    @abstractmethod
    async def update_protein(self, protein: ProteinRecord) -> None: ...

    @abstractmethod
    async def search_proteins(self, session_id: str, query: str) -> List[ProteinRecord]: ...

    # ── Observations ─────────────────────────────────────────────────────

    @abstractmethod
    async def record_upload(
        self,
        session_id: str,
        proteins: List[ProteinRecord],
        observations: List[RawObservation],
    ) -> None:
        """Store new proteins and accepted observations together.

        Proteins already present for the session are left as they are. Raises
        SessionNotFound when the session is gone, and then stores nothing.
        """

    @abstractmethod
    async def list_observations(
        self, session_id: str, uniprot_id: Optional[str] = None
    ) -> List[RawObservation]: ...

    @abstractmethod
    async def count_observations(self, session_id: str) -> Dict[str, int]:
        """Observation count per accession."""

    @abstractmethod
    async def modification_summary(self, session_id: str) -> List[Tuple[str, int]]: ...

    # ── Known sites ──────────────────────────────────────────────────────

    @abstractmethod
    async def upsert_known_sites(self, sites: List[KnownSite]) -> int: ...

    @abstractmethod
    async def list_known_sites(self, uniprot_id: str) -> List[KnownSite]: ...

    # ── Derived ──────────────────────────────────────────────────────────

    async def session_totals(self, session_id: str) -> Tuple[int, int]:
        """(distinct proteins, stored observations) for a session."""
        proteins = await self.list_proteins(session_id)
        counts = await self.count_observations(session_id)
        return len(proteins), sum(counts.values())


def _check_session_fields(fields: dict) -> None:
    unknown = set(fields) - SESSION_FIELDS
    if unknown:
        raise ValueError(f"Unknown session fields: {sorted(unknown)}")


def _matches(protein: ProteinRecord, query: str) -> bool:
    needle = query.lower()
    return any(
        value and needle in value.lower()
        for value in (protein.protein_name, protein.gene_name, protein.uniprot_id)
    )


def _sorted_summary(counter: Counter) -> List[Tuple[str, int]]:
    return sorted(counter.items(), key=lambda item: (-item[1], item[0]))


class MemoryRepository(Repository):
    """Dict-backed store. Returns copies so callers cannot mutate stored state."""

    def __init__(self):
        self._sessions: Dict[str, AnalysisSession] = {}
        self._proteins: Dict[Tuple[str, str], ProteinRecord] = {}
        self._observations: Dict[str, List[Tuple[str, RawObservation]]] = {}
        self._known: Dict[tuple, KnownSite] = {}

    async def create_session(self, name: str, file_name: Optional[str] = None) -> AnalysisSession:
        session = AnalysisSession(id=str(uuid.uuid4()), name=name, file_name=file_name)
        self._sessions[session.id] = session
        self._observations[session.id] = []
        return dataclasses.replace(session)

    async def get_session(self, session_id: str) -> Optional[AnalysisSession]:
        session = self._sessions.get(session_id)
        return dataclasses.replace(session) if session else None

    async def list_sessions(self) -> List[AnalysisSession]:
        sessions = sorted(self._sessions.values(), key=lambda s: s.uploaded_at, reverse=True)
        return [dataclasses.replace(s) for s in sessions]

    async def update_session(self, session_id: str, **fields) -> Optional[AnalysisSession]:
        _check_session_fields(fields)
        session = self._sessions.get(session_id)
        if session is None:
            return None
        for name, value in fields.items():
            setattr(session, name, value)
        return dataclasses.replace(session)

    async def delete_session(self, session_id: str) -> bool:
        existed = self._sessions.pop(session_id, None) is not None
        self._observations.pop(session_id, None)
        for key in [k for k in self._proteins if k[0] == session_id]:
            del self._proteins[key]
        return existed

    async def get_protein(self, session_id: str, uniprot_id: str) -> Optional[ProteinRecord]:
        protein = self._proteins.get((session_id, uniprot_id))
        return dataclasses.replace(protein) if protein else None

    async def list_proteins(self, session_id: str) -> List[ProteinRecord]:
        return [dataclasses.replace(p) for (sid, _), p in self._proteins.items() if sid == session_id]

    async def update_protein(self, protein: ProteinRecord) -> None:
        key = (protein.session_id, protein.uniprot_id)
        if key in self._proteins:
            self._proteins[key] = dataclasses.replace(protein)

    async def search_proteins(self, session_id: str, query: str) -> List[ProteinRecord]:
        return [p for p in await self.list_proteins(session_id) if _matches(p, query)]

    async def record_upload(
        self,
        session_id: str,
        proteins: List[ProteinRecord],
        observations: List[RawObservation],
    ) -> None:
        if session_id not in self._sessions:
            raise SessionNotFound(session_id)
        for protein in proteins:
            self._proteins.setdefault((session_id, protein.uniprot_id), dataclasses.replace(protein))
        self._observations[session_id].extend((o.uniprot_id, o) for o in observations)

    async def list_observations(
        self, session_id: str, uniprot_id: Optional[str] = None
    ) -> List[RawObservation]:
        return [
            obs
            for acc, obs in self._observations.get(session_id, [])
            if uniprot_id is None or acc == uniprot_id
        ]

    async def count_observations(self, session_id: str) -> Dict[str, int]:
        return dict(Counter(acc for acc, _ in self._observations.get(session_id, [])))

    async def modification_summary(self, session_id: str) -> List[Tuple[str, int]]:
        counter = Counter(obs.modification_type for _, obs in self._observations.get(session_id, []))
        return _sorted_summary(counter)

    async def upsert_known_sites(self, sites: List[KnownSite]) -> int:
        for site in sites:
            existing = self._known.get(site.key)
            if existing:
                self._known[site.key] = existing.updated_with(site)
            else:
                self._known[site.key] = dataclasses.replace(site, pubmed_ids=list(site.pubmed_ids))
        return len(sites)

    async def list_known_sites(self, uniprot_id: str) -> List[KnownSite]:
        sites = [s for s in self._known.values() if s.uniprot_id == uniprot_id]
        return [
            dataclasses.replace(s, pubmed_ids=list(s.pubmed_ids))
            for s in sorted(sites, key=lambda s: s.site_location)
        ]
