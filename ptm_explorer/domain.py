"""Storage-independent records for sessions, proteins and known PTM annotations."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

SESSION_STATUS = ("processing", "completed", "failed")
DEFAULT_ORGANISM = "Homo sapiens"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AnalysisSession:
    id: str
    name: str
    file_name: Optional[str] = None
    status: str = "processing"
    total_proteins: int = 0
    total_ptm_sites: int = 0
    uploaded_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "fileName": self.file_name,
            "status": self.status,
            "totalProteins": self.total_proteins,
            "totalPtmSites": self.total_ptm_sites,
            "uploadedAt": self.uploaded_at.isoformat(),
        }


@dataclass
class ProteinRecord:
    session_id: str
    uniprot_id: str
    protein_name: Optional[str] = None
    gene_name: Optional[str] = None
    organism: Optional[str] = DEFAULT_ORGANISM
    sequence: Optional[str] = None
    sequence_length: Optional[int] = None
    description: Optional[str] = None
    last_updated: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "uniprotId": self.uniprot_id,
            "proteinName": self.protein_name,
            "geneName": self.gene_name,
            "organism": self.organism,
            "sequence": self.sequence,
            "sequenceLength": self.sequence_length,
            "description": self.description,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }


@dataclass
class KnownSite:
    """Reference annotation of a modification site, keyed by accession."""

    uniprot_id: str
    site_location: int
    modification_type: str
    site_aa: str = ""
    pubmed_ids: List[str] = field(default_factory=list)
    is_direct_site: bool = False
    notes: Optional[str] = None
    source: str = "UniProt"

    @property
    def key(self) -> tuple:
        return (self.uniprot_id, self.site_location, self.modification_type)

    def updated_with(self, incoming: "KnownSite") -> "KnownSite":
        """Upsert rule: incoming values win where given, references accumulate."""
        pubmed_ids = list(self.pubmed_ids)
        for pmid in incoming.pubmed_ids:
            if pmid not in pubmed_ids:
                pubmed_ids.append(pmid)
        return KnownSite(
            uniprot_id=self.uniprot_id,
            site_location=self.site_location,
            modification_type=self.modification_type,
            site_aa=incoming.site_aa or self.site_aa,
            pubmed_ids=pubmed_ids,
            is_direct_site=incoming.is_direct_site or self.is_direct_site,
            notes=incoming.notes if incoming.notes is not None else self.notes,
            source=incoming.source or self.source,
        )

    def to_dict(self) -> dict:
        return {
            "siteLocation": self.site_location,
            "modificationType": self.modification_type,
            "siteAA": self.site_aa,
            "pubmedIds": list(self.pubmed_ids),
            "isDirectSite": self.is_direct_site,
            "notes": self.notes,
            "source": self.source,
        }
