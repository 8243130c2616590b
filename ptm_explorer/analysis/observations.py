"""Typed PTM observation records produced by the TSV validator."""

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple, Optional, Tuple

UNKNOWN_CONDITION = "Unknown"


class EvidenceClass(str, Enum):
    EXPERIMENTAL = "experimental"
    KNOWN = "known"


class ConsolidationKey(NamedTuple):
    site_location: int
    modification_type: str
    evidence_class: EvidenceClass


@dataclass(frozen=True)
class RawObservation:
    """One validated row of a PTM site report (or one known-site annotation)."""

    uniprot_id: str
    site_location: int
    modification_type: str
    site_aa: str = ""
    site_probability: Optional[float] = None
    quantity: Optional[float] = None
    flanking_region: Optional[str] = None
    multiplicity: int = 1
    experiment_name: Optional[str] = None
    condition: Optional[str] = None
    evidence_class: EvidenceClass = EvidenceClass.EXPERIMENTAL
    references: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def key(self) -> ConsolidationKey:
        return ConsolidationKey(self.site_location, self.modification_type, self.evidence_class)

    @property
    def condition_label(self) -> str:
        """Condition bucket this observation aggregates into."""
        if self.condition is None or not self.condition.strip():
            return UNKNOWN_CONDITION
        return self.condition.strip()
