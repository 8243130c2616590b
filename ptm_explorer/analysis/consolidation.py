"""
PTM site consolidation.

A PTM site report carries one row per peptide observation, so the same
physical site shows up many times (per condition, per replicate, per
peptide). This module folds those observations into one logical site per
(site_location, modification_type, evidence_class), keeping:

  - peptide_count: number of observations folded in
  - site_probability: the maximum seen (absent only if every input was absent)
  - per-condition quantity sum/count and peptide count
  - literature references (known sites)

Quantities are aggregated as sum/count per condition, which is independent of
input order. The fold is a single left-to-right pass; partial folds can be
merged with ``merge_site_maps`` and give the same result as one pass over the
concatenated input.
"""

import copy
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from .observations import (
    UNKNOWN_CONDITION,
    ConsolidationKey,
    EvidenceClass,
    RawObservation,
)

logger = logging.getLogger(__name__)


def _is_finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def _max_probability(current: Optional[float], incoming: Optional[float]) -> Optional[float]:
    if current is None:
        return incoming
    if incoming is None:
        return current
    return max(current, incoming)


@dataclass
class ConditionStats:
    quantity_sum: float = 0.0
    quantity_count: int = 0
    peptide_count: int = 0

    @property
    def average(self) -> Optional[float]:
        """Mean quantity, or None when no finite quantity was seen."""
        if self.quantity_count == 0:
            return None
        return self.quantity_sum / self.quantity_count

    def add(self, quantity: Optional[float]) -> None:
        self.peptide_count += 1
        if _is_finite(quantity):
            self.quantity_sum += quantity
            self.quantity_count += 1

    def merge(self, other: "ConditionStats") -> None:
        self.quantity_sum += other.quantity_sum
        self.quantity_count += other.quantity_count
        self.peptide_count += other.peptide_count

    def to_dict(self) -> dict:
        return {
            "quantitySum": self.quantity_sum,
            "quantityCount": self.quantity_count,
            "peptideCount": self.peptide_count,
            "quantity": self.average,
        }


@dataclass
class ConsolidatedSite:
    site_location: int
    modification_type: str
    evidence_class: EvidenceClass
    site_aa: str = ""
    peptide_count: int = 0
    site_probability: Optional[float] = None
    flanking_region: Optional[str] = None
    conditions: Dict[str, ConditionStats] = field(default_factory=dict)
    references: List[str] = field(default_factory=list)

    @classmethod
    def from_observation(cls, observation: RawObservation) -> "ConsolidatedSite":
        site = cls(
            site_location=observation.site_location,
            modification_type=observation.modification_type,
            evidence_class=observation.evidence_class,
        )
        site.add(observation)
        return site

    @property
    def key(self) -> ConsolidationKey:
        return ConsolidationKey(self.site_location, self.modification_type, self.evidence_class)

    @property
    def quantified_conditions(self) -> List[str]:
        """Condition labels backed by at least one finite quantity."""
        return [label for label, stats in self.conditions.items() if stats.quantity_count > 0]

    @property
    def condition_count(self) -> int:
        return len(self.quantified_conditions)

    def add(self, observation: RawObservation) -> None:
        if observation.key != self.key:
            raise ValueError(f"Observation {observation.key} does not belong to site {self.key}")

        self.peptide_count += 1
        self.site_probability = _max_probability(self.site_probability, observation.site_probability)
        if not self.site_aa and observation.site_aa:
            self.site_aa = observation.site_aa
        if not self.flanking_region and observation.flanking_region:
            self.flanking_region = observation.flanking_region

        label = observation.condition_label
        stats = self.conditions.get(label)
        if stats is None:
            stats = self.conditions[label] = ConditionStats()
        stats.add(observation.quantity)

        self._add_references(observation.references)

    def merge(self, other: "ConsolidatedSite") -> None:
        """Fold another partial result for the same key into this one."""
        if other.key != self.key:
            raise ValueError(f"Cannot merge site {other.key} into {self.key}")

        self.peptide_count += other.peptide_count
        self.site_probability = _max_probability(self.site_probability, other.site_probability)
        if not self.site_aa and other.site_aa:
            self.site_aa = other.site_aa
        if not self.flanking_region and other.flanking_region:
            self.flanking_region = other.flanking_region

        for label, stats in other.conditions.items():
            if label in self.conditions:
                self.conditions[label].merge(stats)
            else:
                self.conditions[label] = copy.copy(stats)

        self._add_references(other.references)

    def _add_references(self, references: Iterable[str]) -> None:
        for ref in references:
            if ref and ref not in self.references:
                self.references.append(ref)

    def to_dict(self) -> dict:
        return {
            "siteLocation": self.site_location,
            "modificationType": self.modification_type,
            "type": self.evidence_class.value,
            "siteAA": self.site_aa or None,
            "siteProbability": self.site_probability,
            "peptideCount": self.peptide_count,
            "flankingRegion": self.flanking_region,
            "conditionQuantities": [
                {"condition": label, **stats.to_dict()}
                for label, stats in self.conditions.items()
            ],
            "quantifiedConditions": self.quantified_conditions,
            "pubmedIds": list(self.references),
        }


class SiteConsolidator:
    """Streaming fold of RawObservations into ConsolidatedSites."""

    def __init__(self):
        self._sites: Dict[ConsolidationKey, ConsolidatedSite] = {}
        self.observation_count = 0

    def __len__(self) -> int:
        return len(self._sites)

    @property
    def sites(self) -> Dict[ConsolidationKey, ConsolidatedSite]:
        return self._sites

    def add(self, observation: RawObservation) -> ConsolidatedSite:
        self.observation_count += 1
        site = self._sites.get(observation.key)
        if site is None:
            site = self._sites[observation.key] = ConsolidatedSite.from_observation(observation)
        else:
            site.add(observation)
        return site

    def extend(self, observations: Iterable[RawObservation]) -> "SiteConsolidator":
        for observation in observations:
            self.add(observation)
        return self


def consolidate(observations: Iterable[RawObservation]) -> Dict[ConsolidationKey, ConsolidatedSite]:
    consolidator = SiteConsolidator().extend(observations)
    logger.debug(
        f"Consolidated {consolidator.observation_count:,} observations into {len(consolidator):,} sites"
    )
    return consolidator.sites


def merge_site_maps(
    *site_maps: Mapping[ConsolidationKey, ConsolidatedSite],
) -> Dict[ConsolidationKey, ConsolidatedSite]:
    """Combine partial folds. Inputs are left untouched."""
    merged: Dict[ConsolidationKey, ConsolidatedSite] = {}
    for site_map in site_maps:
        for key, site in site_map.items():
            if key in merged:
                merged[key].merge(site)
            else:
                merged[key] = copy.deepcopy(site)
    return merged


def filter_sites(
    sites: Iterable[ConsolidatedSite],
    condition: Optional[str] = None,
    modification_type: Optional[str] = None,
    evidence_class: Optional[EvidenceClass] = None,
) -> List[ConsolidatedSite]:
    """Apply the table filters and order by position."""
    selected = []
    for site in sites:
        if condition and condition not in site.conditions:
            continue
        if modification_type and site.modification_type != modification_type:
            continue
        if evidence_class and site.evidence_class != evidence_class:
            continue
        selected.append(site)
    return sorted(
        selected,
        key=lambda s: (s.site_location, s.modification_type, s.evidence_class.value),
    )


def condition_labels(sites: Iterable[ConsolidatedSite]) -> List[str]:
    labels: Dict[str, None] = {}
    for site in sites:
        for label in site.conditions:
            if label != UNKNOWN_CONDITION:
                labels.setdefault(label)
    return list(labels)
