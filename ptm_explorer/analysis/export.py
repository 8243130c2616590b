"""Flat CSV export of consolidated PTM sites."""

import logging
from typing import Iterable, Optional

import pandas as pd

from .consolidation import ConsolidatedSite
from .sequence_window import DEFAULT_WINDOW_RADIUS, describe_window

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "Position",
    "AminoAcid",
    "ModificationType",
    "EvidenceClass",
    "Conditions",
    "PeptideCount",
    "Probability",
    "PerConditionQuantities",
    "SequenceWindow",
    "References",
]

NOT_AVAILABLE = "N/A"
JOIN = "; "


def format_probability(probability: Optional[float]) -> str:
    if probability is None:
        return NOT_AVAILABLE
    return f"{probability * 100:.1f}%"


def format_quantity(value: Optional[float]) -> str:
    return NOT_AVAILABLE if value is None else f"{value:.2f}"


def sites_to_frame(
    sites: Iterable[ConsolidatedSite],
    sequence: Optional[str] = None,
    window_radius: int = DEFAULT_WINDOW_RADIUS,
) -> pd.DataFrame:
    rows = []
    for site in sites:
        rows.append({
            "Position": site.site_location,
            "AminoAcid": site.site_aa or NOT_AVAILABLE,
            "ModificationType": site.modification_type,
            "EvidenceClass": site.evidence_class.value,
            "Conditions": JOIN.join(site.conditions),
            "PeptideCount": site.peptide_count,
            "Probability": format_probability(site.site_probability),
            "PerConditionQuantities": JOIN.join(
                f"{label}: {format_quantity(stats.average)}"
                for label, stats in site.conditions.items()
            ),
            "SequenceWindow": describe_window(sequence, site.site_location, window_radius),
            "References": JOIN.join(site.references) or NOT_AVAILABLE,
        })
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def sites_to_csv(
    sites: Iterable[ConsolidatedSite],
    sequence: Optional[str] = None,
    window_radius: int = DEFAULT_WINDOW_RADIUS,
) -> str:
    df = sites_to_frame(sites, sequence, window_radius)
    logger.debug(f"Exporting {len(df):,} consolidated sites")
    return df.to_csv(index=False, lineterminator="\n")
