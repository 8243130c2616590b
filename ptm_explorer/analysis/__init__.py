from .consolidation import (
    ConditionStats,
    ConsolidatedSite,
    SiteConsolidator,
    consolidate,
    filter_sites,
    merge_site_maps,
)
from .observations import UNKNOWN_CONDITION, ConsolidationKey, EvidenceClass, RawObservation
from .sequence_window import SequenceWindow, describe_window, extract_window
from .tsv_parser import ParsedUpload, parse_ptm_report

__all__ = [
    "ConditionStats",
    "ConsolidatedSite",
    "SiteConsolidator",
    "consolidate",
    "filter_sites",
    "merge_site_maps",
    "UNKNOWN_CONDITION",
    "ConsolidationKey",
    "EvidenceClass",
    "RawObservation",
    "SequenceWindow",
    "describe_window",
    "extract_window",
    "ParsedUpload",
    "parse_ptm_report",
]
