from ptm_explorer.models.known_ptm import KnownPtmModel
from ptm_explorer.models.observation import PtmObservationModel
from ptm_explorer.models.protein import ProteinModel
from ptm_explorer.models.session import AnalysisSessionModel

__all__ = [
    "AnalysisSessionModel",
    "ProteinModel",
    "PtmObservationModel",
    "KnownPtmModel",
]
