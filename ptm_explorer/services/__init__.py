from .enrichment import EnrichmentService
from .protein_view import ProteinViewService, SiteFilters
from .repository import MemoryRepository, Repository
from .upload import UploadProcessor, UploadResult

__all__ = [
    "EnrichmentService",
    "ProteinViewService",
    "SiteFilters",
    "MemoryRepository",
    "Repository",
    "UploadProcessor",
    "UploadResult",
]
