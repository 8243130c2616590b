from .uniprot import FetchResult, UniProtGateway, clean_accession

__all__ = ["FetchResult", "UniProtGateway", "clean_accession"]
