"""UniProt REST API tool: canonical sequence, protein metadata and annotated PTM sites.

Every call is bounded by a timeout and returns a FetchResult; network errors,
timeouts and 4xx/5xx responses become failures instead of exceptions.
"""

import io
import json
import logging
from dataclasses import dataclass
from typing import Generic, List, Optional, TypeVar

import httpx
from Bio import SeqIO

from ptm_explorer.domain import KnownSite
from ptm_explorer.errors import ExternalFetchFailure

logger = logging.getLogger("ptm-explorer.uniprot")

BASE_URL = "https://rest.uniprot.org/uniprotkb"
SOURCE = "UniProt"

# Feature types that describe a modified residue
PTM_FEATURE_TYPES = {"Modified residue", "Glycosylation", "Lipidation", "Cross-link"}

# Experimental evidence (ECO:0000269) and large-scale proteomics (ECO:0007744)
DIRECT_EVIDENCE_CODES = {"ECO:0000269", "ECO:0007744"}

T = TypeVar("T")


@dataclass
class FetchResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[ExternalFetchFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "FetchResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, accession: str, reason: str) -> "FetchResult[T]":
        return cls(error=ExternalFetchFailure(SOURCE, accession, reason))


def clean_accession(protein_id: str) -> str:
    protein_id = protein_id.strip().split(";")[0].strip()
    if "|" in protein_id:
        parts = protein_id.split("|")
        if len(parts) >= 2:
            return parts[1]
    if "-" in protein_id:
        return protein_id.split("-")[0]
    return protein_id


def parse_fasta_sequence(text: str) -> Optional[str]:
    records = list(SeqIO.parse(io.StringIO(text), "fasta"))
    if not records:
        return None
    sequence = str(records[0].seq).replace(" ", "").upper()
    return sequence or None


def parse_metadata(entry: dict) -> dict:
    description = entry.get("proteinDescription", {})
    name = description.get("recommendedName", {}).get("fullName", {}).get("value")
    if not name:
        submissions = description.get("submissionNames", [])
        if submissions:
            name = submissions[0].get("fullName", {}).get("value")

    genes = entry.get("genes", [])
    gene = genes[0].get("geneName", {}).get("value") if genes else None

    function_summary = None
    for comment in entry.get("comments", []):
        if comment.get("commentType") == "FUNCTION":
            texts = comment.get("texts", [])
            if texts:
                function_summary = texts[0].get("value", "")[:500]
            break

    return {
        "protein_name": name,
        "gene_name": gene,
        "organism": entry.get("organism", {}).get("scientificName"),
        "description": function_summary,
        "sequence": entry.get("sequence", {}).get("value"),
    }


def parse_known_sites(accession: str, entry: dict) -> List[KnownSite]:
    sequence = entry.get("sequence", {}).get("value", "")
    sites: List[KnownSite] = []

    for feature in entry.get("features", []):
        if feature.get("type") not in PTM_FEATURE_TYPES:
            continue
        location = feature.get("location", {})
        start = location.get("start", {}).get("value")
        end = location.get("end", {}).get("value")
        # Intra-chain cross-links span two residues; only single-residue sites are kept
        if start is None or start != end:
            continue

        label, _, remainder = feature.get("description", "").partition(";")
        label = label.strip()
        if not label:
            continue

        evidences = feature.get("evidences", [])
        pubmed_ids = []
        for ev in evidences:
            if ev.get("source") == "PubMed" and ev.get("id") and ev["id"] not in pubmed_ids:
                pubmed_ids.append(ev["id"])

        sites.append(KnownSite(
            uniprot_id=accession,
            site_location=int(start),
            modification_type=label,
            site_aa=sequence[start - 1] if 0 < start <= len(sequence) else "",
            pubmed_ids=pubmed_ids,
            is_direct_site=any(ev.get("evidenceCode") in DIRECT_EVIDENCE_CODES for ev in evidences),
            notes=remainder.strip() or None,
            source=SOURCE,
        ))

    return sites


class UniProtGateway:
    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
        redis=None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.redis = redis
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    async def _cache_get(self, key: str) -> Optional[str]:
        if not self.redis:
            return None
        try:
            return await self.redis.get(key)
        except Exception as e:
            logger.warning(f"UniProt cache read failed for {key}: {e}")
            return None

    async def _cache_set(self, key: str, value: str) -> None:
        if not self.redis:
            return
        try:
            await self.redis.set(key, value)  # permanent cache
        except Exception as e:
            logger.warning(f"UniProt cache write failed for {key}: {e}")

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _get_text(self, accession: str, suffix: str) -> FetchResult[str]:
        url = f"{self.base_url}/{accession}.{suffix}"
        try:
            async with self._client() as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return FetchResult.success(resp.text)
        except httpx.TimeoutException:
            reason = f"timed out after {self.timeout:g}s"
        except httpx.HTTPStatusError as e:
            reason = f"HTTP {e.response.status_code}"
        except httpx.HTTPError as e:
            reason = str(e) or e.__class__.__name__
        logger.warning(f"UniProt fetch failed for {accession} ({suffix}): {reason}")
        return FetchResult.failure(accession, reason)

    async def fetch_entry(self, protein_id: str) -> FetchResult[dict]:
        accession = clean_accession(protein_id)
        cache_key = f"uniprot:entry:{accession}"

        cached = await self._cache_get(cache_key)
        if cached:
            return FetchResult.success(json.loads(cached))

        result = await self._get_text(accession, "json")
        if not result.ok:
            return FetchResult(error=result.error)
        try:
            entry = json.loads(result.value)
        except ValueError as e:
            return FetchResult.failure(accession, f"invalid JSON response: {e}")

        await self._cache_set(cache_key, result.value)
        return FetchResult.success(entry)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def fetch_sequence(self, protein_id: str) -> FetchResult[str]:
        accession = clean_accession(protein_id)
        cache_key = f"uniprot:fasta:{accession}"

        text = await self._cache_get(cache_key)
        if not text:
            result = await self._get_text(accession, "fasta")
            if not result.ok:
                return FetchResult(error=result.error)
            text = result.value

        sequence = parse_fasta_sequence(text)
        if not sequence:
            logger.warning(f"UniProt returned no sequence for {accession}")
            return FetchResult.failure(accession, "empty FASTA response")

        await self._cache_set(cache_key, text)
        return FetchResult.success(sequence)

    async def fetch_metadata(self, protein_id: str) -> FetchResult[dict]:
        result = await self.fetch_entry(protein_id)
        if not result.ok:
            return FetchResult(error=result.error)
        return FetchResult.success(parse_metadata(result.value))

    async def fetch_known_sites(self, protein_id: str) -> FetchResult[List[KnownSite]]:
        accession = clean_accession(protein_id)
        result = await self.fetch_entry(accession)
        if not result.ok:
            return FetchResult(error=result.error)
        # Stored under the id the caller uses so it lines up with session proteins
        sites = parse_known_sites(protein_id.strip(), result.value)
        logger.info(f"UniProt: {len(sites)} annotated PTM sites for {accession}")
        return FetchResult.success(sites)

    async def ping(self) -> bool:
        try:
            async with self._client() as client:
                resp = await client.get(self.base_url.rsplit("/", 1)[0] + "/", timeout=5)
                return resp.status_code < 500
        except httpx.HTTPError:
            return False
