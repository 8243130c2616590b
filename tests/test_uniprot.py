import json

import httpx
import pytest

from ptm_explorer.tools.uniprot import (
    UniProtGateway,
    clean_accession,
    parse_fasta_sequence,
    parse_known_sites,
    parse_metadata,
)

BASE_URL = "https://uniprot.test/uniprotkb"

FASTA = ">sp|P12345|TEST_HUMAN Test protein\nMKVLAASTY\nKLMN\n"

ENTRY = {
    "primaryAccession": "P12345",
    "proteinDescription": {"recommendedName": {"fullName": {"value": "Test protein"}}},
    "genes": [{"geneName": {"value": "TST1"}}],
    "organism": {"scientificName": "Homo sapiens"},
    "comments": [{"commentType": "FUNCTION", "texts": [{"value": "Does things."}]}],
    "sequence": {"value": "MKVLAASTYKLMN"},
    "features": [
        {
            "type": "Modified residue",
            "location": {"start": {"value": 7}, "end": {"value": 7}},
            "description": "Phosphoserine; by CK2",
            "evidences": [
                {"evidenceCode": "ECO:0000269", "source": "PubMed", "id": "1111"},
                {"evidenceCode": "ECO:0000269", "source": "PubMed", "id": "2222"},
            ],
        },
        {
            "type": "Modified residue",
            "location": {"start": {"value": 10}, "end": {"value": 10}},
            "description": "N6-acetyllysine",
            "evidences": [{"evidenceCode": "ECO:0000250"}],
        },
        {
            "type": "Cross-link",
            "location": {"start": {"value": 2}, "end": {"value": 10}},
            "description": "Isoglutamyl lysine isopeptide",
        },
        {
            "type": "Chain",
            "location": {"start": {"value": 1}, "end": {"value": 13}},
            "description": "Test protein",
        },
    ],
}


def _gateway(handler, redis=None):
    return UniProtGateway(BASE_URL, timeout=2.0, redis=redis, transport=httpx.MockTransport(handler))


def _uniprot_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/P12345.fasta"):
        return httpx.Response(200, text=FASTA)
    if path.endswith("/P12345.json"):
        return httpx.Response(200, json=ENTRY)
    return httpx.Response(404, text="not found")


class FakeRedis:
    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value):
        self.store[key] = value


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("P12345", "P12345"),
        (" P12345 ", "P12345"),
        ("sp|P12345|TEST_HUMAN", "P12345"),
        ("P12345-2", "P12345"),
        ("P12345;Q99999", "P12345"),
    ],
)
def test_clean_accession(raw, expected):
    assert clean_accession(raw) == expected


def test_parse_fasta_sequence():
    assert parse_fasta_sequence(FASTA) == "MKVLAASTYKLMN"
    assert parse_fasta_sequence("") is None


def test_parse_metadata():
    meta = parse_metadata(ENTRY)
    assert meta["protein_name"] == "Test protein"
    assert meta["gene_name"] == "TST1"
    assert meta["organism"] == "Homo sapiens"
    assert meta["description"] == "Does things."


def test_parse_known_sites_keeps_single_residue_modifications():
    sites = parse_known_sites("P12345", ENTRY)
    assert [(s.site_location, s.modification_type) for s in sites] == [
        (7, "Phosphoserine"),
        (10, "N6-acetyllysine"),
    ]

    phospho, acetyl = sites
    assert phospho.site_aa == "S"
    assert phospho.pubmed_ids == ["1111", "2222"]
    assert phospho.is_direct_site is True
    assert phospho.notes == "by CK2"
    assert acetyl.site_aa == "K"
    assert acetyl.pubmed_ids == []
    assert acetyl.is_direct_site is False


async def test_fetch_sequence():
    result = await _gateway(_uniprot_handler).fetch_sequence("sp|P12345|TEST_HUMAN")
    assert result.ok
    assert result.value == "MKVLAASTYKLMN"


async def test_fetch_sequence_not_found_is_failure():
    result = await _gateway(_uniprot_handler).fetch_sequence("Q00000")
    assert not result.ok
    assert result.value is None
    assert result.error.accession == "Q00000"
    assert "HTTP 404" in str(result.error)


async def test_fetch_sequence_empty_response_is_failure():
    gateway = _gateway(lambda request: httpx.Response(200, text=""))
    result = await gateway.fetch_sequence("P12345")
    assert not result.ok
    assert result.error.reason == "empty FASTA response"


async def test_timeout_is_failure():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    result = await _gateway(handler).fetch_metadata("P12345")
    assert not result.ok
    assert "timed out" in result.error.reason


async def test_network_error_is_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = await _gateway(handler).fetch_known_sites("P12345")
    assert not result.ok
    assert "connection refused" in result.error.reason


async def test_fetch_known_sites_keeps_caller_accession():
    result = await _gateway(_uniprot_handler).fetch_known_sites("P12345-2")
    assert result.ok
    assert {s.uniprot_id for s in result.value} == {"P12345-2"}


async def test_responses_are_cached():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return _uniprot_handler(request)

    redis = FakeRedis()
    gateway = _gateway(handler, redis=redis)
    await gateway.fetch_metadata("P12345")
    await gateway.fetch_known_sites("P12345")
    await gateway.fetch_sequence("P12345")
    await gateway.fetch_sequence("P12345")

    assert calls == ["/uniprotkb/P12345.json", "/uniprotkb/P12345.fasta"]
    assert json.loads(redis.store["uniprot:entry:P12345"])["primaryAccession"] == "P12345"
    assert "uniprot:fasta:P12345" in redis.store
