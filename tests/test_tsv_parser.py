import pytest

from ptm_explorer.analysis.tsv_parser import (
    parse_ptm_report,
    read_table,
    resolve_columns,
)
from ptm_explorer.errors import MissingColumns, StructuralValidationError

from .factories import HEADER, make_report, report_row


def test_parse_valid_rows():
    content = make_report([
        report_row(position=10, probability="0.8", quantity="5.0", condition="A"),
        report_row(position=12, aa="s", modification="Phospho (STY)", probability="", quantity="Filtered"),
    ])
    parsed = parse_ptm_report(content)

    assert parsed.total_rows == 2
    assert parsed.row_errors == []
    assert len(parsed.observations) == 2

    first, second = parsed.observations
    assert first.uniprot_id == "P12345"
    assert first.site_location == 10
    assert first.site_probability == pytest.approx(0.8)
    assert first.quantity == pytest.approx(5.0)
    assert first.condition == "A"
    assert first.experiment_name == "run01"

    assert second.site_aa == "S"
    assert second.site_probability is None
    assert second.quantity is None


def test_missing_site_location_is_reported_and_skipped():
    rows = [report_row(position=i + 1) for i in range(10)]
    rows[4][1] = ""
    parsed = parse_ptm_report(make_report(rows))

    assert len(parsed.observations) == 9
    assert len(parsed.row_errors) == 1
    error = parsed.row_errors[0]
    assert error.row == 5
    assert "PTM.SiteLocation" in error.message


@pytest.mark.parametrize(
    "overrides, fragment",
    [
        ({"position": "abc"}, "must be an integer"),
        ({"position": "0"}, "must be >= 1"),
        ({"position": "2.5"}, "must be an integer"),
        ({"aa": "ST"}, "single residue letter"),
        ({"probability": "1.5"}, "between 0 and 1"),
        ({"probability": "high"}, "must be a number"),
        ({"modification": ""}, "Missing PTM.ModificationTitle"),
        ({"protein": ""}, "Missing PTM.ProteinId"),
    ],
)
def test_invalid_row_values(overrides, fragment):
    parsed = parse_ptm_report(make_report([report_row(**overrides)]))
    assert parsed.observations == []
    assert len(parsed.row_errors) == 1
    assert fragment in parsed.row_errors[0].message


def test_missing_required_column_is_structural():
    header = HEADER.replace("PTM.ModificationTitle", "PTM.Something")
    with pytest.raises(MissingColumns) as excinfo:
        parse_ptm_report(make_report([report_row()], header=header))
    assert excinfo.value.missing == ["PTM.ModificationTitle"]


def test_bare_column_names_are_accepted():
    header = "\t".join(["ProteinId", "SiteLocation", "SiteAA", "ModificationTitle"])
    content = make_report([["Q99999", 3, "K", "Acetyl (K)"]], header=header)
    parsed = parse_ptm_report(content)
    assert len(parsed.observations) == 1
    assert parsed.observations[0].modification_type == "Acetyl (K)"
    assert parsed.observations[0].condition_label == "Unknown"


def test_empty_file_is_structural():
    with pytest.raises(StructuralValidationError):
        parse_ptm_report(b"   \n")


def test_non_utf8_is_structural():
    with pytest.raises(StructuralValidationError):
        parse_ptm_report(b"\xff\xfe\x00bad")


def test_blank_lines_are_ignored():
    content = make_report([report_row()]) + b"\n\t\t\t\n\n"
    parsed = parse_ptm_report(content)
    assert parsed.total_rows == 1
    assert parsed.row_errors == []


def test_header_whitespace_and_bom_are_stripped():
    content = "\ufeff PTM.ProteinId \tPTM.SiteLocation\tPTM.SiteAA\tPTM.ModificationTitle\nP1\t5\tS\tPhospho\n"
    df, overflow_rows = read_table(content.encode("utf-8"))
    assert overflow_rows == set()
    assert list(df.columns) == ["PTM.ProteinId", "PTM.SiteLocation", "PTM.SiteAA", "PTM.ModificationTitle"]


def test_resolve_columns_prefers_namespaced_header():
    resolved = resolve_columns(["PTM.ProteinId", "ProteinId", "SiteLocation"])
    assert resolved["PTM.ProteinId"] == "PTM.ProteinId"
    assert resolved["PTM.SiteLocation"] == "SiteLocation"
    assert "PTM.SiteAA" not in resolved


def test_first_row_metadata_wins():
    content = make_report([
        report_row(protein_name="Alpha;Alpha2", gene="GENE1;GENE2"),
        report_row(position=11, protein_name="Beta", gene="GENE3"),
    ])
    parsed = parse_ptm_report(content)
    meta = parsed.protein_metadata["P12345"]
    assert meta.protein_name == "Alpha"
    assert meta.gene_name == "GENE1"
    assert meta.organism == "Homo sapiens"
    assert parsed.accessions == ["P12345"]


def test_row_with_extra_field_is_rejected_alone():
    rows = [report_row(position=i + 1) for i in range(5)]
    rows[2] = rows[2] + ["stray"]
    parsed = parse_ptm_report(make_report(rows))

    assert parsed.total_rows == 5
    assert [o.site_location for o in parsed.observations] == [1, 2, 4, 5]
    assert len(parsed.row_errors) == 1
    assert parsed.row_errors[0].row == 3
    assert "more fields than the 11-column header" in parsed.row_errors[0].message


def test_extra_field_in_first_data_row_keeps_header():
    rows = [report_row(position=1) + ["", "stray"], report_row(position=2)]
    parsed = parse_ptm_report(make_report(rows))

    assert [o.site_location for o in parsed.observations] == [2]
    assert [e.row for e in parsed.row_errors] == [1]


def test_trailing_empty_field_is_tolerated():
    parsed = parse_ptm_report(make_report([report_row() + [""]]))
    assert len(parsed.observations) == 1
    assert parsed.row_errors == []


def test_quote_characters_are_kept_literally():
    rows = [
        report_row(position=1, protein_name='"Heat shock protein', gene="HSP1"),
        report_row(position=2, protein_name='Kinase "B" subunit', gene="KINB"),
        report_row(position=3),
    ]
    parsed = parse_ptm_report(make_report(rows))

    assert parsed.row_errors == []
    assert [o.site_location for o in parsed.observations] == [1, 2, 3]
    assert parsed.protein_metadata["P12345"].protein_name == '"Heat shock protein'
