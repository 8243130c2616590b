import math

import pytest

from ptm_explorer.analysis.consolidation import (
    ConditionStats,
    ConsolidatedSite,
    condition_labels,
    consolidate,
    filter_sites,
    merge_site_maps,
)
from ptm_explorer.analysis.observations import ConsolidationKey, EvidenceClass

from .factories import observation

OXIDATION = "Oxidation (M)"
PHOSPHO = "Phospho (STY)"


def _key(position=10, modification=OXIDATION, evidence=EvidenceClass.EXPERIMENTAL):
    return ConsolidationKey(position, modification, evidence)


def test_two_conditions_fold_into_one_site():
    sites = consolidate([
        observation(site_probability=0.8, condition="A", quantity=5.0),
        observation(site_probability=0.9, condition="B", quantity=7.0),
    ])

    assert list(sites) == [_key()]
    site = sites[_key()]
    assert site.peptide_count == 2
    assert site.site_probability == pytest.approx(0.9)
    assert site.conditions["A"].average == pytest.approx(5.0)
    assert site.conditions["A"].quantity_count == 1
    assert site.conditions["B"].average == pytest.approx(7.0)
    assert site.conditions["B"].quantity_count == 1
    assert site.condition_count == 2


def test_quantities_average_by_sum_and_count():
    sites = consolidate([
        observation(condition="A", quantity=2.0),
        observation(condition="A", quantity=4.0),
        observation(condition="A", quantity=9.0),
    ])
    stats = sites[_key()].conditions["A"]
    assert stats.quantity_sum == pytest.approx(15.0)
    assert stats.quantity_count == 3
    assert stats.average == pytest.approx(5.0)


def test_non_finite_quantities_are_not_counted():
    sites = consolidate([
        observation(condition="A", quantity=None),
        observation(condition="A", quantity=math.nan),
        observation(condition="A", quantity=math.inf),
        observation(condition="A", quantity=3.0),
    ])
    stats = sites[_key()].conditions["A"]
    assert stats.quantity_count == 1
    assert stats.peptide_count == 4
    assert stats.average == pytest.approx(3.0)


def test_condition_without_quantity_is_not_quantified():
    sites = consolidate([observation(condition="A", quantity=None)])
    site = sites[_key()]
    assert site.conditions["A"].average is None
    assert site.quantified_conditions == []
    assert site.condition_count == 0


def test_probability_absent_only_when_all_absent():
    assert consolidate([observation(), observation()])[_key()].site_probability is None

    sites = consolidate([observation(), observation(site_probability=0.0), observation()])
    assert sites[_key()].site_probability == 0.0


def test_blank_condition_goes_to_unknown_bucket():
    sites = consolidate([observation(condition=None), observation(condition="  ")])
    site = sites[_key()]
    assert list(site.conditions) == ["Unknown"]
    assert site.conditions["Unknown"].peptide_count == 2


def test_evidence_class_is_part_of_key():
    sites = consolidate([
        observation(),
        observation(evidence_class=EvidenceClass.KNOWN, references=("123",)),
    ])
    assert len(sites) == 2
    assert sites[_key(evidence=EvidenceClass.KNOWN)].references == ["123"]
    assert sites[_key()].references == []


def test_first_non_empty_site_aa_wins():
    sites = consolidate([
        observation(site_aa=""),
        observation(site_aa="M"),
        observation(site_aa="X"),
    ])
    assert sites[_key()].site_aa == "M"


def test_peptide_count_equals_number_of_observations():
    observations = [observation(site_location=p % 3 + 1, condition=str(p % 2)) for p in range(12)]
    sites = consolidate(observations)
    assert sum(s.peptide_count for s in sites.values()) == len(observations)
    for site in sites.values():
        assert site.peptide_count == sum(c.peptide_count for c in site.conditions.values())


def test_consolidation_is_order_independent():
    observations = [
        observation(site_probability=0.5, condition="A", quantity=1.0),
        observation(site_probability=0.7, condition="B", quantity=2.0),
        observation(site_location=20, modification_type=PHOSPHO, site_aa="S", quantity=3.0),
        observation(site_probability=0.6, condition="A", quantity=4.0),
    ]
    forward = consolidate(observations)
    backward = consolidate(reversed(observations))

    assert set(forward) == set(backward)
    for key, site in forward.items():
        other = backward[key]
        assert site.peptide_count == other.peptide_count
        assert site.site_probability == other.site_probability
        assert {k: v.average for k, v in site.conditions.items()} == pytest.approx(
            {k: v.average for k, v in other.conditions.items()}
        )


def test_merge_of_partial_folds_matches_single_pass():
    observations = [
        observation(site_probability=0.2, condition="A", quantity=1.0),
        observation(site_probability=0.9, condition="B", quantity=2.0),
        observation(site_aa="", condition="A", quantity=6.0),
        observation(site_location=5, modification_type=PHOSPHO, site_aa="S"),
    ]
    whole = consolidate(observations)
    left = consolidate(observations[:2])
    right = consolidate(observations[2:])
    merged = merge_site_maps(left, right)

    assert set(merged) == set(whole)
    for key in whole:
        assert merged[key].to_dict() == whole[key].to_dict()

    # Inputs stay as they were
    assert left[_key()].peptide_count == 2


def test_site_rejects_foreign_observation():
    site = ConsolidatedSite.from_observation(observation())
    with pytest.raises(ValueError):
        site.add(observation(site_location=11))


def test_filter_sites_orders_by_position():
    sites = consolidate([
        observation(site_location=30, condition="A"),
        observation(site_location=5, modification_type=PHOSPHO, condition="B"),
        observation(site_location=5, evidence_class=EvidenceClass.KNOWN),
    ]).values()

    ordered = filter_sites(sites)
    assert [(s.site_location, s.modification_type) for s in ordered] == [
        (5, OXIDATION),
        (5, PHOSPHO),
        (30, OXIDATION),
    ]
    assert [s.site_location for s in filter_sites(sites, condition="A")] == [30]
    assert [s.modification_type for s in filter_sites(sites, modification_type=PHOSPHO)] == [PHOSPHO]
    assert len(filter_sites(sites, evidence_class=EvidenceClass.KNOWN)) == 1


def test_condition_labels_skip_unknown():
    sites = consolidate([
        observation(condition="B"),
        observation(site_location=2, condition="A"),
        observation(site_location=3),
    ]).values()
    assert condition_labels(sites) == ["B", "A"]


def test_condition_stats_to_dict():
    stats = ConditionStats()
    stats.add(2.0)
    stats.add(None)
    assert stats.to_dict() == {
        "quantitySum": 2.0,
        "quantityCount": 1,
        "peptideCount": 2,
        "quantity": 2.0,
    }
