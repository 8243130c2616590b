import pytest

from ptm_explorer.analysis.sequence_window import (
    POSITION_OUT_OF_RANGE,
    SEQUENCE_UNAVAILABLE,
    describe_window,
    extract_window,
)
from ptm_explorer.errors import PositionOutOfRange


def test_window_in_middle_of_sequence():
    window = extract_window("MKVLAA", 3, radius=2)
    assert str(window) == "MK[V]LA"
    assert window.residue == "V"


def test_window_is_clipped_at_sequence_ends():
    assert str(extract_window("MKVLAA", 1, radius=3)) == "[M]KVL"
    assert str(extract_window("MKVLAA", 6, radius=3)) == "VLA[A]"


@pytest.mark.parametrize("position", range(1, 11))
def test_flank_lengths_never_exceed_radius(position):
    sequence = "ACDEFGHIKL"
    window = extract_window(sequence, position, radius=3)
    assert len(window.left) == min(3, position - 1)
    assert len(window.right) == min(3, len(sequence) - position)
    assert window.residue == sequence[position - 1]


def test_position_outside_sequence_raises():
    with pytest.raises(PositionOutOfRange) as excinfo:
        extract_window("A" * 10, 50)
    assert excinfo.value.sequence_length == 10


def test_missing_sequence_gives_no_window():
    assert extract_window(None, 3) is None
    assert extract_window("", 3) is None


@pytest.mark.parametrize("radius", [0, 21])
def test_radius_outside_bounds_is_rejected(radius):
    with pytest.raises(ValueError):
        extract_window("MKVLAA", 3, radius=radius)


def test_describe_window_labels():
    assert describe_window("MKVLAA", 3, 2) == "MK[V]LA"
    assert describe_window("A" * 10, 50) == POSITION_OUT_OF_RANGE
    assert describe_window(None, 3) == SEQUENCE_UNAVAILABLE
