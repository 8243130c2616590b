"""Sequence context around a modification site, e.g. ``MK[V]LA``.

Windows are derived on demand from the protein sequence and never stored.
"""

from dataclasses import dataclass
from typing import Optional

from ptm_explorer.errors import PositionOutOfRange

DEFAULT_WINDOW_RADIUS = 7
WINDOW_RADIUS_MIN = 1
WINDOW_RADIUS_MAX = 20

SEQUENCE_UNAVAILABLE = "sequence unavailable"
POSITION_OUT_OF_RANGE = "position out of range"


@dataclass(frozen=True)
class SequenceWindow:
    left: str
    residue: str
    right: str

    def __str__(self) -> str:
        return f"{self.left}[{self.residue}]{self.right}"


def validate_radius(radius: int) -> int:
    if not WINDOW_RADIUS_MIN <= radius <= WINDOW_RADIUS_MAX:
        raise ValueError(
            f"Window radius must be between {WINDOW_RADIUS_MIN} and {WINDOW_RADIUS_MAX}, got {radius}"
        )
    return radius


def extract_window(
    sequence: Optional[str],
    position: int,
    radius: int = DEFAULT_WINDOW_RADIUS,
) -> Optional[SequenceWindow]:
    """Window of up to ``radius`` residues either side of 1-based ``position``.

    Returns None when no sequence is available. Raises PositionOutOfRange when
    the position does not fall on the sequence.
    """
    validate_radius(radius)
    if not sequence:
        return None
    if position < 1 or position > len(sequence):
        raise PositionOutOfRange(position, len(sequence))

    start = max(0, position - 1 - radius)
    end = min(len(sequence), position + radius)
    return SequenceWindow(
        left=sequence[start : position - 1],
        residue=sequence[position - 1],
        right=sequence[position:end],
    )


def describe_window(
    sequence: Optional[str],
    position: int,
    radius: int = DEFAULT_WINDOW_RADIUS,
) -> str:
    """Display form of the window; unavailable/out-of-range cases become labels."""
    try:
        window = extract_window(sequence, position, radius)
    except PositionOutOfRange:
        return POSITION_OUT_OF_RANGE
    if window is None:
        return SEQUENCE_UNAVAILABLE
    return str(window)
