import re
from collections import defaultdict
from typing import Iterable, Optional

import numpy as np

MASS_PROTON = 1.007276466583
MASS_WATER = 18.0105646863

AMINO_ACID_MASSES = {
    'A': 71.037114,
    'R': 156.101111,
    'N': 114.042927,
    'D': 115.026943,
    'C': 103.009185,
    'E': 129.042593,
    'Q': 128.058578,
    'G': 57.021464,
    'H': 137.058912,
    'I': 113.084064,
    'L': 113.084064,
    'K': 128.094963,
    'M': 131.040485,
    'F': 147.068414,
    'P': 97.052764,
    'S': 87.032028,
    'T': 101.047679,
    'W': 186.079313,
    'Y': 163.063329,
    'V': 99.068414,
    'U': 150.953636,
    'O': 237.147727,
}

MODIFICATIONS_MZ_NUMERICAL = {
    1: 42.010565, 4: 57.021464, 7: 0.984016, 21: 79.966331,
    34: 14.015650, 35: 15.994915, 36: 28.031300, 37: 42.046950,
    121: 114.042927, 122: 27.994915, 354: 44.985078, 747: 86.000394,
}


def calculate_monoisotopic_mass(sequence: str, ptm_masses: Optional[Iterable[float]] = None) -> Optional[float]:
    """
    Calculates the monoisotopic mass of a peptide sequence plus modification mass deltas.

    Inline [UNIMOD:n] annotations are resolved from a small table of common modifications,
    additional deltas (e.g. from a ModificationItem) are passed via ptm_masses.

    Args:
        sequence: Amino acid sequence, optionally with [UNIMOD:n] annotations.
        ptm_masses: Monoisotopic mass deltas of modifications carried next to the sequence.

    Returns:
        The neutral monoisotopic mass, or None if the sequence contains an unknown residue.
    """
    pattern = r"\[UNIMOD:(\d+)\]"

    mod_counts = defaultdict(int)
    for mod in re.findall(pattern, sequence):
        mod_counts[int(mod)] += 1
    sequence = re.sub(pattern, '', sequence).upper()

    aa_counts = defaultdict(int)
    for char in sequence:
        aa_counts[char] += 1

    if any(aa not in AMINO_ACID_MASSES for aa in aa_counts):
        return None
    if any(mod not in MODIFICATIONS_MZ_NUMERICAL for mod in mod_counts):
        return None

    mass_sequence = np.sum([AMINO_ACID_MASSES[amino_acid] * count for amino_acid, count in aa_counts.items()])
    mass_modifics = np.sum([MODIFICATIONS_MZ_NUMERICAL[mod] * count for mod, count in mod_counts.items()])
    mass_ptms = np.sum(list(ptm_masses)) if ptm_masses else 0.0

    return float(mass_sequence + mass_modifics + mass_ptms + MASS_WATER)


def calculate_mz(monoisotopic_mass: float, charge: int) -> float:
    """
    Calculates the m/z of an ion of the given neutral mass and charge.
    """
    return (monoisotopic_mass + charge * MASS_PROTON) / charge


def calculate_theoretical_mz(sequence: str, charge: int, ptm_masses: Optional[Iterable[float]] = None) -> Optional[float]:
    mass = calculate_monoisotopic_mass(sequence, ptm_masses)
    if mass is None or not charge:
        return None
    return calculate_mz(mass, charge)


def calculate_delta_mz(sequence: str, precursor_mz: float, charge: int,
                       ptm_masses: Optional[Iterable[float]] = None) -> Optional[float]:
    """
    Difference between the observed precursor m/z and the theoretical m/z of a peptide.

    Args:
        sequence: Peptide sequence.
        precursor_mz: Observed precursor m/z.
        charge: Precursor charge state.
        ptm_masses: Monoisotopic mass deltas of the peptide's modifications.

    Returns:
        observed - theoretical m/z, or None if the theoretical m/z cannot be computed.
    """
    theoretical_mz = calculate_theoretical_mz(sequence, charge, ptm_masses)
    if theoretical_mz is None:
        return None
    return precursor_mz - theoretical_mz
