"""
The format-controller capability consumed by validation and conversion.

A controller opens one file (plus optional auxiliary peak files) and exposes
proteins, peptides and spectra through a common set of queries. Concrete
controllers are selected by FileType in pgconverter.controllers.open_controller.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union, runtime_checkable

import numpy as np

from ..chemistry import calculate_delta_mz
from ..model import (
    ExperimentMetaData,
    InstrumentConfiguration,
    Peptide,
    Protein,
    SearchDatabase,
    SpectraData,
    Spectrum,
)

logger = logging.getLogger(__name__)


class FileType(str, Enum):
    """Content types handled by the detector and the controllers."""
    MZID = "mzid"
    PRIDEXML = "pridexml"
    MZTAB = "mztab"
    PROBED = "probed"
    UNKNOWN = "unknown"


@runtime_checkable
class DataAccessController(Protocol):
    """Queries shared by the identification-file controllers."""

    path: Path
    file_type: FileType

    @property
    def name(self) -> str: ...

    def get_protein_ids(self) -> List[str]: ...

    def get_protein_by_id(self, protein_id: str) -> Optional[Protein]: ...

    def get_protein_accession(self, protein_id: str) -> Optional[str]: ...

    def get_search_database(self, protein_id: str) -> Optional[SearchDatabase]: ...

    def get_number_of_proteins(self) -> int: ...

    def get_number_of_peptides(self) -> int: ...

    def get_number_of_spectra(self) -> int: ...

    def get_number_of_identified_spectra(self) -> int: ...

    def get_number_of_missing_spectra(self) -> int: ...

    def get_peptide_precursor_charge(self, protein_id: str, peptide_id: str) -> Optional[int]: ...

    def get_peptide_precursor_mz(self, protein_id: str, peptide_id: str) -> float: ...

    def get_peptide_spectrum_id(self, protein_id: str, peptide_id: str) -> Optional[str]: ...

    def get_spectrum_by_id(self, spectrum_id: Optional[str]) -> Optional[Spectrum]: ...

    def get_spectrum_precursor_charge(self, spectrum_id: str) -> Optional[int]: ...

    def get_spectrum_precursor_mz(self, spectrum_id: str) -> float: ...

    def get_spectra_data_files(self) -> List[SpectraData]: ...

    def get_number_of_spectra_by_spectra_data(self, spectra_data: SpectraData) -> int: ...

    def get_experiment_metadata(self) -> ExperimentMetaData: ...

    def get_instrument_configurations(self) -> Optional[List[InstrumentConfiguration]]: ...

    def has_protein_ambiguity_group(self) -> bool: ...

    def check_random_spectra_by_delta_mass_threshold(self, num: int, threshold: float) -> bool: ...

    def close(self) -> None: ...


class IdentificationController:
    """
    Shared protein / peptide bookkeeping for the XML identification controllers.

    Subclasses fill self._proteins (ordered by appearance in the file) and
    implement spectrum lookup; everything else is answered from that index.
    """

    file_type = FileType.UNKNOWN

    def __init__(self, path: Union[str, Path], random_seed: Optional[int] = None,
                 log: Optional[logging.Logger] = None):
        self.path = Path(path)
        self.log = log or logger
        self.rng = np.random.default_rng(random_seed)
        self._name = self.path.name
        self._proteins: Dict[str, Protein] = {}
        self._peptides: Dict[tuple, Peptide] = {}
        self._metadata = ExperimentMetaData()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self) -> None:
        self._proteins = {}
        self._peptides = {}

    def _add_protein(self, protein: Protein) -> None:
        self._proteins[protein.id] = protein
        for peptide in protein.peptides:
            self._peptides[(protein.id, peptide.id)] = peptide

    @property
    def name(self) -> str:
        return self._name

    def get_protein_ids(self) -> List[str]:
        return list(self._proteins)

    def get_protein_by_id(self, protein_id: str) -> Optional[Protein]:
        return self._proteins.get(protein_id)

    def get_protein_accession(self, protein_id: str) -> Optional[str]:
        protein = self._proteins.get(protein_id)
        return protein.accession if protein is not None else None

    def get_search_database(self, protein_id: str) -> Optional[SearchDatabase]:
        return None

    def get_number_of_proteins(self) -> int:
        return len(self._proteins)

    def get_number_of_peptides(self) -> int:
        return sum(len(p.peptides) for p in self._proteins.values())

    def iter_peptides(self):
        for protein in self._proteins.values():
            yield from protein.peptides

    def get_peptide(self, protein_id: str, peptide_id: str) -> Optional[Peptide]:
        return self._peptides.get((protein_id, peptide_id))

    def get_peptide_precursor_charge(self, protein_id: str, peptide_id: str) -> Optional[int]:
        peptide = self.get_peptide(protein_id, peptide_id)
        return peptide.precursor_charge if peptide is not None else None

    def get_peptide_precursor_mz(self, protein_id: str, peptide_id: str) -> float:
        peptide = self.get_peptide(protein_id, peptide_id)
        return peptide.precursor_mz if peptide is not None else -1.0

    def get_peptide_spectrum_id(self, protein_id: str, peptide_id: str) -> Optional[str]:
        peptide = self.get_peptide(protein_id, peptide_id)
        return peptide.spectrum_id if peptide is not None else None

    def get_spectrum_by_id(self, spectrum_id: Optional[str]) -> Optional[Spectrum]:
        raise NotImplementedError

    def get_spectrum_precursor_charge(self, spectrum_id: str) -> Optional[int]:
        spectrum = self.get_spectrum_by_id(spectrum_id)
        return spectrum.precursor_charge if spectrum is not None else None

    def get_spectrum_precursor_mz(self, spectrum_id: str) -> float:
        spectrum = self.get_spectrum_by_id(spectrum_id)
        if spectrum is None or spectrum.precursor_mz is None:
            return -1.0
        return spectrum.precursor_mz

    def get_identified_spectrum_ids(self) -> List[str]:
        ids = (p.spectrum_id for p in self.iter_peptides() if p.spectrum_id is not None)
        return list(dict.fromkeys(ids))

    def get_spectra_data_files(self) -> List[SpectraData]:
        return []

    def get_number_of_spectra_by_spectra_data(self, spectra_data: SpectraData) -> int:
        return 0

    def get_experiment_metadata(self) -> ExperimentMetaData:
        return self._metadata

    def get_instrument_configurations(self) -> Optional[List[InstrumentConfiguration]]:
        return None

    def has_protein_ambiguity_group(self) -> bool:
        return False

    def _resolve_precursor(self, peptide: Peptide):
        charge, mz = peptide.precursor_charge, peptide.precursor_mz
        if (charge is None or mz == -1) and peptide.spectrum_id is not None:
            charge = self.get_spectrum_precursor_charge(peptide.spectrum_id)
            mz = self.get_spectrum_precursor_mz(peptide.spectrum_id)
        return charge, mz

    def check_random_spectra_by_delta_mass_threshold(self, num: int, threshold: float) -> bool:
        """
        Draw num identified spectra at random and check their PSMs' precursor delta m/z.

        Args:
            num: Number of spectra to draw.
            threshold: Maximal absolute delta m/z tolerated.

        Returns:
            False if any rank-1 PSM of a drawn spectrum has an unresolvable or
            out-of-tolerance delta m/z, True otherwise.
        """
        by_spectrum: Dict[str, List[Peptide]] = {}
        for peptide in self.iter_peptides():
            if peptide.spectrum_id is not None and peptide.rank <= 1:
                by_spectrum.setdefault(peptide.spectrum_id, []).append(peptide)
        if not by_spectrum:
            return True

        spectrum_ids = list(by_spectrum)
        for _ in range(num):
            spectrum_id = spectrum_ids[int(self.rng.integers(len(spectrum_ids)))]
            for peptide in by_spectrum[spectrum_id]:
                charge, mz = self._resolve_precursor(peptide)
                if not charge or mz == -1:
                    return False
                delta = calculate_delta_mz(peptide.sequence, mz, charge, ptm_mass_deltas(peptide))
                if delta is None or abs(delta) > threshold:
                    return False
        return True


def ptm_mass_deltas(peptide: Peptide) -> List[float]:
    """First monoisotopic mass delta of each modification (0.0 when unset)."""
    masses = []
    for modification in peptide.modifications:
        deltas = modification.monoisotopic_mass_delta
        if deltas:
            masses.append(deltas[0] if deltas[0] is not None else 0.0)
    return masses
