"""
Data structures exposed by the format controllers.

These are plain value objects: controllers build them from the underlying file,
the validation engine and the converters only read them.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

PSI_MOD = "MOD"
UNIMOD = "UNIMOD"
PSI_MS = "MS"

# cv_lookup_id values accepted for post-translational modification params
PTM_ONTOLOGIES = frozenset({PSI_MOD, "PSI-MOD", UNIMOD})


@dataclass(frozen=True)
class CvParam:
    """A controlled-vocabulary parameter; cv_lookup_id names the ontology it comes from."""
    accession: str
    name: str = ""
    cv_lookup_id: Optional[str] = None
    value: Optional[str] = None

    def __str__(self) -> str:
        value = f"={self.value}" if self.value else ""
        return f"[{self.cv_lookup_id}, {self.accession}, {self.name}{value}]"


@dataclass(frozen=True)
class UserParam:
    name: str
    value: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.name}={self.value}" if self.value else self.name


@dataclass
class ParamGroup:
    cv_params: List[CvParam] = field(default_factory=list)
    user_params: List[UserParam] = field(default_factory=list)

    def find(self, *accessions_or_names: str) -> Optional[CvParam]:
        """First CV param whose accession or name matches one of the given keys."""
        keys = {key.lower() for key in accessions_or_names}
        for param in self.cv_params:
            if param.accession.lower() in keys or param.name.lower() in keys:
                return param
        return None

    def find_user(self, *names: str) -> Optional[UserParam]:
        keys = {key.lower() for key in names}
        for param in self.user_params:
            if param.name.lower() in keys:
                return param
        return None


@dataclass(frozen=True)
class Contact:
    name: str
    affiliation: str = ""
    email: str = ""


@dataclass(frozen=True)
class Software:
    name: str
    version: str = ""
    customization: str = ""


@dataclass(frozen=True)
class SearchDatabase:
    name: str
    version: str = ""
    location: str = ""


@dataclass(frozen=True)
class SpectraData:
    """A reference to an external raw-spectrum file, as declared in the identification file."""
    id: str
    location: str
    name: str = ""
    file_format: str = ""
    spectrum_id_format: str = ""


@dataclass
class Modification:
    location: int
    monoisotopic_mass_delta: List[Optional[float]] = field(default_factory=list)
    residues: str = ""
    cv_params: List[CvParam] = field(default_factory=list)


@dataclass
class FragmentIon:
    mz: float
    intensity: float
    ion_type: str = ""
    charge: int = 0


@dataclass
class Spectrum:
    id: str
    mz: np.ndarray
    intensity: np.ndarray
    precursor_mz: Optional[float] = None
    precursor_charge: Optional[int] = None
    ms_level: int = 2

    def __post_init__(self):
        assert len(self.mz) == len(self.intensity), "m/z and intensity arrays must have equal length"

    @property
    def mass_intensity_map(self) -> np.ndarray:
        """(n, 2) array of m/z, intensity pairs."""
        return np.column_stack((np.asarray(self.mz, dtype=np.float64),
                                np.asarray(self.intensity, dtype=np.float64)))


@dataclass
class GenomicCoordinates:
    """Genome mapping of a peptide, carried by proteogenomics identification files."""
    chrom: str
    start: int
    end: int
    strand: str = "."
    block_count: int = 1
    block_sizes: str = ""
    block_starts: str = ""
    genome_reference: str = ""


@dataclass
class Peptide:
    """One peptide-spectrum match attached to a protein."""
    id: str
    sequence: str
    protein_id: str
    modifications: List[Modification] = field(default_factory=list)
    fragmentation: List[FragmentIon] = field(default_factory=list)
    spectrum_id: Optional[str] = None
    precursor_charge: Optional[int] = None
    precursor_mz: float = -1.0
    calculated_mz: Optional[float] = None
    rank: int = 1
    start: Optional[int] = None
    end: Optional[int] = None
    pre: str = "-"
    post: str = "-"
    is_decoy: bool = False
    scores: List[CvParam] = field(default_factory=list)
    spectra_data_ref: Optional[str] = None
    spectrum_ref: Optional[str] = None
    coordinates: Optional[GenomicCoordinates] = None


@dataclass
class Protein:
    id: str
    accession: str
    peptides: List[Peptide] = field(default_factory=list)
    description: str = ""
    search_database_ref: Optional[str] = None
    is_decoy: bool = False


@dataclass
class InstrumentComponentDescription:
    cv_params: List[CvParam] = field(default_factory=list)
    user_params: List[UserParam] = field(default_factory=list)


@dataclass
class InstrumentConfiguration:
    id: str
    source: List[InstrumentComponentDescription] = field(default_factory=list)
    analyzer: List[InstrumentComponentDescription] = field(default_factory=list)
    detector: List[InstrumentComponentDescription] = field(default_factory=list)


@dataclass
class ExperimentMetaData:
    short_label: str = ""
    persons: List[Contact] = field(default_factory=list)
    additional: ParamGroup = field(default_factory=ParamGroup)
    softwares: List[Software] = field(default_factory=list)
