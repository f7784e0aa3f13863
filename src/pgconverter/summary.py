"""
Validation results: the per-file summary and its paired status report.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Set

from .model import CvParam, Contact, Software, UserParam

STATUS_OK = "OK"
STATUS_ERROR = "ERROR"


@dataclass(frozen=True)
class PeakFileSummary:
    """A spectra-data source declared by an identification file."""
    file_name: str
    missing: bool
    number_of_spectra: int = 0


@dataclass
class InstrumentComponent:
    order: int
    cv_params: List[CvParam] = field(default_factory=list)
    user_params: List[UserParam] = field(default_factory=list)


@dataclass
class Instrument:
    cv_param: CvParam
    value: str
    sources: List[InstrumentComponent] = field(default_factory=list)
    analyzers: List[InstrumentComponent] = field(default_factory=list)
    detectors: List[InstrumentComponent] = field(default_factory=list)

    @property
    def components(self) -> List[InstrumentComponent]:
        return self.sources + self.analyzers + self.detectors


@dataclass
class AssayFileSummary:
    """Quality-control summary of one validated file."""
    name: str = ""
    short_label: str = ""
    contacts: List[Contact] = field(default_factory=list)
    cv_params: List[CvParam] = field(default_factory=list)
    user_params: List[UserParam] = field(default_factory=list)
    instruments: List[Instrument] = field(default_factory=list)
    softwares: Set[Software] = field(default_factory=set)
    ptms: Set[CvParam] = field(default_factory=set)
    peak_file_summaries: Set[PeakFileSummary] = field(default_factory=set)

    number_of_spectra: int = 0
    number_of_identified_spectra: int = 0
    number_of_missing_spectra: int = 0
    number_of_peptides: int = 0
    number_of_unique_peptides: int = 0
    number_of_proteins: int = 0

    delta_mz_error_rate: float = 0.0
    spectrum_match_fragment_ions: bool = False
    protein_group_present: bool = False
    example_protein_accession: Optional[str] = None
    search_database: Optional[str] = None
    has_chromatogram: bool = False


@dataclass
class Report:
    """Outcome of one validation invocation."""
    file_name: str = ""
    status: str = ""

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def set_error(self, message: str) -> None:
        self.status = f"{STATUS_ERROR}\n{message}"
