"""
mzTab 1.0 model, reader, writer and structural checker.

Sections are held as pandas DataFrames with the column names of their header
line; "null" cells are read as missing values and written back as "null".
"""

import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, TextIO, Tuple, Union

import pandas as pd

from ..model import PSI_MOD, UNIMOD, CvParam, Software
from .base import FileType
from .xml import open_binary, read_prefix

logger = logging.getLogger(__name__)

MZTAB_VERSION = "1.0.0"
NULL = "null"
ERROR_LOG_NAME = "pride.mztaberrors.out"
PROBE_LINES = 50

PROTEIN_COLUMNS = [
    "accession", "description", "taxid", "species", "database", "database_version",
    "search_engine", "best_search_engine_score[1]", "ambiguity_members", "modifications",
]
PSM_COLUMNS = [
    "sequence", "PSM_ID", "accession", "unique", "database", "database_version",
    "search_engine", "search_engine_score[1]", "modifications", "retention_time", "charge",
    "exp_mass_to_charge", "calc_mass_to_charge", "spectra_ref", "pre", "post", "start", "end",
]
REQUIRED_METADATA = (
    "mzTab-version", "mzTab-mode", "mzTab-type", "description",
    "ms_run[1]-location", "fixed_mod[1]", "variable_mod[1]",
)
MODES = ("Summary", "Complete")
TYPES = ("Identification", "Quantification")

# header prefix -> (row prefix, MzTabFile attribute)
SECTIONS = {
    "PRH": ("PRT", "proteins"),
    "PEH": ("PEP", "peptides"),
    "PSH": ("PSM", "psms"),
    "SMH": ("SML", "small_molecules"),
}

_SPECTRA_REF = re.compile(r"^ms_run\[(\d+)\]:.+")
_PTM_ACCESSION = re.compile(r"\b((?:UNIMOD|MOD):\d+)")


@dataclass
class MzTabFile:
    """In-memory mzTab document."""
    metadata: Dict[str, str] = field(default_factory=dict)
    proteins: pd.DataFrame = field(default_factory=pd.DataFrame)
    peptides: pd.DataFrame = field(default_factory=pd.DataFrame)
    psms: pd.DataFrame = field(default_factory=pd.DataFrame)
    small_molecules: pd.DataFrame = field(default_factory=pd.DataFrame)
    comments: List[str] = field(default_factory=list)

    def ms_run_indices(self) -> Set[int]:
        indices = set()
        for key in self.metadata:
            match = re.match(r"^ms_run\[(\d+)\]-location$", key)
            if match:
                indices.add(int(match.group(1)))
        return indices


# ----------------------------------------------------------------------
# Writing
# ----------------------------------------------------------------------

def _write_section(handle: TextIO, frame: pd.DataFrame, header_prefix: str, row_prefix: str) -> None:
    if frame.empty:
        return
    frame = frame.copy()
    frame.insert(0, header_prefix, row_prefix)
    handle.write("\n")
    frame.to_csv(handle, sep="\t", index=False, na_rep=NULL, lineterminator="\n")


def write_mztab(mztab: MzTabFile, output_file: Union[str, Path]) -> Path:
    """Write an mzTab document; metadata first, then the non-empty sections."""
    output_file = Path(output_file)
    with open(output_file, 'w', newline="") as f:
        for comment in mztab.comments:
            f.write(f"COM\t{comment}\n")
        for key, value in mztab.metadata.items():
            f.write(f"MTD\t{key}\t{value}\n")
        for header_prefix, (row_prefix, attribute) in SECTIONS.items():
            _write_section(f, getattr(mztab, attribute), header_prefix, row_prefix)
    return output_file


# ----------------------------------------------------------------------
# Reading
# ----------------------------------------------------------------------

def parse_mztab(handle: TextIO) -> Tuple[MzTabFile, List[str]]:
    """
    Parse mzTab text.

    Returns:
        The document and the list of line-level problems (unknown prefixes,
        rows before their header, rows whose width differs from the header).
    """
    mztab = MzTabFile()
    problems: List[str] = []
    headers: Dict[str, List[str]] = {}
    rows: Dict[str, List[List[str]]] = {prefix: [] for prefix, _ in SECTIONS.values()}
    row_headers = {row_prefix: header_prefix for header_prefix, (row_prefix, _) in SECTIONS.items()}

    for number, line in enumerate(handle, start=1):
        line = line.rstrip("\r\n")
        if not line.strip():
            continue
        cells = line.split("\t")
        prefix = cells[0]
        if prefix == "MTD":
            if len(cells) < 3:
                problems.append(f"line {number}: metadata line without value")
                continue
            mztab.metadata[cells[1]] = "\t".join(cells[2:])
        elif prefix == "COM":
            mztab.comments.append("\t".join(cells[1:]))
        elif prefix in SECTIONS:
            headers[prefix] = cells[1:]
        elif prefix in row_headers:
            header = headers.get(row_headers[prefix])
            if header is None:
                problems.append(f"line {number}: {prefix} row before its {row_headers[prefix]} header")
            elif len(cells) - 1 != len(header):
                problems.append(
                    f"line {number}: {prefix} row has {len(cells) - 1} columns, header has {len(header)}")
            else:
                rows[prefix].append(cells[1:])
        else:
            problems.append(f"line {number}: unknown line prefix '{prefix}'")

    for header_prefix, (row_prefix, attribute) in SECTIONS.items():
        if header_prefix in headers:
            frame = pd.DataFrame(rows[row_prefix], columns=headers[header_prefix], dtype=object)
            setattr(mztab, attribute, frame.mask(frame == NULL))
    return mztab, problems


def read_mztab(path: Union[str, Path]) -> Tuple[MzTabFile, List[str]]:
    """Read an mzTab file (gzip transparently)."""
    with open_binary(path) as raw, io.TextIOWrapper(raw, encoding="utf-8") as handle:
        return parse_mztab(handle)


# ----------------------------------------------------------------------
# Structural checks
# ----------------------------------------------------------------------

def _missing_columns(frame: pd.DataFrame, columns: List[str], section: str) -> List[str]:
    return [f"{section} section misses mandatory column '{c}'" for c in columns if c not in frame.columns]


def check_mztab(mztab: MzTabFile) -> List[str]:
    """
    Structural check of an mzTab document.

    Args:
        mztab: Document to check.

    Returns:
        Human readable problems; an empty list means the document is accepted.
    """
    problems = [f"Missing mandatory metadata '{key}'" for key in REQUIRED_METADATA if key not in mztab.metadata]

    version = mztab.metadata.get("mzTab-version")
    if version is not None and not version.startswith("1.0"):
        problems.append(f"Unsupported mzTab-version '{version}'")
    mode = mztab.metadata.get("mzTab-mode")
    if mode is not None and mode not in MODES:
        problems.append(f"Invalid mzTab-mode '{mode}'")
    mzt_type = mztab.metadata.get("mzTab-type")
    if mzt_type is not None and mzt_type not in TYPES:
        problems.append(f"Invalid mzTab-type '{mzt_type}'")

    proteins = mztab.proteins
    if not proteins.empty:
        if "protein_search_engine_score[1]" not in mztab.metadata:
            problems.append("Missing mandatory metadata 'protein_search_engine_score[1]'")
        problems.extend(_missing_columns(proteins, PROTEIN_COLUMNS, "Protein"))
        if "accession" in proteins.columns:
            if proteins["accession"].isna().any():
                problems.append("Protein rows without accession")
            if proteins["accession"].dropna().duplicated().any():
                problems.append("Duplicated protein accessions")

    psms = mztab.psms
    if not psms.empty:
        if "psm_search_engine_score[1]" not in mztab.metadata:
            problems.append("Missing mandatory metadata 'psm_search_engine_score[1]'")
        problems.extend(_missing_columns(psms, PSM_COLUMNS, "PSM"))
        if "PSM_ID" in psms.columns:
            if psms["PSM_ID"].isna().any():
                problems.append("PSM rows without PSM_ID")
            key = [c for c in ("PSM_ID", "accession", "start") if c in psms.columns]
            if psms.duplicated(subset=key).any():
                problems.append("Duplicated PSM rows (PSM_ID, accession, start)")
        if "charge" in psms.columns:
            charges = pd.to_numeric(psms["charge"].dropna(), errors="coerce")
            if charges.isna().any():
                problems.append("Non-numeric PSM charge values")
        if "spectra_ref" in psms.columns:
            runs = mztab.ms_run_indices()
            for ref in psms["spectra_ref"].dropna().unique():
                match = _SPECTRA_REF.match(str(ref))
                if match is None:
                    problems.append(f"Malformed spectra_ref '{ref}'")
                elif int(match.group(1)) not in runs:
                    problems.append(f"spectra_ref '{ref}' points to an undeclared ms_run")
    return problems


def check_mztab_file(path: Union[str, Path]) -> List[str]:
    mztab, problems = read_mztab(path)
    return problems + check_mztab(mztab)


def ptm_params(modifications: pd.Series) -> Set[CvParam]:
    """PSI-MOD / UNIMOD params named by an mzTab modifications column."""
    ptms = set()
    for value in modifications.dropna():
        for accession in _PTM_ACCESSION.findall(str(value)):
            lookup = UNIMOD if accession.startswith(UNIMOD) else PSI_MOD
            ptms.add(CvParam(accession=accession, cv_lookup_id=lookup))
    return ptms


class MzTabController:
    """
    Data access to one mzTab file.

    Reading an mzTab file writes its problem log (possibly empty) to
    pride.mztaberrors.out next to the file.
    """

    file_type = FileType.MZTAB

    def __init__(self, path: Union[str, Path], write_error_log: bool = True,
                 log: Optional[logging.Logger] = None):
        self.path = Path(path)
        self.log = log or logger
        self.log.info(f"Reading mzTab file: {self.path}")
        self.mztab, self.problems = read_mztab(self.path)
        self.problems = self.problems + check_mztab(self.mztab)
        self.error_log: Optional[Path] = None
        if write_error_log:
            self.error_log = self.path.parent / ERROR_LOG_NAME
            self.error_log.write_text("".join(f"{p}\n" for p in self.problems))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self) -> None:
        pass

    @staticmethod
    def is_valid_format(path: Union[str, Path]) -> bool:
        """True if a metadata line declares mzTab-version within the first lines."""
        text = read_prefix(path).decode("utf-8", errors="replace")
        for line in text.splitlines()[:PROBE_LINES]:
            if line.startswith("MTD\tmzTab-version"):
                return True
        return False

    @property
    def name(self) -> str:
        return self.mztab.metadata.get("title") or self.mztab.metadata.get("mzTab-ID") or self.path.name

    @property
    def psms(self) -> pd.DataFrame:
        return self.mztab.psms

    def get_number_of_proteins(self) -> int:
        return len(self.mztab.proteins)

    def get_number_of_psms(self) -> int:
        return len(self.mztab.psms)

    def get_number_of_unique_peptides(self) -> int:
        if "sequence" not in self.psms.columns:
            return 0
        return int(self.psms["sequence"].dropna().nunique())

    def get_number_of_identified_spectra(self) -> int:
        if "spectra_ref" not in self.psms.columns:
            return 0
        return int(self.psms["spectra_ref"].dropna().nunique())

    def get_ptms(self) -> Set[CvParam]:
        ptms = set()
        for frame in (self.mztab.proteins, self.mztab.psms):
            if "modifications" in frame.columns:
                ptms |= ptm_params(frame["modifications"])
        return ptms

    def get_softwares(self) -> List[Software]:
        softwares = []
        for key, value in self.mztab.metadata.items():
            if re.match(r"^software\[\d+\]$", key):
                parts = [p.strip() for p in value.strip("[]").split(",")]
                name = parts[2] if len(parts) > 2 else value
                version = parts[3] if len(parts) > 3 else ""
                softwares.append(Software(name=name, version=version))
        return softwares
