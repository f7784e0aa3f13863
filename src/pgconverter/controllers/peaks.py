"""
Peak-list sources (MGF, mzML) attached to identification files.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
from lxml import etree
from pyteomics import mgf, mzml

from ..exceptions import FileFormatError
from ..model import Spectrum
from .xml import localname, open_binary, read_prefix, sniff_root

logger = logging.getLogger(__name__)

MGF_SUFFIXES = (".mgf",)
MZML_SUFFIXES = (".mzml",)
MZML_ROOTS = ("mzML", "indexedmzML")

_INDEX_REF = re.compile(r"^(?:index=)?(\d+)$")
_SCAN_REF = re.compile(r"scan=(\d+)")


def _first_charge(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        value = value[0]
    try:
        charge = int(value)
    except (TypeError, ValueError):
        return None
    return charge or None


def _first_mz(value) -> Optional[float]:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    return float(value) if value is not None else None


class PeakFileSource:
    """
    All spectra of one peak file, held in memory and addressable by the
    spectrum reference formats used in identification files
    (index=N, scan=N, native id, title).
    """

    def __init__(self, path: Union[str, Path], spectra: List[Spectrum],
                 titles: Optional[Dict[str, str]] = None):
        self.path = Path(path)
        self.name = self.path.name
        self._spectra = spectra
        self._by_id = {s.id: s for s in spectra}
        self._by_title = {title: self._by_id[sid] for sid, title in (titles or {}).items()}
        self._by_scan = {}
        for spectrum in spectra:
            match = _SCAN_REF.search(spectrum.id)
            if match:
                self._by_scan.setdefault(int(match.group(1)), spectrum)

    def __len__(self) -> int:
        return len(self._spectra)

    @classmethod
    def open(cls, path: Union[str, Path], log: Optional[logging.Logger] = None) -> 'PeakFileSource':
        """
        Load a peak file, recognising the format by content (mzML root element or
        MGF BEGIN IONS block) with the file suffix as fallback.

        Raises:
            FileFormatError: If the file is neither MGF nor mzML.
        """
        log = log or logger
        path = Path(path)
        if is_mzml(path):
            log.info(f"Reading mzML peak file: {path}")
            return cls.from_mzml(path)
        if is_mgf(path):
            log.info(f"Reading MGF peak file: {path}")
            return cls.from_mgf(path)
        raise FileFormatError(f"Unsupported peak file format: {path}")

    @classmethod
    def from_mgf(cls, path: Union[str, Path]) -> 'PeakFileSource':
        spectra, titles = [], {}
        with mgf.read(str(path), use_index=False) as reader:
            for index, entry in enumerate(reader):
                params = entry.get('params', {})
                spectrum_id = f"index={index}"
                scans = params.get('scans')
                if scans is not None:
                    spectrum_id = f"index={index} scan={scans}"
                spectra.append(Spectrum(
                    id=spectrum_id,
                    mz=np.asarray(entry.get('m/z array', []), dtype=np.float64),
                    intensity=np.asarray(entry.get('intensity array', []), dtype=np.float64),
                    precursor_mz=_first_mz(params.get('pepmass')),
                    precursor_charge=_first_charge(params.get('charge')),
                ))
                if 'title' in params:
                    titles[spectrum_id] = str(params['title'])
        return cls(path, spectra, titles)

    @classmethod
    def from_mzml(cls, path: Union[str, Path]) -> 'PeakFileSource':
        spectra = []
        with mzml.read(str(path)) as reader:
            for entry in reader:
                precursor_mz, precursor_charge = None, None
                for precursor in entry.get('precursorList', {}).get('precursor', []):
                    for ion in precursor.get('selectedIonList', {}).get('selectedIon', []):
                        precursor_mz = _first_mz(ion.get('selected ion m/z'))
                        precursor_charge = _first_charge(ion.get('charge state'))
                        break
                    break
                spectra.append(Spectrum(
                    id=entry.get('id', f"index={entry.get('index', len(spectra))}"),
                    mz=np.asarray(entry.get('m/z array', []), dtype=np.float64),
                    intensity=np.asarray(entry.get('intensity array', []), dtype=np.float64),
                    precursor_mz=precursor_mz,
                    precursor_charge=precursor_charge,
                    ms_level=int(entry.get('ms level', 2)),
                ))
        return cls(path, spectra)

    def get_spectrum(self, spectrum_ref: Optional[str]) -> Optional[Spectrum]:
        """Resolve an identification-file spectrum reference against this file."""
        if spectrum_ref is None:
            return None
        spectrum_ref = spectrum_ref.strip()
        if spectrum_ref in self._by_id:
            return self._by_id[spectrum_ref]
        if spectrum_ref.startswith("title="):
            return self._by_title.get(spectrum_ref[len("title="):])
        if spectrum_ref in self._by_title:
            return self._by_title[spectrum_ref]

        match = _INDEX_REF.match(spectrum_ref)
        if match:
            index = int(match.group(1))
            return self._spectra[index] if index < len(self._spectra) else None

        match = _SCAN_REF.search(spectrum_ref)
        if match:
            return self._by_scan.get(int(match.group(1)))
        return None


def is_mzml(path: Union[str, Path]) -> bool:
    root = sniff_root(path)
    if root is not None:
        return root[0] in MZML_ROOTS
    return Path(path).suffix.lower() in MZML_SUFFIXES


def is_mgf(path: Union[str, Path]) -> bool:
    if b"BEGIN IONS" in read_prefix(path):
        return True
    return Path(path).suffix.lower() in MGF_SUFFIXES


class MzMLController:
    """Whole-file queries on an mzML run."""

    @staticmethod
    def has_chromatogram(path: Union[str, Path]) -> bool:
        """
        True if the run carries at least one chromatogram.

        Stops at the first chromatogram element, or at a chromatogramList declaring
        a positive count.
        """
        with open_binary(path) as f:
            for event, element in etree.iterparse(f, events=("start", "end"), huge_tree=True):
                name = localname(element)
                if event == "end":
                    if name == "spectrum":
                        element.clear()
                    continue
                if name == "chromatogram":
                    return True
                if name == "chromatogramList" and element.get("count", "").isdigit():
                    return int(element.get("count")) > 0
        return False
