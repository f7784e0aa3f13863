"""
Metadata scans and QC checks run by the validation engine.

Each scan reads from a controller and fills fields of an AssayFileSummary.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set, Union

import numpy as np

from ..controllers import MzMLController
from ..controllers.mzidentml import match_peak_file, real_file_name
from ..model import PSI_MS, PTM_ONTOLOGIES, CvParam, FragmentIon, Peptide, Spectrum
from ..summary import AssayFileSummary, Instrument, InstrumentComponent, PeakFileSummary

logger = logging.getLogger(__name__)

INSTRUMENT_MODEL = CvParam(accession="MS:1000031", name="instrument model", cv_lookup_id=PSI_MS)
MZML_SUFFIX = ".mzml"


@dataclass(frozen=True)
class MalformedOntologyReference:
    """A modification CV param without an ontology reference; fatal for the scan."""
    file_path: str
    accession: str = ""

    @property
    def message(self) -> str:
        return f"A PTM CV Param's ontology is not defined properly in file: {self.file_path}"


# ----------------------------------------------------------------------
# Metadata
# ----------------------------------------------------------------------

def scan_for_general_metadata(controller, summary: AssayFileSummary,
                              log: Optional[logging.Logger] = None) -> None:
    """Name, short label, contacts and experiment-level params."""
    log = log or logger
    metadata = controller.get_experiment_metadata()
    summary.name = controller.name
    summary.short_label = metadata.short_label or ""
    summary.contacts = list(metadata.persons)
    summary.cv_params = list(metadata.additional.cv_params)
    summary.user_params = list(metadata.additional.user_params)
    log.debug(f"General metadata: name={summary.name}, contacts={len(summary.contacts)}")


def _components(descriptions, start: int) -> List[InstrumentComponent]:
    return [
        InstrumentComponent(order=start + i, cv_params=list(d.cv_params), user_params=list(d.user_params))
        for i, d in enumerate(descriptions)
    ]


def scan_for_instrument(controller, summary: AssayFileSummary,
                        log: Optional[logging.Logger] = None) -> None:
    """
    Rebuild instruments from the controller's instrument configurations.

    Component order is assigned sequentially from 1 across sources, analyzers
    and detectors combined. Controllers without mz-graph metadata contribute nothing.
    """
    log = log or logger
    configurations = controller.get_instrument_configurations()
    if configurations is None:
        log.debug("No instrument metadata available")
        return

    instruments = []
    for configuration in configurations:
        sources = _components(configuration.source, 1)
        analyzers = _components(configuration.analyzer, 1 + len(sources))
        detectors = _components(configuration.detector, 1 + len(sources) + len(analyzers))
        instruments.append(Instrument(
            cv_param=INSTRUMENT_MODEL,
            value=configuration.id,
            sources=sources,
            analyzers=analyzers,
            detectors=detectors,
        ))
    summary.instruments = instruments


def scan_for_software(controller, summary: AssayFileSummary,
                      log: Optional[logging.Logger] = None) -> None:
    log = log or logger
    softwares = controller.get_experiment_metadata().softwares
    summary.softwares = set(softwares)
    log.debug(f"Software: {', '.join(s.name for s in softwares) or 'none'}")


def scan_for_search_details(controller, summary: AssayFileSummary,
                            log: Optional[logging.Logger] = None) -> None:
    """Protein-group presence, an example protein accession and its search database."""
    log = log or logger
    summary.protein_group_present = controller.has_protein_ambiguity_group()
    protein_ids = controller.get_protein_ids()
    if protein_ids:
        first = protein_ids[0]
        summary.example_protein_accession = controller.get_protein_accession(first)
        database = controller.get_search_database(first)
        summary.search_database = database.name if database is not None else None
    log.debug(f"Search details: groups={summary.protein_group_present}, "
              f"example={summary.example_protein_accession}, database={summary.search_database}")


def scan_metadata(controller, summary: AssayFileSummary, log: Optional[logging.Logger] = None) -> None:
    scan_for_general_metadata(controller, summary, log)
    scan_for_instrument(controller, summary, log)
    scan_for_software(controller, summary, log)
    scan_for_search_details(controller, summary, log)


# ----------------------------------------------------------------------
# PTMs
# ----------------------------------------------------------------------

def classify_ptms(peptide: Peptide, ptms: Set[CvParam],
                  file_path: Union[str, Path]) -> Optional[MalformedOntologyReference]:
    """
    Add the PSI-MOD / UNIMOD params of a peptide's modifications to ptms.

    Returns:
        MalformedOntologyReference for the first param without ontology
        reference, None otherwise.
    """
    for modification in peptide.modifications:
        for param in modification.cv_params:
            if not param.cv_lookup_id:
                return MalformedOntologyReference(file_path=str(file_path), accession=param.accession)
            if param.cv_lookup_id.upper() in PTM_ONTOLOGIES:
                ptms.add(param)
    return None


# ----------------------------------------------------------------------
# Delta mass
# ----------------------------------------------------------------------

def is_delta_mass_error(delta: Optional[float], threshold: float, strict: bool = False) -> bool:
    """
    Error condition of the per-peptide delta mass check.

    The default condition flags any delta inside or outside [-threshold, threshold];
    strict mode flags only deltas outside the tolerance.
    """
    if delta is None:
        return True
    if strict:
        return abs(delta) > threshold
    return delta >= -threshold or delta <= threshold


def round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def random_delta_mass_error_rate(controller, checks: int, threshold: float) -> float:
    """
    Fraction of failed randomized delta-mass checks, iterated over range(1, checks).

    Returns:
        failures / (checks - 1), rounded to two decimals; 0.0 when no check ran.
    """
    results = [controller.check_random_spectra_by_delta_mass_threshold(1, threshold) for _ in range(1, checks)]
    if not results:
        return 0.0
    failures = sum(1 for passed in results if not passed)
    return round(failures / len(results), 2)


# ----------------------------------------------------------------------
# Fragment ions
# ----------------------------------------------------------------------

def matching_fragment_ions(fragment_ions: Sequence[FragmentIon], spectrum: Optional[Spectrum]) -> bool:
    """True if every fragment (m/z, intensity) pair is a peak of the spectrum."""
    if spectrum is None:
        return False
    peaks = spectrum.mass_intensity_map
    for ion in fragment_ions:
        if not np.any((peaks[:, 0] == ion.mz) & (peaks[:, 1] == ion.intensity)):
            return False
    return True


def check_fragment_ions(controller, sample_size: int, rng: np.random.Generator) -> bool:
    """
    Sample peptides and verify their fragment ions against their spectra.

    Draws range(1, min(peptides, sample_size)) times a random protein and one of
    its peptides at random; peptides without fragmentation are skipped.

    Returns:
        False at the first peptide whose fragments are not all in its spectrum.
    """
    protein_ids = controller.get_protein_ids()
    samples = min(controller.get_number_of_peptides(), sample_size)
    for _ in range(1, samples):
        protein = controller.get_protein_by_id(protein_ids[int(rng.integers(len(protein_ids)))])
        if protein is None or not protein.peptides:
            continue
        peptide = protein.peptides[int(rng.integers(len(protein.peptides)))]
        if not peptide.fragmentation:
            continue
        spectrum = controller.get_spectrum_by_id(peptide.spectrum_id)
        if not matching_fragment_ions(peptide.fragmentation, spectrum):
            return False
    return True


# ----------------------------------------------------------------------
# mzIdentML extras
# ----------------------------------------------------------------------

def scan_peak_files(controller, peak_files: Iterable[Union[str, Path]], summary: AssayFileSummary,
                    log: Optional[logging.Logger] = None) -> None:
    """One PeakFileSummary per declared spectra-data source."""
    log = log or logger
    peak_files = list(peak_files)
    for spectra_data in controller.get_spectra_data_files():
        name = real_file_name(spectra_data.location)
        missing = match_peak_file(spectra_data.location, peak_files) is None
        if missing:
            log.warning(f"Peak file referenced but not supplied: {name}")
        summary.peak_file_summaries.add(PeakFileSummary(
            file_name=name,
            missing=missing,
            number_of_spectra=controller.get_number_of_spectra_by_spectra_data(spectra_data),
        ))


def scan_mzml(peak_files: Iterable[Union[str, Path]], summary: AssayFileSummary,
              log: Optional[logging.Logger] = None) -> None:
    """Chromatogram presence, read from the first supplied mzML peak file."""
    log = log or logger
    for peak_file in peak_files:
        if Path(peak_file).name.lower().endswith(MZML_SUFFIX):
            summary.has_chromatogram = MzMLController.has_chromatogram(peak_file)
            log.debug(f"Chromatograms in {peak_file}: {summary.has_chromatogram}")
            break
