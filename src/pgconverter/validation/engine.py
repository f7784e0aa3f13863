"""
Validation of mzIdentML, PRIDE XML and mzTab files.

Every entry point returns a fresh (Report, AssayFileSummary) pair. Failures while
scanning a file end up in the report status; they never escape the entry point.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set, Tuple, Union

from tqdm import tqdm

from ..archive import extract_zip_files
from ..chemistry import calculate_delta_mz
from ..config import PgConverterConfig
from ..controllers import FileType, MzIdentMLController, MzTabController, PrideXmlController
from ..controllers.base import ptm_mass_deltas
from ..exceptions import FileFormatError
from ..formats import detect_file_type
from ..model import CvParam
from ..report import output_report
from ..summary import STATUS_OK, AssayFileSummary, Report
from .scans import (
    MalformedOntologyReference,
    check_fragment_ions,
    classify_ptms,
    is_delta_mass_error,
    random_delta_mass_error_rate,
    round_half_up,
    scan_metadata,
    scan_mzml,
    scan_peak_files,
)

logger = logging.getLogger(__name__)

FORMAT_LABELS = {
    FileType.MZID: "mzIdentML",
    FileType.PRIDEXML: "PRIDE XML",
    FileType.MZTAB: "mzTab",
}

PEAK_LIST_SEPARATOR = "##"


def _wrong_format(report: Report, path: Union[str, Path], file_type: FileType, log: logging.Logger):
    message = f"Supplied file is not a valid {FORMAT_LABELS.get(file_type, file_type.value)} file: {path}"
    log.error(message)
    report.set_error(message)


def _has_format(report: Report, path: Union[str, Path], file_type: FileType, probe,
                log: logging.Logger) -> bool:
    try:
        if probe(path):
            return True
    except (OSError, FileFormatError) as e:
        message = f"Unable to read {path}: {e}"
        log.error(message)
        report.set_error(message)
        return False
    _wrong_format(report, path, file_type, log)
    return False


def _abort(report: Report, result: MalformedOntologyReference, log: logging.Logger) -> None:
    log.error(result.message)
    report.set_error(result.message)


def _finish(report: Report) -> None:
    if not report.status:
        report.status = STATUS_OK


def _scan_peptides(controller, ptms: Set[CvParam], verbose: bool) -> Union[Set[str], MalformedOntologyReference]:
    """Unique sequences over all peptides, collecting PTMs on the way."""
    sequences = set()
    for protein_id in tqdm(controller.get_protein_ids(), desc='scanning proteins', ncols=100, disable=not verbose):
        for peptide in controller.get_protein_by_id(protein_id).peptides:
            malformed = classify_ptms(peptide, ptms, controller.path)
            if malformed is not None:
                return malformed
            sequences.add(peptide.sequence)
    return sequences


def validate_mzid_file(mzid_file: Union[str, Path], peak_files: Sequence[Union[str, Path]] = (),
                       config: Optional[PgConverterConfig] = None,
                       log: Optional[logging.Logger] = None) -> Tuple[Report, AssayFileSummary]:
    """
    Validate an mzIdentML file against its peak files.

    Args:
        mzid_file: The mzIdentML file (already decompressed).
        peak_files: Peak files (MGF / mzML) resolving its spectrum references.
        config: Validation settings, defaults if None.
        log: Diagnostic sink, module logger if None.

    Returns:
        The report and the summary of the file.
    """
    log = log or logger
    config = config or PgConverterConfig()
    report = Report(file_name=str(mzid_file))
    summary = AssayFileSummary()

    if not _has_format(report, mzid_file, FileType.MZID, MzIdentMLController.is_valid_format, log):
        return report, summary
    if not peak_files:
        log.warning(f"No peak files supplied for {mzid_file}")

    try:
        with MzIdentMLController(mzid_file, peak_files=peak_files,
                                 random_seed=config.random_seed, log=log) as controller:
            log.info("Step 1/5: Scanning metadata...")
            scan_metadata(controller, summary, log)

            summary.number_of_proteins = controller.get_number_of_proteins()
            summary.number_of_peptides = controller.get_number_of_peptides()
            summary.number_of_spectra = controller.get_number_of_spectra()
            summary.number_of_identified_spectra = controller.get_number_of_identified_spectra()
            summary.number_of_missing_spectra = controller.get_number_of_missing_spectra()

            log.info("Step 2/5: Checking precursor delta m/z...")
            summary.delta_mz_error_rate = random_delta_mass_error_rate(
                controller, config.delta_mass_checks, config.delta_mass_threshold)

            if summary.number_of_missing_spectra < 1:
                log.info("Step 3/5: Classifying PTMs...")
                ptms: Set[CvParam] = set()
                sequences = _scan_peptides(controller, ptms, config.verbose)
                if isinstance(sequences, MalformedOntologyReference):
                    _abort(report, sequences, log)
                    return report, summary
                summary.ptms = ptms
                summary.number_of_unique_peptides = len(sequences)

                log.info("Step 4/5: Checking fragment ions...")
                summary.spectrum_match_fragment_ions = check_fragment_ions(
                    controller, config.fragment_sample_size, controller.rng)
            else:
                log.error(f"Missing spectra are present: {summary.number_of_missing_spectra}")

            log.info("Step 5/5: Scanning peak files...")
            scan_peak_files(controller, peak_files, summary, log)
            scan_mzml(peak_files, summary, log)
    except Exception as e:
        log.error(f"Failed to validate {mzid_file}: {e}")
        report.set_error(str(e))
        return report, summary

    _finish(report)
    return report, summary


def validate_pride_xml_file(pride_xml_file: Union[str, Path], config: Optional[PgConverterConfig] = None,
                            log: Optional[logging.Logger] = None) -> Tuple[Report, AssayFileSummary]:
    """
    Validate a PRIDE XML file.

    Every peptide is checked for precursor delta m/z; precursor charge and m/z
    come from the peptide, else from its spectrum. Identified and missing
    spectra are recounted from the spectrum references of all peptides.
    """
    log = log or logger
    config = config or PgConverterConfig()
    report = Report(file_name=str(pride_xml_file))
    summary = AssayFileSummary()

    if not _has_format(report, pride_xml_file, FileType.PRIDEXML, PrideXmlController.is_valid_format, log):
        return report, summary
    if not config.strict_delta_mass_tolerance:
        log.warning("Delta mass tolerance check counts every charge-resolved PSM as an error; "
                    "set strict_delta_mass_tolerance to count deviations outside the tolerance only")

    try:
        with PrideXmlController(pride_xml_file, random_seed=config.random_seed, log=log) as controller:
            log.info("Step 1/3: Scanning metadata...")
            scan_metadata(controller, summary, log)

            summary.number_of_proteins = controller.get_number_of_proteins()
            summary.number_of_peptides = controller.get_number_of_peptides()
            summary.number_of_spectra = controller.get_number_of_spectra()
            summary.number_of_identified_spectra = controller.get_number_of_identified_spectra()
            summary.number_of_missing_spectra = controller.get_number_of_missing_spectra()

            if summary.number_of_missing_spectra >= 1:
                log.error(f"Missing spectra are present: {summary.number_of_missing_spectra}")
                _finish(report)
                return report, summary

            log.info("Step 2/3: Checking PTMs and precursor delta m/z...")
            ptms: Set[CvParam] = set()
            sequences, all_spectra, existing_spectra = set(), set(), set()
            errors = 0
            for protein_id in tqdm(controller.get_protein_ids(), desc='scanning proteins', ncols=100,
                                   disable=not config.verbose):
                for peptide in controller.get_protein_by_id(protein_id).peptides:
                    malformed = classify_ptms(peptide, ptms, pride_xml_file)
                    if malformed is not None:
                        _abort(report, malformed, log)
                        return report, summary
                    sequences.add(peptide.sequence)

                    charge = controller.get_peptide_precursor_charge(protein_id, peptide.id)
                    mz = controller.get_peptide_precursor_mz(protein_id, peptide.id)
                    spectrum_id = controller.get_peptide_spectrum_id(protein_id, peptide.id)
                    if spectrum_id is not None:
                        all_spectra.add(spectrum_id)
                        if controller.get_spectrum_by_id(spectrum_id) is not None:
                            existing_spectra.add(spectrum_id)
                        if charge is None or mz == -1:
                            charge = controller.get_spectrum_precursor_charge(spectrum_id)
                            mz = controller.get_spectrum_precursor_mz(spectrum_id)

                    if charge is None:
                        errors += 1
                        continue
                    delta = None
                    if mz != -1:
                        delta = calculate_delta_mz(peptide.sequence, mz, charge, ptm_mass_deltas(peptide))
                    if is_delta_mass_error(delta, config.delta_mass_threshold,
                                           config.strict_delta_mass_tolerance):
                        errors += 1

            peptides = summary.number_of_peptides
            summary.delta_mz_error_rate = round_half_up(errors / peptides) if peptides else 0.0
            summary.ptms = ptms
            summary.number_of_unique_peptides = len(sequences)
            summary.number_of_identified_spectra = len(existing_spectra)
            summary.number_of_missing_spectra = len(all_spectra - existing_spectra)

            log.info("Step 3/3: Checking fragment ions...")
            summary.spectrum_match_fragment_ions = check_fragment_ions(
                controller, config.fragment_sample_size, controller.rng)
    except Exception as e:
        log.error(f"Failed to validate {pride_xml_file}: {e}")
        report.set_error(str(e))
        return report, summary

    _finish(report)
    return report, summary


def validate_mztab_file(mztab_file: Union[str, Path], config: Optional[PgConverterConfig] = None,
                        log: Optional[logging.Logger] = None) -> Tuple[Report, AssayFileSummary]:
    """Structural check and counts of an mzTab file."""
    log = log or logger
    report = Report(file_name=str(mztab_file))
    summary = AssayFileSummary()

    if not _has_format(report, mztab_file, FileType.MZTAB, MzTabController.is_valid_format, log):
        return report, summary

    try:
        with MzTabController(mztab_file, write_error_log=False, log=log) as controller:
            summary.name = controller.name
            summary.softwares = set(controller.get_softwares())
            summary.ptms = controller.get_ptms()
            summary.number_of_proteins = controller.get_number_of_proteins()
            summary.number_of_peptides = controller.get_number_of_psms()
            summary.number_of_unique_peptides = controller.get_number_of_unique_peptides()
            summary.number_of_identified_spectra = controller.get_number_of_identified_spectra()
            summary.number_of_spectra = summary.number_of_identified_spectra
            problems = controller.problems
    except Exception as e:
        log.error(f"Failed to validate {mztab_file}: {e}")
        report.set_error(str(e))
        return report, summary

    if problems:
        for problem in problems:
            log.error(problem)
        report.set_error("\n".join(problems))
    _finish(report)
    return report, summary


# ----------------------------------------------------------------------
# Command-level entry
# ----------------------------------------------------------------------

def expand_peak_files(peak_arguments: Iterable[Union[str, Path]],
                      log: Optional[logging.Logger] = None) -> List[Path]:
    """
    Peak file arguments to files: '##'-separated lists are split, directories
    contribute their regular files.
    """
    log = log or logger
    files: List[Path] = []
    for argument in peak_arguments:
        for part in str(argument).split(PEAK_LIST_SEPARATOR):
            if not part.strip():
                continue
            path = Path(part.strip())
            if path.is_dir():
                files.extend(sorted(p for p in path.iterdir() if p.is_file()))
            elif path.is_file():
                files.append(path)
            else:
                log.warning(f"Peak file not found: {path}")
    return list(dict.fromkeys(files))


def run_validation(file_type: FileType, input_file: Union[str, Path],
                   peak_files: Iterable[Union[str, Path]] = (),
                   report_file: Optional[Union[str, Path]] = None,
                   config: Optional[PgConverterConfig] = None,
                   log: Optional[logging.Logger] = None) -> Report:
    """
    Validate one file end to end: decompress, detect, scan, report.

    Args:
        file_type: Format the caller expects the input to have.
        input_file: File to validate, possibly gzip compressed.
        peak_files: Peak file arguments (files, directories, '##'-separated lists).
        report_file: Where to write the text report; logged only if None.
        config: Validation and reporting settings.
        log: Diagnostic sink, module logger if None.

    Returns:
        The report of the run.
    """
    log = log or logger
    config = config or PgConverterConfig()
    input_file = Path(input_file)
    report = Report(file_name=str(input_file))
    summary = AssayFileSummary()

    if input_file.is_dir():
        message = f"Unable to validate a directory: {input_file}"
        log.error(message)
        report.set_error(message)
    elif not input_file.exists():
        message = f"Input file not found: {input_file}"
        log.error(message)
        report.set_error(message)
    else:
        files = extract_zip_files([input_file], max_workers=config.max_workers, log=log)
        peaks = extract_zip_files(expand_peak_files(peak_files, log), max_workers=config.max_workers, log=log)
        target = files[0] if files else None
        if target is None:
            report.set_error(f"Unable to decompress {input_file}")
        elif detect_file_type(target, log) != file_type:
            _wrong_format(report, target, file_type, log)
        elif file_type == FileType.MZID:
            report, summary = validate_mzid_file(target, peaks, config, log)
        elif file_type == FileType.PRIDEXML:
            report, summary = validate_pride_xml_file(target, config, log)
        elif file_type == FileType.MZTAB:
            report, summary = validate_mztab_file(target, config, log)
        else:
            report.set_error(f"Validation of {file_type.value} files is not supported")

    output_report(summary, report, report_file,
                  skip_serialization=config.skip_serialization,
                  suffix=config.serialization_suffix, log=log)
    return report
