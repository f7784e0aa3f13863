"""
Report generation for pgconverter validation runs.
"""

import logging
import pickle
from pathlib import Path
from typing import Optional, Union

from .summary import AssayFileSummary, Report

logger = logging.getLogger(__name__)

SERIALIZATION_SUFFIX = ".ser"


def _join(items, empty: str = "none") -> str:
    return ", ".join(items) if items else empty


def generate_text_report(summary: AssayFileSummary, report: Report) -> str:
    """
    Render a summary / report pair as human-readable text.

    Set-valued fields are sorted, so equal inputs render identically.

    Args:
        summary: Summary of the validated file.
        report: Status of the validation.

    Returns:
        Formatted text report.
    """
    contacts = sorted(f"{c.name} ({c.affiliation})" if c.affiliation else c.name for c in summary.contacts)
    softwares = sorted(f"{s.name} {s.version}".strip() for s in summary.softwares)
    ptms = sorted(f"{p.accession} {p.name}".strip() for p in summary.ptms)
    params = [str(p) for p in summary.cv_params] + [str(p) for p in summary.user_params]

    instruments = []
    for instrument in summary.instruments:
        components = "; ".join(
            f"{c.order}: {_join([p.name or p.accession for p in c.cv_params] + [p.name for p in c.user_params])}"
            for c in instrument.components
        )
        instruments.append(f"  {instrument.value} [{components}]")

    peak_files = [
        f"  {p.file_name}: {'MISSING' if p.missing else 'present'}, {p.number_of_spectra:,} spectra"
        for p in sorted(summary.peak_file_summaries, key=lambda p: p.file_name)
    ]

    return f"""
================================================================================
                        PGCONVERTER VALIDATION REPORT
================================================================================

File:   {report.file_name}
Status: {report.status}

GENERAL
-------
Name:                      {summary.name}
Short label:               {summary.short_label}
Contacts:                  {_join(contacts)}
Parameters:                {_join(params)}
Software:                  {_join(softwares)}
Instruments:               {len(summary.instruments)}
{chr(10).join(instruments)}

IDENTIFICATIONS
---------------
Proteins:                  {summary.number_of_proteins:,}
Peptides:                  {summary.number_of_peptides:,}
Unique peptides:           {summary.number_of_unique_peptides:,}
Spectra:                   {summary.number_of_spectra:,}
Identified spectra:        {summary.number_of_identified_spectra:,}
Missing spectra:           {summary.number_of_missing_spectra:,}
PTMs:                      {_join(ptms)}

QUALITY
-------
Delta m/z error rate:      {summary.delta_mz_error_rate:.2f}
Fragment ions match:       {summary.spectrum_match_fragment_ions}
Protein groups present:    {summary.protein_group_present}
Example protein:           {summary.example_protein_accession or 'N/A'}
Search database:           {summary.search_database or 'N/A'}
Chromatograms:             {summary.has_chromatogram}

PEAK FILES
----------
{chr(10).join(peak_files) if peak_files else '  none'}
================================================================================
"""


def save_text_report(text: str, report_file: Union[str, Path]) -> Path:
    report_file = Path(report_file)
    report_file.parent.mkdir(parents=True, exist_ok=True)
    report_file.write_text(text)
    return report_file


def serialize_summary(summary: AssayFileSummary, output_file: Union[str, Path]) -> Path:
    output_file = Path(output_file)
    with open(output_file, 'wb') as f:
        pickle.dump(summary, f)
    return output_file


def load_summary(input_file: Union[str, Path]) -> AssayFileSummary:
    with open(input_file, 'rb') as f:
        return pickle.load(f)


def output_report(summary: AssayFileSummary, report: Report,
                  report_file: Optional[Union[str, Path]] = None,
                  skip_serialization: bool = False,
                  suffix: str = SERIALIZATION_SUFFIX,
                  log: Optional[logging.Logger] = None) -> str:
    """
    Log the text report, write it to report_file and pickle the summary next to it.

    A failing write is logged only; the snapshot is skipped when the text
    report could not be written, and a failing snapshot never affects it.

    Args:
        summary: Summary of the validated file.
        report: Status of the validation.
        report_file: Text report destination; the report is only logged if None.
        skip_serialization: Do not write the pickled summary.
        suffix: Appended to report_file for the pickled summary.
        log: Diagnostic sink, module logger if None.

    Returns:
        The rendered text.
    """
    log = log or logger
    text = generate_text_report(summary, report)
    log.info(text)
    if report_file is None:
        return text

    try:
        save_text_report(text, report_file)
    except OSError as e:
        log.error(f"Failed to write report to {report_file}: {e}")
        return text
    log.info(f"Report written to {report_file}")

    if not skip_serialization:
        snapshot = Path(f"{report_file}{suffix}")
        try:
            serialize_summary(summary, snapshot)
            log.info(f"Summary serialized to {snapshot}")
        except (OSError, pickle.PicklingError) as e:
            log.error(f"Failed to serialize summary to {snapshot}: {e}")
    return text
