"""
Validation engine: QC scans of identification files producing a report and a summary.
"""

from .engine import (
    expand_peak_files,
    run_validation,
    validate_mzid_file,
    validate_mztab_file,
    validate_pride_xml_file,
)
from .scans import MalformedOntologyReference

__all__ = [
    'MalformedOntologyReference',
    'expand_peak_files',
    'run_validation',
    'validate_mzid_file',
    'validate_mztab_file',
    'validate_pride_xml_file',
]
