"""
pgconverter - Validation and conversion of proteomics identification files.

This package provides:
- Validation of mzIdentML (with MGF / mzML peak files), PRIDE XML and mzTab files
- Conversion of mzIdentML and PRIDE XML to mzTab, and of mzTab to proBed
- Content-based format detection and transparent gzip handling
"""

__version__ = "0.1.0"

# Archive and detection
from pgconverter.archive import extract_zip_files
from pgconverter.formats import detect_file_type

# Controllers
from pgconverter.controllers import (
    FileType, DataAccessController, open_controller,
    MzIdentMLController, PrideXmlController, MzTabController,
    PeakFileSource, MzMLController,
)

# Configuration and results
from pgconverter.config import PgConverterConfig, build_config, load_toml_config
from pgconverter.summary import AssayFileSummary, PeakFileSummary, Report

# Validation, reporting, conversion
from pgconverter.validation import (
    validate_mzid_file, validate_pride_xml_file, validate_mztab_file, run_validation,
    MalformedOntologyReference,
)
from pgconverter.report import output_report
from pgconverter.conversion import start_conversion

__all__ = [
    # Version
    '__version__',
    # Archive and detection
    'extract_zip_files', 'detect_file_type',
    # Controllers
    'FileType', 'DataAccessController', 'open_controller',
    'MzIdentMLController', 'PrideXmlController', 'MzTabController',
    'PeakFileSource', 'MzMLController',
    # Configuration and results
    'PgConverterConfig', 'build_config', 'load_toml_config',
    'AssayFileSummary', 'PeakFileSummary', 'Report',
    # Validation, reporting, conversion
    'validate_mzid_file', 'validate_pride_xml_file', 'validate_mztab_file', 'run_validation',
    'MalformedOntologyReference', 'output_report', 'start_conversion',
]
