"""
Conversion of identification files to mzTab and proBed.
"""

from .mztab_export import export_mztab
from .pipeline import convert_to_mztab, default_output_file, start_conversion
from .probed import convert_mztab_to_probed, convert_probed_to_bigbed, psms_to_probed, sort_probed

__all__ = [
    'convert_mztab_to_probed',
    'convert_probed_to_bigbed',
    'convert_to_mztab',
    'default_output_file',
    'export_mztab',
    'psms_to_probed',
    'sort_probed',
    'start_conversion',
]
