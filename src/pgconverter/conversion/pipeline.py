"""
Conversion pipeline: identification files to mzTab, mzTab to proBed.

The route is chosen from the detected input type and the requested output
format; mzIdentML to proBed runs through an mzTab file written beside the input.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..archive import GZIP_SUFFIX, extract_zip_files
from ..config import PgConverterConfig
from ..controllers import FileType, check_mztab, open_controller, write_mztab
from ..controllers.mztab import ERROR_LOG_NAME
from ..exceptions import ConversionError, MzTabCheckError, PgConverterError
from ..formats import detect_file_type, is_probed_file
from .mztab_export import export_mztab
from .probed import convert_mztab_to_probed, convert_probed_to_bigbed

logger = logging.getLogger(__name__)

MZTAB = "mztab"
PROBED = "probed"
BIGBED = "bigbed"
OUTPUT_FORMATS = (MZTAB, PROBED, BIGBED)

OUTPUT_SUFFIXES = {MZTAB: ".mztab", PROBED: ".pro.bed", BIGBED: ".bb"}
SUFFIX_FORMATS = {
    "mztab": MZTAB,
    "probed": PROBED,
    "bed": PROBED,
    "bigbed": BIGBED,
    "bb": BIGBED,
}


def output_format_of(output_file: Union[str, Path]) -> Optional[str]:
    suffix = Path(output_file).suffix.lower().lstrip(".")
    return SUFFIX_FORMATS.get(suffix)


def _stem(path: Path) -> Path:
    name = path.name[:-len(GZIP_SUFFIX)] if path.name.endswith(GZIP_SUFFIX) else path.name
    if name.lower().endswith(".pro.bed"):
        return path.with_name(name[:-len(".pro.bed")])
    return path.with_name(name).with_suffix("")


def default_output_file(input_file: Union[str, Path], output_format: str) -> Path:
    """The input path with its extension replaced by the output format's."""
    stem = _stem(Path(input_file))
    return stem.with_name(stem.name + OUTPUT_SUFFIXES[output_format])


def input_type_of(input_file: Path, log: logging.Logger) -> FileType:
    """Detected content type; proBed, which has no signature, by suffix."""
    if is_probed_file(input_file):
        return FileType.PROBED
    return detect_file_type(input_file, log)


def convert_to_mztab(input_file: Union[str, Path], output_file: Union[str, Path],
                     file_type: FileType, config: Optional[PgConverterConfig] = None,
                     log: Optional[logging.Logger] = None) -> Path:
    """
    Convert an mzIdentML or PRIDE XML file to mzTab.

    The input is decompressed first; the document is written only if the
    structural checker accepts it.

    Raises:
        ConversionError: If the input cannot be converted.
        MzTabCheckError: If the produced document is rejected by the checker.
    """
    log = log or logger
    config = config or PgConverterConfig()
    files = extract_zip_files([input_file], max_workers=config.max_workers, log=log)
    if not files:
        raise ConversionError(f"Unable to decompress {input_file}")
    source = files[0]

    if file_type not in (FileType.MZID, FileType.PRIDEXML):
        raise ConversionError(f"Unable to convert {file_type.value} to mzTab")

    with open_controller(file_type, source, random_seed=config.random_seed, log=log) as controller:
        mztab = export_mztab(controller, verbose=config.verbose, log=log)

    problems = check_mztab(mztab)
    if problems:
        raise MzTabCheckError(problems, path=str(output_file))
    output_file = write_mztab(mztab, output_file)
    log.info(f"Wrote mzTab file: {output_file}")
    return output_file


def start_conversion(input_file: Optional[Union[str, Path]],
                     output_file: Optional[Union[str, Path]] = None,
                     output_format: Optional[str] = None,
                     chrom_sizes_file: Optional[Union[str, Path]] = None,
                     config: Optional[PgConverterConfig] = None,
                     log: Optional[logging.Logger] = None) -> Optional[Path]:
    """
    Convert one input file.

    | input      | output | route                                  |
    |------------|--------|----------------------------------------|
    | mzid/PRIDE | mztab  | direct                                 |
    | mzid       | probed | mzTab beside the input, then proBed    |
    | mztab      | probed | direct                                 |
    | probed     | bigbed | not implemented, logged                |

    Args:
        input_file: File to convert.
        output_file: Destination; its suffix selects the output format.
        output_format: Output format if no output_file is given (mztab, probed, bigbed).
        chrom_sizes_file: Bounds for sorting / filtering a proBed output.
        config: Runtime settings.
        log: Diagnostic sink, module logger if None.

    Returns:
        The written output file, or None if nothing was produced.
    """
    log = log or logger
    config = config or PgConverterConfig()

    if input_file is None:
        log.error("No input file supplied for conversion")
        return None
    input_file = Path(input_file)
    if input_file.is_dir():
        log.error(f"Unable to convert whole directory: {input_file}")
        return None
    if not input_file.is_file():
        log.error(f"Input file not found: {input_file}")
        return None

    if output_format is not None:
        output_format = output_format.lower()
        if output_format not in OUTPUT_FORMATS:
            log.error(f"Unsupported output format: {output_format}")
            return None
    if output_file is not None:
        output_file = Path(output_file)
        output_format = output_format or output_format_of(output_file)
    elif output_format is not None:
        output_file = default_output_file(input_file, output_format)
    else:
        log.error("No output file or output format supplied for conversion")
        return None
    if output_format is None:
        log.error(f"Unable to determine output format of {output_file}")
        return None

    try:
        input_type = input_type_of(input_file, log)
        log.info(f"Converting {input_file} ({input_type.value}) to {output_file} ({output_format})")
        if input_type in (FileType.MZID, FileType.PRIDEXML) and output_format == MZTAB:
            convert_to_mztab(input_file, output_file, input_type, config, log)
        elif input_type == FileType.MZID and output_format == PROBED:
            intermediate = default_output_file(input_file, MZTAB)
            convert_to_mztab(input_file, intermediate, input_type, config, log)
            convert_mztab_to_probed(intermediate, output_file, chrom_sizes_file, log)
            stray = intermediate.parent / ERROR_LOG_NAME
            if stray.exists():
                stray.unlink()
                log.debug(f"Removed {stray}")
        elif input_type == FileType.MZTAB and output_format == PROBED:
            convert_mztab_to_probed(input_file, output_file, chrom_sizes_file, log)
        elif input_type == FileType.PROBED and output_format == BIGBED:
            convert_probed_to_bigbed(input_file, output_file, log)
        else:
            log.error(f"Unsupported conversion: {input_type.value} to {output_format}")
            return None
    except MzTabCheckError as e:
        log.error(f"mzTab check failed: {e}")
        for problem in e.problems:
            log.error(problem)
        return None
    except (PgConverterError, OSError) as e:
        log.error(f"Conversion error: {e}")
        return None
    except Exception as e:
        log.error(f"Unexpected error while converting {input_file}: {e}")
        return None

    return output_file if output_file.exists() else None
