"""
Content-based file type detection.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from .controllers import FileType, MzIdentMLController, MzTabController, PrideXmlController
from .exceptions import FileFormatError

logger = logging.getLogger(__name__)

PROBES = (
    (FileType.MZID, MzIdentMLController.is_valid_format),
    (FileType.PRIDEXML, PrideXmlController.is_valid_format),
    (FileType.MZTAB, MzTabController.is_valid_format),
)

PROBED_SUFFIXES = (".bed", ".probed", ".pro.bed")


def detect_file_type(path: Union[str, Path], log: Optional[logging.Logger] = None) -> FileType:
    """
    Classify a file by its content.

    Probes run in order mzIdentML, PRIDE XML, mzTab; the first match wins.

    Args:
        path: File to classify.
        log: Diagnostic sink, module logger if None.

    Returns:
        The detected FileType, FileType.UNKNOWN for directories, missing files,
        unreadable content (e.g. truncated gzip) and unrecognized content.
    """
    log = log or logger
    path = Path(path)
    if not path.is_file():
        log.error(f"Not a regular file: {path}")
        return FileType.UNKNOWN

    for file_type, probe in PROBES:
        try:
            if probe(path):
                log.info(f"Detected {file_type.value} file: {path}")
                return file_type
        except (OSError, FileFormatError) as e:
            log.error(f"Unable to read {path}: {e}")
            return FileType.UNKNOWN

    log.error(f"Unable to identify file type of {path}")
    return FileType.UNKNOWN


def is_probed_file(path: Union[str, Path]) -> bool:
    """proBed has no content signature; it is recognized by suffix."""
    name = Path(path).name.lower()
    if name.endswith(".gz"):
        name = name[:-3]
    return name.endswith(PROBED_SUFFIXES)
