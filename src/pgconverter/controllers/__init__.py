"""
Format controllers.

open_controller() selects the controller for a detected FileType.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from .base import DataAccessController, FileType, IdentificationController
from .mzidentml import MzIdentMLController
from .mztab import MzTabController, MzTabFile, check_mztab, read_mztab, write_mztab
from .peaks import MzMLController, PeakFileSource
from .pridexml import PrideXmlController

__all__ = [
    'DataAccessController',
    'FileType',
    'IdentificationController',
    'MzIdentMLController',
    'MzMLController',
    'MzTabController',
    'MzTabFile',
    'PeakFileSource',
    'PrideXmlController',
    'check_mztab',
    'open_controller',
    'read_mztab',
    'write_mztab',
]


def open_controller(file_type: FileType, path: Union[str, Path],
                    peak_files: Optional[Iterable[Union[str, Path]]] = None,
                    random_seed: Optional[int] = None,
                    log: Optional[logging.Logger] = None):
    """
    Open the controller matching a file type.

    Args:
        file_type: Detected content type of path.
        path: File to open.
        peak_files: Peak files resolving mzIdentML spectrum references.
        random_seed: Seed of the controller's sampling generator.
        log: Diagnostic sink handed to the controller.

    Raises:
        ValueError: If no controller handles file_type.
    """
    if file_type == FileType.MZID:
        return MzIdentMLController(path, peak_files=peak_files, random_seed=random_seed, log=log)
    elif file_type == FileType.PRIDEXML:
        return PrideXmlController(path, random_seed=random_seed, log=log)
    elif file_type == FileType.MZTAB:
        return MzTabController(path, log=log)
    raise ValueError(f"No controller for file type: {file_type.value}")
