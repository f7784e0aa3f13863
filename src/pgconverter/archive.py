"""
Transparent decompression of gzip inputs.

Compressed members are expanded next to the original file (suffix stripped)
before any other stage reads them.
"""

import gzip
import logging
import shutil
import zlib
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

GZIP_SUFFIX = ".gz"
BUFFER_SIZE = 1024 * 1024


def find_zipped_files(files: Iterable[Path]) -> List[Path]:
    return [f for f in files if f.name.endswith(GZIP_SUFFIX)]


def _unzip_file(input_file: Path, log: logging.Logger) -> Optional[Path]:
    output_file = input_file.with_name(input_file.name[:-len(GZIP_SUFFIX)])
    log.info(f"Unzipping file: {input_file.absolute()}")
    try:
        with gzip.open(input_file, 'rb') as src, open(output_file, 'wb') as dst:
            shutil.copyfileobj(src, dst, BUFFER_SIZE)
    except (OSError, EOFError, zlib.error) as e:
        log.error(f"Failed to unzip {input_file}: {e}")
        output_file.unlink(missing_ok=True)
        return None
    log.info(f"Unzipped file: {output_file}")
    return output_file


def unzip_files(zipped_files: List[Path], max_workers: Optional[int] = None,
                log: Optional[logging.Logger] = None) -> List[Path]:
    """
    Decompress gzip files concurrently, one task per file.

    A failing file is logged and left out of the result; it never cancels the others.

    Args:
        zipped_files: Files ending in .gz.
        max_workers: Bound of the thread pool (executor default if None).
        log: Diagnostic sink, module logger if None.

    Returns:
        The decompressed files, in input order.
    """
    log = log or logger
    if not zipped_files:
        return []

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(_unzip_file, f, log) for f in zipped_files]
        results = [future.result() for future in futures]

    return [f for f in results if f is not None]


def extract_zip_files(files: Iterable[Union[str, Path]], max_workers: Optional[int] = None,
                      log: Optional[logging.Logger] = None) -> List[Path]:
    """
    Replace gzip members of a file set by their decompressed siblings.

    Args:
        files: Candidate input files.
        max_workers: Bound of the decompression thread pool.
        log: Diagnostic sink, module logger if None.

    Returns:
        Non-compressed inputs followed by the successfully decompressed files,
        de-duplicated in first-seen order.
    """
    files = [Path(f) for f in files]
    zipped = find_zipped_files(files)
    plain = [f for f in files if f not in zipped]
    expanded = unzip_files(zipped, max_workers=max_workers, log=log)
    return list(dict.fromkeys(plain + expanded))
