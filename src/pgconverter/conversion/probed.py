"""
mzTab PSMs to proBed (BED12+13) genome tracks.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from ..controllers import MzTabController
from ..exceptions import ConversionError

logger = logging.getLogger(__name__)

PROBED_COLUMNS = [
    "chrom", "chromStart", "chromEnd", "name", "score", "strand",
    "thickStart", "thickEnd", "reserved", "blockCount", "blockSizes", "chromStarts",
    "proteinAccession", "peptideSequence", "uniqueness", "genomeReferenceVersion",
    "psmScore", "fdr", "modifications", "charge", "expMassToCharge", "calMassToCharge",
    "psmRank", "datasetID", "uri",
]
EMPTY = "."
MAX_SCORE = 1000


def _cell(row: pd.Series, column: str, default=EMPTY):
    value = row.get(column)
    return default if value is None or pd.isna(value) else value


def psms_to_probed(psms: pd.DataFrame, dataset_id: str = EMPTY) -> pd.DataFrame:
    """
    proBed records of the PSMs carrying genome coordinates.

    PSMs without opt_global_chr / start / end are skipped.
    """
    required = ("opt_global_chr", "opt_global_start", "opt_global_end")
    if psms.empty or any(c not in psms.columns for c in required):
        return pd.DataFrame(columns=PROBED_COLUMNS)

    located = psms.dropna(subset=list(required))
    records = []
    for _, row in located.iterrows():
        start = int(row["opt_global_start"])
        end = int(row["opt_global_end"])
        block_sizes = _cell(row, "opt_global_exon_sizes", str(end - start))
        records.append({
            "chrom": str(row["opt_global_chr"]),
            "chromStart": start,
            "chromEnd": end,
            "name": f"{_cell(row, 'PSM_ID')}_{_cell(row, 'sequence')}",
            "score": MAX_SCORE,
            "strand": _cell(row, "opt_global_strand"),
            "thickStart": start,
            "thickEnd": end,
            "reserved": 0,
            "blockCount": int(_cell(row, "opt_global_exon_count", 1)),
            "blockSizes": block_sizes,
            "chromStarts": _cell(row, "opt_global_exon_starts", "0"),
            "proteinAccession": _cell(row, "accession"),
            "peptideSequence": _cell(row, "sequence"),
            "uniqueness": "unique" if str(_cell(row, "unique")) == "1" else "not-unique[unknown]",
            "genomeReferenceVersion": _cell(row, "opt_global_genome_reference"),
            "psmScore": _cell(row, "search_engine_score[1]"),
            "fdr": EMPTY,
            "modifications": _cell(row, "modifications"),
            "charge": _cell(row, "charge"),
            "expMassToCharge": _cell(row, "exp_mass_to_charge"),
            "calMassToCharge": _cell(row, "calc_mass_to_charge"),
            "psmRank": _cell(row, "opt_global_psm_rank", 1),
            "datasetID": dataset_id,
            "uri": EMPTY,
        })
    return pd.DataFrame(records, columns=PROBED_COLUMNS)


def write_probed(records: pd.DataFrame, output_file: Union[str, Path]) -> Path:
    output_file = Path(output_file)
    records.to_csv(output_file, sep="\t", header=False, index=False, lineterminator="\n")
    return output_file


def read_probed(input_file: Union[str, Path]) -> pd.DataFrame:
    if Path(input_file).stat().st_size == 0:
        return pd.DataFrame(columns=PROBED_COLUMNS)
    return pd.read_csv(input_file, sep="\t", header=None, names=PROBED_COLUMNS,
                       dtype={"chrom": str}, comment="#", keep_default_na=False)


def read_chrom_sizes(chrom_sizes_file: Union[str, Path]) -> pd.Series:
    """Chromosome name -> length, from a UCSC-style two-column chrom.sizes file."""
    sizes = pd.read_csv(chrom_sizes_file, sep="\t", header=None, usecols=[0, 1],
                        names=["chrom", "size"], dtype={"chrom": str, "size": "int64"}, comment="#")
    return sizes.set_index("chrom")["size"]


def sort_probed(probed_file: Union[str, Path], chrom_sizes_file: Union[str, Path],
                log: Optional[logging.Logger] = None) -> Path:
    """
    Sort a proBed file by chromosome then start, keeping only records inside
    the chromosome bounds; the file is rewritten in place.
    """
    log = log or logger
    records = read_probed(probed_file)
    sizes = read_chrom_sizes(chrom_sizes_file)

    known = records["chrom"].isin(sizes.index)
    bounds = records["chrom"].map(sizes)
    inside = known & (records["chromStart"] >= 0) & (records["chromEnd"] <= bounds)
    dropped = int((~inside).sum())
    if dropped:
        log.warning(f"Dropped {dropped} proBed records outside the chromosome bounds")

    records = records[inside].sort_values(["chrom", "chromStart"], kind="mergesort")
    return write_probed(records, probed_file)


def convert_mztab_to_probed(mztab_file: Union[str, Path], output_file: Union[str, Path],
                            chrom_sizes_file: Optional[Union[str, Path]] = None,
                            log: Optional[logging.Logger] = None) -> Path:
    """
    Write the genome-mapped PSMs of an mzTab file as proBed.

    Args:
        mztab_file: Input mzTab.
        output_file: proBed destination.
        chrom_sizes_file: If given, sort and filter the track against these bounds;
            failures of that stage are logged only.
        log: Diagnostic sink, module logger if None.

    Raises:
        ConversionError: If the mzTab file carries no PSM section.
    """
    log = log or logger
    with MzTabController(mztab_file, log=log) as controller:
        psms = controller.psms
        dataset_id = controller.mztab.metadata.get("mzTab-ID", EMPTY)
    if psms.empty:
        raise ConversionError(f"No PSMs in {mztab_file}")

    records = psms_to_probed(psms, dataset_id)
    skipped = len(psms) - len(records)
    if skipped:
        log.warning(f"Skipped {skipped} PSMs without genome coordinates")
    output_file = write_probed(records, output_file)
    log.info(f"Wrote {len(records)} proBed records to {output_file}")

    if chrom_sizes_file is not None:
        try:
            sort_probed(output_file, chrom_sizes_file, log)
            log.info(f"Sorted {output_file} against {chrom_sizes_file}")
        except (OSError, ValueError, KeyError, pd.errors.ParserError) as e:
            log.error(f"Failed to sort {output_file}: {e}")
    return output_file


def convert_probed_to_bigbed(probed_file: Union[str, Path], output_file: Union[str, Path],
                             log: Optional[logging.Logger] = None) -> None:
    # TODO: pack proBed into bigBed once a bedToBigBed-compatible writer is available
    log = log or logger
    log.error(f"Conversion of {probed_file} to bigBed ({output_file}) is not implemented")
