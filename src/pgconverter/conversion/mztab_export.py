"""
Identification controllers to mzTab 1.0 (Summary / Identification).
"""

import logging
from typing import Dict, List, Optional

import pandas as pd
from tqdm import tqdm

from ..controllers import IdentificationController, MzTabFile
from ..controllers.mztab import MZTAB_VERSION, PROTEIN_COLUMNS, PSM_COLUMNS
from ..model import PTM_ONTOLOGIES, CvParam, Modification, Peptide

logger = logging.getLogger(__name__)

NO_FIXED_MODS = "[MS, MS:1002453, No fixed modifications searched, ]"
NO_VARIABLE_MODS = "[MS, MS:1002454, No variable modifications searched, ]"
PSM_SCORE = "[MS, MS:1001143, search engine specific score for PSMs, ]"
PROTEIN_SCORE = "[MS, MS:1001153, search engine specific score, ]"

COORDINATE_COLUMNS = [
    "opt_global_chr", "opt_global_start", "opt_global_end", "opt_global_strand",
    "opt_global_exon_count", "opt_global_exon_sizes", "opt_global_exon_starts",
    "opt_global_genome_reference", "opt_global_psm_rank",
]


def cv_text(label: Optional[str], accession: str, name: str, value: Optional[str] = None) -> str:
    """mzTab param notation: [label, accession, name, value]."""
    return f"[{label or ''}, {accession}, {name}, {value or ''}]"


def _mod_accession(param: CvParam) -> Optional[str]:
    if param.cv_lookup_id and param.cv_lookup_id.upper() in PTM_ONTOLOGIES:
        accession = param.accession
        if accession.startswith("PSI-MOD:"):
            accession = "MOD:" + accession[len("PSI-MOD:"):]
        return accession
    return None


def modification_text(modifications: List[Modification]) -> Optional[str]:
    """mzTab modifications cell, e.g. '3-UNIMOD:35,0-UNIMOD:1'; None when unmodified."""
    entries = []
    for modification in modifications:
        accession = next((a for a in map(_mod_accession, modification.cv_params) if a), None)
        if accession is None:
            deltas = [d for d in modification.monoisotopic_mass_delta if d is not None]
            if not deltas:
                continue
            accession = f"CHEMMOD:{deltas[0]:+.4f}"
        entries.append(f"{modification.location}-{accession}")
    return ",".join(entries) if entries else None


def _score(peptide: Peptide) -> Optional[str]:
    for param in peptide.scores:
        if param.value is not None:
            return param.value
    return None


def _variable_mods(controller: IdentificationController) -> Dict[str, CvParam]:
    mods: Dict[str, CvParam] = {}
    for peptide in controller.iter_peptides():
        for modification in peptide.modifications:
            for param in modification.cv_params:
                accession = _mod_accession(param)
                if accession and accession not in mods:
                    mods[accession] = param
    return mods


def build_metadata(controller: IdentificationController) -> Dict[str, str]:
    metadata = {
        "mzTab-version": MZTAB_VERSION,
        "mzTab-mode": "Summary",
        "mzTab-type": "Identification",
        "title": controller.name,
        "description": f"Identifications converted from {controller.path.name}",
    }
    spectra_data = controller.get_spectra_data_files()
    if spectra_data:
        for index, source in enumerate(spectra_data, start=1):
            metadata[f"ms_run[{index}]-location"] = source.location
    else:
        metadata["ms_run[1]-location"] = controller.path.absolute().as_uri()

    softwares = controller.get_experiment_metadata().softwares
    for index, software in enumerate(softwares, start=1):
        metadata[f"software[{index}]"] = cv_text(None, "", software.name, software.version)
    metadata["protein_search_engine_score[1]"] = PROTEIN_SCORE
    metadata["psm_search_engine_score[1]"] = PSM_SCORE

    metadata["fixed_mod[1]"] = NO_FIXED_MODS
    variable_mods = _variable_mods(controller)
    if not variable_mods:
        metadata["variable_mod[1]"] = NO_VARIABLE_MODS
    for index, (accession, param) in enumerate(sorted(variable_mods.items()), start=1):
        label = "UNIMOD" if accession.startswith("UNIMOD") else "MOD"
        metadata[f"variable_mod[{index}]"] = cv_text(label, accession, param.name or accession)
    return metadata


def export_mztab(controller: IdentificationController, verbose: bool = False,
                 log: Optional[logging.Logger] = None) -> MzTabFile:
    """
    Build an mzTab document from an identification controller.

    One PRT row per protein, one PSM row per peptide-spectrum match and protein.
    Genome coordinates, when present, go to opt_global_* PSM columns.

    Args:
        controller: Open mzIdentML or PRIDE XML controller.
        verbose: Show a progress bar.
        log: Diagnostic sink, module logger if None.

    Returns:
        The mzTab document, not yet checked.
    """
    log = log or logger
    run_index = {sd.id: i for i, sd in enumerate(controller.get_spectra_data_files(), start=1)}
    software = controller.get_experiment_metadata().softwares
    search_engine = cv_text(None, "", software[0].name, software[0].version) if software else None

    proteins_per_sequence: Dict[str, set] = {}
    for peptide in controller.iter_peptides():
        proteins_per_sequence.setdefault(peptide.sequence, set()).add(peptide.protein_id)

    protein_rows, psm_rows = [], []
    psm_ids: Dict[str, int] = {}
    exported = set()
    with_coordinates = False
    for protein_id in tqdm(controller.get_protein_ids(), desc='exporting proteins', ncols=100, disable=not verbose):
        protein = controller.get_protein_by_id(protein_id)
        database = controller.get_search_database(protein_id)
        db_name = (database.name or None) if database is not None else None
        db_version = (database.version or None) if database is not None else None
        if protein.accession not in exported:
            exported.add(protein.accession)
            protein_rows.append({
                "accession": protein.accession,
                "description": protein.description or None,
                "taxid": None,
                "species": None,
                "database": db_name,
                "database_version": db_version,
                "search_engine": search_engine,
                "best_search_engine_score[1]": None,
                "ambiguity_members": None,
                "modifications": None,
            })

        for peptide in protein.peptides:
            modifications = modification_text(peptide.modifications)
            key = f"{peptide.spectrum_id}|{peptide.sequence}|{modifications}|{peptide.rank}"
            psm_id = psm_ids.setdefault(key, len(psm_ids) + 1)
            spectra_ref = None
            if peptide.spectrum_ref is not None:
                spectra_ref = f"ms_run[{run_index.get(peptide.spectra_data_ref, 1)}]:{peptide.spectrum_ref}"
            row = {
                "sequence": peptide.sequence,
                "PSM_ID": psm_id,
                "accession": protein.accession,
                "unique": 1 if len(proteins_per_sequence[peptide.sequence]) == 1 else 0,
                "database": db_name,
                "database_version": db_version,
                "search_engine": search_engine,
                "search_engine_score[1]": _score(peptide),
                "modifications": modifications,
                "retention_time": None,
                "charge": peptide.precursor_charge,
                "exp_mass_to_charge": peptide.precursor_mz if peptide.precursor_mz != -1 else None,
                "calc_mass_to_charge": peptide.calculated_mz,
                "spectra_ref": spectra_ref,
                "pre": peptide.pre,
                "post": peptide.post,
                "start": peptide.start,
                "end": peptide.end,
            }
            coordinates = peptide.coordinates
            if coordinates is not None:
                with_coordinates = True
                row.update({
                    "opt_global_chr": coordinates.chrom,
                    "opt_global_start": coordinates.start,
                    "opt_global_end": coordinates.end,
                    "opt_global_strand": coordinates.strand,
                    "opt_global_exon_count": coordinates.block_count,
                    "opt_global_exon_sizes": coordinates.block_sizes or None,
                    "opt_global_exon_starts": coordinates.block_starts or None,
                    "opt_global_genome_reference": coordinates.genome_reference or None,
                })
            row["opt_global_psm_rank"] = peptide.rank
            psm_rows.append(row)

    psm_columns = PSM_COLUMNS + (COORDINATE_COLUMNS if with_coordinates else ["opt_global_psm_rank"])
    log.info(f"Exported {len(protein_rows)} proteins and {len(psm_rows)} PSMs from {controller.path.name}")
    return MzTabFile(
        metadata=build_metadata(controller),
        proteins=pd.DataFrame(protein_rows, columns=PROTEIN_COLUMNS, dtype=object),
        psms=pd.DataFrame(psm_rows, columns=psm_columns, dtype=object),
    )
