"""
mzIdentML (1.1 / 1.2) controller.

Proteins are DBSequence entries; every SpectrumIdentificationItem contributes one
peptide per PeptideEvidence it references. Spectra are looked up in the peak
files whose names match the SpectraData locations.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ..model import (
    Contact,
    ExperimentMetaData,
    FragmentIon,
    GenomicCoordinates,
    Modification,
    ParamGroup,
    Peptide,
    Protein,
    SearchDatabase,
    Software,
    SpectraData,
    Spectrum,
)
from .base import FileType, IdentificationController
from .peaks import PeakFileSource
from .xml import (
    child,
    child_text,
    children,
    descendants,
    first_descendant,
    param_group,
    parse_tree,
    sniff_root,
)

logger = logging.getLogger(__name__)

MZID_ROOT = "MzIdentML"

FRAGMENT_MZ = "MS:1001225"
FRAGMENT_INTENSITY = "MS:1001226"
PROTEIN_DESCRIPTION = "MS:1001088"
CONTACT_EMAIL = "MS:1000589"

# Proteogenomics PeptideEvidence params, looked up by name
CHROMOSOME_NAME = "chromosome name"
CHROMOSOME_STRAND = "chromosome strand"
PEPTIDE_START = "peptide start on chromosome"
PEPTIDE_END = "peptide end on chromosome"
EXON_COUNT = "peptide exon count"
EXON_SIZES = "peptide exon nucleotide sizes"
EXON_STARTS = "peptide start positions on chromosome"
GENOME_REFERENCE = "genome reference version"


def real_file_name(location: str) -> str:
    """Base name of a SpectraData location (URI or Windows/POSIX path)."""
    return re.split(r"[\\/]", location.rstrip("/\\"))[-1]


def match_peak_file(location: str, peak_files: Iterable[Union[str, Path]]) -> Optional[Path]:
    """Supplied peak file named like a SpectraData location, or like its decompressed form."""
    by_name = {Path(f).name: Path(f) for f in peak_files}
    name = real_file_name(location)
    if name in by_name:
        return by_name[name]
    if name.endswith(".gz"):
        return by_name.get(name[:-3])
    return None


def _float(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


def _int(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def _param_value(group: ParamGroup, name: str) -> Optional[str]:
    param = group.find(name)
    if param is not None:
        return param.value
    user = group.find_user(name)
    return user.value if user is not None else None


def genomic_coordinates(group: ParamGroup) -> Optional[GenomicCoordinates]:
    """Genome mapping carried by a PeptideEvidence, None when incomplete."""
    chrom = _param_value(group, CHROMOSOME_NAME)
    start = _int(_param_value(group, PEPTIDE_START))
    end = _int(_param_value(group, PEPTIDE_END))
    if not chrom or start is None or end is None:
        return None
    return GenomicCoordinates(
        chrom=chrom,
        start=start,
        end=end,
        strand=_param_value(group, CHROMOSOME_STRAND) or ".",
        block_count=_int(_param_value(group, EXON_COUNT)) or 1,
        block_sizes=_param_value(group, EXON_SIZES) or "",
        block_starts=_param_value(group, EXON_STARTS) or "",
        genome_reference=_param_value(group, GENOME_REFERENCE) or "",
    )


class MzIdentMLController(IdentificationController):
    """Data access to one mzIdentML file and its peak files."""

    file_type = FileType.MZID

    def __init__(self, path: Union[str, Path], peak_files: Optional[Iterable[Union[str, Path]]] = None,
                 random_seed: Optional[int] = None, log: Optional[logging.Logger] = None):
        super().__init__(path, random_seed=random_seed, log=log)
        self._spectra_data: Dict[str, SpectraData] = {}
        self._search_databases: Dict[str, SearchDatabase] = {}
        self._spectrum_refs: Dict[str, Tuple[str, str]] = {}
        self._sources: Dict[str, PeakFileSource] = {}
        self._ambiguity_groups = False

        self.log.info(f"Reading mzIdentML file: {self.path}")
        self._read(parse_tree(self.path))
        if peak_files:
            self.add_peak_files(peak_files)

    @staticmethod
    def is_valid_format(path: Union[str, Path]) -> bool:
        root = sniff_root(path)
        return root is not None and root[0] == MZID_ROOT

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def _read(self, root) -> None:
        self._name = root.get("name") or root.get("id") or self.path.name
        self._read_inputs(root)
        self._read_metadata(root)

        sequences = first_descendant(root, "SequenceCollection")
        proteins, peptides, evidences = self._read_sequences(sequences)
        measures = {}
        for measure in descendants(root, "Measure"):
            params = param_group(measure).cv_params
            measures[measure.get("id")] = params[0].accession if params else ""

        for result in descendants(root, "SpectrumIdentificationResult"):
            self._read_result(result, proteins, peptides, evidences, measures)

        for protein in proteins.values():
            self._add_protein(protein)
        self._ambiguity_groups = first_descendant(root, "ProteinAmbiguityGroup") is not None

    def _read_inputs(self, root) -> None:
        for db in descendants(root, "SearchDatabase"):
            name = db.get("name")
            if not name:
                names = param_group(child(db, "DatabaseName"))
                if names.user_params:
                    name = names.user_params[0].name
                elif names.cv_params:
                    name = names.cv_params[0].name
            self._search_databases[db.get("id")] = SearchDatabase(
                name=name or db.get("id"),
                version=db.get("version", ""),
                location=db.get("location", ""),
            )

        for sd in descendants(root, "SpectraData"):
            file_format = param_group(child(sd, "FileFormat")).cv_params
            id_format = param_group(child(sd, "SpectrumIDFormat")).cv_params
            self._spectra_data[sd.get("id")] = SpectraData(
                id=sd.get("id"),
                location=sd.get("location", ""),
                name=sd.get("name", ""),
                file_format=file_format[0].name if file_format else "",
                spectrum_id_format=id_format[0].name if id_format else "",
            )

    def _read_metadata(self, root) -> None:
        softwares = []
        for software in descendants(root, "AnalysisSoftware"):
            name = software.get("name")
            if not name:
                params = param_group(child(software, "SoftwareName"))
                if params.cv_params:
                    name = params.cv_params[0].name
                elif params.user_params:
                    name = params.user_params[0].name
            softwares.append(Software(
                name=name or software.get("id", ""),
                version=software.get("version", ""),
                customization=child_text(software, "Customizations"),
            ))

        organizations = {o.get("id"): o.get("name", "") for o in descendants(root, "Organization")}
        persons = []
        for person in descendants(root, "Person"):
            name = person.get("name") or " ".join(
                part for part in (person.get("firstName"), person.get("lastName")) if part)
            affiliation = child(person, "Affiliation")
            email = param_group(person).find(CONTACT_EMAIL, "contact email")
            persons.append(Contact(
                name=name,
                affiliation=organizations.get(affiliation.get("organization_ref"), "")
                if affiliation is not None else "",
                email=(email.value or "") if email is not None else "",
            ))

        additional = ParamGroup()
        for params in descendants(root, "AdditionalSearchParams"):
            group = param_group(params)
            additional.cv_params.extend(group.cv_params)
            additional.user_params.extend(group.user_params)

        self._metadata = ExperimentMetaData(
            short_label=self._name,
            persons=persons,
            additional=additional,
            softwares=softwares,
        )

    def _read_sequences(self, sequences):
        proteins: Dict[str, Protein] = {}
        peptides: Dict[str, Tuple[str, List[Modification]]] = {}
        evidences: Dict[str, dict] = {}
        if sequences is None:
            return proteins, peptides, evidences

        for db_sequence in children(sequences, "DBSequence"):
            description = param_group(db_sequence).find(PROTEIN_DESCRIPTION, "protein description")
            protein_id = db_sequence.get("id")
            proteins[protein_id] = Protein(
                id=protein_id,
                accession=db_sequence.get("accession", ""),
                description=(description.value or "") if description is not None else "",
                search_database_ref=db_sequence.get("searchDatabase_ref"),
            )

        for peptide in children(sequences, "Peptide"):
            modifications = [
                Modification(
                    location=_int(m.get("location")) or 0,
                    monoisotopic_mass_delta=[_float(m.get("monoisotopicMassDelta"))]
                    if m.get("monoisotopicMassDelta") is not None else [],
                    residues=m.get("residues", ""),
                    cv_params=param_group(m).cv_params,
                )
                for m in children(peptide, "Modification")
            ]
            peptides[peptide.get("id")] = (child_text(peptide, "PeptideSequence"), modifications)

        for evidence in children(sequences, "PeptideEvidence"):
            evidences[evidence.get("id")] = {
                "protein": evidence.get("dBSequence_ref"),
                "peptide": evidence.get("peptide_ref"),
                "start": _int(evidence.get("start")),
                "end": _int(evidence.get("end")),
                "pre": evidence.get("pre", "-"),
                "post": evidence.get("post", "-"),
                "decoy": evidence.get("isDecoy", "false").lower() == "true",
                "coordinates": genomic_coordinates(param_group(evidence)),
            }
        return proteins, peptides, evidences

    @staticmethod
    def _read_fragmentation(item, measures: Dict[str, str]) -> List[FragmentIon]:
        ions = []
        fragmentation = child(item, "Fragmentation")
        if fragmentation is None:
            return ions
        for ion_type in children(fragmentation, "IonType"):
            type_params = param_group(ion_type).cv_params
            arrays = {}
            for array in children(ion_type, "FragmentArray"):
                values = [float(v) for v in array.get("values", "").split()]
                arrays[measures.get(array.get("measure_ref"), "")] = values
            mzs = arrays.get(FRAGMENT_MZ, [])
            intensities = arrays.get(FRAGMENT_INTENSITY, [])
            for mz, intensity in zip(mzs, intensities):
                ions.append(FragmentIon(
                    mz=mz,
                    intensity=intensity,
                    ion_type=type_params[0].name if type_params else "",
                    charge=_int(ion_type.get("charge")) or 0,
                ))
        return ions

    def _read_result(self, result, proteins, peptides, evidences, measures) -> None:
        result_id = result.get("id")
        self._spectrum_refs[result_id] = (result.get("spectraData_ref"), result.get("spectrumID"))

        for item in children(result, "SpectrumIdentificationItem"):
            sequence, modifications = peptides.get(item.get("peptide_ref"), ("", []))
            fragments = self._read_fragmentation(item, measures)
            scores = param_group(item).cv_params
            for reference in children(item, "PeptideEvidenceRef"):
                evidence_id = reference.get("peptideEvidence_ref")
                evidence = evidences.get(evidence_id)
                if evidence is None or evidence["protein"] not in proteins:
                    self.log.warning(f"Unresolved PeptideEvidence {evidence_id} in {self.path}")
                    continue
                protein = proteins[evidence["protein"]]
                protein.is_decoy = protein.is_decoy or evidence["decoy"]
                protein.peptides.append(Peptide(
                    id=f"{item.get('id')}_{evidence_id}",
                    sequence=sequence,
                    protein_id=protein.id,
                    modifications=modifications,
                    fragmentation=fragments,
                    spectrum_id=result_id,
                    precursor_charge=_int(item.get("chargeState")) or None,
                    precursor_mz=_float(item.get("experimentalMassToCharge")) or -1.0,
                    calculated_mz=_float(item.get("calculatedMassToCharge")),
                    rank=_int(item.get("rank")) or 1,
                    start=evidence["start"],
                    end=evidence["end"],
                    pre=evidence["pre"],
                    post=evidence["post"],
                    is_decoy=evidence["decoy"],
                    scores=scores,
                    spectra_data_ref=result.get("spectraData_ref"),
                    spectrum_ref=result.get("spectrumID"),
                    coordinates=evidence["coordinates"],
                ))

    # ------------------------------------------------------------------
    # Peak files
    # ------------------------------------------------------------------

    def add_peak_files(self, peak_files: Iterable[Union[str, Path]]) -> None:
        """Attach the peak files whose names match a declared SpectraData location."""
        peak_files = list(peak_files)
        for spectra_data in self._spectra_data.values():
            peak_file = match_peak_file(spectra_data.location, peak_files)
            if peak_file is None:
                name = real_file_name(spectra_data.location)
                self.log.warning(f"No peak file supplied for spectra data {spectra_data.id} ({name})")
                continue
            self._sources[spectra_data.id] = PeakFileSource.open(peak_file, log=self.log)

    def get_spectrum_by_id(self, spectrum_id: Optional[str]) -> Optional[Spectrum]:
        reference = self._spectrum_refs.get(spectrum_id)
        if reference is None:
            return None
        spectra_data_ref, spectrum_ref = reference
        source = self._sources.get(spectra_data_ref)
        return source.get_spectrum(spectrum_ref) if source is not None else None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_search_database(self, protein_id: str) -> Optional[SearchDatabase]:
        protein = self.get_protein_by_id(protein_id)
        if protein is None:
            return None
        return self._search_databases.get(protein.search_database_ref)

    def get_search_databases(self) -> List[SearchDatabase]:
        return list(self._search_databases.values())

    def get_spectra_data_files(self) -> List[SpectraData]:
        return list(self._spectra_data.values())

    def get_number_of_spectra_by_spectra_data(self, spectra_data: SpectraData) -> int:
        """Identified spectra referencing the given spectra-data source."""
        return sum(1 for ref, _ in self._spectrum_refs.values() if ref == spectra_data.id)

    def get_number_of_spectra(self) -> int:
        if self._sources:
            return sum(len(source) for source in self._sources.values())
        return len(self._spectrum_refs)

    def get_number_of_identified_spectra(self) -> int:
        return len(self.get_identified_spectrum_ids())

    def get_number_of_missing_spectra(self) -> int:
        return sum(1 for sid in self.get_identified_spectrum_ids() if self.get_spectrum_by_id(sid) is None)

    def has_protein_ambiguity_group(self) -> bool:
        return self._ambiguity_groups

    def close(self) -> None:
        super().close()
        self._sources = {}
