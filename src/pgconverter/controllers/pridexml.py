"""
PRIDE XML (2.1) controller.

Identifications are GelFreeIdentification / TwoDimensionalIdentification entries,
their PeptideItems reference spectra of the embedded mzData spectrumList.
"""

import base64
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np

from ..model import (
    Contact,
    CvParam,
    ExperimentMetaData,
    FragmentIon,
    InstrumentComponentDescription,
    InstrumentConfiguration,
    Modification,
    Peptide,
    Protein,
    SearchDatabase,
    Software,
    Spectrum,
)
from .base import FileType, IdentificationController
from .xml import child, child_text, children, descendants, first_descendant, param_group, parse_tree, sniff_root

logger = logging.getLogger(__name__)

PRIDE_ROOTS = ("ExperimentCollection", "Experiment")
IDENTIFICATION_TAGS = ("GelFreeIdentification", "TwoDimensionalIdentification")

PEPTIDE_CHARGE = ("PRIDE:0000065", "MS:1000041", "PSI:1000041", "charge state")
PEPTIDE_MZ = ("PSI:1000040", "MS:1000744", "MS:1000040", "m/z", "selected ion m/z", "mass to charge ratio")
PRECURSOR_MZ = PEPTIDE_MZ + ("MassToChargeRatio",)
PRECURSOR_CHARGE = ("PSI:1000041", "MS:1000041", "ChargeState", "charge state")

FRAGMENT_MZ = "PRIDE:0000188"
FRAGMENT_INTENSITY = "PRIDE:0000189"
FRAGMENT_CHARGE = "PRIDE:0000204"


def decode_binary(data_element) -> np.ndarray:
    """Decode a base64 mzData binary array honoring its precision and endianness."""
    if data_element is None or not (data_element.text or "").strip():
        return np.array([], dtype=np.float64)
    byte_order = "<" if data_element.get("endian", "little") == "little" else ">"
    width = 4 if data_element.get("precision", "64") == "32" else 8
    raw = base64.b64decode(data_element.text.strip())
    return np.frombuffer(raw, dtype=np.dtype(f"{byte_order}f{width}")).astype(np.float64)


def _binary_data(spectrum, name: str):
    array = child(spectrum, name)
    return child(array, "data") if array is not None else None


def _float(text: str) -> Optional[float]:
    try:
        return float(text) if text else None
    except ValueError:
        return None


def _charge(param: Optional[CvParam]) -> Optional[int]:
    if param is None or param.value is None:
        return None
    try:
        return int(float(param.value)) or None
    except ValueError:
        return None


class PrideXmlController(IdentificationController):
    """Data access to one PRIDE XML file, spectra included."""

    file_type = FileType.PRIDEXML

    def __init__(self, path: Union[str, Path], random_seed: Optional[int] = None,
                 log: Optional[logging.Logger] = None):
        super().__init__(path, random_seed=random_seed, log=log)
        self._spectra: Dict[str, Spectrum] = {}
        self._instruments: List[InstrumentConfiguration] = []
        self._databases: Dict[str, SearchDatabase] = {}

        self.log.info(f"Reading PRIDE XML file: {self.path}")
        self._read(parse_tree(self.path))

    @staticmethod
    def is_valid_format(path: Union[str, Path]) -> bool:
        root = sniff_root(path)
        return root is not None and root[0] in PRIDE_ROOTS and not root[1]

    def _read(self, root) -> None:
        experiment = root if root.tag == "Experiment" else child(root, "Experiment")
        if experiment is None:
            return
        self._name = child_text(experiment, "Title") or self.path.name

        mz_data = child(experiment, "mzData")
        description = child(mz_data, "description") if mz_data is not None else None
        self._read_description(experiment, description)

        spectrum_list = first_descendant(mz_data, "spectrumList") if mz_data is not None else None
        if spectrum_list is not None:
            for spectrum in children(spectrum_list, "spectrum"):
                self._read_spectrum(spectrum)

        index = 0
        for element in experiment:
            if element.tag in IDENTIFICATION_TAGS:
                self._add_protein(self._read_identification(str(index), element))
                index += 1

    def _read_description(self, experiment, description) -> None:
        persons, softwares = [], []
        if description is not None:
            for contact in descendants(description, "contact"):
                persons.append(Contact(
                    name=child_text(contact, "name"),
                    affiliation=child_text(contact, "institution"),
                    email=child_text(contact, "contactInfo"),
                ))

            for software in descendants(description, "software"):
                softwares.append(Software(
                    name=child_text(software, "name"),
                    version=child_text(software, "version"),
                    customization=child_text(software, "comments"),
                ))

            instrument = child(description, "instrument")
            if instrument is not None:
                analyzer_list = child(instrument, "analyzerList")
                analyzers = children(analyzer_list, "analyzer") if analyzer_list is not None else []
                self._instruments.append(InstrumentConfiguration(
                    id=child_text(instrument, "instrumentName") or "instrument",
                    source=[self._component(child(instrument, "source"))],
                    analyzer=[self._component(a) for a in analyzers],
                    detector=[self._component(child(instrument, "detector"))],
                ))

        self._metadata = ExperimentMetaData(
            short_label=child_text(experiment, "ShortLabel"),
            persons=persons,
            additional=param_group(child(experiment, "additional")),
            softwares=softwares,
        )

    @staticmethod
    def _component(element) -> InstrumentComponentDescription:
        group = param_group(element)
        return InstrumentComponentDescription(cv_params=group.cv_params, user_params=group.user_params)

    def _read_spectrum(self, element) -> None:
        ion_selection = first_descendant(element, "ionSelection")
        precursor = param_group(ion_selection)
        mz = precursor.find(*PRECURSOR_MZ)
        settings = first_descendant(element, "spectrumInstrument")
        spectrum_id = element.get("id")
        self._spectra[spectrum_id] = Spectrum(
            id=spectrum_id,
            mz=decode_binary(_binary_data(element, "mzArrayBinary")),
            intensity=decode_binary(_binary_data(element, "intenArrayBinary")),
            precursor_mz=_float(mz.value) if mz is not None else None,
            precursor_charge=_charge(precursor.find(*PRECURSOR_CHARGE)),
            ms_level=int(settings.get("msLevel", "2")) if settings is not None else 2,
        )

    def _read_identification(self, protein_id: str, element) -> Protein:
        database = child_text(element, "Database")
        self._databases[protein_id] = SearchDatabase(
            name=database,
            version=child_text(element, "DatabaseVersion"),
        )
        protein = Protein(
            id=protein_id,
            accession=child_text(element, "Accession"),
            search_database_ref=protein_id,
        )
        for index, item in enumerate(children(element, "PeptideItem")):
            protein.peptides.append(self._read_peptide(protein_id, str(index), item))
        return protein

    def _read_peptide(self, protein_id: str, peptide_id: str, item) -> Peptide:
        additional = param_group(child(item, "additional"))
        mz = additional.find(*PEPTIDE_MZ)
        spectrum_ref = child_text(item, "SpectrumReference") or None
        return Peptide(
            id=peptide_id,
            sequence=child_text(item, "Sequence"),
            protein_id=protein_id,
            modifications=[self._read_modification(m) for m in children(item, "ModificationItem")],
            fragmentation=[self._read_fragment(f) for f in children(item, "FragmentIon")],
            spectrum_id=spectrum_ref,
            spectrum_ref=spectrum_ref,
            precursor_charge=_charge(additional.find(*PEPTIDE_CHARGE)),
            precursor_mz=(_float(mz.value) or -1.0) if mz is not None else -1.0,
            start=int(child_text(item, "Start")) if child_text(item, "Start").isdigit() else None,
            end=int(child_text(item, "End")) if child_text(item, "End").isdigit() else None,
        )

    @staticmethod
    def _read_modification(element) -> Modification:
        accession = child_text(element, "ModAccession")
        database = child_text(element, "ModDatabase") or None
        named = param_group(child(element, "additional")).find(accession) if accession else None
        location = child_text(element, "ModLocation")
        return Modification(
            location=int(location) if location.isdigit() else 0,
            monoisotopic_mass_delta=[_float(d.text.strip() if d.text else "")
                                     for d in children(element, "ModMonoDelta")],
            cv_params=[CvParam(
                accession=accession,
                name=named.name if named is not None else accession,
                cv_lookup_id=database,
            )],
        )

    @staticmethod
    def _read_fragment(element) -> FragmentIon:
        group = param_group(element)
        mz = group.find(FRAGMENT_MZ)
        intensity = group.find(FRAGMENT_INTENSITY)
        charge = group.find(FRAGMENT_CHARGE)
        known = {FRAGMENT_MZ, FRAGMENT_INTENSITY, FRAGMENT_CHARGE}
        ion_type = next((p.name for p in group.cv_params if p.accession not in known), "")
        return FragmentIon(
            mz=_float(mz.value) if mz is not None else float("nan"),
            intensity=_float(intensity.value) if intensity is not None else float("nan"),
            ion_type=ion_type,
            charge=_charge(charge) or 0,
        )

    def get_spectrum_by_id(self, spectrum_id: Optional[str]) -> Optional[Spectrum]:
        return self._spectra.get(spectrum_id)

    def get_search_database(self, protein_id: str) -> Optional[SearchDatabase]:
        return self._databases.get(protein_id)

    def get_number_of_spectra(self) -> int:
        return len(self._spectra)

    def get_number_of_identified_spectra(self) -> int:
        return sum(1 for sid in self.get_identified_spectrum_ids() if sid in self._spectra)

    def get_number_of_missing_spectra(self) -> int:
        return sum(1 for sid in self.get_identified_spectrum_ids() if sid not in self._spectra)

    def get_instrument_configurations(self) -> Optional[List[InstrumentConfiguration]]:
        return self._instruments

    def close(self) -> None:
        super().close()
        self._spectra = {}
