"""
Tests for the mzTab reader, writer and structural checker.
"""

import io

import pandas as pd
import pytest

from pgconverter.controllers import MzTabController, MzTabFile, check_mztab, read_mztab, write_mztab
from pgconverter.controllers.mztab import ERROR_LOG_NAME, check_mztab_file, parse_mztab, ptm_params

from conftest import MZTAB_METADATA, MZTAB_PSM_HEADER, MZTAB_PSMS, mztab_text


def _without(key):
    return [(k, v) for k, v in MZTAB_METADATA if k != key]


class TestParseMztab:
    """Tests for parse_mztab."""

    def test_sections(self, mztab_file):
        mztab, problems = read_mztab(mztab_file)

        assert problems == []
        assert mztab.metadata["mzTab-ID"] == "PGDS0001"
        assert list(mztab.proteins["accession"]) == ["P12345", "Q67890"]
        assert len(mztab.psms) == 4
        assert mztab.peptides.empty
        assert mztab.ms_run_indices() == {1}

    def test_null_cells_are_missing(self, mztab_file):
        mztab, _ = read_mztab(mztab_file)
        assert pd.isna(mztab.proteins.loc[1, "description"])
        assert pd.isna(mztab.psms.loc[3, "opt_global_chr"])

    def test_row_width_mismatch(self):
        text = mztab_text() + "PSM\tTOOSHORT\t5\n"
        mztab, problems = parse_mztab(io.StringIO(text))
        assert len(mztab.psms) == 4
        assert any("PSM row has 2 columns" in p for p in problems)

    def test_row_before_header(self):
        _, problems = parse_mztab(io.StringIO("MTD\tmzTab-version\t1.0.0\nPRT\tP1\n"))
        assert problems == ["line 2: PRT row before its PRH header"]

    def test_unknown_prefix(self):
        _, problems = parse_mztab(io.StringIO("MTD\tmzTab-version\t1.0.0\nXYZ\tfoo\n"))
        assert problems == ["line 2: unknown line prefix 'XYZ'"]


class TestCheckMztab:
    """Tests for the structural checker."""

    def test_accepts_valid_document(self, mztab_file):
        assert check_mztab_file(mztab_file) == []

    @pytest.mark.parametrize("key", ["mzTab-version", "mzTab-mode", "description", "ms_run[1]-location",
                                     "fixed_mod[1]", "variable_mod[1]", "psm_search_engine_score[1]"])
    def test_missing_metadata(self, key):
        mztab, _ = parse_mztab(io.StringIO(mztab_text(metadata=_without(key))))
        assert f"Missing mandatory metadata '{key}'" in check_mztab(mztab)

    def test_unsupported_version(self):
        metadata = [("mzTab-version", "2.0.0-M")] + _without("mzTab-version")
        mztab, _ = parse_mztab(io.StringIO(mztab_text(metadata=metadata)))
        assert "Unsupported mzTab-version '2.0.0-M'" in check_mztab(mztab)

    def test_duplicated_protein_accessions(self):
        proteins = [["P12345"] + ["null"] * 9, ["P12345"] + ["null"] * 9]
        mztab, _ = parse_mztab(io.StringIO(mztab_text(proteins=proteins)))
        assert "Duplicated protein accessions" in check_mztab(mztab)

    def test_duplicated_psm_rows(self):
        mztab, _ = parse_mztab(io.StringIO(mztab_text(psms=MZTAB_PSMS + [MZTAB_PSMS[0]])))
        assert "Duplicated PSM rows (PSM_ID, accession, start)" in check_mztab(mztab)

    def test_same_psm_on_two_proteins(self):
        """One PSM_ID may repeat for different protein accessions."""
        shared = list(MZTAB_PSMS[0])
        shared[2] = "Q67890"
        mztab, _ = parse_mztab(io.StringIO(mztab_text(psms=MZTAB_PSMS + [shared])))
        assert check_mztab(mztab) == []

    def test_non_numeric_charge(self):
        row = list(MZTAB_PSMS[0])
        row[10] = "two"
        mztab, _ = parse_mztab(io.StringIO(mztab_text(psms=[row])))
        assert "Non-numeric PSM charge values" in check_mztab(mztab)

    def test_spectra_ref(self):
        malformed = list(MZTAB_PSMS[0])
        malformed[13] = "index=0"
        undeclared = list(MZTAB_PSMS[1])
        undeclared[13] = "ms_run[3]:index=1"
        mztab, _ = parse_mztab(io.StringIO(mztab_text(psms=[malformed, undeclared])))

        problems = check_mztab(mztab)

        assert "Malformed spectra_ref 'index=0'" in problems
        assert "spectra_ref 'ms_run[3]:index=1' points to an undeclared ms_run" in problems

    def test_missing_psm_column(self):
        header = [c for c in MZTAB_PSM_HEADER if c != "charge"]
        psms = [row[:10] + row[11:] for row in MZTAB_PSMS]
        mztab, _ = parse_mztab(io.StringIO(mztab_text(psms=psms, psm_header=header)))
        assert "PSM section misses mandatory column 'charge'" in check_mztab(mztab)


class TestWriteMztab:

    def test_written_document_reads_back(self, tmp_path, mztab_file):
        mztab, _ = read_mztab(mztab_file)
        output = write_mztab(mztab, tmp_path / "copy.mztab")

        copy, problems = read_mztab(output)

        assert problems == []
        assert check_mztab(copy) == []
        assert copy.metadata == mztab.metadata
        assert "PSM\tPEPTIDE\t1\tP12345" in output.read_text()
        assert "\tnull\t" in output.read_text()

    def test_empty_sections_are_omitted(self, tmp_path):
        output = write_mztab(MzTabFile(metadata={"mzTab-version": "1.0.0"}), tmp_path / "meta.mztab")
        assert output.read_text() == "MTD\tmzTab-version\t1.0.0\n"


class TestMzTabController:
    """Tests for MzTabController."""

    def test_counts(self, mztab_file):
        with MzTabController(mztab_file) as controller:
            assert controller.name == "Synthetic mzTab"
            assert controller.get_number_of_proteins() == 2
            assert controller.get_number_of_psms() == 4
            assert controller.get_number_of_unique_peptides() == 4
            assert controller.get_number_of_identified_spectra() == 4
            assert controller.get_softwares()[0].version == "v2024"

    def test_error_log_is_written(self, mztab_file):
        """The problem log is written next to the file, even when empty."""
        with MzTabController(mztab_file) as controller:
            assert controller.error_log == mztab_file.parent / ERROR_LOG_NAME
        assert controller.error_log.read_text() == ""

    def test_error_log_lists_problems(self, tmp_path):
        path = tmp_path / "broken.mztab"
        path.write_text(mztab_text(metadata=_without("description")))
        controller = MzTabController(path)
        assert "Missing mandatory metadata 'description'" in controller.error_log.read_text()

    def test_no_error_log(self, mztab_file):
        controller = MzTabController(mztab_file, write_error_log=False)
        assert controller.error_log is None
        assert not (mztab_file.parent / ERROR_LOG_NAME).exists()

    def test_is_valid_format(self, mztab_file, mzid_file):
        assert MzTabController.is_valid_format(mztab_file)
        assert not MzTabController.is_valid_format(mzid_file)

    def test_ptm_params(self):
        params = ptm_params(pd.Series(["4-UNIMOD:21,6-MOD:00046", None, "1-UNIMOD:35"]))
        assert {(p.accession, p.cv_lookup_id) for p in params} == {
            ("UNIMOD:21", "UNIMOD"), ("MOD:00046", "MOD"), ("UNIMOD:35", "UNIMOD")}
