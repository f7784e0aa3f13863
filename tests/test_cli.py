"""
Tests for the pgconverter command-line interface.
"""

import logging

import pytest

from pgconverter import __version__
from pgconverter.cli import EXIT_FAILED, EXIT_OK, EXIT_USAGE, build_arg_parser, main


class TestArgParser:
    """Tests for build_arg_parser."""

    def test_validate_arguments(self):
        args = build_arg_parser().parse_args([
            "validate", "--mzid", "a.mzid", "--peak", "a.mgf", "--peak", "peaks/",
            "--peaks", "b.mgf##c.mzML", "--report", "a.report", "--skip-serialization", "--seed", "3",
        ])
        assert args.command == "validate"
        assert args.mzid == "a.mzid"
        assert args.peak == ["a.mgf", "peaks/"]
        assert args.peaks == "b.mgf##c.mzML"
        assert args.skip_serialization is True
        assert args.random_seed == 3

    def test_inputs_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_arg_parser().parse_args(["validate", "--mzid", "a.mzid", "--pridexml", "a.xml"])

    def test_input_required(self):
        with pytest.raises(SystemExit):
            build_arg_parser().parse_args(["convert", "--output", "a.mztab"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            build_arg_parser().parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestMain:
    """Tests for main exit codes."""

    def test_validate_ok(self, tmp_path, mzid_file, mgf_file):
        report_file = tmp_path / "sample.report"
        code = main(["validate", "--mzid", str(mzid_file), "--peak", str(mgf_file),
                     "--report", str(report_file), "--seed", "1", "--quiet"])
        assert code == EXIT_OK
        assert report_file.exists()
        assert (tmp_path / "sample.report.ser").exists()

    def test_validate_peak_directory(self, tmp_path, mzid_file, mgf_file):
        code = main(["validate", "--mzid", str(mzid_file), "--peak", str(tmp_path), "--quiet"])
        assert code == EXIT_OK

    def test_no_peak_files_warned_once(self, mzid_file, caplog):
        with caplog.at_level(logging.WARNING):
            main(["validate", "--mzid", str(mzid_file), "--skip-serialization", "--quiet"])
        assert sum("No peak files supplied" in r.message for r in caplog.records) == 1

    def test_validate_error(self, tmp_path, mzid_file):
        report_file = tmp_path / "wrong.report"
        code = main(["validate", "--pridexml", str(mzid_file), "--report", str(report_file),
                     "--skip-serialization", "--quiet"])
        assert code == EXIT_FAILED
        assert "not a valid PRIDE XML file" in report_file.read_text()
        assert not (tmp_path / "wrong.report.ser").exists()

    def test_validate_mztab(self, mztab_file):
        assert main(["validate", "--mztab", str(mztab_file), "--quiet"]) == EXIT_OK

    def test_convert(self, tmp_path, mzid_file):
        output = tmp_path / "sample.mztab"
        assert main(["convert", "--input", str(mzid_file), "--output", str(output), "--quiet"]) == EXIT_OK
        assert output.exists()

    def test_convert_by_format(self, tmp_path, mztab_file, chrom_sizes_file):
        code = main(["convert", "--mztab", str(mztab_file), "--output-format", "probed",
                     "--chrom-sizes", str(chrom_sizes_file), "--quiet"])
        assert code == EXIT_OK
        assert (tmp_path / "sample.pro.bed").exists()

    def test_convert_unsupported(self, tmp_path, pride_xml_file):
        code = main(["convert", "--input", str(pride_xml_file), "--output", str(tmp_path / "x.pro.bed"), "--quiet"])
        assert code == EXIT_FAILED

    def test_convert_without_output(self, mzid_file):
        assert main(["convert", "--input", str(mzid_file), "--quiet"]) == EXIT_USAGE

    def test_missing_config(self, tmp_path, mzid_file, capsys):
        code = main(["validate", "--mzid", str(mzid_file), "--config", str(tmp_path / "absent.toml")])
        assert code == EXIT_USAGE
        assert "Error loading configuration file" in capsys.readouterr().err

    def test_config_file(self, tmp_path, pride_xml_file):
        config = tmp_path / "pgconverter.toml"
        config.write_text("[validation]\nstrict_delta_mass_tolerance = true\n\n[report]\nskip_serialization = true\n")
        report_file = tmp_path / "pride.report"

        code = main(["validate", "--pridexml", str(pride_xml_file), "--config", str(config),
                     "--report", str(report_file), "--quiet"])

        assert code == EXIT_OK
        assert "Delta m/z error rate:      0.00" in report_file.read_text()
        assert not (tmp_path / "pride.report.ser").exists()
