"""
Pytest configuration and fixtures for pgconverter tests.

Every fixture writes a small synthetic file into the test's tmp_path: an
mzIdentML file with its MGF peak list, an mzML run, a PRIDE XML experiment
with embedded spectra, an mzTab file with genome coordinates and a
chrom.sizes table.
"""

import base64
import gzip

import numpy as np
import pytest


# =============================================================================
# Shared values
# =============================================================================

# PEPTIDE + phospho (79.966331), charge 2
PHOSPHO_PEPTIDE_MZ = 440.6704
# PEPTIDE + acetyl (42.010565), charge 2
ACETYL_PEPTIDE_MZ = 421.6925
# unmodified PEPTIDE, charge 2
PEPTIDE_MZ = 400.6873

FRAGMENT_MZ = [98.06, 227.1026]
FRAGMENT_INTENSITY = [500.0, 1500.0]


# =============================================================================
# mzIdentML and peak files
# =============================================================================

MZID_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<MzIdentML xmlns="http://psidev.info/psi/pi/mzIdentML/1.1" id="mzid_test" version="1.1.0">
  <cvList>
    <cv id="PSI-MS" fullName="Proteomics Standards Initiative Mass Spectrometry Vocabularies" uri="https://raw.githubusercontent.com/HUPO-PSI/psi-ms-CV/master/psi-ms.obo"/>
    <cv id="UNIMOD" fullName="UNIMOD" uri="http://www.unimod.org/obo/unimod.obo"/>
  </cvList>
  <AnalysisSoftwareList>
    <AnalysisSoftware id="AS_1" name="MS-GF+" version="v2024"/>
  </AnalysisSoftwareList>
  <AuditCollection>
    <Person id="P_1" firstName="Jane" lastName="Doe">
      <cvParam cvRef="PSI-MS" accession="MS:1000589" name="contact email" value="jane@example.org"/>
      <Affiliation organization_ref="ORG_1"/>
    </Person>
    <Organization id="ORG_1" name="EMBL-EBI"/>
  </AuditCollection>
  <SequenceCollection>
    <DBSequence id="DBSeq_1" accession="P12345" searchDatabase_ref="SDB_1">
      <cvParam cvRef="PSI-MS" accession="MS:1001088" name="protein description" value="Test protein one"/>
    </DBSequence>
    <DBSequence id="DBSeq_2" accession="Q67890" searchDatabase_ref="SDB_1"/>
    <Peptide id="Pep_1">
      <PeptideSequence>PEPTIDE</PeptideSequence>
      <Modification location="4" monoisotopicMassDelta="79.966331" residues="T">
        {modification_param}
      </Modification>
    </Peptide>
    <PeptideEvidence id="PE_1" dBSequence_ref="DBSeq_1" peptide_ref="Pep_1" start="10" end="16" pre="K" post="A" isDecoy="false">
      <userParam name="chromosome name" value="chr1"/>
      <userParam name="chromosome strand" value="+"/>
      <userParam name="peptide start on chromosome" value="1000"/>
      <userParam name="peptide end on chromosome" value="1021"/>
      <userParam name="peptide exon count" value="1"/>
      <userParam name="peptide exon nucleotide sizes" value="21"/>
      <userParam name="peptide start positions on chromosome" value="0"/>
      <userParam name="genome reference version" value="GRCh38"/>
    </PeptideEvidence>
    <PeptideEvidence id="PE_2" dBSequence_ref="DBSeq_2" peptide_ref="Pep_1" start="40" end="46" pre="R" post="G" isDecoy="false">
      <userParam name="chromosome name" value="chr2"/>
      <userParam name="chromosome strand" value="-"/>
      <userParam name="peptide start on chromosome" value="5000"/>
      <userParam name="peptide end on chromosome" value="5021"/>
    </PeptideEvidence>
  </SequenceCollection>
  <DataCollection>
    <Inputs>
      <SearchDatabase id="SDB_1" name="uniprot_human" version="2024_01" location="/db/uniprot_human.fasta"/>
      <SpectraData id="SD_1" location="file:///data/sample.mgf" name="sample.mgf">
        <FileFormat>
          <cvParam cvRef="PSI-MS" accession="MS:1001062" name="Mascot MGF format"/>
        </FileFormat>
        <SpectrumIDFormat>
          <cvParam cvRef="PSI-MS" accession="MS:1000774" name="multiple peak list nativeID format"/>
        </SpectrumIDFormat>
      </SpectraData>
    </Inputs>
    <AnalysisData>
      <SpectrumIdentificationList id="SIL_1">
        <FragmentationTable>
          <Measure id="m_mz">
            <cvParam cvRef="PSI-MS" accession="MS:1001225" name="product ion m/z"/>
          </Measure>
          <Measure id="m_intensity">
            <cvParam cvRef="PSI-MS" accession="MS:1001226" name="product ion intensity"/>
          </Measure>
        </FragmentationTable>
        <SpectrumIdentificationResult id="SIR_1" spectrumID="index=0" spectraData_ref="SD_1">
          <SpectrumIdentificationItem id="SII_1" chargeState="2" experimentalMassToCharge="440.6704" calculatedMassToCharge="440.6704" peptide_ref="Pep_1" rank="1" passThreshold="true">
            <PeptideEvidenceRef peptideEvidence_ref="PE_1"/>
            <PeptideEvidenceRef peptideEvidence_ref="PE_2"/>
            <Fragmentation>
              <IonType index="1 2" charge="1">
                <FragmentArray values="98.06 227.1026" measure_ref="m_mz"/>
                <FragmentArray values="500.0 1500.0" measure_ref="m_intensity"/>
                <cvParam cvRef="PSI-MS" accession="MS:1001224" name="frag: b ion"/>
              </IonType>
            </Fragmentation>
            <cvParam cvRef="PSI-MS" accession="MS:1002049" name="MS-GF:RawScore" value="120"/>
          </SpectrumIdentificationItem>
        </SpectrumIdentificationResult>
      </SpectrumIdentificationList>
    </AnalysisData>
  </DataCollection>
</MzIdentML>
"""

UNIMOD_PARAM = '<cvParam cvRef="UNIMOD" accession="UNIMOD:21" name="Phospho"/>'
UNREFERENCED_PARAM = '<cvParam accession="UNIMOD:21" name="Phospho"/>'

MGF_CONTENT = """BEGIN IONS
TITLE=spectrum_0
PEPMASS=440.6704
CHARGE=2+
SCANS=1
98.06 500.0
227.1026 1500.0
356.1452 800.0
END IONS
BEGIN IONS
TITLE=spectrum_1
PEPMASS=512.2
CHARGE=3+
SCANS=2
120.5 100.0
END IONS
"""

MZML_CONTENT = """<?xml version="1.0" encoding="utf-8"?>
<mzML xmlns="http://psi.hupo.org/ms/mzml" version="1.1.0" id="run">
  <run id="run_1">
    <spectrumList count="1">
      <spectrum index="0" id="scan=1" defaultArrayLength="0"/>
    </spectrumList>
    <chromatogramList count="1">
      <chromatogram index="0" id="TIC" defaultArrayLength="0"/>
    </chromatogramList>
  </run>
</mzML>
"""


@pytest.fixture
def mzid_file(tmp_path):
    """mzIdentML file with one SIR matched by two proteins."""
    path = tmp_path / "sample.mzid"
    path.write_text(MZID_TEMPLATE.format(modification_param=UNIMOD_PARAM))
    return path


@pytest.fixture
def malformed_mzid_file(tmp_path):
    """mzIdentML file whose modification param has no cvRef."""
    path = tmp_path / "malformed.mzid"
    path.write_text(MZID_TEMPLATE.format(modification_param=UNREFERENCED_PARAM))
    return path


@pytest.fixture
def truncated_mzid_gz(tmp_path):
    """First half of a gzipped mzIdentML file; the stream ends early."""
    compressed = gzip.compress(MZID_TEMPLATE.format(modification_param=UNIMOD_PARAM).encode("utf-8"))
    path = tmp_path / "broken.mzid.gz"
    path.write_bytes(compressed[:len(compressed) // 2])
    return path


@pytest.fixture
def mgf_file(tmp_path):
    """MGF peak list referenced by the mzIdentML fixture."""
    path = tmp_path / "sample.mgf"
    path.write_text(MGF_CONTENT)
    return path


@pytest.fixture
def mzml_file(tmp_path):
    """mzML run carrying one chromatogram."""
    path = tmp_path / "run.mzML"
    path.write_text(MZML_CONTENT)
    return path


# =============================================================================
# PRIDE XML
# =============================================================================

def _encode(values) -> str:
    return base64.b64encode(np.asarray(values, dtype="<f8").tobytes()).decode("ascii")


PRIDE_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<ExperimentCollection version="2.1">
  <Experiment>
    <Title>Synthetic PRIDE experiment</Title>
    <ShortLabel>exp1</ShortLabel>
    <mzData version="1.05" accessionNumber="1">
      <description>
        <admin>
          <sampleName>sample</sampleName>
          <contact>
            <name>Jane Doe</name>
            <institution>EMBL-EBI</institution>
            <contactInfo>jane@example.org</contactInfo>
          </contact>
        </admin>
        <instrument>
          <instrumentName>LTQ Orbitrap</instrumentName>
          <source>
            <cvParam cvLabel="PSI" accession="PSI:1000008" name="Ionization Type" value="ESI"/>
          </source>
          <analyzerList count="1">
            <analyzer>
              <cvParam cvLabel="PSI" accession="PSI:1000010" name="Analyzer Type" value="Orbitrap"/>
            </analyzer>
          </analyzerList>
          <detector>
            <cvParam cvLabel="PSI" accession="PSI:1000026" name="Detector Type" value="Electron multiplier"/>
          </detector>
        </instrument>
        <dataProcessing>
          <software>
            <name>Mascot</name>
            <version>2.3</version>
          </software>
        </dataProcessing>
      </description>
      <spectrumList count="1">
        <spectrum id="1">
          <spectrumDesc>
            <spectrumSettings>
              <spectrumInstrument msLevel="2"/>
            </spectrumSettings>
            <precursorList count="1">
              <precursor msLevel="1" spectrumRef="0">
                <ionSelection>
                  <cvParam cvLabel="PSI" accession="PSI:1000040" name="MassToChargeRatio" value="{acetyl_mz}"/>
                  <cvParam cvLabel="PSI" accession="PSI:1000041" name="ChargeState" value="2"/>
                </ionSelection>
              </precursor>
            </precursorList>
          </spectrumDesc>
          <mzArrayBinary>
            <data precision="64" endian="little" length="3">{mz_data}</data>
          </mzArrayBinary>
          <intenArrayBinary>
            <data precision="64" endian="little" length="3">{intensity_data}</data>
          </intenArrayBinary>
        </spectrum>
      </spectrumList>
    </mzData>
    <GelFreeIdentification>
      <Accession>P12345</Accession>
      <Database>UniProt</Database>
      <DatabaseVersion>2024_01</DatabaseVersion>
      <PeptideItem>
        <Sequence>PEPTIDE</Sequence>
        <Start>10</Start>
        <End>16</End>
        <SpectrumReference>1</SpectrumReference>
        <ModificationItem>
          <ModLocation>0</ModLocation>
          <ModAccession>MOD:00394</ModAccession>
          {mod_database}
          <ModMonoDelta>42.010565</ModMonoDelta>
        </ModificationItem>
        <FragmentIon>
          <cvParam cvLabel="PRIDE" accession="PRIDE:0000194" name="b ion" value="2"/>
          <cvParam cvLabel="PRIDE" accession="PRIDE:0000188" name="product ion m/z" value="98.06"/>
          <cvParam cvLabel="PRIDE" accession="PRIDE:0000189" name="product ion intensity" value="500.0"/>
          <cvParam cvLabel="PRIDE" accession="PRIDE:0000204" name="product ion charge" value="1"/>
        </FragmentIon>
      </PeptideItem>
      <PeptideItem>
        <Sequence>PEPTIDE</Sequence>
        <Start>10</Start>
        <End>16</End>
        <SpectrumReference>1</SpectrumReference>
        <FragmentIon>
          <cvParam cvLabel="PRIDE" accession="PRIDE:0000194" name="b ion" value="3"/>
          <cvParam cvLabel="PRIDE" accession="PRIDE:0000188" name="product ion m/z" value="227.1026"/>
          <cvParam cvLabel="PRIDE" accession="PRIDE:0000189" name="product ion intensity" value="1500.0"/>
        </FragmentIon>
        <additional>
          <cvParam cvLabel="PRIDE" accession="PRIDE:0000065" name="Charge state" value="2"/>
          <cvParam cvLabel="PSI" accession="PSI:1000040" name="Mass to charge ratio" value="{peptide_mz}"/>
        </additional>
      </PeptideItem>
    </GelFreeIdentification>
  </Experiment>
</ExperimentCollection>
"""


def _pride_content(mod_database: str) -> str:
    return PRIDE_TEMPLATE.format(
        acetyl_mz=ACETYL_PEPTIDE_MZ,
        peptide_mz=PEPTIDE_MZ,
        mz_data=_encode(FRAGMENT_MZ + [356.1452]),
        intensity_data=_encode(FRAGMENT_INTENSITY + [800.0]),
        mod_database=mod_database,
    )


@pytest.fixture
def pride_xml_file(tmp_path):
    """PRIDE XML experiment: one protein, two PSMs on one embedded spectrum."""
    path = tmp_path / "experiment.xml"
    path.write_text(_pride_content("<ModDatabase>MOD</ModDatabase>"))
    return path


@pytest.fixture
def malformed_pride_xml_file(tmp_path):
    """PRIDE XML experiment whose modification has no ModDatabase."""
    path = tmp_path / "malformed.xml"
    path.write_text(_pride_content(""))
    return path


# =============================================================================
# mzTab and proBed inputs
# =============================================================================

MZTAB_METADATA = [
    ("mzTab-version", "1.0.0"),
    ("mzTab-mode", "Summary"),
    ("mzTab-type", "Identification"),
    ("mzTab-ID", "PGDS0001"),
    ("title", "Synthetic mzTab"),
    ("description", "Synthetic identifications"),
    ("ms_run[1]-location", "file:///data/sample.mgf"),
    ("software[1]", "[MS, MS:1002048, MS-GF+, v2024]"),
    ("protein_search_engine_score[1]", "[MS, MS:1001153, search engine specific score, ]"),
    ("psm_search_engine_score[1]", "[MS, MS:1001143, search engine specific score for PSMs, ]"),
    ("fixed_mod[1]", "[MS, MS:1002453, No fixed modifications searched, ]"),
    ("variable_mod[1]", "[UNIMOD, UNIMOD:21, Phospho, ]"),
]

MZTAB_PROTEIN_HEADER = [
    "accession", "description", "taxid", "species", "database", "database_version",
    "search_engine", "best_search_engine_score[1]", "ambiguity_members", "modifications",
]
MZTAB_PROTEINS = [
    ["P12345", "Test protein one", "9606", "Homo sapiens", "uniprot", "2024_01",
     "[MS, MS:1002048, MS-GF+, ]", "null", "null", "null"],
    ["Q67890", "null", "9606", "Homo sapiens", "uniprot", "2024_01",
     "[MS, MS:1002048, MS-GF+, ]", "null", "null", "null"],
]

MZTAB_PSM_HEADER = [
    "sequence", "PSM_ID", "accession", "unique", "database", "database_version",
    "search_engine", "search_engine_score[1]", "modifications", "retention_time", "charge",
    "exp_mass_to_charge", "calc_mass_to_charge", "spectra_ref", "pre", "post", "start", "end",
    "opt_global_chr", "opt_global_start", "opt_global_end", "opt_global_strand",
]
MZTAB_PSMS = [
    ["PEPTIDE", "1", "P12345", "1", "uniprot", "2024_01", "[MS, MS:1002048, MS-GF+, ]", "120",
     "4-UNIMOD:21", "null", "2", "440.6704", "440.6704", "ms_run[1]:index=0", "K", "A", "10", "16",
     "chr2", "5000", "5021", "-"],
    ["SAMPLER", "2", "Q67890", "1", "uniprot", "2024_01", "[MS, MS:1002048, MS-GF+, ]", "95",
     "null", "null", "2", "401.2", "401.2", "ms_run[1]:index=1", "K", "G", "40", "46",
     "chr1", "1000", "1021", "+"],
    ["ELVISLIVES", "3", "Q67890", "1", "uniprot", "2024_01", "[MS, MS:1002048, MS-GF+, ]", "80",
     "null", "null", "2", "577.8", "577.8", "ms_run[1]:index=2", "R", "-", "60", "69",
     "chrUn_random", "10", "40", "+"],
    ["LASTONE", "4", "Q67890", "1", "uniprot", "2024_01", "[MS, MS:1002048, MS-GF+, ]", "60",
     "null", "null", "3", "300.1", "300.1", "ms_run[1]:index=3", "K", "-", "80", "86",
     "null", "null", "null", "null"],
]


def mztab_text(metadata=None, proteins=None, psms=None, psm_header=None) -> str:
    """Tab-separated mzTab text assembled from sections."""
    lines = [f"MTD\t{key}\t{value}" for key, value in (MZTAB_METADATA if metadata is None else metadata)]
    lines.append("")
    lines.append("\t".join(["PRH"] + MZTAB_PROTEIN_HEADER))
    lines.extend("\t".join(["PRT"] + row) for row in (MZTAB_PROTEINS if proteins is None else proteins))
    lines.append("")
    lines.append("\t".join(["PSH"] + (psm_header or MZTAB_PSM_HEADER)))
    lines.extend("\t".join(["PSM"] + row) for row in (MZTAB_PSMS if psms is None else psms))
    return "\n".join(lines) + "\n"


@pytest.fixture
def mztab_file(tmp_path):
    """mzTab file with four PSMs, three of them genome-mapped."""
    path = tmp_path / "sample.mztab"
    path.write_text(mztab_text())
    return path


@pytest.fixture
def chrom_sizes_file(tmp_path):
    """UCSC-style chrom.sizes covering chr1 and chr2 only."""
    path = tmp_path / "hg38.chrom.sizes"
    path.write_text("chr1\t248956422\nchr2\t242193529\n")
    return path
