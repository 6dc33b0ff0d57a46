"""
Tests for saving and loading representative-genome indexes.
"""

import pytest

from repgendb.core.exceptions import IndexFileError
from repgendb.modules.kmers import get_default_kmer_size, set_default_kmer_size
from repgendb.modules.representatives import RepresentativeEntry, RepresentativeIndex
from conftest import mutate, random_protein


@pytest.fixture
def built_index(rng, phes_protein):
    index = RepresentativeIndex(
        50, "DNA-directed RNA polymerase beta' subunit",
        ["DNA-directed RNA polymerase subunit A"], k=10
    )
    index.add_genomes([("fig|1005530.3.peg.2208", "Escherichia coli EC4402", phes_protein)])
    for i in range(8):
        protein = random_protein(rng, 180)
        index.add_genomes([
            (f"fig|{2000 + i}.1.peg.{i + 1}", f"Genome {i} strain A", protein),
            (f"fig|{2000 + i}.2.peg.{i + 1}", f"Genome {i} strain B", mutate(rng, protein, 2)),
        ])
    # a genome with no name
    index.add_rep(RepresentativeEntry("fig|9999.1.peg.1", "", random_protein(rng, 90), k=10))
    return index


class TestSaveLoad:
    """Test the save-file round trip."""

    def test_round_trip(self, built_index, tmp_path):
        save_file = tmp_path / "rep50.ser"
        built_index.save(save_file)
        set_default_kmer_size(6)

        loaded = RepresentativeIndex.load(save_file)

        assert loaded.threshold == built_index.threshold
        assert loaded.k == built_index.k == 10
        assert loaded.protein_name == "DNA-directed RNA polymerase beta' subunit"
        assert loaded.protein_aliases == built_index.protein_aliases
        assert loaded.size() == built_index.size()
        for old in built_index.all():
            new = loaded.get(old.genome_id)
            assert new == old
            assert new.name == old.name
            assert new.fid == old.fid
            assert new.protein == old.protein
            assert new.fingerprint == old.fingerprint

    def test_genome_names_round_trip(self, rng, tmp_path):
        names = {
            "fig|3001.1.peg.1": "  leading space",
            "fig|3002.1.peg.1": "Escherichia coli\nK-12",
            "fig|3003.1.peg.1": "trailing tab\t",
            "fig|3004.1.peg.1": "fig|3004.1.peg.1 starts with its own ID",
            "fig|3005.1.peg.1": "tabs\tand  double  spaces",
            "fig|3006.1.peg.1": "Genome @ with separator",
            "fig|3007.1.peg.1": "",
        }
        index = RepresentativeIndex(50, k=10)
        for fid, name in names.items():
            index.add_rep(RepresentativeEntry(fid, name, random_protein(rng, 120), k=10))
        save_file = tmp_path / "names.ser"
        index.save(save_file)
        loaded = RepresentativeIndex.load(save_file)
        for entry in index.all():
            assert loaded.get(entry.genome_id).name == entry.name
            assert loaded.get(entry.genome_id).name == " ".join(names[entry.fid].split())

    def test_protein_names_round_trip(self, tmp_path):
        index = RepresentativeIndex(
            50, "Rep50,K=10 looks like a header",
            ["Protein @home", "alias@ x", "tabs\tinside", "ends with @"], k=10
        )
        save_file = tmp_path / "aliases.ser"
        index.save(save_file)
        loaded = RepresentativeIndex.load(save_file)
        assert loaded.protein_name == index.protein_name
        assert loaded.protein_aliases == index.protein_aliases

    def test_load_republishes_kmer_size(self, built_index, tmp_path):
        save_file = tmp_path / "rep50.ser"
        built_index.save(save_file)
        set_default_kmer_size(6)
        loaded = RepresentativeIndex.load(save_file)
        assert get_default_kmer_size() == loaded.k == 10
        # entries created afterwards without a k-mer size are comparable
        query = RepresentativeEntry("fig|1.1.peg.1", "query genome", built_index.get("1005530.3").protein)
        assert loaded.find_closest(query).genome_id == "1005530.3"

    def test_save_file_layout(self, built_index, tmp_path):
        save_file = tmp_path / "rep50.ser"
        built_index.save(save_file)
        lines = save_file.read_text().splitlines()
        assert lines[0] == (
            ">Rep50,K=10 DNA-directed RNA polymerase beta' subunit @ "
            "DNA-directed RNA polymerase subunit A"
        )
        headers = [line for line in lines if line.startswith(">")]
        assert len(headers) == built_index.size() + 1
        assert headers[1] == ">fig|1005530.3.peg.2208 Escherichia coli EC4402"

    def test_queries_survive_round_trip(self, built_index, tmp_path, rng):
        save_file = tmp_path / "rep50.ser"
        built_index.save(save_file)
        loaded = RepresentativeIndex.load(save_file, threads=2, parallel_cutoff=2)
        for entry in built_index.all():
            query = mutate(rng, entry.protein, 1)
            expected = built_index.find_closest(query)
            found = loaded.find_closest(query)
            assert (found.genome_id, found.similarity) == (expected.genome_id, expected.similarity)
        loaded.close()

    def test_empty_index_round_trip(self, tmp_path):
        save_file = tmp_path / "empty.ser"
        RepresentativeIndex(200, k=9).save(save_file)
        loaded = RepresentativeIndex.load(save_file)
        assert loaded.size() == 0
        assert loaded.threshold == 200
        assert loaded.k == 9


class TestLoadErrors:
    """Bad files raise IndexFileError and never yield a partial index."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(IndexFileError) as exc_info:
            RepresentativeIndex.load(tmp_path / "missing.ser")
        assert exc_info.value.path == tmp_path / "missing.ser"

    def test_invalid_header(self, tmp_path):
        bad_file = tmp_path / "bad.ser"
        bad_file.write_text(">fig|1005530.3.peg.2208 Escherichia coli\nMSHLAELVASAKAAIS\n")
        with pytest.raises(IndexFileError, match="Invalid header"):
            RepresentativeIndex.load(bad_file)

    def test_empty_file(self, tmp_path):
        bad_file = tmp_path / "empty.ser"
        bad_file.write_text("")
        with pytest.raises(IndexFileError):
            RepresentativeIndex.load(bad_file)

    def test_malformed_entry(self, tmp_path):
        bad_file = tmp_path / "bad_entry.ser"
        bad_file.write_text(
            ">Rep50,K=10 Phenylalanyl-tRNA synthetase alpha chain\n"
            ">fig|1005530.3.peg.2208 Escherichia coli\nMSHLAELVASAKAAIS\n"
            ">fig|12345.peg.4 Broken\nMSHLAELVASAKAAIS\n"
        )
        with pytest.raises(IndexFileError, match="Invalid representative"):
            RepresentativeIndex.load(bad_file)

    def test_invalid_kmer_size_in_header(self, tmp_path):
        bad_file = tmp_path / "bad_k.ser"
        bad_file.write_text(">Rep50,K=0 Phenylalanyl-tRNA synthetase alpha chain\n")
        with pytest.raises(IndexFileError):
            RepresentativeIndex.load(bad_file)

    def test_failed_load_keeps_default_kmer_size(self, tmp_path):
        bad_file = tmp_path / "bad_entry.ser"
        bad_file.write_text(">Rep50,K=12 Seed\n>not-a-feature\nMSHLAELVASAKAAIS\n")
        with pytest.raises(IndexFileError):
            RepresentativeIndex.load(bad_file)
        assert get_default_kmer_size() == 8

    def test_unwritable_path(self, tmp_path):
        with pytest.raises(IndexFileError):
            RepresentativeIndex(50).save(tmp_path / "no_such_dir" / "rep50.ser")
