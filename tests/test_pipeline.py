import pandas as pd
import pytest

from taxatlas.cli import main
from taxatlas.config_utils import parse_quota_args, validate_config
from taxatlas.main import SamplingConfig, run_pipeline
from taxatlas.synthetic import generate_observations, generate_taxonomy, write_test_data


@pytest.fixture
def data_dir(tmp_path):
    taxa_path, obs_path = write_test_data(tmp_path / "data", seed=3, max_branching=3)
    return taxa_path, obs_path


def test_generate_taxonomy_levels():
    taxa = generate_taxonomy(ranks=("kingdom", "phylum", "genus"), n_roots=2, max_branching=2, seed=1)
    assert list(taxa.columns) == ["taxon_id", "parent_id", "name", "rank"]
    roots = taxa[taxa["parent_id"] == ""]
    assert len(roots) == 2
    assert set(roots["rank"]) == {"kingdom"}
    # parents are always listed before their children
    seen = set()
    for taxon_id, parent_id in zip(taxa["taxon_id"], taxa["parent_id"]):
        assert parent_id == "" or parent_id in seen
        seen.add(taxon_id)


def test_generate_observations_is_reproducible():
    taxa = generate_taxonomy(seed=5)
    a = generate_observations(taxa, seed=5)
    b = generate_observations(taxa, seed=5)
    pd.testing.assert_frame_equal(a, b)
    assert set(a["taxon_id"]) <= set(taxa["taxon_id"])
    assert a["classification"].str.startswith("k__").all()


def test_parse_quota_args():
    assert parse_quota_args(["0=10", "genus=3", " 2 = 1"]) == {0: 10, "genus": 3, 2: 1}
    assert parse_quota_args(None) == {}
    with pytest.raises(ValueError, match="LEVEL=N"):
        parse_quota_args(["genus"])
    with pytest.raises(ValueError, match="integer"):
        parse_quota_args(["genus=many"])


def test_validate_config_collects_errors(tmp_path):
    config = SamplingConfig(
        obs_file=str(tmp_path / "missing.tsv"),
        outdir=str(tmp_path / "out"),
        input_mode="bogus",
        nproc=0,
        max_counts={1: -3},
    )
    with pytest.raises(ValueError, match="4 error"):
        validate_config(config)


def test_run_pipeline_tables(data_dir, tmp_path):
    taxa_path, obs_path = data_dir
    outdir = tmp_path / "out"
    config = SamplingConfig(
        obs_file=str(obs_path),
        taxa_file=str(taxa_path),
        outdir=str(outdir),
        max_counts={"phylum": 4},
        seed=1,
    )
    results = run_pipeline(config)

    summary = results["step_3_summary"]
    assert summary["n_obs_after"] <= summary["n_obs_before"]
    taxa_out = pd.read_csv(outdir / "taxa.tsv", sep="\t")
    obs_out = pd.read_csv(outdir / "observations.tsv", sep="\t")
    # every taxon is reported, including emptied ones
    assert len(taxa_out) == summary["n_taxa"]
    assert (taxa_out.loc[taxa_out["rank"] == "phylum", "n_obs"] <= 4).all()
    assert len(obs_out) == summary["n_obs_after"]
    assert set(obs_out["obs_id"]) <= set(pd.read_csv(obs_path, sep="\t")["obs_id"])


def test_run_pipeline_lineage_with_stop_rank(data_dir, tmp_path):
    _, obs_path = data_dir
    config = SamplingConfig(
        obs_file=str(obs_path),
        outdir=str(tmp_path / "out"),
        input_mode="lineage",
        class_regex=r"(?P<rank>[a-z])__(?P<name>.+)",
        stop_ranks=["c"],
        verbose=False,
    )
    results = run_pipeline(config)
    sampled = results["step_2_sampling"]["taxmap"]
    tree = sampled.tree
    assert set(tree.ranks()) == {"k", "p", "c", "g"}
    counts = sampled.n_obs_1()
    assert all(counts[t] == 0 for t in tree if tree.rank(t) == "g")


def test_cli_runs(data_dir, tmp_path):
    taxa_path, obs_path = data_dir
    outdir = tmp_path / "cli_out"
    status = main([
        str(obs_path), str(outdir),
        "--taxa", str(taxa_path),
        "--max-children", "class=1",
        "--min-counts", "0=1",
        "--seed", "7",
        "--nproc", "2",
        "--quiet",
    ])
    assert status == 0
    assert (outdir / "taxa.tsv").exists()
    assert (outdir / "observations.tsv").exists()


def test_cli_reports_failure(tmp_path):
    status = main([str(tmp_path / "nope.tsv"), str(tmp_path / "out"), "--taxa", str(tmp_path / "nope2.tsv")])
    assert status == 1


def test_cli_rejects_bad_quota(data_dir, tmp_path):
    taxa_path, obs_path = data_dir
    status = main([str(obs_path), str(tmp_path / "out"), "--taxa", str(taxa_path), "--max-counts", "genus"])
    assert status == 1
