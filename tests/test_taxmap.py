import networkx as nx
import pandas as pd
import pytest

from taxatlas.core.taxmap import TaxonomyMap


def test_counts(taxmap):
    assert taxmap.n_obs_1() == {'A': 2, 'B': 2, 'C': 3, 'D': 2, 'E': 1}
    assert taxmap.n_obs() == {'A': 10, 'B': 7, 'C': 3, 'D': 2, 'E': 1}
    assert taxmap.n_assigned() == 10


def test_obs_lookup(taxmap):
    assert taxmap.obs_of('A') == ['o3', 'o4']
    assert taxmap.obs('B') == {'B': ['o1', 'o2', 'o5', 'o8', 'o9', 'o6', 'o10']}
    assert taxmap.obs('B', recursive=False) == {'B': ['o1', 'o2']}
    with pytest.raises(KeyError):
        taxmap.obs_of('Z')


def test_subtaxa_and_supertaxa_counts(taxmap):
    assert taxmap.n_subtaxa() == {'A': 4, 'B': 2, 'C': 0, 'D': 0, 'E': 0}
    assert taxmap.n_supertaxa() == {'A': 0, 'B': 1, 'C': 2, 'D': 2, 'E': 1}
    assert taxmap.roots() == ['A']
    assert taxmap.leaves() == ['C', 'D', 'E']


def test_unknown_observation_taxon_rejected(tree):
    obs = pd.DataFrame({'taxon_id': ['A', 'Q']}, index=['x', 'y'])
    with pytest.raises(ValueError, match='not in the taxonomy'):
        TaxonomyMap(tree, obs)


def test_duplicate_observation_ids_rejected(tree):
    obs = pd.DataFrame({'taxon_id': ['A', 'B']}, index=['x', 'x'])
    with pytest.raises(ValueError, match='Duplicate observation ids'):
        TaxonomyMap(tree, obs)


def test_empty_map(tree):
    empty = TaxonomyMap(tree)
    assert empty.n_assigned() == 0
    assert set(empty.n_obs().values()) == {0}


def test_with_observations_keeps_tree_and_records(taxmap):
    sub = taxmap.with_observations(['o1', 'o7', 'o9'])
    assert sub.tree is taxmap.tree
    assert sub.obs_data is taxmap.obs_data
    assert sub.n_obs_1() == {'A': 0, 'B': 1, 'C': 1, 'D': 0, 'E': 1}
    assert len(sub.tree) == 5
    # source untouched
    assert taxmap.n_assigned() == 10


def test_to_dataframes(taxmap):
    sub = taxmap.with_observations(['o3', 'o5'])
    taxa_df, obs_df = sub.to_dataframes()
    assert list(taxa_df.columns) == ['taxon_id', 'parent_id', 'name', 'rank', 'depth', 'n_obs', 'n_obs_1']
    assert taxa_df.set_index('taxon_id')['n_obs'].to_dict() == {'A': 2, 'B': 1, 'C': 1, 'D': 0, 'E': 0}
    assert list(obs_df.index) == ['o3', 'o5']
    assert list(obs_df['obs_attr']) == ['c', 'e']


def test_to_networkx(taxmap):
    graph = taxmap.to_networkx()
    assert isinstance(graph, nx.DiGraph)
    assert graph.number_of_nodes() == 5
    assert set(graph.edges) == {('A', 'B'), ('A', 'E'), ('B', 'C'), ('B', 'D')}
    assert graph.nodes['B']['n_obs'] == 7
    assert nx.is_tree(graph)


def test_explicit_assignment_is_checked(tree):
    obs = pd.DataFrame({'taxon_id': ['A', 'B']}, index=['x', 'y'])
    sub = TaxonomyMap(tree, obs, {'B': ['y']})
    assert sub.obs_of('B') == ['y']
    assert sub.n_assigned() == 1
    with pytest.raises(ValueError, match='have no record'):
        TaxonomyMap(tree, obs, {'A': ['x', 'ghost']})
    with pytest.raises(ValueError, match='not in the taxonomy'):
        TaxonomyMap(tree, obs, {'Q': ['x']})
    with pytest.raises(ValueError, match='more than once'):
        TaxonomyMap(tree, obs, {'A': ['x'], 'B': ['x']})
