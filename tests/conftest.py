import pandas as pd
import pytest

from taxatlas.core.taxmap import TaxonomyMap
from taxatlas.core.tree import build_tree


@pytest.fixture
def tree():
    # A -> (B -> (C, D), E)
    return build_tree([
        {'taxon_id': 'A', 'parent_id': None, 'name': 'a', 'rank': 'kingdom'},
        {'taxon_id': 'B', 'parent_id': 'A', 'name': 'b', 'rank': 'phylum'},
        {'taxon_id': 'C', 'parent_id': 'B', 'name': 'c', 'rank': 'genus'},
        {'taxon_id': 'D', 'parent_id': 'B', 'name': 'd', 'rank': 'genus'},
        {'taxon_id': 'E', 'parent_id': 'A', 'name': 'e', 'rank': 'phylum'},
    ])


@pytest.fixture
def taxmap(tree):
    # 10 observations: A:2, B:2, C:3, D:2, E:1
    obs_taxa = ['B', 'B', 'A', 'A', 'C', 'D', 'E', 'C', 'C', 'D']
    obs_data = pd.DataFrame(
        {'taxon_id': obs_taxa, 'obs_attr': list('abcdefghij')},
        index=pd.Index([f'o{i}' for i in range(1, 11)], name='obs_id'),
    )
    return TaxonomyMap(tree, obs_data)
