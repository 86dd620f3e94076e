import pytest

from taxatlas.core.traversal import NA, subtaxa, supertaxa
from taxatlas.core.tree import build_tree

ALL = ['A', 'B', 'C', 'D', 'E']


def test_immediate_supertaxa(tree):
    result = supertaxa(tree, recursive=False)
    assert isinstance(result, dict)
    assert list(result) == ALL
    assert result['A'] == []
    assert result['B'] == ['A']
    assert result['C'] == ['B']


def test_all_supertaxa_nearest_first(tree):
    result = supertaxa(tree, recursive=True)
    assert list(result) == ALL
    assert result['A'] == []
    assert result['B'] == ['A']
    assert result['D'] == ['B', 'A']


def test_supertaxa_depth_limit(tree):
    assert supertaxa(tree, 'D', recursive=1) == {'D': ['B']}
    assert supertaxa(tree, 'D', recursive=2) == {'D': ['B', 'A']}
    assert supertaxa(tree, 'D', recursive=0) == {'D': []}


def test_include_input_puts_query_first(tree):
    for recursive in (True, False):
        result = supertaxa(tree, recursive=recursive, include_input=True)
        assert all(found[0] == taxon_id for taxon_id, found in result.items())
        result = subtaxa(tree, recursive=recursive, include_input=True)
        assert all(found[0] == taxon_id for taxon_id, found in result.items())


def test_root_supertaxa_na_marker(tree):
    assert supertaxa(tree, 'A', na=True) == {'A': [NA]}
    assert supertaxa(tree, 'A', na=False) == {'A': []}
    assert supertaxa(tree, 'B', na=True) == {'B': ['A']}
    assert supertaxa(tree, 'A', na=True, return_index=True) == {'A': [NA]}


def test_simplify_flattens_and_dedupes(tree):
    result = supertaxa(tree, recursive=True, simplify=True)
    assert result == ['A', 'B']
    result = supertaxa(tree, recursive=True, simplify=True, include_input=True)
    assert set(result) <= set(ALL)
    assert result == ['A', 'B', 'C', 'D', 'E']


def test_immediate_subtaxa(tree):
    result = subtaxa(tree, recursive=False)
    assert list(result) == ALL
    assert result['E'] == []
    assert result['B'] == ['C', 'D']
    assert result['A'] == ['B', 'E']


def test_all_subtaxa_preorder(tree):
    result = subtaxa(tree, recursive=True)
    assert result['A'] == ['B', 'C', 'D', 'E']
    assert result['E'] == []
    assert subtaxa(tree, 'A', recursive=1) == {'A': ['B', 'E']}


def test_subtaxa_preorder_deeper_tree():
    tree = build_tree([
        ('r', None), ('x', 'r'), ('x1', 'x'), ('x1a', 'x1'), ('x2', 'x'), ('y', 'r'), ('y1', 'y'),
    ])
    assert subtaxa(tree, 'r')['r'] == ['x', 'x1', 'x1a', 'x2', 'y', 'y1']
    assert subtaxa(tree, 'r', recursive=2)['r'] == ['x', 'x1', 'x2', 'y', 'y1']


def test_subtaxa_simplify(tree):
    assert subtaxa(tree, ['B', 'A'], simplify=True) == ['C', 'D', 'B', 'E']
    assert subtaxa(tree, 'E', simplify=True) == []


def test_query_order_is_kept(tree):
    assert list(subtaxa(tree, ['E', 'A', 'C'])) == ['E', 'A', 'C']


def test_return_index(tree):
    assert subtaxa(tree, 'A', return_index=True) == {'A': [1, 2, 3, 4]}
    assert supertaxa(tree, 'C', return_index=True, include_input=True) == {'C': [2, 1, 0]}
    assert subtaxa(tree, ['B'], return_index=True, simplify=True) == [2, 3]


def test_unknown_taxon_raises(tree):
    with pytest.raises(KeyError, match='Z'):
        subtaxa(tree, ['A', 'Z'])
    with pytest.raises(KeyError, match='Z'):
        supertaxa(tree, 'Z')


def test_invalid_recursive(tree):
    with pytest.raises(ValueError):
        subtaxa(tree, 'A', recursive=-1)
    with pytest.raises(TypeError):
        subtaxa(tree, 'A', recursive='yes')


def test_subtaxa_non_recursive_equals_children(tree):
    for taxon_id in tree:
        assert subtaxa(tree, taxon_id, recursive=False)[taxon_id] == tree.children(taxon_id)


def test_descendants_have_query_as_ancestor(tree):
    for taxon_id, found in subtaxa(tree).items():
        for descendant in found:
            assert taxon_id in supertaxa(tree, descendant)[descendant]


def test_roots_never_have_supertaxa():
    tree = build_tree([('r1', None), ('r2', None), ('a', 'r1')])
    for root in tree.roots():
        assert supertaxa(tree, root)[root] == []


def test_accepts_taxmap(taxmap):
    assert subtaxa(taxmap, 'B') == {'B': ['C', 'D']}
    assert taxmap.supertaxa('C') == {'C': ['B', 'A']}
