"""Ancestor (supertaxa) and descendant (subtaxa) queries over a taxonomy tree.

Supertaxa are ordered nearest ancestor first, root last. Subtaxa are ordered
depth-first pre-order, visiting children in their stored order.
"""

from typing import Dict, Iterable, List, Optional, Union

# Marker for "no ancestors" when supertaxa(..., na=True)
NA = None

Recursion = Union[bool, int]


def _as_tree(obj):
    """Accept a TaxonomyTree or anything carrying one in ``.tree`` (a TaxonomyMap)."""
    return getattr(obj, 'tree', obj)


def _max_levels(recursive: Recursion) -> Optional[int]:
    """Translate ``recursive`` into a level limit (None means unlimited)."""
    if isinstance(recursive, bool):
        return None if recursive else 1
    if isinstance(recursive, int):
        if recursive < 0:
            raise ValueError(f'recursive must be a bool or a non-negative int, got {recursive}')
        return recursive
    raise TypeError(f'recursive must be a bool or an int, got {type(recursive).__name__}')


def _query_ids(tree, taxa) -> List[str]:
    if taxa is None:
        return tree.ids
    if isinstance(taxa, str):
        taxa = [taxa]
    query = list(taxa)
    for taxon_id in query:
        if taxon_id not in tree:
            raise KeyError(f'Unknown taxon id: {taxon_id!r}')
    return query


def _ancestors(tree, taxon_id, max_levels):
    result = []
    current = tree.parent(taxon_id)
    while current is not None and (max_levels is None or len(result) < max_levels):
        result.append(current)
        current = tree.parent(current)
    return result


def _descendants(tree, taxon_id, max_levels):
    if max_levels == 0:
        return []
    result = []
    # Stack of (taxon, level); children pushed reversed so the first child pops first
    stack = [(child, 1) for child in reversed(tree.children(taxon_id))]
    while stack:
        current, level = stack.pop()
        result.append(current)
        if max_levels is None or level < max_levels:
            stack.extend((child, level + 1) for child in reversed(tree.children(current)))
    return result


def _shape(tree, per_taxon, simplify, return_index):
    if return_index:
        per_taxon = {
            taxon_id: [NA if t is NA else tree.index(t) for t in found]
            for taxon_id, found in per_taxon.items()
        }
    if not simplify:
        return per_taxon
    flat = []
    seen = set()
    for found in per_taxon.values():
        for item in found:
            if item not in seen:
                seen.add(item)
                flat.append(item)
    return flat


def supertaxa(tree, taxa: Optional[Iterable[str]] = None, recursive: Recursion = True,
              simplify: bool = False, include_input: bool = False,
              return_index: bool = False, na: bool = False) -> Union[Dict[str, list], list]:
    """Return the ancestors of one or more taxa.

    Parameters:
        tree: TaxonomyTree or TaxonomyMap
        taxa: taxon id, iterable of ids, or None for every taxon in table order
        recursive: True for the full chain to the root, False for the parent
            only, or an int giving the number of levels to climb
        simplify: flatten every result into one de-duplicated list
        include_input: put the queried taxon first in its own result
        return_index: report positions in the taxon table instead of ids
        na: give a root ``[NA]`` instead of an empty list

    Returns:
        dict of {queried id: [ancestors, nearest first]} in query order, or a
        flat list when ``simplify`` is set.

    Raises:
        KeyError: if any queried id is not in the tree
    """
    tree = _as_tree(tree)
    max_levels = _max_levels(recursive)
    per_taxon = {}
    for taxon_id in _query_ids(tree, taxa):
        found = _ancestors(tree, taxon_id, max_levels)
        if include_input:
            found.insert(0, taxon_id)
        if na and not found:
            found = [NA]
        per_taxon[taxon_id] = found
    return _shape(tree, per_taxon, simplify, return_index)


def subtaxa(tree, taxa: Optional[Iterable[str]] = None, recursive: Recursion = True,
            simplify: bool = False, include_input: bool = False,
            return_index: bool = False) -> Union[Dict[str, list], list]:
    """Return the descendants of one or more taxa.

    Same options as :func:`supertaxa` (without ``na``). Recursive results are
    depth-first pre-order: each child is followed by its whole subtree before
    the next sibling. A leaf always yields an empty list.
    """
    tree = _as_tree(tree)
    max_levels = _max_levels(recursive)
    per_taxon = {}
    for taxon_id in _query_ids(tree, taxa):
        found = _descendants(tree, taxon_id, max_levels)
        if include_input:
            found.insert(0, taxon_id)
        per_taxon[taxon_id] = found
    return _shape(tree, per_taxon, simplify, return_index)


__all__ = [
    'NA',
    'supertaxa',
    'subtaxa',
]
