"""Build a TaxonomyMap from classification strings embedded in observation data.

A classification such as ``k__Bacteria;p__Firmicutes;c__Bacilli`` is split into
per-taxon pieces. An optional regex with named groups ``name`` (required) and
``rank`` (optional) pulls the parts out of each piece. Observations sharing a
lineage prefix share the corresponding taxa.
"""

import re
from typing import Iterable, List, Optional, Tuple

import pandas as pd
from rich.console import Console

from taxatlas.core.taxmap import TaxonomyMap
from taxatlas.core.tree import Taxon, build_tree

console = Console()

Lineage = List[Tuple[str, Optional[str]]]


def parse_classifications(classes: Iterable[str], sep: Optional[str] = ';',
                          regex: Optional[str] = None, reverse: bool = False) -> List[Lineage]:
    """Split classification strings into ``[(name, rank), ...]`` lists, broad to specific.

    Parameters:
        classes: one classification string per observation
        sep: regex separating taxa within a classification. If None, ``regex``
            is matched repeatedly over the whole string instead.
        regex: pattern with a ``name`` group and optionally a ``rank`` group.
            Without it, each stripped piece is a name with no rank.
        reverse: input lists taxa specific to broad

    Returns:
        list of lineages, in input order

    Raises:
        ValueError: if every classification is empty, or ``regex`` lacks a name group
    """
    classes = ['' if c is None else str(c) for c in classes]
    if classes and all(c.strip() == '' for c in classes):
        raise ValueError('All classifications are empty strings. '
                         'Check that the separator/regex matches the classification format.')
    pattern = re.compile(regex) if regex is not None else None
    if pattern is not None and 'name' not in pattern.groupindex:
        raise ValueError(f"Classification regex needs a 'name' group: {regex!r}")
    if pattern is None and sep is None:
        raise ValueError('Either sep or regex must be given')

    lineages = []
    for text in classes:
        if sep is None:
            matches = list(pattern.finditer(text))
        else:
            pieces = [p.strip() for p in re.split(sep, text) if p.strip()]
            if pattern is None:
                lineages.append(_maybe_reverse([(p, None) for p in pieces], reverse))
                continue
            matches = [m for m in (pattern.fullmatch(p) for p in pieces) if m is not None]
        lineage = []
        for m in matches:
            name = (m.group('name') or '').strip()
            if not name:
                continue
            rank = m.groupdict().get('rank')
            lineage.append((name, rank.strip() if rank else None))
        lineages.append(_maybe_reverse(lineage, reverse))
    return lineages


def _maybe_reverse(lineage, reverse):
    return lineage[::-1] if reverse else lineage


def taxmap_from_lineages(obs_df: pd.DataFrame, class_col: str = 'classification',
                         sep: Optional[str] = ';', regex: Optional[str] = None,
                         reverse: bool = False) -> TaxonomyMap:
    """Build a TaxonomyMap whose tree is the union of the observations' lineages.

    Taxon ids are '1', '2', ... in order of first appearance. Each observation
    is attached to the last (most specific) taxon of its lineage; observations
    with an empty lineage are left out of the returned map's records.
    """
    if class_col not in obs_df.columns:
        raise ValueError(f'Observation table has no {class_col!r} column; found {list(obs_df.columns)}')
    lineages = parse_classifications(obs_df[class_col], sep=sep, regex=regex, reverse=reverse)

    taxa = {}
    by_path = {}
    obs_taxa = []
    for lineage in lineages:
        parent_id = None
        path = ()
        for name, rank in lineage:
            path = path + ((name, rank),)
            if path not in by_path:
                taxon_id = str(len(by_path) + 1)
                by_path[path] = taxon_id
                taxa[taxon_id] = Taxon(taxon_id, name=name, rank=rank, parent_id=parent_id)
            parent_id = by_path[path]
        obs_taxa.append(parent_id)

    tree = build_tree(taxa.values())

    obs_df = obs_df.copy()
    obs_df['taxon_id'] = obs_taxa
    if 'obs_id' not in obs_df.columns:
        obs_df.insert(0, 'obs_id', [f'obs{i}' for i in range(1, len(obs_df) + 1)])
    obs_df = obs_df.set_index('obs_id')
    unclassified = obs_df['taxon_id'].isna()
    if unclassified.any():
        console.print(f'  [yellow]⚠[/yellow] {int(unclassified.sum())} observations have no parsable classification')
        obs_df = obs_df[~unclassified]
    console.print(f'  Parsed {len(lineages)} classifications into {len(tree)} taxa')
    return TaxonomyMap(tree, obs_df)


__all__ = [
    'parse_classifications',
    'taxmap_from_lineages',
]
