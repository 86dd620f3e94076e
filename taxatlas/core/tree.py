"""Taxonomy tree: taxon nodes, parent links and ordered child lists.

A tree may hold several roots (a forest). Child order follows the order in
which taxa were supplied and is preserved, since traversal order depends on it.
Depth is fixed at 0 for roots and grows by one per level.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional


@dataclass
class Taxon:
    """A single node of the classification."""

    taxon_id: str
    name: str = ''
    rank: Optional[str] = None
    parent_id: Optional[str] = None
    children: List[str] = field(default_factory=list)


def _is_missing(value):
    """True for None, NaN and blank strings."""
    if value is None:
        return True
    if isinstance(value, float) and value != value:
        return True
    return isinstance(value, str) and not value.strip()


def _is_root_parent(value):
    """Missing values plus the NA-like strings tables use for a root's parent."""
    return _is_missing(value) or (isinstance(value, str) and value.strip() in {'NA', 'NaN', 'nan', 'None'})


def _as_taxon(record):
    """Coerce a record (Taxon, mapping or (id, parent[, name[, rank]]) tuple) to a fresh Taxon."""
    if isinstance(record, Taxon):
        return Taxon(record.taxon_id, record.name, record.rank, record.parent_id)
    if isinstance(record, Mapping):
        if 'taxon_id' not in record:
            raise ValueError(f'Taxon record is missing a taxon_id: {dict(record)}')
        taxon_id = record['taxon_id']
        parent_id = record.get('parent_id')
        name = record.get('name')
        rank = record.get('rank')
    else:
        values = list(record)
        if not 1 <= len(values) <= 4:
            raise ValueError(f'Cannot interpret taxon record: {record!r}')
        values += [None] * (4 - len(values))
        taxon_id, parent_id, name, rank = values
    if _is_missing(taxon_id):
        raise ValueError(f'Taxon record has an empty taxon_id: {record!r}')
    taxon_id = str(taxon_id)
    return Taxon(
        taxon_id=taxon_id,
        name=taxon_id if _is_missing(name) else str(name),
        rank=None if _is_missing(rank) else str(rank),
        parent_id=None if _is_root_parent(parent_id) else str(parent_id),
    )


class TaxonomyTree:
    """Read-only hierarchy built by :func:`build_tree`.

    Taxa keep the order they were supplied in ("the taxon table"); positions
    in that table are what ``return_index`` traversal results refer to.
    """

    def __init__(self, taxa: Dict[str, Taxon], depths: Dict[str, int]):
        self._taxa = taxa
        self._depths = depths
        self._index = {taxon_id: i for i, taxon_id in enumerate(taxa)}
        self._roots = [t.taxon_id for t in taxa.values() if t.parent_id is None]

    def __len__(self) -> int:
        return len(self._taxa)

    def __contains__(self, taxon_id) -> bool:
        return taxon_id in self._taxa

    def __iter__(self) -> Iterator[str]:
        return iter(self._taxa)

    def __repr__(self):
        return f'TaxonomyTree(n_taxa={len(self)}, n_roots={len(self._roots)})'

    @property
    def ids(self) -> List[str]:
        """All taxon ids in table order."""
        return list(self._taxa)

    def taxon(self, taxon_id) -> Taxon:
        try:
            return self._taxa[taxon_id]
        except KeyError:
            raise KeyError(f'Unknown taxon id: {taxon_id!r}') from None

    def parent(self, taxon_id) -> Optional[str]:
        return self.taxon(taxon_id).parent_id

    def children(self, taxon_id) -> List[str]:
        return list(self.taxon(taxon_id).children)

    def roots(self) -> List[str]:
        return list(self._roots)

    def leaves(self) -> List[str]:
        return [t.taxon_id for t in self._taxa.values() if not t.children]

    def depth(self, taxon_id) -> int:
        self.taxon(taxon_id)
        return self._depths[taxon_id]

    def max_depth(self) -> int:
        return max(self._depths.values(), default=-1)

    def rank(self, taxon_id) -> Optional[str]:
        return self.taxon(taxon_id).rank

    def name(self, taxon_id) -> str:
        return self.taxon(taxon_id).name

    def ranks(self) -> List[str]:
        """Distinct rank labels present in the tree, in table order."""
        seen = {}
        for t in self._taxa.values():
            if t.rank is not None:
                seen.setdefault(t.rank, None)
        return list(seen)

    def index(self, taxon_id) -> int:
        """Position of a taxon in the taxon table."""
        self.taxon(taxon_id)
        return self._index[taxon_id]

    def to_records(self) -> List[Dict[str, Any]]:
        return [
            {'taxon_id': t.taxon_id, 'parent_id': t.parent_id, 'name': t.name, 'rank': t.rank}
            for t in self._taxa.values()
        ]


def _compute_depths(taxa):
    """Walk each taxon up to its root, failing on cycles. Returns {taxon_id: depth}."""
    depths = {}
    for taxon_id in taxa:
        path = []
        on_path = set()
        current = taxon_id
        while current is not None and current not in depths:
            if current in on_path:
                cycle = path[path.index(current):] + [current]
                raise ValueError(f"Cycle in taxonomy: {' -> '.join(cycle)}")
            path.append(current)
            on_path.add(current)
            current = taxa[current].parent_id
        base = -1 if current is None else depths[current]
        for offset, node in enumerate(reversed(path), start=1):
            depths[node] = base + offset
    return depths


def build_tree(taxon_records: Iterable[Any]) -> TaxonomyTree:
    """Build and validate a :class:`TaxonomyTree`.

    Parameters:
        taxon_records: iterable of :class:`Taxon`, mappings with keys
            ``taxon_id``, ``parent_id``, ``name``, ``rank``, or tuples
            ``(taxon_id, parent_id[, name[, rank]])``. A missing/empty parent
            marks a root. Records may come in any order.

    Returns:
        TaxonomyTree whose child lists follow record order.

    Raises:
        ValueError: on duplicate ids, parent ids that do not resolve, or cycles.
            Nothing is returned on failure.
    """
    taxa: Dict[str, Taxon] = {}
    duplicates = []
    for record in taxon_records:
        taxon = _as_taxon(record)
        if taxon.taxon_id in taxa:
            duplicates.append(taxon.taxon_id)
            continue
        taxa[taxon.taxon_id] = taxon
    if duplicates:
        raise ValueError(f'Duplicate taxon ids: {sorted(set(duplicates))}')

    dangling = [(t.taxon_id, t.parent_id) for t in taxa.values()
                if t.parent_id is not None and t.parent_id not in taxa]
    if dangling:
        shown = ', '.join(f'{c} -> {p}' for c, p in dangling[:10])
        raise ValueError(f'{len(dangling)} taxa reference unknown parents: {shown}')

    depths = _compute_depths(taxa)

    for taxon in taxa.values():
        if taxon.parent_id is not None:
            taxa[taxon.parent_id].children.append(taxon.taxon_id)

    return TaxonomyTree(taxa, depths)


__all__ = [
    'Taxon',
    'TaxonomyTree',
    'build_tree',
]
