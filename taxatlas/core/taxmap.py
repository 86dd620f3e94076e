"""TaxonomyMap: a taxonomy tree plus the observations classified against it.

Observation records live in a pandas DataFrame indexed by observation id with
a ``taxon_id`` column. The taxon -> observation assignment is kept separately
so a sampled map can share the tree and the records with its source while
carrying a different assignment.
"""

from typing import Dict, Iterable, List, Optional

import networkx as nx
import pandas as pd

from taxatlas.core.traversal import subtaxa, supertaxa
from taxatlas.core.tree import TaxonomyTree


def _assignment_from_records(tree, obs_data):
    unknown = sorted(set(obs_data['taxon_id']) - set(tree.ids))
    if unknown:
        shown = unknown[:10] + (['...'] if len(unknown) > 10 else [])
        raise ValueError(f'{len(unknown)} observation taxon ids are not in the taxonomy: {shown}')
    assignment = {taxon_id: [] for taxon_id in tree}
    for obs_id, taxon_id in zip(obs_data.index, obs_data['taxon_id']):
        assignment[taxon_id].append(obs_id)
    return assignment


def _checked_assignment(tree, obs_data, obs_by_taxon):
    unknown_taxa = [t for t in obs_by_taxon if t not in tree]
    if unknown_taxa:
        raise ValueError(f'{len(unknown_taxa)} assigned taxon ids are not in the taxonomy: {unknown_taxa[:10]}')
    assignment = {taxon_id: list(obs_by_taxon.get(taxon_id, [])) for taxon_id in tree}
    assigned = [o for obs in assignment.values() for o in obs]
    missing = [o for o in assigned if o not in obs_data.index]
    if missing:
        raise ValueError(f'{len(missing)} assigned observation ids have no record: {missing[:10]}')
    if len(set(assigned)) != len(assigned):
        raise ValueError('An observation id is assigned more than once')
    return assignment


class TaxonomyMap:
    """Tree + observation records + taxon -> observation-id assignment."""

    def __init__(self, tree: TaxonomyTree, obs_data: Optional[pd.DataFrame] = None,
                 obs_by_taxon: Optional[Dict[str, List]] = None):
        if obs_data is None:
            obs_data = pd.DataFrame({'taxon_id': pd.Series(dtype=str)})
        if 'taxon_id' not in obs_data.columns:
            raise ValueError("Observation data needs a 'taxon_id' column")
        if not obs_data.index.is_unique:
            dups = obs_data.index[obs_data.index.duplicated()].unique().tolist()
            raise ValueError(f'Duplicate observation ids: {dups[:10]}')
        self.tree = tree
        self.obs_data = obs_data
        if obs_by_taxon is None:
            obs_by_taxon = _assignment_from_records(tree, obs_data)
        else:
            obs_by_taxon = _checked_assignment(tree, obs_data, obs_by_taxon)
        self._obs_by_taxon = obs_by_taxon

    def __repr__(self):
        return (f'TaxonomyMap(n_taxa={len(self.tree)}, '
                f'n_assigned={self.n_assigned()}, n_records={len(self.obs_data)})')

    # --- tree passthroughs ---

    def roots(self) -> List[str]:
        return self.tree.roots()

    def leaves(self) -> List[str]:
        return self.tree.leaves()

    def supertaxa(self, taxa=None, **kwargs):
        return supertaxa(self.tree, taxa, **kwargs)

    def subtaxa(self, taxa=None, **kwargs):
        return subtaxa(self.tree, taxa, **kwargs)

    def n_supertaxa(self) -> Dict[str, int]:
        return {t: len(found) for t, found in supertaxa(self.tree).items()}

    def n_subtaxa(self) -> Dict[str, int]:
        return {t: len(found) for t, found in subtaxa(self.tree).items()}

    # --- observations ---

    def obs_of(self, taxon_id) -> List:
        """Observation ids attached directly to a taxon."""
        self.tree.taxon(taxon_id)
        return list(self._obs_by_taxon[taxon_id])

    def obs(self, taxa: Optional[Iterable[str]] = None, recursive: bool = True) -> Dict[str, List]:
        """Observation ids per taxon, including those of all subtaxa when ``recursive``."""
        groups = subtaxa(self.tree, taxa, recursive=True if recursive else 0, include_input=True)
        return {t: [o for member in members for o in self.obs_of(member)]
                for t, members in groups.items()}

    def n_obs(self) -> Dict[str, int]:
        """Observation count per taxon, subtaxa included."""
        counts = self.n_obs_1()
        # children may precede parents in the table, so accumulate deepest first
        for taxon_id in sorted(self.tree.ids, key=self.tree.depth, reverse=True):
            parent = self.tree.parent(taxon_id)
            if parent is not None:
                counts[parent] += counts[taxon_id]
        return {taxon_id: counts[taxon_id] for taxon_id in self.tree.ids}

    def n_obs_1(self) -> Dict[str, int]:
        """Observation count per taxon, direct attachments only."""
        return {taxon_id: len(self._obs_by_taxon[taxon_id]) for taxon_id in self.tree.ids}

    def assigned_obs(self) -> List:
        """All assigned observation ids, in taxon table order."""
        return [o for taxon_id in self.tree.ids for o in self._obs_by_taxon[taxon_id]]

    def n_assigned(self) -> int:
        return sum(len(v) for v in self._obs_by_taxon.values())

    def with_observations(self, keep: Iterable) -> 'TaxonomyMap':
        """New map with the same tree and records, keeping only ``keep`` assigned.

        Every kept observation stays on its current taxon; taxa left without
        observations are kept.
        """
        keep = set(keep)
        assignment = {t: [o for o in obs if o in keep] for t, obs in self._obs_by_taxon.items()}
        return TaxonomyMap(self.tree, self.obs_data, assignment)

    # --- export ---

    def to_dataframes(self):
        """Return ``(taxa_df, obs_df)``: per-taxon counts and the assigned observation rows."""
        n_obs = self.n_obs()
        n_obs_1 = self.n_obs_1()
        taxa_df = pd.DataFrame(self.tree.to_records(),
                               columns=['taxon_id', 'parent_id', 'name', 'rank'])
        taxa_df['depth'] = [self.tree.depth(t) for t in taxa_df['taxon_id']]
        taxa_df['n_obs'] = [n_obs[t] for t in taxa_df['taxon_id']]
        taxa_df['n_obs_1'] = [n_obs_1[t] for t in taxa_df['taxon_id']]
        obs_df = self.obs_data.loc[self.assigned_obs()]
        return taxa_df, obs_df

    def to_networkx(self) -> nx.DiGraph:
        """Tree as a parent -> child DiGraph with name, rank and n_obs node attributes."""
        graph = nx.DiGraph()
        n_obs = self.n_obs()
        for taxon_id in self.tree:
            taxon = self.tree.taxon(taxon_id)
            graph.add_node(taxon_id, name=taxon.name, rank=taxon.rank, n_obs=n_obs[taxon_id])
        for taxon_id in self.tree:
            for child in self.tree.children(taxon_id):
                graph.add_edge(taxon_id, child)
        return graph


__all__ = ['TaxonomyMap']
