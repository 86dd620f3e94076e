"""Generate synthetic taxonomies and observations with a known structure.

Creates small, reproducible datasets for testing and demonstrating the
sampling pipeline: a balanced-ish forest with one rank per level, and
observations attached both to leaves and (less often) to internal taxa.
"""

from pathlib import Path
from typing import Sequence, Tuple

import numpy as np
import pandas as pd

DEFAULT_RANKS = ('kingdom', 'phylum', 'class', 'genus')


def generate_taxonomy(
    ranks: Sequence[str] = DEFAULT_RANKS,
    n_roots: int = 1,
    max_branching: int = 3,
    seed: int = 42,
) -> pd.DataFrame:
    """Generate a taxon table with one rank per depth.

    Parameters:
        ranks: Rank label for each depth, broad to specific
        n_roots: Number of root taxa
        max_branching: Each internal taxon gets 1..max_branching children
        seed: Random seed

    Returns:
        DataFrame with columns taxon_id, parent_id, name, rank (parents listed
        before their children)
    """
    rng = np.random.default_rng(seed)
    rows = []
    level = []
    for i in range(n_roots):
        taxon_id = f't{len(rows) + 1}'
        rows.append({'taxon_id': taxon_id, 'parent_id': '', 'name': f'{ranks[0]}_{i}', 'rank': ranks[0]})
        level.append(taxon_id)

    for rank in ranks[1:]:
        next_level = []
        for parent in level:
            for j in range(int(rng.integers(1, max_branching + 1))):
                taxon_id = f't{len(rows) + 1}'
                rows.append({'taxon_id': taxon_id, 'parent_id': parent,
                             'name': f'{rank}_{parent}_{j}', 'rank': rank})
                next_level.append(taxon_id)
        level = next_level

    return pd.DataFrame(rows, columns=['taxon_id', 'parent_id', 'name', 'rank'])


def generate_observations(
    taxa: pd.DataFrame,
    mean_per_leaf: float = 5.0,
    internal_fraction: float = 0.2,
    seed: int = 42,
) -> pd.DataFrame:
    """Attach Poisson-distributed observation counts to the taxa of a taxon table.

    Parameters:
        taxa: Output of :func:`generate_taxonomy`
        mean_per_leaf: Mean observation count on leaf taxa
        internal_fraction: Internal taxa get this fraction of the leaf mean
        seed: Random seed

    Returns:
        DataFrame with columns obs_id, taxon_id, classification, length
    """
    rng = np.random.default_rng(seed)
    parents = set(taxa['parent_id'])
    by_id = taxa.set_index('taxon_id')

    def lineage(taxon_id):
        names = []
        while taxon_id:
            row = by_id.loc[taxon_id]
            names.append(f"{row['rank'][0]}__{row['name']}")
            taxon_id = row['parent_id']
        return ';'.join(reversed(names))

    rows = []
    for taxon_id in taxa['taxon_id']:
        mean = mean_per_leaf * (internal_fraction if taxon_id in parents else 1.0)
        for _ in range(int(rng.poisson(mean))):
            rows.append({
                'obs_id': f'seq{len(rows) + 1:05d}',
                'taxon_id': taxon_id,
                'classification': lineage(taxon_id),
                'length': int(rng.integers(200, 1500)),
            })
    return pd.DataFrame(rows, columns=['obs_id', 'taxon_id', 'classification', 'length'])


def write_test_data(outdir, seed: int = 42, **kwargs) -> Tuple[Path, Path]:
    """Write ``taxa.tsv`` and ``observations.tsv`` into ``outdir``; returns both paths."""
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    taxa = generate_taxonomy(seed=seed, **kwargs)
    obs = generate_observations(taxa, seed=seed)
    taxa_path = outdir / 'taxa.tsv'
    obs_path = outdir / 'observations.tsv'
    taxa.to_csv(taxa_path, sep='\t', index=False)
    obs.to_csv(obs_path, sep='\t', index=False)
    return taxa_path, obs_path


__all__ = [
    'generate_taxonomy',
    'generate_observations',
    'write_test_data',
]
