"""Recursive, level-aware resampling of the observations in a TaxonomyMap.

The sampler walks each root depth-first. At every taxon it:

1. stops descending if any stop condition holds, keeping only the taxon's own
   (filtered, count-bounded) observations;
2. otherwise takes the immediate subtaxa, runs them through the subtaxa
   filters and applies the level's max/min children bounds;
3. samples every remaining child, pools the results with the taxon's own
   observations, runs the pool through the observation filters and applies
   the level's max/min observation bounds.

Levels: an ``int`` quota key is a depth (roots are depth 0), a ``str`` key is a
rank label. When a taxon's rank is present as a key it takes precedence over
its depth. Observations that survive stay on the taxon they were attached to.
"""

from collections.abc import Set
from dataclasses import dataclass, field
from multiprocessing.pool import ThreadPool
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Union

import numpy as np
from rich.console import Console

from taxatlas.core.taxmap import TaxonomyMap
from taxatlas.core.traversal import subtaxa

console = Console()

Level = Union[int, str]
Quota = Mapping[Level, int]

QUOTA_NAMES = ('max_counts', 'min_counts', 'max_children', 'min_children')


@dataclass
class SamplingContext:
    """Passed as the last argument to every filter and stop condition."""

    taxmap: TaxonomyMap
    params: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key):
        return self.params[key]

    def get(self, key, default=None):
        return self.params.get(key, default)


class SampleFilter(Protocol):
    """Hooks consulted by :class:`TaxonomicSampler` at every taxon.

    ``filter_subtaxa`` and ``filter_obs`` may return None to mean "nothing":
    None from ``filter_subtaxa`` drops the taxon's whole subtree including its
    own observations, while an empty list only removes the children.
    """

    def stop(self, taxon_id: str, ctx: SamplingContext) -> bool: ...

    def filter_subtaxa(self, child_ids: List[str], taxon_id: str,
                       ctx: SamplingContext) -> Optional[List[str]]: ...

    def filter_obs(self, obs_ids: List, taxon_id: str,
                   ctx: SamplingContext) -> Optional[List]: ...


def _ordered(result, before):
    """Filter result as a list. Sets keep the order of ``before``, unknown ids follow sorted."""
    if not isinstance(result, Set):
        return list(result)
    ordered = [x for x in before if x in result]
    seen = set(ordered)
    return ordered + sorted((x for x in result if x not in seen), key=str)


class CallbackFilter:
    """:class:`SampleFilter` built from plain lists of functions, applied in order."""

    def __init__(self, obs_filters: Sequence[Callable] = (),
                 subtaxa_filters: Sequence[Callable] = (),
                 stop_conditions: Sequence[Callable] = ()):
        self.obs_filters = list(obs_filters)
        self.subtaxa_filters = list(subtaxa_filters)
        self.stop_conditions = list(stop_conditions)

    def stop(self, taxon_id, ctx):
        return any(cond(taxon_id, ctx) for cond in self.stop_conditions)

    def filter_subtaxa(self, child_ids, taxon_id, ctx):
        for func in self.subtaxa_filters:
            result = func(child_ids, taxon_id, ctx)
            if result is None:
                return None
            child_ids = _ordered(result, child_ids)
        return child_ids

    def filter_obs(self, obs_ids, taxon_id, ctx):
        for func in self.obs_filters:
            result = func(obs_ids, taxon_id, ctx)
            if result is None:
                return None
            obs_ids = _ordered(result, obs_ids)
        return obs_ids


def validate_quotas(taxmap: Optional[TaxonomyMap] = None, **quotas: Optional[Quota]) -> None:
    """Check quota vectors before any sampling happens.

    Keys must be non-negative ints (depths) or strings (ranks); bounds must be
    non-negative ints; a level's min bound may not exceed its max bound.
    With a ``taxmap``, keys that match no taxon are reported as warnings.

    Raises:
        ValueError: listing every problem found
    """
    errors = []
    for name, quota in quotas.items():
        if name not in QUOTA_NAMES:
            errors.append(f'unknown quota {name!r}')
            continue
        if quota is None:
            continue
        if not isinstance(quota, Mapping):
            errors.append(f'{name} must be a mapping of level -> bound')
            continue
        for level, bound in quota.items():
            if isinstance(level, bool) or not isinstance(level, (int, str)):
                errors.append(f'{name}: level {level!r} must be a depth (int) or a rank (str)')
            elif isinstance(level, int) and level < 0:
                errors.append(f'{name}: depth {level} must be >= 0')
            if isinstance(bound, bool) or not isinstance(bound, (int, np.integer)):
                errors.append(f'{name}[{level!r}] must be an int, got {bound!r}')
            elif bound < 0:
                errors.append(f'{name}[{level!r}] must be >= 0, got {bound}')

    for kind in ('counts', 'children'):
        lower = quotas.get(f'min_{kind}')
        upper = quotas.get(f'max_{kind}')
        if not isinstance(lower, Mapping) or not isinstance(upper, Mapping):
            continue
        for level in set(lower) & set(upper):
            lo, hi = lower[level], upper[level]
            if isinstance(lo, (int, np.integer)) and isinstance(hi, (int, np.integer)) and lo > hi:
                errors.append(f'min_{kind}[{level!r}]={lo} exceeds max_{kind}[{level!r}]={hi}')

    if errors:
        raise ValueError('Invalid sampling quotas: ' + '; '.join(errors))

    if taxmap is not None:
        ranks = set(taxmap.tree.ranks())
        max_depth = taxmap.tree.max_depth()
        for name, quota in quotas.items():
            for level in (quota or {}):
                if isinstance(level, str) and level not in ranks:
                    console.print(f'[yellow]⚠[/yellow] {name}: rank {level!r} matches no taxon')
                elif isinstance(level, int) and level > max_depth:
                    console.print(f'[yellow]⚠[/yellow] {name}: depth {level} is deeper than the tree ({max_depth})')


def _draw(items, size, rng):
    """Uniform draw of ``size`` items without replacement, keeping input order."""
    picked = np.sort(rng.choice(len(items), size=size, replace=False))
    return [items[i] for i in picked]


class TaxonomicSampler:
    """Holds the quotas, filters and random source for one sampling run."""

    def __init__(self, taxmap: TaxonomyMap, max_counts=None, min_counts=None,
                 max_children=None, min_children=None,
                 filters: Sequence[SampleFilter] = (), extra_params=None):
        self.taxmap = taxmap
        self.tree = taxmap.tree
        self.max_counts = dict(max_counts or {})
        self.min_counts = dict(min_counts or {})
        self.max_children = dict(max_children or {})
        self.min_children = dict(min_children or {})
        self.filters = list(filters)
        self.ctx = SamplingContext(taxmap, dict(extra_params or {}))

    def bound(self, quota, taxon_id):
        """The quota entry that applies to a taxon: its rank first, then its depth."""
        rank = self.tree.rank(taxon_id)
        if rank is not None and rank in quota:
            return quota[rank]
        return quota.get(self.tree.depth(taxon_id))

    def _filter_obs(self, obs_ids, taxon_id):
        for f in self.filters:
            result = f.filter_obs(obs_ids, taxon_id, self.ctx)
            if result is None:
                return []
            obs_ids = _ordered(result, obs_ids)
        return obs_ids

    def _limit_obs(self, obs_ids, taxon_id, rng):
        obs_ids = self._filter_obs(obs_ids, taxon_id)
        upper = self.bound(self.max_counts, taxon_id)
        if upper is not None and len(obs_ids) > upper:
            obs_ids = _draw(obs_ids, upper, rng)
        lower = self.bound(self.min_counts, taxon_id)
        if lower is not None and len(obs_ids) < lower:
            return []
        return obs_ids

    def _usable_children(self, taxon_id, rng):
        """Filtered and bounded children, or None when the subtree is dropped."""
        children = subtaxa(self.tree, [taxon_id], recursive=False)[taxon_id]
        for f in self.filters:
            result = f.filter_subtaxa(children, taxon_id, self.ctx)
            if result is None:
                return None
            children = _ordered(result, children)
        upper = self.bound(self.max_children, taxon_id)
        if upper is not None and len(children) > upper:
            children = _draw(children, upper, rng)
        lower = self.bound(self.min_children, taxon_id)
        if lower is not None and len(children) < lower:
            return None
        return children

    def sample_taxon(self, taxon_id, rng, pool=None) -> List:
        """Observation ids retained for ``taxon_id`` and everything below it."""
        own = self.taxmap.obs_of(taxon_id)
        if any(f.stop(taxon_id, self.ctx) for f in self.filters):
            return self._limit_obs(own, taxon_id, rng)

        children = self._usable_children(taxon_id, rng)
        if children is None:
            return []

        if pool is not None and len(children) > 1:
            seeds = rng.integers(0, 2 ** 63 - 1, size=len(children))
            jobs = [(child, np.random.default_rng(int(seed))) for child, seed in zip(children, seeds)]
            results = pool.starmap(self.sample_taxon, jobs)
        else:
            results = [self.sample_taxon(child, rng) for child in children]

        candidates = list(own)
        for found in results:
            candidates.extend(found)
        return self._limit_obs(candidates, taxon_id, rng)

    def run(self, rng: np.random.Generator, n_proc: int = 1) -> TaxonomyMap:
        kept = []
        if n_proc > 1:
            with ThreadPool(n_proc) as pool:
                for root in self.tree.roots():
                    kept.extend(self.sample_taxon(root, rng, pool=pool))
        else:
            for root in self.tree.roots():
                kept.extend(self.sample_taxon(root, rng))
        return self.taxmap.with_observations(kept)


def taxonomic_sample(taxmap: TaxonomyMap,
                     max_counts: Optional[Quota] = None,
                     min_counts: Optional[Quota] = None,
                     max_children: Optional[Quota] = None,
                     min_children: Optional[Quota] = None,
                     obs_filters: Sequence[Callable] = (),
                     subtaxa_filters: Sequence[Callable] = (),
                     stop_conditions: Sequence[Callable] = (),
                     extra_params: Optional[Mapping[str, Any]] = None,
                     filters: Sequence[SampleFilter] = (),
                     seed: Optional[int] = None,
                     rng: Optional[np.random.Generator] = None,
                     n_proc: int = 1,
                     verbose: bool = False) -> TaxonomyMap:
    """Recursively resample the observations of a taxonomy map.

    Parameters:
        taxmap: the map to sample; it is not modified
        max_counts / min_counts: level -> bound on observations counted under
            a taxon (own + retained descendants). Above the max, a uniform
            random subset is kept; below the min, the taxon yields nothing.
        max_children / min_children: level -> bound on usable children. Above
            the max, a random subset of children (and their subtrees) is kept;
            below the min, the taxon's whole subtree yields nothing.
        obs_filters: ``f(obs_ids, taxon_id, ctx) -> obs_ids | None``
        subtaxa_filters: ``f(child_ids, taxon_id, ctx) -> child_ids | None``
        stop_conditions: ``f(taxon_id, ctx) -> bool``; any True stops descent
        extra_params: values exposed to every callback through ``ctx.params``
        filters: additional :class:`SampleFilter` objects, run after the
            callback lists
        seed: seed for a fresh ``numpy.random.default_rng`` (ignored if ``rng``)
        rng: generator to draw from
        n_proc: >1 samples the children of each root on a thread pool, each
            child subtree with its own generator seeded from ``rng``. The
            result is reproducible for a given seed but differs from the
            sequential result for the same seed.
        verbose: print a summary when done

    Returns:
        TaxonomyMap with the same tree and records and the retained assignment.

    Raises:
        ValueError: for malformed quotas or n_proc < 1, before any sampling
    """
    validate_quotas(taxmap, max_counts=max_counts, min_counts=min_counts,
                    max_children=max_children, min_children=min_children)
    if n_proc < 1:
        raise ValueError(f'n_proc must be >= 1, got {n_proc}')
    if rng is None:
        rng = np.random.default_rng(seed)

    hooks = [CallbackFilter(obs_filters, subtaxa_filters, stop_conditions)] + list(filters)
    sampler = TaxonomicSampler(taxmap, max_counts, min_counts, max_children, min_children,
                               filters=hooks, extra_params=extra_params)
    result = sampler.run(rng, n_proc=n_proc)

    if verbose:
        console.log(f'Sampled {result.n_assigned()} of {taxmap.n_assigned()} observations '
                    f'across {len(taxmap.tree)} taxa')
    return result


__all__ = [
    'CallbackFilter',
    'SampleFilter',
    'SamplingContext',
    'TaxonomicSampler',
    'taxonomic_sample',
    'validate_quotas',
]
