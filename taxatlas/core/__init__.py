"""Core taxonomy data structures and algorithms.

Submodules:
- tree: Taxon records and the validated TaxonomyTree
- traversal: supertaxa / subtaxa queries
- taxmap: TaxonomyMap (tree + observations)
- sampling: recursive level-aware observation sampling
- input: taxon / observation table loading
- lineage: taxonomies built from classification strings
"""

from taxatlas.core.sampling import taxonomic_sample
from taxatlas.core.taxmap import TaxonomyMap
from taxatlas.core.traversal import NA, subtaxa, supertaxa
from taxatlas.core.tree import Taxon, TaxonomyTree, build_tree

__all__ = [
    'NA',
    'Taxon',
    'TaxonomyMap',
    'TaxonomyTree',
    'build_tree',
    'subtaxa',
    'supertaxa',
    'taxonomic_sample',
]
