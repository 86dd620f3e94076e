"""TaxAtlas: taxonomy-aware observation sets with hierarchy-respecting sampling."""

__version__ = '0.1.0'
