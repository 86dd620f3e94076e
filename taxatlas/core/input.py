"""Loading taxon and observation tables into a TaxonomyMap.

Supports:
- Tab, comma or whitespace separated tables with a header row
- Gzipped/xz-compressed files (.gz, .xz)
- Taxon tables: taxon_id, parent_id (empty or NA for roots), name, rank
- Observation tables: obs_id (optional), taxon_id, any attribute columns
"""

import pandas as pd
from rich.console import Console

from taxatlas.core.taxmap import TaxonomyMap
from taxatlas.core.tree import build_tree

console = Console()

TAXON_COLUMNS = ['taxon_id', 'parent_id', 'name', 'rank']


def _read_kwargs(path, nlines=-1):
    read_base = {'dtype': str, 'keep_default_na': False}
    if nlines != -1:
        read_base['nrows'] = nlines
    path = str(path)
    if path.endswith('.gz'):
        read_base['compression'] = 'gzip'
    elif path.endswith('.xz'):
        read_base['compression'] = 'xz'
    return read_base


def read_table(path, nlines=-1):
    """
    Reads a delimited table (optionally compressed), detecting the separator.

    Parameters:
        path (str or Path): Input file. Supports .tsv, .csv, plain text and .gz/.xz compressed files.
        nlines (int, optional): Number of rows to read. -1 reads the entire file.

    Returns:
        pandas.DataFrame: All columns as strings, empty cells as ''.
    """
    read_base = _read_kwargs(path, nlines)

    # Try tab, then comma; accept the first parse that yields more than one column
    for sep in ('\t', ','):
        try:
            df = pd.read_csv(path, **{**read_base, 'sep': sep})
        except (pd.errors.ParserError, UnicodeDecodeError):
            continue
        if df.shape[1] > 1:
            return df

    return pd.read_csv(path, **{**read_base, 'sep': r'\s+', 'engine': 'python'})


def _require_columns(df, required, what):
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f'{what} table is missing column(s) {missing}; found {list(df.columns)}')


def _as_text(value):
    if pd.isna(value):
        return ''
    # integer ids read next to a missing value arrive as floats
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def as_id_strings(values):
    """String form of an id column: missing cells become '', 2.0 becomes '2'."""
    return pd.Series([_as_text(v) for v in values], index=values.index, dtype=object)


def normalize_taxa(df):
    """Return a taxon table with exactly the columns taxon_id, parent_id, name, rank."""
    _require_columns(df, ['taxon_id'], 'Taxon')
    out = pd.DataFrame({'taxon_id': as_id_strings(df['taxon_id'])})
    for col in TAXON_COLUMNS[1:]:
        out[col] = as_id_strings(df[col]) if col in df.columns else ''
    return out


def normalize_observations(df):
    """Index an observation table by obs_id (generated as obs1, obs2, ... when absent)."""
    _require_columns(df, ['taxon_id'], 'Observation')
    df = df.copy()
    df['taxon_id'] = as_id_strings(df['taxon_id'])
    if 'obs_id' not in df.columns:
        df.insert(0, 'obs_id', [f'obs{i}' for i in range(1, len(df) + 1)])
    return df.set_index('obs_id')


def load_taxa(path):
    df = read_table(path)
    if df.shape[0] == 0:
        raise ValueError(f'Empty taxon table: {path}')
    df = normalize_taxa(df)
    console.print(f'  Loaded {len(df)} taxa from {path}')
    return df


def load_observations(path):
    df = normalize_observations(read_table(path))
    console.print(f'  Loaded {len(df)} observations from {path}')
    return df


def taxmap_from_tables(taxa_df, obs_df=None):
    """Build a TaxonomyMap from a taxon table and an observation table.

    Parameters:
        taxa_df (pd.DataFrame): needs taxon_id; parent_id, name and rank are optional
        obs_df (pd.DataFrame, optional): needs taxon_id; indexed by obs_id when it
            has no obs_id column

    Returns:
        TaxonomyMap

    Raises:
        ValueError: if the taxonomy is malformed or observations reference unknown taxa
    """
    tree = build_tree(normalize_taxa(taxa_df).to_dict('records'))
    if obs_df is None:
        return TaxonomyMap(tree)
    if 'obs_id' in obs_df.columns or obs_df.index.name != 'obs_id':
        obs_df = normalize_observations(obs_df)
    else:
        obs_df = obs_df.copy()
        obs_df['taxon_id'] = as_id_strings(obs_df['taxon_id'])
    return TaxonomyMap(tree, obs_df)


__all__ = [
    'read_table',
    'as_id_strings',
    'normalize_taxa',
    'normalize_observations',
    'load_taxa',
    'load_observations',
    'taxmap_from_tables',
]
