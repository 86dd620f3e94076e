"""TaxAtlas Sampling Pipeline - Main Orchestrator

Four-step pipeline:
1. Input & TaxonomyMap construction
2. Taxonomic sampling
3. Output Summary
4. Write sampled tables
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any, List

from rich.console import Console
from rich.table import Table

from taxatlas.config_utils import validate_config, print_config_summary
from taxatlas.core.input import load_taxa, load_observations, taxmap_from_tables, read_table
from taxatlas.core.lineage import taxmap_from_lineages
from taxatlas.core.sampling import taxonomic_sample

console = Console()


@dataclass
class SamplingConfig:
    """Configuration for the sampling pipeline."""

    # Required
    obs_file: str
    outdir: str

    # Input
    input_mode: str = 'tables'  # 'tables' or 'lineage'
    taxa_file: Optional[str] = None
    class_col: str = 'classification'
    class_sep: Optional[str] = ';'
    class_regex: Optional[str] = None
    class_rev: bool = False

    # Quotas: level (depth int or rank str) -> bound
    max_counts: Dict[Any, int] = field(default_factory=dict)
    min_counts: Dict[Any, int] = field(default_factory=dict)
    max_children: Dict[Any, int] = field(default_factory=dict)
    min_children: Dict[Any, int] = field(default_factory=dict)

    # Stop descending at these ranks / this depth
    stop_ranks: List[str] = field(default_factory=list)
    stop_depth: Optional[int] = None

    # General
    seed: Optional[int] = 42
    nproc: int = 1
    verbose: bool = True


def _stop_at_rank(taxon_id, ctx):
    return ctx.taxmap.tree.rank(taxon_id) in ctx['stop_ranks']


def _stop_at_depth(taxon_id, ctx):
    return ctx.taxmap.tree.depth(taxon_id) >= ctx['stop_depth']


class SamplingPipeline:
    """Main orchestrator for the sampling pipeline."""

    def __init__(self, config: SamplingConfig):
        self.config = config
        self.outdir = Path(config.outdir)
        self.outdir.mkdir(parents=True, exist_ok=True)

        self.results: Dict[str, Any] = {
            'step_1_input': {},
            'step_2_sampling': {},
            'step_3_summary': {},
            'step_4_output': {},
        }

    def run(self):
        """Execute the full pipeline."""
        console.print("[bold cyan]═══════════════════════════════════════════════════════════[/bold cyan]")
        console.print("[bold cyan]TaxAtlas Sampling Pipeline[/bold cyan]")
        console.print("[bold cyan]═══════════════════════════════════════════════════════════[/bold cyan]\n")

        try:
            self._step_1_input()
            self._step_2_sampling()
            self._step_3_summary()
            self._step_4_write_output()

            console.print("\n[bold green]✓[/bold green] Pipeline completed successfully!")
            console.print(f"[bold]Output directory:[/bold] {self.outdir}")

            return self.results

        except Exception as e:
            console.print(f"\n[bold red]✗[/bold red] Pipeline failed: {e}")
            raise

    def _step_1_input(self):
        """Step 1: Load tables and build the TaxonomyMap."""
        console.print("\n[bold]STEP 1: Input & TaxonomyMap[/bold]")
        console.print("─" * 60)

        if self.config.input_mode == 'lineage':
            obs_df = read_table(self.config.obs_file)
            taxmap = taxmap_from_lineages(
                obs_df,
                class_col=self.config.class_col,
                sep=self.config.class_sep,
                regex=self.config.class_regex,
                reverse=self.config.class_rev,
            )
        else:
            taxa_df = load_taxa(self.config.taxa_file)
            obs_df = load_observations(self.config.obs_file)
            taxmap = taxmap_from_tables(taxa_df, obs_df)

        console.print(f"  Taxa: {len(taxmap.tree)} ({len(taxmap.roots())} root(s), max depth {taxmap.tree.max_depth()})")
        console.print(f"  Assigned observations: {taxmap.n_assigned()}")

        self.results['step_1_input'] = {'taxmap': taxmap}

    def _stop_conditions(self):
        conditions = []
        if self.config.stop_ranks:
            conditions.append(_stop_at_rank)
        if self.config.stop_depth is not None:
            conditions.append(_stop_at_depth)
        return conditions

    def _step_2_sampling(self):
        """Step 2: Recursive taxonomic sampling."""
        console.print("\n[bold]STEP 2: Taxonomic Sampling[/bold]")
        console.print("─" * 60)

        taxmap = self.results['step_1_input']['taxmap']
        sampled = taxonomic_sample(
            taxmap,
            max_counts=self.config.max_counts,
            min_counts=self.config.min_counts,
            max_children=self.config.max_children,
            min_children=self.config.min_children,
            stop_conditions=self._stop_conditions(),
            extra_params={'stop_ranks': set(self.config.stop_ranks), 'stop_depth': self.config.stop_depth},
            seed=self.config.seed,
            n_proc=self.config.nproc,
            verbose=self.config.verbose,
        )

        self.results['step_2_sampling'] = {'taxmap': sampled}

    def _step_3_summary(self):
        """Step 3: Per-rank summary of observation counts before/after sampling."""
        console.print("\n[bold]STEP 3: Output Summary[/bold]")
        console.print("─" * 60)

        before = self.results['step_1_input']['taxmap']
        after = self.results['step_2_sampling']['taxmap']
        n_before = before.n_obs_1()
        n_after = after.n_obs_1()
        tree = before.tree

        levels: Dict[Any, List[int]] = {}
        for taxon_id in tree:
            level = tree.rank(taxon_id) or f'depth {tree.depth(taxon_id)}'
            counts = levels.setdefault(level, [0, 0, 0])
            counts[0] += 1
            counts[1] += n_before[taxon_id]
            counts[2] += n_after[taxon_id]

        table = Table(title="Observations per level")
        table.add_column("Level")
        table.add_column("Taxa", justify="right")
        table.add_column("Before", justify="right")
        table.add_column("After", justify="right")
        for level, (n_taxa, n_b, n_a) in levels.items():
            table.add_row(str(level), str(n_taxa), str(n_b), str(n_a))
        console.print(table)

        summary = {
            'config': self.config,
            'outdir': str(self.outdir),
            'n_taxa': len(tree),
            'n_obs_before': before.n_assigned(),
            'n_obs_after': after.n_assigned(),
            'empty_taxa_after': sum(1 for n in after.n_obs().values() if n == 0),
            'levels': levels,
        }
        console.print(f"  Observations kept: {summary['n_obs_after']} / {summary['n_obs_before']}")
        console.print(f"  Taxa without observations after sampling: {summary['empty_taxa_after']}")

        self.results['step_3_summary'] = summary

    def _step_4_write_output(self):
        """Step 4: Write taxa.tsv and observations.tsv."""
        console.print("\n[bold]STEP 4: Write Output[/bold]")
        console.print("─" * 60)

        sampled = self.results['step_2_sampling']['taxmap']
        taxa_df, obs_df = sampled.to_dataframes()
        taxa_path = self.outdir / 'taxa.tsv'
        obs_path = self.outdir / 'observations.tsv'
        taxa_df.to_csv(taxa_path, sep='\t', index=False)
        obs_df.to_csv(obs_path, sep='\t', index=True, index_label='obs_id')
        console.print(f"  [green]✓[/green] Saved {taxa_path}")
        console.print(f"  [green]✓[/green] Saved {obs_path}")

        self.results['step_4_output'] = {
            'taxa_path': str(taxa_path),
            'obs_path': str(obs_path),
        }


def run_pipeline(config: SamplingConfig) -> Dict[str, Any]:
    """Validate the configuration and run the sampling pipeline.

    Parameters:
        config: SamplingConfig object with pipeline settings

    Returns:
        dict: Results from all steps
    """
    validate_config(config)
    if config.verbose:
        print_config_summary(config)
    pipeline = SamplingPipeline(config)
    return pipeline.run()


__all__ = [
    'SamplingConfig',
    'SamplingPipeline',
    'run_pipeline',
]
