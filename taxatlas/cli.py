"""TaxAtlas: taxonomy-aware resampling of classified observations.

Simple CLI entry point that runs the sampling pipeline.
"""

import argparse
import sys

from rich.console import Console

from taxatlas.config_utils import parse_quota_args
from taxatlas.main import run_pipeline, SamplingConfig

console = Console()


def build_parser():
    parser = argparse.ArgumentParser(
        prog="taxatlas",
        description="TaxAtlas: hierarchy-aware sampling of classified observations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  taxatlas observations.tsv output/ --taxa taxa.tsv --max-counts genus=5
  taxatlas seqs.tsv output/ --lineage --class-col taxonomy --max-children 1=3
  taxatlas seqs.tsv output/ --lineage --class-regex '(?P<rank>[a-z])__(?P<name>.+)' --stop-rank g
        """,
    )

    parser.add_argument(
        "observations",
        type=str,
        help="Observation table (TSV/CSV with taxon_id or classification column)",
    )
    parser.add_argument(
        "output",
        type=str,
        help="Output directory for results",
    )

    source = parser.add_argument_group("input")
    source.add_argument("--taxa", type=str, default=None,
                        help="Taxon table with taxon_id, parent_id, name, rank columns")
    source.add_argument("--lineage", action="store_true",
                        help="Build the taxonomy from a classification column instead of --taxa")
    source.add_argument("--class-col", type=str, default="classification",
                        help="Classification column for --lineage (default: classification)")
    source.add_argument("--class-sep", type=str, default=";",
                        help="Regex separating taxa in a classification (default: ';')")
    source.add_argument("--class-regex", type=str, default=None,
                        help="Regex with a 'name' and optional 'rank' group, applied to each taxon")
    source.add_argument("--class-rev", action="store_true",
                        help="Classifications list taxa specific to broad")

    quotas = parser.add_argument_group("quotas (LEVEL=N, LEVEL is a depth or a rank)")
    for option, what in (
        ("--max-counts", "Maximum observations under a taxon at LEVEL"),
        ("--min-counts", "Minimum observations under a taxon at LEVEL"),
        ("--max-children", "Maximum subtaxa kept for a taxon at LEVEL"),
        ("--min-children", "Minimum subtaxa required for a taxon at LEVEL"),
    ):
        quotas.add_argument(option, action="append", default=[], metavar="LEVEL=N", help=what)

    parser.add_argument("--stop-rank", action="append", default=[],
                        help="Do not descend below taxa of this rank (repeatable)")
    parser.add_argument("--stop-depth", type=int, default=None,
                        help="Do not descend below this depth (roots are depth 0)")
    parser.add_argument("--seed", type=int, default=42,
                        help="Random seed (default: 42)")
    parser.add_argument("--nproc", type=int, default=1,
                        help="Threads for sampling root subtrees in parallel (default: 1)")
    parser.add_argument("--quiet", action="store_true",
                        help="Skip the configuration summary")
    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = SamplingConfig(
            obs_file=args.observations,
            outdir=args.output,
            input_mode="lineage" if args.lineage else "tables",
            taxa_file=args.taxa,
            class_col=args.class_col,
            class_sep=args.class_sep,
            class_regex=args.class_regex,
            class_rev=args.class_rev,
            max_counts=parse_quota_args(args.max_counts, "--max-counts"),
            min_counts=parse_quota_args(args.min_counts, "--min-counts"),
            max_children=parse_quota_args(args.max_children, "--max-children"),
            min_children=parse_quota_args(args.min_children, "--min-children"),
            stop_ranks=args.stop_rank,
            stop_depth=args.stop_depth,
            seed=args.seed,
            nproc=args.nproc,
            verbose=not args.quiet,
        )
        run_pipeline(config)
        console.print("\n✓ Pipeline finished successfully!")
        return 0
    except Exception as e:
        console.print(f"\n✗ Pipeline failed: {e}", style="bold red")
        return 1


if __name__ == "__main__":
    sys.exit(main())
