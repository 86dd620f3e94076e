"""Configuration validation and helper utilities for the sampling pipeline."""

from pathlib import Path

from rich.console import Console

from taxatlas.core.sampling import validate_quotas

console = Console()

INPUT_MODES = ['tables', 'lineage']


def parse_quota_args(values, option='quota'):
    """Parse repeated ``LEVEL=N`` command-line values into a quota dict.

    A LEVEL made only of digits is a depth (int); anything else is a rank name.

    Examples:
        >>> parse_quota_args(['0=10', 'genus=3'])
        {0: 10, 'genus': 3}
    """
    quota = {}
    for value in values or []:
        level, sep, bound = str(value).partition('=')
        level = level.strip()
        if not sep or not level:
            raise ValueError(f'{option}: expected LEVEL=N, got {value!r}')
        try:
            bound = int(bound)
        except ValueError:
            raise ValueError(f'{option}: bound for {level!r} must be an integer, got {bound!r}') from None
        quota[int(level) if level.isdigit() else level] = bound
    return quota


def validate_config(config):
    """Validate SamplingConfig object.

    Parameters:
        config: SamplingConfig instance

    Raises:
        ValueError: If configuration is invalid
    """
    errors = []

    # Check required fields
    if not config.taxa_file and config.input_mode == 'tables':
        errors.append("taxa_file is required in 'tables' mode")
    elif config.taxa_file and not Path(config.taxa_file).exists():
        errors.append(f"Taxon table not found: {config.taxa_file}")

    if not config.obs_file:
        errors.append("obs_file is required")
    elif not Path(config.obs_file).exists():
        errors.append(f"Observation table not found: {config.obs_file}")

    if not config.outdir:
        errors.append("outdir is required")

    if config.input_mode not in INPUT_MODES:
        errors.append(f"input_mode must be one of: {INPUT_MODES}")

    # Check numeric parameters
    if config.nproc < 1:
        errors.append("nproc must be >= 1")

    if config.stop_depth is not None and config.stop_depth < 0:
        errors.append("stop_depth must be >= 0")

    try:
        validate_quotas(
            max_counts=config.max_counts,
            min_counts=config.min_counts,
            max_children=config.max_children,
            min_children=config.min_children,
        )
    except ValueError as e:
        errors.append(str(e))

    if errors:
        console.print("[bold red]Configuration Errors:[/bold red]")
        for error in errors:
            console.print(f"  ✗ {error}")
        raise ValueError(f"Invalid configuration: {len(errors)} error(s)")

    console.print("[green]✓[/green] Configuration validated")


def _fmt_quota(quota):
    if not quota:
        return 'none'
    return ', '.join(f'{level}={bound}' for level, bound in quota.items())


def print_config_summary(config):
    """Print a summary of the configuration."""
    console.print("\n[bold]Configuration Summary:[/bold]")
    console.print(f"  Input mode: {config.input_mode}")
    if config.input_mode == 'tables':
        console.print(f"  Taxa: {config.taxa_file}")
    else:
        console.print(f"  Classification column: {config.class_col} (sep {config.class_sep!r})")
    console.print(f"  Observations: {config.obs_file}")
    console.print(f"  Output: {config.outdir}")
    console.print("\n  [bold]Quotas:[/bold]")
    console.print(f"    max_counts: {_fmt_quota(config.max_counts)}")
    console.print(f"    min_counts: {_fmt_quota(config.min_counts)}")
    console.print(f"    max_children: {_fmt_quota(config.max_children)}")
    console.print(f"    min_children: {_fmt_quota(config.min_children)}")
    console.print("\n  [bold]Stopping:[/bold]")
    console.print(f"    ranks: {', '.join(config.stop_ranks) if config.stop_ranks else 'none'}")
    console.print(f"    depth: {config.stop_depth if config.stop_depth is not None else 'none'}")
    console.print("\n  [bold]General:[/bold]")
    console.print(f"    seed: {config.seed}")
    console.print(f"    threads: {config.nproc}")


__all__ = [
    'parse_quota_args',
    'validate_config',
    'print_config_summary',
]
