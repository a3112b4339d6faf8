"""Command-line interface for the locus explorer."""

import asyncio
import sys
from pathlib import Path

import click

from .config import Config, create_example_config, get_default_config_path
from .cli_utils import echo, parse_assignments, secho, set_quiet_mode
from .error_handler import get_error_handler
from .file_loader import FileLoader, NetworkConfig, create_fetcher
from .logging_config import setup_logging
from .orchestrator import BatchOrchestrator
from .output_formatter import OutputFormatter
from .search import ALL_SPECIES, BrowseSession, SearchIndex
from .species_catalog import SpeciesCatalog


def build_orchestrator(cfg: Config) -> BatchOrchestrator:
    """Create loader and orchestrator for the configured data source."""
    network = NetworkConfig(
        timeout=cfg.loader.timeout_seconds,
        max_retries=cfg.loader.max_retries,
        backoff_factor=cfg.loader.backoff_factor
    )
    try:
        fetcher = create_fetcher(cfg.source.data_dir, cfg.source.base_url, network)
    except ValueError as e:
        raise click.UsageError(f"{e} (use --data-dir or --base-url)")
    return BatchOrchestrator.from_config(FileLoader(fetcher), cfg)


async def load_index(orchestrator: BatchOrchestrator, batches: int, load_all: bool):
    """Load headers and the requested number of batches, echoing progress."""
    await orchestrator.load_headers()
    if orchestrator.using_fallback:
        echo("WARNING: header list unavailable, using synthetic sample headers", err=True)

    remaining = None if load_all else batches
    while orchestrator.has_more and (remaining is None or remaining > 0):
        result = await orchestrator.load_next_batch()
        if result is None:
            break
        loaded, total = orchestrator.progress
        echo(f"Batch {result.batch_number}: {loaded}/{total} headers, "
             f"{result.created} new entries, {len(result.files_failed)} files unavailable")
        if remaining is not None:
            remaining -= 1


def report_failures(orchestrator: BatchOrchestrator, verbose: bool):
    failures = orchestrator.failed_files()
    if not failures:
        return
    echo(f"{len(failures)} files unavailable")
    if verbose:
        for filename, reason in sorted(failures.items()):
            echo(f"  {filename}: {reason}")


@click.group()
@click.option('--data-dir', type=click.Path(file_okay=False), envvar='LOCUS_DATA_DIR', help='Directory holding the JSON data files')
@click.option('--base-url', envvar='LOCUS_BASE_URL', help='Base URL the JSON data files are served from')
@click.option('--batch-size', type=int, help='Headers per loading batch')
@click.option('--config', 'config_file', type=click.Path(exists=True), help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress all output except errors')
@click.pass_context
def cli(ctx, data_dir, base_url, batch_size, config_file, verbose, quiet):
    """Locus Explorer.

    Merge protein, nucleotide and annotation files into locus groups and
    search them.

    Examples:
        locus-explorer --data-dir ./data search kinase
        locus-explorer --data-dir ./data export loci.tsv --all
    """
    if quiet and verbose:
        click.echo("Error: Cannot use both --quiet and --verbose", err=True)
        sys.exit(1)

    setup_logging(log_level="DEBUG" if verbose else "WARNING", quiet=quiet)
    set_quiet_mode(quiet)

    config_path = Path(config_file) if config_file else get_default_config_path()
    cfg = Config.from_file(config_path)
    cfg.merge_env_vars()
    cfg.merge_cli_args(data_dir=data_dir, base_url=base_url, batch_size=batch_size)

    ctx.obj = {'config': cfg, 'verbose': verbose}


@cli.command()
@click.argument('query', default='')
@click.option('--species', default=ALL_SPECIES, show_default=True, help='Exact species filter')
@click.option('--page', 'page_number', type=int, default=1, show_default=True, help='Result page (1-based)')
@click.option('--page-size', type=int, help='Groups per page')
@click.option('--batches', type=int, default=1, show_default=True, help='Batches to load before searching')
@click.option('--all', 'load_all', is_flag=True, help='Load every batch before searching')
@click.option('--sequence-type', type=click.Choice(['protein', 'nucleotide']), default='protein', show_default=True)
@click.pass_context
def search(ctx, query, species, page_number, page_size, batches, load_all, sequence_type):
    """Search locus groups by name, ID, KO, feature or database."""
    cfg = ctx.obj['config']
    cfg.merge_cli_args(page_size=page_size)
    orchestrator = build_orchestrator(cfg)
    formatter = OutputFormatter()

    async def run():
        await load_index(orchestrator, batches, load_all)
        session = BrowseSession.from_config(orchestrator.snapshot, cfg)
        session.set_query(query)
        session.set_species(species)
        await session.settled()
        session.go_to_page(page_number)
        return session

    session = asyncio.run(run())

    echo(f"{session.summary()}; page {session.page_number}/{session.page_count}")
    if not session.results:
        echo(f'No results for "{query}"' if query else "No matching entries found")

    for group in session.current_page():
        for line in formatter.describe_group(group, sequence_type):
            echo(line)

    report_failures(orchestrator, ctx.obj['verbose'])


@cli.command()
@click.option('--batches', type=int, default=1, show_default=True, help='Batches to load')
@click.option('--all', 'load_all', is_flag=True, help='Load every batch')
@click.option('--error-report', type=click.Path(dir_okay=False), help='Write a JSON error report')
@click.pass_context
def summary(ctx, batches, load_all, error_report):
    """Load batches and print index statistics."""
    cfg = ctx.obj['config']
    orchestrator = build_orchestrator(cfg)

    asyncio.run(load_index(orchestrator, batches, load_all))

    groups = orchestrator.snapshot()
    stats = OutputFormatter().get_statistics(groups)
    loaded, total = orchestrator.progress
    index = SearchIndex.from_config(groups, cfg)

    echo("=" * 60)
    echo(f"Headers loaded: {loaded}/{total}")
    echo(f"Locus groups: {stats['groups']}")
    echo(f"Isoforms: {stats['isoforms']} ({stats['isoforms_without_data']} without data)")
    echo(f"Species: {', '.join(index.available_species()) or '-'}")
    loader_stats = orchestrator.loader.stats
    echo(f"Files loaded: {len(orchestrator.loader.loaded_files())} ({loader_stats.size_mb:.2f} MB), "
         f"cache hit rate {loader_stats.hit_rate:.0%}")
    report_failures(orchestrator, ctx.obj['verbose'])

    if error_report:
        get_error_handler().export_error_report(error_report)
        echo(f"Error report written to: {error_report}")


@cli.command()
@click.argument('output_file', type=click.Path(dir_okay=False))
@click.option('--format', 'output_format', type=click.Choice(['tsv', 'csv', 'json', 'fasta']), help='Output file format')
@click.option('--query', default='', help='Only export groups matching this text')
@click.option('--species', default=ALL_SPECIES, show_default=True, help='Exact species filter')
@click.option('--sequence-type', type=click.Choice(['protein', 'nucleotide']), help='Sequence written to FASTA')
@click.option('--batches', type=int, default=1, show_default=True, help='Batches to load')
@click.option('--all', 'load_all', is_flag=True, help='Load every batch')
@click.pass_context
def export(ctx, output_file, output_format, query, species, sequence_type, batches, load_all):
    """Export matching locus groups to a file."""
    cfg = ctx.obj['config']
    cfg.merge_cli_args(output_format=output_format, sequence_type=sequence_type)
    orchestrator = build_orchestrator(cfg)

    asyncio.run(load_index(orchestrator, batches, load_all))

    groups = SearchIndex.from_config(orchestrator.snapshot(), cfg).search(query, species)
    try:
        written = OutputFormatter().format_results(
            groups,
            output_file,
            format=cfg.output.format,
            sequence_type=cfg.output.sequence_type
        )
    except (OSError, ValueError) as e:
        secho(f"ERROR: Failed to write output file: {e}", err=True, fg='red')
        sys.exit(1)

    echo(f"{written} records written to: {output_file}")


@cli.command()
@click.option('--filter', 'global_filter', default='', help='Text matched against every column')
@click.option('--column', 'column_filters', multiple=True, help='COLUMN=TEXT substring filter (repeatable)')
@click.option('--value', 'value_filters', multiple=True, help='COLUMN=VALUE exact filter (repeatable)')
@click.option('--list-values', 'list_column', help='Print the distinct values of COLUMN and exit')
@click.pass_context
def species(ctx, global_filter, column_filters, value_filters, list_column):
    """Filter the germplasm species catalog."""
    cfg = ctx.obj['config']
    orchestrator = build_orchestrator(cfg)

    catalog = asyncio.run(SpeciesCatalog.load(orchestrator.loader, cfg.source.species_file))
    if not catalog.records:
        secho(f"ERROR: species catalog {cfg.source.species_file} unavailable", err=True, fg='red')
        sys.exit(1)

    if list_column:
        if list_column not in catalog.columns:
            raise click.BadParameter(f"unknown column {list_column!r}", param_hint='--list-values')
        for value in catalog.unique_values(list_column):
            echo(value or '-')
        return

    catalog.global_filter = global_filter
    for column, texts in parse_assignments(column_filters, '--column').items():
        catalog.set_text_filter(column, texts[-1])
    for column, values in parse_assignments(value_filters, '--value').items():
        for value in values:
            catalog.toggle_value(column, value)

    rows = catalog.filtered()
    columns = catalog.columns
    echo(f"{len(rows)} of {len(catalog.records)} items shown"
         + (f" ({catalog.active_filter_count} filters active)" if catalog.active_filter_count else ""))
    echo("\t".join(column.replace('_', ' ') for column in columns))
    for row in rows:
        echo("\t".join(str(row.get(column) or '-') for column in columns))


@cli.command('generate-config')
@click.argument('path', type=click.Path(dir_okay=False), required=False)
def generate_config(path):
    """Generate an example configuration file."""
    config_path = create_example_config(Path(path) if path else None)
    echo(f"Generated example configuration file: {config_path}")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
