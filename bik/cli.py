"""CLI interface for Bulk Import Kit."""

import click
from pathlib import Path
from rich.console import Console
from rich.table import Table
import sys

from bik.config.manager import ConfigManager
from bik.config.settings import Settings
from bik.log import setup_logging
from bik.mapping.processor import MappingProcessor
from bik.processor.batch import BatchConverter
from bik.schema.loader import SchemaLoader

console = Console()
stderr_console = Console(file=sys.stderr)


def _processor(config_path: Path | None) -> tuple[MappingProcessor, dict]:
    """Build a processor from the project config, or from the settings alone."""
    settings = Settings()
    if config_path is None:
        return MappingProcessor(settings), {}
    manager = ConfigManager(str(config_path), settings)
    processor = MappingProcessor(
        settings,
        vocabulary=manager.get_vocabulary(),
        store=manager.get_store(),
        field_map=manager.config.field_map,
    )
    return processor, dict(manager.config.variables)


def _parse_variables(values: tuple[str, ...]) -> dict[str, str]:
    variables = {}
    for value in values:
        name, sep, text = value.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"Expected name=value, got {value!r}", param_hint="--var")
        variables[name.strip()] = text.strip()
    return variables


@click.group()
@click.version_option(version="0.1.0")
@click.option('--log-level', '-l', default=None, help='Log level (DEBUG, INFO, WARNING, ERROR)')
def cli(log_level: str | None):
    """Bulk Import Kit - Declarative mappings from json and xml records to destination fields"""
    setup_logging(log_level or Settings().log_level, stderr_console)


@cli.command()
@click.option(
    '--mapping', '-m',
    'mapping_ref',
    required=True,
    help='Mapping file or reference (user:name.ini, base:name.xml, ...)'
)
@click.option(
    '--config', '-c',
    'config_path',
    type=click.Path(exists=True, path_type=Path),
    help='Path to project config'
)
def check(mapping_ref: str, config_path: Path | None) -> None:
    """Parse a mapping and report its entries and errors."""
    console.print(f"[blue]Checking mapping {mapping_ref}...[/blue]")

    try:
        processor, _ = _processor(config_path)
        config = processor.load(mapping_ref)
    except Exception as e:
        stderr_console.print(f"[red]✗ Mapping check failed: {e}[/red]")
        raise click.Abort()

    table = Table(title=config.info.label or mapping_ref)
    table.add_column("Section", style="cyan")
    table.add_column("Source", style="magenta")
    table.add_column("Destination", style="green")
    for section in ("default", "mapping"):
        for entry in config.get_section(section):
            if not entry.is_valid:
                continue
            source = f"{entry.source.querier.value}:{entry.source.path}" if entry.source else ""
            table.add_row(section, source, entry.destination.dest or entry.destination.field)
    console.print(table)

    for block in config.autofillers.values():
        console.print(f"[blue]Autofiller {block.service}: {len(block.mapping)} entries[/blue]")

    if config.has_error or config.errors:
        for error in config.errors:
            stderr_console.print(f"[red]✗ {error}[/red]")
        raise click.Abort()
    console.print("[green]✓ Mapping is valid![/green]")


@cli.command()
@click.option(
    '--mapping', '-m',
    'mapping_ref',
    required=True,
    help='Mapping file or reference'
)
@click.option(
    '--source', '-s',
    'source_path',
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help='Source file (json, jsonl or xml)'
)
@click.option(
    '--output', '-o',
    'output_path',
    type=click.Path(path_type=Path),
    help='Output file (csv, tsv or json), printed when omitted'
)
@click.option('--record-xpath', default=None, help='XPath of the records inside a xml source')
@click.option('--var', 'variables', multiple=True, help='Variable passed to the conversion, as name=value')
@click.option(
    '--config', '-c',
    'config_path',
    type=click.Path(exists=True, path_type=Path),
    help='Path to project config'
)
def convert(
    mapping_ref: str,
    source_path: Path,
    output_path: Path | None,
    record_xpath: str | None,
    variables: tuple[str, ...],
    config_path: Path | None,
) -> None:
    """Convert the records of a source file with a mapping."""
    console.print(f"[blue]Converting {source_path} with {mapping_ref}...[/blue]")

    try:
        processor, project_variables = _processor(config_path)
        config = processor.load(mapping_ref)
        converter = BatchConverter(processor, config, {**project_variables, **_parse_variables(variables)})
        records = converter.convert_file(source_path, record_xpath)
        if output_path is None:
            console.print_json(data=records)
        else:
            converter.export(output_path)
        console.print(f"[green]✓ {len(records)} records converted successfully![/green]")
    except click.BadParameter:
        raise
    except Exception as e:
        stderr_console.print(f"[red]✗ Conversion failed: {e}[/red]")
        raise click.Abort()


@cli.command()
@click.option(
    '--path', '-p',
    'schema_path',
    type=click.Path(exists=True, path_type=Path),
    help='Path to vocabulary config'
)
def vocab(schema_path: Path | None) -> None:
    """List the vocabularies and custom vocabs known to the resolver."""
    try:
        loader = SchemaLoader()
        loader.summary(loader.load(schema_path), console)
    except Exception as e:
        stderr_console.print(f"[red]✗ Vocabulary loading failed: {e}[/red]")
        raise click.Abort()


if __name__ == "__main__":
    cli()
