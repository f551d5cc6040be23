"""Command line interface for the RNG validator."""

import json
import sys

import click

from . import __version__
from .config import load_config
from .engine import Engine
from .errors import ConfigurationError
from .models import NumericInput
from .tiers import describe_tiers


@click.group()
@click.version_option(__version__)
def cli():
    """RNG Validator - statistical randomness assessment for number sequences."""
    pass


def _load(config_path, **overrides):
    try:
        return load_config(config_path, overrides=overrides)
    except ConfigurationError as e:
        raise click.BadParameter(e.message, param_hint="--config")


@cli.command()
@click.argument('numbers', required=False)
@click.option('--file', '-f', 'input_file', type=click.Path(exists=True, dir_okay=False),
              help='Read the numbers (or base64 data) from a file instead of the argument')
@click.option('--format', 'input_format', type=click.Choice(['numbers', 'base64']), default='numbers',
              help='Encoding of the input')
@click.option('--range-min', 'range_min', type=int, default=None, help='Lowest value the generator can produce')
@click.option('--range-max', 'range_max', type=int, default=None, help='Highest value the generator can produce')
@click.option('--bit-width', 'bit_width', type=int, default=None, help='Fixed encoding width: 8, 16 or 32')
@click.option('--debug-log', 'debug_log', is_flag=True, default=False,
              help='Write the encoded bit stream to a timestamped file under the debug directory')
@click.option('--no-suite', 'no_suite', is_flag=True, default=False,
              help='Skip the external test suite and report the basic quality score only')
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), default=None,
              help='Path to YAML or JSON configuration file')
@click.option('--out', '-o', 'output_file', type=click.Path(), default=None,
              help='Write the JSON report here instead of stdout')
@click.option('--log-level', 'log_level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=True),
              default=None, help='Logging level for the rngvalidator logger')
def validate(numbers, input_file, input_format, range_min, range_max, bit_width, debug_log, no_suite,
             config_path, output_file, log_level):
    """Assess NUMBERS (comma or whitespace separated) for randomness.

    Exits with status 1 when the sequence is not judged random.
    """
    if input_file:
        with open(input_file, 'r', encoding='utf-8') as f:
            numbers = f.read()
    if not numbers:
        raise click.UsageError("Provide NUMBERS or --file")

    cfg = _load(config_path, log_level=log_level, suite_enabled=False if no_suite else None)
    engine = Engine(cfg)
    try:
        report = engine.validate(NumericInput(
            numbers=numbers,
            input_format=input_format,
            range_min=range_min,
            range_max=range_max,
            bit_width=bit_width,
            debug_log=debug_log,
        ))
    finally:
        engine.close()

    output = json.dumps(report.to_dict(), indent=2, ensure_ascii=False)
    if output_file:
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(output)
        click.echo(f"Report written to {output_file}")
        click.echo(report.message, err=True)
    else:
        click.echo(output)
    sys.exit(0 if report.valid else 1)


@cli.command()
@click.option('--json', 'as_json', is_flag=True, default=False, help='Print the tier table as JSON')
def tiers(as_json):
    """Show the bit-count tiers and the tests each one unlocks."""
    table = describe_tiers()
    if as_json:
        click.echo(json.dumps(table, indent=2))
        return
    for tier in table:
        click.echo(f"Tier {tier['level']} - {tier['name']}: >= {tier['min_bits']} bits "
                   f"(recommended {tier['recommended_bits']})")
        click.echo(f"  {tier['description']}")
        for test in tier['tests']:
            click.echo(f"    + {test['name']}")


@cli.command()
@click.option('--host', 'host', default=None, help='Host to bind (default from HOST or 0.0.0.0)')
@click.option('--port', 'port', default=None, type=int, help='Port to bind (default from PORT or 3000)')
@click.option('--reload', 'reload', is_flag=True, default=False, help='Enable auto-reload (development only)')
def serve(host, port, reload):
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    cfg = _load(None)
    host = host or cfg.host
    port = port or cfg.port
    click.echo(f"Starting RNG Validator API at http://{host}:{port}/")
    uvicorn.run("rngvalidator.api:app", host=host, port=port, reload=reload)


if __name__ == '__main__':
    cli()
