"""
Command-line interface for PDF Freezer.
"""

import logging
import sys

import click
from rich.console import Console
from rich.table import Table

from pdffreezer import __version__
from pdffreezer.app import FreezerApp
from pdffreezer.exceptions import PDFFreezerError
from pdffreezer.settings import CompressionTier, OverlayCorner
from pdffreezer.utils import sizeof_fmt

console = Console()

CONFIG_KEYS = ("prefix", "overlay", "overlay-position", "compression-level", "file-suffix", "overwrite-mode")


def _fail(error):
    console.print(f"[bold red]✗ Error:[/bold red] {error}")
    sys.exit(1)


def _parse_bool(value):
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise click.BadParameter(f"Expected a boolean, got '{value}'")


@click.group()
@click.version_option(version=__version__)
@click.option(
    '--config-dir',
    type=click.Path(file_okay=False),
    default=None,
    help='Directory holding config.json, counter.json and app.log',
)
@click.option('--verbose', '-v', is_flag=True, help='Show debug log output')
@click.pass_context
def cli(ctx, config_dir, verbose):
    """
    PDF Freezer - rasterize PDFs and stamp them with a serial number.
    """
    app = FreezerApp(config_dir)
    if verbose:
        app.logger.setLevel(logging.DEBUG)
    for handler in app.logger.handlers:
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    ctx.obj = app
    ctx.call_on_close(app.close)


@cli.command()
@click.pass_obj
def check(app):
    """
    Verify that Ghostscript is installed and runnable.
    """
    try:
        version = app.check_dependencies()
    except PDFFreezerError as exc:
        _fail(exc)
    console.print(f"[bold green]✓ Ghostscript {version}[/bold green] [dim]({app.rasterizer.executable})[/dim]")


@cli.command()
@click.argument('input_pdfs', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--overlay/--no-overlay', default=None, help='Stamp the serial label on page one')
@click.option('--prefix', '-p', default=None, help='Serial label prefix')
@click.option(
    '--position',
    type=click.Choice([corner.value for corner in OverlayCorner]),
    default=None,
    help='Corner for the serial label',
)
@click.option('--suffix', '-s', default=None, help='Output file name suffix')
@click.option('--overwrite/--no-overwrite', default=None, help='Replace the input file')
@click.option(
    '--compression', '-c',
    type=click.Choice([tier.value for tier in CompressionTier]),
    default=None,
    help='Compression tier',
)
@click.option('--timeout', type=float, default=None, help='Seconds allowed for rasterization')
@click.pass_obj
def freeze(app, input_pdfs, overlay, prefix, position, suffix, overwrite, compression, timeout):
    """
    Rasterize each INPUT_PDF and rebuild it with a serial label.

    Examples:

        pdf-freezer freeze contract.pdf

        pdf-freezer freeze a.pdf b.pdf --prefix INV -c medium
    """
    results = []
    for input_pdf in input_pdfs:
        job = app.build_job(
            input_pdf,
            overlay=overlay,
            prefix=prefix,
            position=position,
            suffix=suffix,
            overwrite=overwrite,
            compression=compression,
        )
        with console.status(f"[bold cyan]Freezing {input_pdf}...[/bold cyan]"):
            try:
                result = app.run_job(job, timeout=timeout)
            except PDFFreezerError as exc:
                _fail(exc)
        results.append(result)

    table = Table(title="Frozen documents")
    table.add_column("Output", style="cyan")
    table.add_column("Label", style="green")
    table.add_column("Pages", justify="right")
    table.add_column("Size", justify="right")
    for result in results:
        label = result.serial_label if result.overlay_applied else f"[dim]{result.serial_label}[/dim]"
        table.add_row(str(result.output_path), label, str(result.page_count), sizeof_fmt(result.output_size))
    console.print(table)


@cli.command()
@click.pass_obj
def number(app):
    """
    Show the next serial number to be issued.
    """
    try:
        console.print(app.get_current_number())
    except PDFFreezerError as exc:
        _fail(exc)


@cli.command(name="set-number")
@click.argument('value', type=int)
@click.pass_obj
def set_number(app, value):
    """
    Make VALUE the next serial number issued.
    """
    try:
        app.set_number_override(value)
    except PDFFreezerError as exc:
        _fail(exc)
    console.print(f"[bold green]✓ Next number: {value}[/bold green]")


@cli.command()
@click.option('--force', is_flag=True, help='Remove the lock even if another process owns it')
@click.pass_obj
def unlock(app, force):
    """
    Release the counter lock file.
    """
    try:
        app.unlock_counter(force=force)
    except PDFFreezerError as exc:
        _fail(exc)
    console.print("[bold green]✓ Counter unlocked[/bold green]")


@cli.group()
def config():
    """
    Show or change saved settings.
    """


@config.command(name="show")
@click.pass_obj
def config_show(app):
    """
    Print the saved settings.
    """
    table = Table(title="Settings", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for key, value in app.get_config().to_dict().items():
        table.add_row(key.replace("_", "-"), str(value))
    console.print(table)


@config.command(name="set")
@click.argument('key', type=click.Choice(CONFIG_KEYS))
@click.argument('value')
@click.pass_obj
def config_set(app, key, value):
    """
    Change the saved setting KEY to VALUE.
    """
    setters = {
        "prefix": app.set_prefix,
        "overlay": lambda v: app.set_overlay(_parse_bool(v)),
        "overlay-position": app.set_overlay_position,
        "compression-level": app.set_compression_level,
        "file-suffix": app.set_file_suffix,
        "overwrite-mode": lambda v: app.set_overwrite_mode(_parse_bool(v)),
    }
    try:
        setters[key](value)
    except PDFFreezerError as exc:
        _fail(exc)
    console.print(f"[bold green]✓ {key} updated[/bold green]")


if __name__ == '__main__':
    cli()
