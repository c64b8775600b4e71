"""callsim CLI entry point."""

import typer

from callsim import __version__
from callsim.cli.clean_cmd import clean
from callsim.cli.run_cmd import run
from callsim.cli.validate_cmd import validate

app = typer.Typer(
    name="callsim",
    help="Call-quality test harness for containerized calls under emulated networks",
    no_args_is_help=True,
)

app.command()(run)
app.command()(validate)
app.command()(clean)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"callsim {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Call-quality test harness for containerized calls under emulated networks."""
