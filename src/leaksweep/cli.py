"""Command-line interface for leaksweep."""

import typer

from leaksweep.cli_commands.findings import findings, repos
from leaksweep.cli_commands.sweep import classify, search
from leaksweep.output import console

app = typer.Typer(
    name="leaksweep",
    help="Sweep code-hosting search APIs for leaked secrets and triage the hits.",
    no_args_is_help=True,
)

app.command()(search)
app.command()(classify)
app.command()(findings)
app.command()(repos)


@app.command()
def version() -> None:
    """Show leaksweep version."""
    from leaksweep import __version__

    console.print(f"leaksweep [bold green]{__version__}[/bold green]")


if __name__ == "__main__":
    app()
