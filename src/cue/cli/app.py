"""Main CLI application."""

import typer

from cue.cli.commands import automations, run

app = typer.Typer(
    name="cue",
    help="Cue - scheduled automations",
    no_args_is_help=True,
)

automations.register(app)
run.register(app)


@app.command()
def paths() -> None:
    """Show where Cue keeps its files."""
    from cue.cli.console import console
    from cue.config.paths import get_all_paths

    for name, path in get_all_paths().items():
        console.print(f"[bold]{name}[/bold]: {path}")


if __name__ == "__main__":
    app()
