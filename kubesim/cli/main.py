"""Main CLI interface using Typer."""

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from .. import __version__
from ..core import ClusterEngine, ManualScheduler, WallClockScheduler
from ..core.events import ALL_EVENTS
from ..exporters import TableExporter, get_exporter
from ..model.config import EngineConfig
from ..model.events import ClusterEvent
from ..model.export import OutputFormat
from ..model.result import CommandResult
from ..utils.logger import get_logger, set_log_level

# Create CLI app
app = typer.Typer(
    name="kubesim",
    help="Simulate a Kubernetes control plane driven by kubectl-style commands",
    add_completion=True,
)

console = Console()
logger = get_logger(__name__)

DEMO_SCRIPT = [
    "kubectl create deployment web --replicas=3 --image=nginx",
    "kubectl get pods",
    "kubectl scale deployment web 5",
    "kubectl get pods",
    "kubectl scale deployment web 2",
    "kubectl get pods",
    "kubectl get deployments",
]

SHELL_HELP = """Commands:
  kubectl create pod|deployment|service|configmap|secret NAME [--flag=value]
  kubectl get pods|nodes|deployments|replicasets|services|configmaps|secrets [NAME]
  kubectl delete pod|deployment|service|configmap|secret NAME
  kubectl scale deployment NAME N
  kubectl set image deployment/NAME [container=]IMAGE
  kubectl rollout undo|pause|resume|status deployment/NAME
  tick      run one reconciliation pass now
  help      show this text
  exit      leave the shell"""


def _load_config(config_path: Optional[Path]) -> EngineConfig:
    """Load engine config or exit with an error."""
    if config_path is None:
        return EngineConfig()
    try:
        return EngineConfig.from_file(config_path)
    except Exception as e:
        logger.error(f"Failed to load config {config_path}: {e}")
        console.print(f"[red]Error:[/red] invalid config {config_path}")
        raise typer.Exit(1)


def _print_result(result: CommandResult, output: OutputFormat) -> None:
    """Print a command result in the chosen format."""
    if not result.success:
        console.print(f"[red]{escape(result.message)}[/red]")
        return

    if output == OutputFormat.TABLE:
        console.print(f"[green]{escape(result.message)}[/green]")
        if result.data:
            exporter = TableExporter()
            console.print(exporter.build_table(exporter.clean_records(result)))
        return

    console.print(get_exporter(output).render(result), markup=False, highlight=False)


def _print_event(event: ClusterEvent) -> None:
    payload = escape(str(event.payload()))
    console.print(f"[dim]event[/dim] [yellow]{event.kind.value}[/yellow] {payload}")


def _build_engine(config: EngineConfig, scheduler, show_events: bool) -> ClusterEngine:
    engine = ClusterEngine(config, scheduler=scheduler)
    if show_events:
        engine.events.subscribe(ALL_EVENTS, _print_event)
    return engine


def _run_script(
    engine: ClusterEngine, commands: List[str], settle_ticks: int, output: OutputFormat
) -> int:
    """Run commands in order, settling after each; returns the failure count."""
    failures = 0
    for command in commands:
        console.print(f"[bold]$ {escape(command)}[/bold]")
        result = engine.execute(command)
        _print_result(result, output)
        if not result.success:
            failures += 1
        if settle_ticks:
            engine.settle(settle_ticks)
    return failures


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """kubesim: a cluster-state reconciliation engine."""
    set_log_level("DEBUG" if verbose else "WARNING")


@app.command()
def run(
    commands: List[str] = typer.Argument(..., help="Commands to run, e.g. 'kubectl get pods'"),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Engine configuration file (YAML or JSON)"
    ),
    output: OutputFormat = typer.Option(
        OutputFormat.TABLE, "--output", "-o", help="Output format for results"
    ),
    settle_ticks: int = typer.Option(
        2, "--settle", help="Reconciliation intervals of virtual time to run after each command"
    ),
    show_events: bool = typer.Option(False, "--show-events", help="Print cluster events"),
):
    """Run commands against a fresh simulated cluster."""
    engine_config = _load_config(config)
    engine = _build_engine(engine_config, ManualScheduler(), show_events)

    try:
        engine.start()
        failures = _run_script(engine, commands, settle_ticks, output)
    finally:
        engine.dispose()

    if failures:
        raise typer.Exit(1)


@app.command()
def demo(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Engine configuration file (YAML or JSON)"
    ),
    output: OutputFormat = typer.Option(
        OutputFormat.TABLE, "--output", "-o", help="Output format for results"
    ),
    show_events: bool = typer.Option(True, "--show-events/--no-events", help="Print cluster events"),
):
    """Create, scale up and scale down a deployment."""
    engine_config = _load_config(config)
    engine = _build_engine(engine_config, ManualScheduler(), show_events)

    try:
        engine.start()
        _run_script(engine, DEMO_SCRIPT, 3, output)
    finally:
        engine.dispose()


@app.command()
def shell(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Engine configuration file (YAML or JSON)"
    ),
    output: OutputFormat = typer.Option(
        OutputFormat.TABLE, "--output", "-o", help="Output format for results"
    ),
    show_events: bool = typer.Option(False, "--show-events", help="Print cluster events"),
):
    """Interactive shell; the cluster clock follows real time between commands."""
    engine_config = _load_config(config)
    scheduler = WallClockScheduler()
    engine = _build_engine(engine_config, scheduler, show_events)
    engine.start()

    console.print("[bold]kubesim shell[/bold] - type 'help' for commands, 'exit' to quit")
    try:
        while True:
            try:
                line = console.input("[bold green]$ [/bold green]").strip()
            except (EOFError, KeyboardInterrupt):
                console.print()
                break

            scheduler.catch_up()
            if not line:
                continue
            if line in ("exit", "quit"):
                break
            if line == "help":
                console.print(SHELL_HELP, markup=False)
                continue
            if line == "tick":
                engine.tick()
                continue

            _print_result(engine.execute(line), output)
    finally:
        engine.dispose()


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]kubesim[/bold] version {__version__}")
    console.print("An in-process Kubernetes reconciliation engine with a kubectl-style surface")


if __name__ == "__main__":
    app()
