import argparse
import logging
import sys
import time
from importlib.metadata import version

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt

from .config import BenchConfig, load_config
from .core import ACTIONS, DEFAULT_MACHINE_TYPE
from .exceptions import BenchVMError, MissingRequiredConfig, RemoteExecError
from .logger import logger, setup_logger
from .manager import InstanceManager


def _non_negative_int(value: str) -> int:
    try:
        seconds = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if seconds < 0:
        raise argparse.ArgumentTypeError(f"must be 0 or more, got {seconds}")
    return seconds


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="benchvm: create Compute Engine VMs and collect benchmark results",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Settings come from GCP_PROJECT_ID, GCP_ZONE, GCP_SOURCE_IMAGE,
GCP_NETWORK_NAME and GCP_WAIT_TIME (environment or a local .env file).

Examples:
  # Interactive session against the project in .env
  benchvm

  # Override the project and zone for this run
  benchvm --project-id my-project --zone us-west1-b

  # Poll for benchmark completion instead of sleeping a fixed time
  benchvm --poll --wait-time 600
""",
    )
    try:
        ver = version("benchvm")
    except Exception:
        ver = "unknown"
    parser.add_argument("--version", action="version", version=f"benchvm v{ver}")

    parser.add_argument(
        "--project-id", help="GCP Project ID (overrides GCP_PROJECT_ID)"
    )
    parser.add_argument("--zone", help="Compute zone (overrides GCP_ZONE)")
    parser.add_argument(
        "--wait-time",
        type=_non_negative_int,
        help="Seconds to wait for benchmarks after creation (overrides GCP_WAIT_TIME)",
    )
    parser.add_argument(
        "--poll",
        action="store_true",
        help="Poll the benchmark log for completion, up to --wait-time seconds",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    return parser


def _resolve_config(args: argparse.Namespace, console: Console) -> BenchConfig:
    config = load_config()

    overrides = {
        "project_id": args.project_id,
        "zone": args.zone,
        "wait_time": args.wait_time,
    }
    # Re-validate so overrides go through the same field constraints
    config = BenchConfig.model_validate(
        {
            **config.model_dump(),
            **{k: v for k, v in overrides.items() if v is not None},
        }
    )

    try:
        config.ensure_valid()
    except MissingRequiredConfig as e:
        console.print(f"[yellow]Configuration error: {e}[/yellow]")
        project_id = Prompt.ask("Enter your GCP Project ID", console=console).strip()
        config = config.model_copy(update={"project_id": project_id})
        config.ensure_valid()

    return config


def _create(
    manager: InstanceManager, args: argparse.Namespace, console: Console
) -> None:
    name = Prompt.ask("Enter the desired name for the new instance", console=console)
    machine_type = Prompt.ask(
        "Enter the type of instance you want to create",
        default=DEFAULT_MACHINE_TYPE,
        console=console,
    )

    manager.create_instance(name, machine_type)

    wait_time = manager.config.wait_time
    try:
        if args.poll:
            with console.status(
                f"Waiting for benchmarks to complete (up to {wait_time} seconds)..."
            ):
                results = manager.wait_for_benchmarks(name.strip(), timeout=wait_time)
        else:
            with console.status(
                f"Waiting for benchmarks to complete ({wait_time} seconds)..."
            ):
                time.sleep(wait_time)
            results = manager.fetch_benchmark_results(name.strip())
    except RemoteExecError as e:
        # The instance stays; results can be fetched again later
        logger.error(f"Error retrieving benchmark results: {escape(str(e))}")
        return

    console.print("[bold]Benchmark Results:[/bold]")
    console.print(results, markup=False, highlight=False)


def _delete(manager: InstanceManager, instances: list[str], console: Console) -> None:
    if not instances:
        console.print("No instances available to delete.")
        return

    name = Prompt.ask(
        "Enter the name of the instance to delete from the list above",
        choices=instances,
        console=console,
    )
    if not Confirm.ask(f"Delete instance '{name}'?", console=console):
        console.print("[yellow]Aborted.[/yellow]")
        return

    manager.delete_instance(name)


def run(args: argparse.Namespace, console: Console) -> None:
    """Validate config, list instances, then run one action."""
    config = _resolve_config(args, console)
    manager = InstanceManager(config, console=console)

    instances = manager.list_instances()

    action = (
        Prompt.ask(
            f"\nEnter an action ({', '.join(ACTIONS)})", console=console
        )
        .strip()
        .lower()
    )

    if action == "list":
        # Already listed above
        return
    if action == "create":
        _create(manager, args, console)
    elif action == "delete":
        _delete(manager, instances, console)
    else:
        console.print(
            "Invalid action. Please specify 'create', 'delete', or 'list'."
        )


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)

    if args.verbose:
        setup_logger(level=logging.DEBUG)

    console = Console()

    try:
        run(args, console)
    except (BenchVMError, ValueError) as e:
        logger.error(escape(str(e)))
        sys.exit(1)
    except KeyboardInterrupt:
        console = Console(stderr=True)
        console.print("\n[bold red]Operation cancelled by user.[/bold red]")
        sys.exit(130)


if __name__ == "__main__":
    main()
