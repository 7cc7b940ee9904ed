"""
Command-line entry point.

Commands mirror the release workflow: find the staging profile, close the
open repository, promote the closed one, or drop it.
"""

import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import structlog
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from nexus_staging import __version__
from nexus_staging.config import StagingSettings, get_settings
from nexus_staging.errors import OperationCancelled, StagingError
from nexus_staging.logging_setup import configure_logging, redact_secret
from nexus_staging.metrics import get_metrics
from nexus_staging.nexus.client import NexusClient
from nexus_staging.staging import (
    CloseAndPromote,
    CloseRepository,
    DropRepository,
    PromoteRepository,
    RepositoryFinder,
    StagingProfileFinder,
)

logger = structlog.get_logger(__name__)
console = Console(stderr=True)

EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130


def version_callback(value: bool):
    """Callback to display version and exit."""
    if value:
        typer.echo(f"nexus-staging version {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="nexus-staging",
    help="Close, promote and drop Nexus staging repositories",
    no_args_is_help=True,
)


@app.callback()
def entrypoint(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """
    Nexus staging workflow automation.

    Connection settings are read from NEXUS_STAGING_* environment variables
    and can be overridden per command.
    """


ServerUrlOption = typer.Option(None, "--server-url", help="Nexus REST API base URL")
UsernameOption = typer.Option(None, "--username", "-u", help="Nexus user")
PackageGroupOption = typer.Option(
    None, "--package-group", "-g", help="Staging profile name (usually the group id)"
)
ProfileIdOption = typer.Option(
    None, "--staging-profile-id", "-p", help="Staging profile id (skips lookup)"
)
RepositoryIdOption = typer.Option(
    None, "--repository-id", "-r", help="Staging repository id (skips lookup)"
)
MaxAttemptsOption = typer.Option(
    None, "--max-attempts", help="Maximum number of state polls"
)
DelayOption = typer.Option(None, "--delay", help="Seconds between state polls")
MetricsOutputOption = typer.Option(
    None, "--metrics-output", help="Write Prometheus metrics to this file"
)


def _load_settings(**overrides) -> StagingSettings:
    try:
        settings = get_settings(**overrides)
    except ValidationError as exc:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(exc))}")
        raise typer.Exit(EXIT_USAGE)

    configure_logging(settings.log_level, settings.log_format)
    password = settings.password_value()
    logger.debug(
        "Configuration loaded",
        server_url=settings.server_url,
        username=settings.username,
        password=redact_secret(password) if password else None,
        package_group=settings.package_group,
        staging_profile_id=settings.staging_profile_id,
        max_attempts=settings.max_attempts,
        delay_between_attempts=settings.delay_between_attempts,
    )
    return settings


def _build_client(settings: StagingSettings) -> NexusClient:
    return NexusClient(
        server_url=settings.server_url,
        username=settings.username,
        password=settings.password_value(),
        timeout=settings.request_timeout,
    )


def _resolve_profile_id(client: NexusClient, settings: StagingSettings) -> str:
    if settings.staging_profile_id:
        return settings.staging_profile_id
    if not settings.package_group:
        console.print(
            "[red]Either --staging-profile-id or --package-group is required[/red]"
        )
        raise typer.Exit(EXIT_USAGE)
    return StagingProfileFinder(client).find_id_by_package_group(settings.package_group)


@contextmanager
def _cancellation() -> Iterator[threading.Event]:
    """Turn Ctrl-C into a cancel signal checked before commands and polls."""
    cancel_event = threading.Event()

    def handle_interrupt(signum, frame):
        console.print("[yellow]Cancelling after the current request...[/yellow]")
        cancel_event.set()

    try:
        previous = signal.signal(signal.SIGINT, handle_interrupt)
    except ValueError:
        # Not in the main thread; Ctrl-C keeps its default behaviour
        previous = None
    try:
        yield cancel_event
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)


@contextmanager
def _reporting(metrics_output: Optional[Path]) -> Iterator[None]:
    """Translate staging errors into messages and exit codes."""
    try:
        yield
    except OperationCancelled as exc:
        console.print(f"[yellow]{escape(str(exc))}[/yellow]")
        raise typer.Exit(EXIT_CANCELLED)
    except StagingError as exc:
        logger.error(
            "Staging command failed",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(EXIT_FAILURE)
    finally:
        if metrics_output is not None:
            metrics_output.write_bytes(get_metrics().generate_output())


def _operation_kwargs(cancel_event: threading.Event) -> dict:
    return {
        "sleep": cancel_event.wait,
        "cancel_event": cancel_event,
        "metrics": get_metrics(),
    }


@app.command("get-staging-profile")
def get_staging_profile(
    package_group: Optional[str] = PackageGroupOption,
    server_url: Optional[str] = ServerUrlOption,
    username: Optional[str] = UsernameOption,
):
    """Print the staging profile id for a package group."""
    settings = _load_settings(
        package_group=package_group, server_url=server_url, username=username
    )
    if not settings.package_group:
        console.print("[red]--package-group is required[/red]")
        raise typer.Exit(EXIT_USAGE)

    with _reporting(None), _build_client(settings) as client:
        profile_id = StagingProfileFinder(client).find_id_by_package_group(
            settings.package_group
        )
    typer.echo(profile_id)


@app.command("close-repository")
def close_repository(
    repository_id: Optional[str] = RepositoryIdOption,
    staging_profile_id: Optional[str] = ProfileIdOption,
    package_group: Optional[str] = PackageGroupOption,
    server_url: Optional[str] = ServerUrlOption,
    username: Optional[str] = UsernameOption,
    max_attempts: Optional[int] = MaxAttemptsOption,
    delay: Optional[float] = DelayOption,
    metrics_output: Optional[Path] = MetricsOutputOption,
):
    """Close the open staging repository and wait until it is closed."""
    settings = _load_settings(
        staging_profile_id=staging_profile_id,
        package_group=package_group,
        server_url=server_url,
        username=username,
        max_attempts=max_attempts,
        delay_between_attempts=delay,
    )
    with _cancellation() as cancel_event, _reporting(metrics_output):
        with _build_client(settings) as client:
            profile_id = _resolve_profile_id(client, settings)
            finder = RepositoryFinder(client)
            if not repository_id:
                repository_id = finder.find_open_repository_id(profile_id)
            CloseRepository.for_client(
                client, settings.retry_policy(), **_operation_kwargs(cancel_event)
            ).run(repository_id, profile_id)
    typer.echo(f"Repository {repository_id} closed")


@app.command("promote-repository")
def promote_repository(
    repository_id: Optional[str] = RepositoryIdOption,
    staging_profile_id: Optional[str] = ProfileIdOption,
    package_group: Optional[str] = PackageGroupOption,
    server_url: Optional[str] = ServerUrlOption,
    username: Optional[str] = UsernameOption,
    max_attempts: Optional[int] = MaxAttemptsOption,
    delay: Optional[float] = DelayOption,
    metrics_output: Optional[Path] = MetricsOutputOption,
):
    """Promote the closed staging repository and wait until it is released."""
    settings = _load_settings(
        staging_profile_id=staging_profile_id,
        package_group=package_group,
        server_url=server_url,
        username=username,
        max_attempts=max_attempts,
        delay_between_attempts=delay,
    )
    with _cancellation() as cancel_event, _reporting(metrics_output):
        with _build_client(settings) as client:
            profile_id = _resolve_profile_id(client, settings)
            finder = RepositoryFinder(client)
            if not repository_id:
                repository_id = finder.find_closed_repository_id(profile_id)
            PromoteRepository.for_client(
                client, settings.retry_policy(), **_operation_kwargs(cancel_event)
            ).run(repository_id, profile_id)
    typer.echo(f"Repository {repository_id} released")


@app.command("close-and-promote-repository")
def close_and_promote_repository(
    repository_id: Optional[str] = RepositoryIdOption,
    staging_profile_id: Optional[str] = ProfileIdOption,
    package_group: Optional[str] = PackageGroupOption,
    server_url: Optional[str] = ServerUrlOption,
    username: Optional[str] = UsernameOption,
    max_attempts: Optional[int] = MaxAttemptsOption,
    delay: Optional[float] = DelayOption,
    metrics_output: Optional[Path] = MetricsOutputOption,
):
    """Close the open staging repository, then promote it."""
    settings = _load_settings(
        staging_profile_id=staging_profile_id,
        package_group=package_group,
        server_url=server_url,
        username=username,
        max_attempts=max_attempts,
        delay_between_attempts=delay,
    )
    with _cancellation() as cancel_event, _reporting(metrics_output):
        with _build_client(settings) as client:
            profile_id = _resolve_profile_id(client, settings)
            finder = RepositoryFinder(client)
            if not repository_id:
                repository_id = finder.find_open_repository_id(profile_id)
            policy = settings.retry_policy()
            kwargs = _operation_kwargs(cancel_event)
            CloseAndPromote(
                CloseRepository.for_client(client, policy, **kwargs),
                PromoteRepository.for_client(client, policy, **kwargs),
            ).run(repository_id, profile_id)
    typer.echo(f"Repository {repository_id} closed and released")


@app.command("drop-repository")
def drop_repository(
    repository_id: Optional[str] = RepositoryIdOption,
    staging_profile_id: Optional[str] = ProfileIdOption,
    package_group: Optional[str] = PackageGroupOption,
    server_url: Optional[str] = ServerUrlOption,
    username: Optional[str] = UsernameOption,
    max_attempts: Optional[int] = MaxAttemptsOption,
    delay: Optional[float] = DelayOption,
    metrics_output: Optional[Path] = MetricsOutputOption,
):
    """Drop a staging repository (the open one unless --repository-id is given)."""
    settings = _load_settings(
        staging_profile_id=staging_profile_id,
        package_group=package_group,
        server_url=server_url,
        username=username,
        max_attempts=max_attempts,
        delay_between_attempts=delay,
    )
    with _cancellation() as cancel_event, _reporting(metrics_output):
        with _build_client(settings) as client:
            profile_id = _resolve_profile_id(client, settings)
            finder = RepositoryFinder(client)
            if not repository_id:
                repository_id = finder.find_droppable_repository_id(profile_id)
            DropRepository.for_client(
                client, settings.retry_policy(), **_operation_kwargs(cancel_event)
            ).run(repository_id, profile_id)
    typer.echo(f"Repository {repository_id} dropped")


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
