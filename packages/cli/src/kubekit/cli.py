"""Main CLI entry point for KubeKit."""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from kubekit import __version__
from kubekit.output import OutputFormatter

LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def configure_logging(verbosity: int) -> None:
    """Send log records to stderr through rich, more of them with each -v."""
    level = LOG_LEVELS.get(verbosity, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=False)],
        force=True,
    )


@click.group()
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (repeat for debug)")
@click.option(
    "--kubeconfig",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to the kubeconfig file",
)
@click.option("--context", help="Name of the kubeconfig context to use")
@click.option("-s", "--server", help="Address of the cluster API server")
@click.option("--token", help="Bearer token for API server authentication")
@click.option(
    "--insecure-skip-tls-verify",
    is_flag=True,
    help="Do not verify the server certificate",
)
@click.option("--request-timeout", type=float, help="Seconds to wait for each API request")
@click.option("-n", "--namespace", help="Namespace scope for this request")
@click.version_option(version=__version__, prog_name="kubekit")
@click.pass_context
def cli(
    ctx: click.Context,
    output_json: bool,
    verbose: int,
    kubeconfig: Path | None,
    context: str | None,
    server: str | None,
    token: str | None,
    insecure_skip_tls_verify: bool,
    request_timeout: float | None,
    namespace: str | None,
) -> None:
    """KubeKit - cluster workload management CLI.

    Connection settings come from your kubeconfig and can be overridden
    with the options below. Use --json flag for machine-readable output.
    """
    configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["formatter"] = OutputFormatter(json_mode=output_json)
    ctx.obj["connection"] = {
        "kubeconfig": kubeconfig,
        "context": context,
        "server": server,
        "token": token,
        "insecure_skip_tls_verify": insecure_skip_tls_verify,
        "request_timeout": request_timeout,
        "namespace": namespace,
    }


# Import and register commands
from kubekit.commands import rollout  # noqa: E402

cli.add_command(rollout.rollout)
