"""Rollout CLI commands for KubeKit."""

import click
from click.shell_completion import CompletionItem

from kubekit.client import ApiClient
from kubekit.config import get_config
from kubekit.errors import KubeKitError, UsageError, flatten, new_aggregate
from kubekit.output import OUTPUT_FORMATS, OutputFormatter
from kubekit.resource import ResourceLocator
from kubekit.services.resume_service import RESUMERS, split_resumable
from kubekit.services.rollout_service import RolloutService

FILENAME_USAGE = "identifying the resource to get from a server."


def get_formatter(ctx: click.Context) -> OutputFormatter:
    """Get the output formatter from context."""
    return ctx.obj["formatter"]


def complete_resumable(ctx: click.Context, param: click.Parameter, incomplete: str) -> list[CompletionItem]:
    """Offer the kinds that support resuming."""
    kinds = sorted(kind.lower() for kind in RESUMERS)
    return [CompletionItem(kind) for kind in kinds if kind.startswith(incomplete.lower())]


@click.group()
def rollout() -> None:
    """Manage the rollout of a resource.

    \b
    Usage:
      kubekit rollout resume deployment/nginx
    """
    pass


@rollout.command("resume")
@click.argument("resources", nargs=-1, metavar="RESOURCE", shell_complete=complete_resumable)
@click.option(
    "-f",
    "--filename",
    "filenames",
    multiple=True,
    help=f"Filename, directory, or '-' for stdin {FILENAME_USAGE}",
)
@click.option(
    "-R",
    "--recursive",
    is_flag=True,
    help="Process the directory used in -f recursively.",
)
@click.option(
    "-o",
    "--output",
    type=click.Choice(OUTPUT_FORMATS),
    default="name",
    show_default=True,
    help="Output format for each resumed resource",
)
@click.pass_context
def resume(
    ctx: click.Context,
    resources: tuple[str, ...],
    filenames: tuple[str, ...],
    recursive: bool,
    output: str,
) -> None:
    """Resume a paused resource.

    Paused resources will not be reconciled by a controller. By resuming a
    resource, we allow it to be reconciled again. Currently only
    deployments support being resumed.

    \b
    Examples:
      # Resume an already paused deployment
      kubekit rollout resume deployment/nginx

      # Resume every deployment described in a manifest
      kubekit rollout resume -f app.yaml
    """
    if not resources and not filenames:
        raise click.UsageError(
            "You must provide one or more resources by argument or filename.",
            ctx=ctx,
        )

    formatter = get_formatter(ctx)
    formatter.output_format = output
    connection = ctx.obj["connection"]

    try:
        config = get_config(**connection)
        ctx.call_on_close(config.cleanup)
        locator = ResourceLocator(ApiClient(config))
        handles, resolve_err = locator.resolve(
            list(resources),
            list(filenames),
            namespace=config.namespace,
            enforce_namespace=config.namespace_enforced,
            recursive=recursive,
        )
    except UsageError as e:
        raise click.UsageError(e.message, ctx=ctx)
    except KubeKitError as e:
        formatter.error(code=e.code, message=e.message, suggestion=e.suggestion)
        return

    handles, unsupported = split_resumable(handles)

    service = RolloutService(printer=formatter.print_status)
    results, run_err = service.resume(handles)

    err = flatten(new_aggregate([resolve_err, *unsupported, run_err]))
    data = {"resources": [result.to_dict() for result in results]}

    if err is None:
        if formatter.json_mode:
            formatter.success(data=data, message=f"{len(results)} resource(s) resumed")
        return

    formatter.error(
        code="RESUME_FAILED",
        message=str(err),
        details=[str(e) for e in err],
        data=data,
    )
