"""Rollout service for KubeKit.

Resumes paused workloads: every resolved resource is transformed, diffed and,
when something changed, patched on the server. One resource failing never
stops the others; all failures come back together as a single aggregate.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from kubekit.errors import AggregateError, ResourceError, new_aggregate
from kubekit.resource import ResourceHandle
from kubekit.services.patch_service import calculate_patches
from kubekit.services.resume_service import resume_object

logger = logging.getLogger(__name__)

OPERATION_RESUMED = "resumed"
OPERATION_ALREADY_RESUMED = "already resumed"

StatusPrinter = Callable[[ResourceHandle, str], None]


@dataclass
class RolloutResult:
    """A resource that reached a final state, and how."""

    handle: ResourceHandle
    operation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource": self.handle.ref,
            "namespace": self.handle.namespace,
            "operation": self.operation,
        }


def _tag(resource: str, name: str, err: Exception) -> Exception:
    """Attribute an error to a resource, tagging each member of an aggregate."""
    if isinstance(err, AggregateError):
        return AggregateError(ResourceError(resource, name, e) for e in err.flatten())
    return ResourceError(resource, name, err)


class RolloutService:
    """Service for resuming paused rollouts."""

    def __init__(self, printer: StatusPrinter | None = None) -> None:
        self.printer = printer

    def _report(self, handle: ResourceHandle, operation: str) -> RolloutResult:
        if self.printer is not None:
            self.printer(handle, operation)
        return RolloutResult(handle=handle, operation=operation)

    def resume(
        self,
        handles: list[ResourceHandle],
    ) -> tuple[list[RolloutResult], AggregateError | None]:
        """Resume each handle in order.

        Args:
            handles: Resolved resources; only resumable kinds should be passed

        Returns:
            The per-resource results that were reported, and an aggregate of
            every failure (None when nothing failed)
        """
        results: list[RolloutResult] = []
        errors: list[Exception] = []

        outcomes = calculate_patches(handles, lambda h: resume_object(h.kind, h.object))
        for outcome in outcomes:
            handle = outcome.handle
            resource = handle.mapping.qualified_resource

            if outcome.error is not None:
                errors.append(_tag(resource, handle.name, outcome.error))
                continue

            if outcome.is_empty:
                logger.debug("%s is not paused, skipping patch", handle.ref)
                results.append(self._report(handle, OPERATION_ALREADY_RESUMED))
                continue

            try:
                obj = handle.client.patch(handle.mapping, handle.namespace, handle.name, outcome.patch)
            except Exception as e:
                errors.append(
                    ResourceError(resource, handle.name, f"failed to patch: {e}", code="PATCH_FAILED")
                )
                continue

            handle.refresh(obj)
            logger.info("Resumed %s at resourceVersion %s", handle.ref, handle.resource_version)
            results.append(self._report(handle, OPERATION_RESUMED))

        return results, new_aggregate(errors)
