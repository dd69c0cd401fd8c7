"""Resume transforms for pausable workload kinds.

Each supported kind registers a function that takes the current object and
returns the object as it should look once resumed. Kinds without an entry
cannot be resumed.
"""

import copy
from collections.abc import Callable
from typing import Any, TYPE_CHECKING

from kubekit.errors import KubeKitError, ResourceError

if TYPE_CHECKING:
    from kubekit.resource import ResourceHandle

ResumeTransform = Callable[[dict[str, Any]], dict[str, Any]]


class UnsupportedKindError(KubeKitError):
    """Raised when a kind has no resume transform."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(
            code="UNSUPPORTED_KIND",
            message="resuming is not supported",
            suggestion=f"Only {', '.join(sorted(RESUMERS))} resources can be resumed",
        )


def resume_deployment(obj: dict[str, Any]) -> dict[str, Any]:
    """Clear spec.paused on a Deployment.

    An unpaused Deployment is returned unchanged so the diff comes out empty.
    """
    resumed = copy.deepcopy(obj)
    spec = resumed.get("spec")
    if not isinstance(spec, dict):
        raise KubeKitError(code="INVALID_OBJECT", message="object has no spec")

    # paused is omitted when false
    if spec.get("paused"):
        del spec["paused"]
    return resumed


RESUMERS: dict[str, ResumeTransform] = {
    "Deployment": resume_deployment,
}


def supports_resume(kind: str) -> bool:
    """Check whether a kind has a registered resume transform."""
    return kind in RESUMERS


def split_resumable(handles: list["ResourceHandle"]) -> tuple[list["ResourceHandle"], list[Exception]]:
    """Separate handles that can be resumed from those that cannot.

    Each handle of an unsupported kind becomes an error naming it.
    """
    supported: list["ResourceHandle"] = []
    errors: list[Exception] = []
    for handle in handles:
        if supports_resume(handle.kind):
            supported.append(handle)
        else:
            errors.append(
                ResourceError(
                    handle.mapping.qualified_resource,
                    handle.name,
                    UnsupportedKindError(handle.kind),
                    code="UNSUPPORTED_KIND",
                )
            )
    return supported, errors


def resume_object(kind: str, obj: dict[str, Any]) -> dict[str, Any]:
    """Return the resumed form of an object of the given kind."""
    transform = RESUMERS.get(kind)
    if transform is None:
        raise UnsupportedKindError(kind)
    return transform(obj)
