"""Patch calculation between the current and desired state of an object."""

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from kubekit.resource import ResourceHandle

logger = logging.getLogger(__name__)

EMPTY_PATCH = b"{}"


@dataclass
class PatchOutcome:
    """Result of computing a patch for one resource."""

    handle: ResourceHandle
    patch: bytes | None = None
    error: Exception | None = None

    @property
    def is_empty(self) -> bool:
        """True when the patch was computed and changes nothing."""
        return self.error is None and (not self.patch or self.patch == EMPTY_PATCH)


def _diff(original: dict[str, Any], modified: dict[str, Any]) -> dict[str, Any]:
    patch: dict[str, Any] = {}
    for key, value in modified.items():
        if key not in original:
            patch[key] = value
            continue
        current = original[key]
        if current == value:
            continue
        if isinstance(current, dict) and isinstance(value, dict):
            nested = _diff(current, value)
            if nested:
                patch[key] = nested
        else:
            patch[key] = value

    for key in original:
        if key not in modified:
            patch[key] = None
    return patch


def create_two_way_merge_patch(original: dict[str, Any], modified: dict[str, Any]) -> bytes:
    """Compute a merge patch turning ``original`` into ``modified``.

    Removed keys are set to null and lists are replaced whole. Equivalent
    inputs produce ``b"{}"``.
    """
    if not isinstance(original, dict) or not isinstance(modified, dict):
        raise TypeError("patches can only be computed between two objects")
    patch = _diff(original, modified)
    return json.dumps(patch, sort_keys=True, separators=(",", ":")).encode()


def calculate_patches(
    handles: Iterable[ResourceHandle],
    transform: Callable[[ResourceHandle], dict[str, Any]],
) -> list[PatchOutcome]:
    """Compute one patch per handle, in order.

    Errors from ``transform`` or from diffing are stored on the outcome so a
    bad resource never stops the rest of the batch.
    """
    outcomes: list[PatchOutcome] = []
    for handle in handles:
        try:
            desired = transform(handle)
            patch = create_two_way_merge_patch(handle.object, desired)
        except Exception as e:
            logger.debug("Could not compute patch for %s: %s", handle.ref, e)
            outcomes.append(PatchOutcome(handle=handle, error=e))
            continue
        outcomes.append(PatchOutcome(handle=handle, patch=patch))
    return outcomes
