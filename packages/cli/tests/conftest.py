"""Shared fixtures for KubeKit tests."""

from __future__ import annotations

import json
from typing import Any

import pytest

from kubekit.client import ApiError
from kubekit.resource import RESTMapper, ResourceHandle


def deployment(name: str, paused: bool = False, namespace: str = "default") -> dict[str, Any]:
    """Build a minimal Deployment object."""
    spec: dict[str, Any] = {"replicas": 1, "template": {"spec": {"containers": [{"name": name}]}}}
    if paused:
        spec["paused"] = True
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": namespace, "resourceVersion": "1"},
        "spec": spec,
    }


def apply_merge_patch(target: Any, patch: Any) -> Any:
    """Apply a merge patch the way the API server would."""
    if not isinstance(patch, dict):
        return patch
    result = dict(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = apply_merge_patch(result.get(key), value)
    return result


class FakeApiClient:
    """In-memory stand-in for ApiClient that records every call."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str | None, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, str, str | None, str | None]] = []
        self.patch_errors: dict[str, Exception] = {}
        self.patches: list[tuple[str, bytes]] = []

    def add(self, obj: dict[str, Any]) -> dict[str, Any]:
        mapping = RESTMapper().for_kind(obj["kind"], obj.get("apiVersion"))
        meta = obj["metadata"]
        self.objects[(mapping.resource, meta.get("namespace"), meta["name"])] = obj
        return obj

    def _not_found(self, mapping, name: str) -> ApiError:
        return ApiError(
            message=f'{mapping.qualified_resource} "{name}" not found',
            status_code=404,
            reason="NotFound",
        )

    def get(self, mapping, namespace, name):
        self.calls.append(("get", mapping.resource, namespace, name))
        key = (mapping.resource, namespace, name)
        if key not in self.objects:
            raise self._not_found(mapping, name)
        return json.loads(json.dumps(self.objects[key]))

    def list(self, mapping, namespace):
        self.calls.append(("list", mapping.resource, namespace, None))
        return [
            json.loads(json.dumps(obj))
            for (resource, ns, _), obj in self.objects.items()
            if resource == mapping.resource and ns == namespace
        ]

    def patch(self, mapping, namespace, name, data):
        self.calls.append(("patch", mapping.resource, namespace, name))
        self.patches.append((name, data))
        if name in self.patch_errors:
            raise self.patch_errors[name]
        key = (mapping.resource, namespace, name)
        if key not in self.objects:
            raise self._not_found(mapping, name)
        updated = apply_merge_patch(self.objects[key], json.loads(data))
        updated["metadata"]["resourceVersion"] = str(int(updated["metadata"]["resourceVersion"]) + 1)
        self.objects[key] = updated
        return json.loads(json.dumps(updated))

    @property
    def writes(self) -> list[tuple[str, str, str | None, str | None]]:
        return [call for call in self.calls if call[0] == "patch"]


@pytest.fixture
def fake_client():
    """Create an empty in-memory cluster client."""
    return FakeApiClient()


@pytest.fixture
def make_handle(fake_client):
    """Create handles for objects stored in the fake cluster."""
    mapper = RESTMapper()

    def _make(obj: dict[str, Any]) -> ResourceHandle:
        fake_client.add(obj)
        mapping = mapper.for_kind(obj["kind"], obj.get("apiVersion"))
        return ResourceHandle(
            mapping=mapping,
            namespace=obj["metadata"].get("namespace"),
            name=obj["metadata"]["name"],
            client=fake_client,
            object=json.loads(json.dumps(obj)),
        )

    return _make
