"""Resource lookup for KubeKit commands.

Turns command-line arguments and manifest files into handles on live cluster
objects. Lookup keeps going past broken items: per-item failures are
collected and returned alongside whatever did resolve.
"""

import logging
import sys
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from kubekit.client import ApiClient, ApiError
from kubekit.errors import AggregateError, KubeKitError, UsageError, new_aggregate

logger = logging.getLogger(__name__)

MANIFEST_EXTENSIONS = (".yaml", ".yml", ".json")


@dataclass(frozen=True)
class ResourceMapping:
    """How a kind maps onto the REST API."""

    kind: str
    resource: str
    group: str
    version: str
    namespaced: bool = True
    short_names: tuple[str, ...] = ()
    legacy_groups: tuple[str, ...] = ()

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def qualified_resource(self) -> str:
        """Resource name with its group, e.g. ``deployments.apps``."""
        return f"{self.resource}.{self.group}" if self.group else self.resource

    def matches(self, token: str) -> bool:
        token = token.lower()
        return token in (
            self.kind.lower(),
            self.resource,
            self.qualified_resource,
            f"{self.kind.lower()}.{self.group}" if self.group else self.kind.lower(),
        ) or token in self.short_names


DEFAULT_MAPPINGS: tuple[ResourceMapping, ...] = (
    ResourceMapping(
        "Deployment", "deployments", "apps", "v1", short_names=("deploy",), legacy_groups=("extensions",)
    ),
    ResourceMapping(
        "ReplicaSet", "replicasets", "apps", "v1", short_names=("rs",), legacy_groups=("extensions",)
    ),
    ResourceMapping("StatefulSet", "statefulsets", "apps", "v1", short_names=("sts",)),
    ResourceMapping(
        "DaemonSet", "daemonsets", "apps", "v1", short_names=("ds",), legacy_groups=("extensions",)
    ),
    ResourceMapping("Job", "jobs", "batch", "v1"),
    ResourceMapping("CronJob", "cronjobs", "batch", "v1", short_names=("cj",)),
    ResourceMapping("Pod", "pods", "", "v1", short_names=("po",)),
    ResourceMapping("Service", "services", "", "v1", short_names=("svc",)),
    ResourceMapping("ConfigMap", "configmaps", "", "v1", short_names=("cm",)),
    ResourceMapping("Namespace", "namespaces", "", "v1", namespaced=False, short_names=("ns",)),
)


class RESTMapper:
    """Static lookup from user-facing type names and kinds to mappings."""

    def __init__(self, mappings: Iterable[ResourceMapping] = DEFAULT_MAPPINGS) -> None:
        self.mappings = list(mappings)

    def for_type(self, token: str) -> ResourceMapping:
        """Resolve a type typed on the command line (kind, plural or short name)."""
        for mapping in self.mappings:
            if mapping.matches(token):
                return mapping
        raise KubeKitError(
            code="UNKNOWN_RESOURCE_TYPE",
            message=f'the server doesn\'t have a resource type "{token}"',
        )

    def for_kind(self, kind: str, api_version: str | None) -> ResourceMapping:
        """Resolve the kind and apiVersion found in a manifest.

        Manifests written against a retired group (e.g. extensions/v1beta1)
        resolve to the mapping that now serves the kind.
        """
        group = ""
        if api_version and "/" in api_version:
            group = api_version.split("/", 1)[0]
        for mapping in self.mappings:
            if mapping.kind == kind and (
                api_version is None or group == mapping.group or group in mapping.legacy_groups
            ):
                return mapping
        raise KubeKitError(
            code="UNKNOWN_KIND",
            message=f'no matches for kind "{kind}" in version "{api_version}"',
        )


@dataclass
class ResourceHandle:
    """A located cluster object and the client that can read and write it."""

    mapping: ResourceMapping
    namespace: str | None
    name: str
    client: ApiClient
    object: dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> str:
        return self.mapping.kind

    @property
    def ref(self) -> str:
        """Short reference used in status lines, e.g. ``deployment/nginx``."""
        return f"{self.mapping.kind.lower()}/{self.name}"

    @property
    def resource_version(self) -> str | None:
        return (self.object.get("metadata") or {}).get("resourceVersion")

    def refresh(self, obj: dict[str, Any]) -> None:
        """Replace the cached object with a newer copy from the server."""
        self.object = obj


@dataclass
class _Target:
    mapping: ResourceMapping
    namespace: str | None
    name: str | None


class ResourceLocator:
    """Resolves arguments and manifests into ResourceHandles."""

    def __init__(self, client: ApiClient, mapper: RESTMapper | None = None) -> None:
        self.client = client
        self.mapper = mapper or RESTMapper()

    def resolve(
        self,
        args: list[str],
        filenames: list[str],
        namespace: str,
        enforce_namespace: bool = False,
        recursive: bool = False,
    ) -> tuple[list[ResourceHandle], AggregateError | None]:
        """Locate every requested object, in the order requested.

        Returns the handles that resolved and an aggregate of the items that
        did not. Malformed arguments, unknown types and missing paths raise
        instead, since nothing sensible can be located in that case.
        """
        if not args and not filenames:
            raise UsageError("You must provide one or more resources by argument or filename.")
        if args and filenames:
            raise UsageError(
                "when paths or stdin are provided as input, you may not specify resource arguments as well"
            )

        errors: list[Exception] = []
        if filenames:
            targets = list(self._targets_from_files(filenames, namespace, enforce_namespace, recursive, errors))
        else:
            targets = self._targets_from_args(args, namespace)

        handles: list[ResourceHandle] = []
        for target in targets:
            try:
                handles.extend(self._fetch(target))
            except ApiError as e:
                if e.code == "CONNECTION_ERROR":
                    raise
                logger.debug("Could not resolve %s %s: %s", target.mapping.kind, target.name, e)
                errors.append(e)

        return handles, new_aggregate(errors)

    def _fetch(self, target: _Target) -> list[ResourceHandle]:
        if target.name is None:
            objs = self.client.list(target.mapping, target.namespace)
            return [self._handle(target, obj) for obj in objs]
        obj = self.client.get(target.mapping, target.namespace, target.name)
        return [self._handle(target, obj)]

    def _handle(self, target: _Target, obj: dict[str, Any]) -> ResourceHandle:
        metadata = obj.get("metadata") or {}
        return ResourceHandle(
            mapping=target.mapping,
            namespace=metadata.get("namespace", target.namespace),
            name=metadata.get("name", target.name),
            client=self.client,
            object=obj,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Arguments
    # ─────────────────────────────────────────────────────────────────────────

    def _targets_from_args(self, args: list[str], namespace: str) -> list[_Target]:
        if any("/" in arg for arg in args):
            return [self._split_type_name(arg, namespace) for arg in args]

        types = [t for t in args[0].split(",") if t]
        if not types:
            raise UsageError(f'invalid resource type "{args[0]}"')
        if len(types) > 1 and args[1:]:
            raise UsageError(
                "you must specify only one resource type when naming resources "
                f"(got \"{args[0]}\" with names {', '.join(args[1:])})"
            )
        mappings = [self.mapper.for_type(t) for t in types]
        names: list[str | None] = list(args[1:]) or [None]

        return [
            _Target(mapping, namespace if mapping.namespaced else None, name)
            for mapping in mappings
            for name in names
        ]

    def _split_type_name(self, arg: str, namespace: str) -> _Target:
        if "/" not in arg:
            raise UsageError(
                "there is no need to specify a resource type as a separate argument when passing "
                "arguments in resource/name form (e.g. 'kubekit rollout resume resource/<resource_name>' "
                "instead of 'kubekit rollout resume resource resource/<resource_name>')"
            )
        type_token, _, name = arg.partition("/")
        if not type_token or not name or "/" in name:
            raise UsageError(f"arguments in resource/name form must have a single resource and name: {arg!r}")
        mapping = self.mapper.for_type(type_token)
        return _Target(mapping, namespace if mapping.namespaced else None, name)

    # ─────────────────────────────────────────────────────────────────────────
    # Manifests
    # ─────────────────────────────────────────────────────────────────────────

    def _targets_from_files(
        self,
        filenames: list[str],
        namespace: str,
        enforce_namespace: bool,
        recursive: bool,
        errors: list[Exception],
    ) -> Iterator[_Target]:
        for source, text in self._read_manifests(filenames, recursive):
            try:
                documents = [doc for doc in yaml.safe_load_all(text) if doc]
            except yaml.YAMLError as e:
                errors.append(KubeKitError(code="INVALID_MANIFEST", message=f"error parsing {source}: {e}"))
                continue

            for obj in _flatten_lists(documents):
                try:
                    target = self._target_from_object(obj, source, namespace, enforce_namespace)
                except KubeKitError as e:
                    errors.append(e)
                    continue
                yield target

    def _target_from_object(
        self,
        obj: Any,
        source: str,
        namespace: str,
        enforce_namespace: bool,
    ) -> _Target:
        if not isinstance(obj, dict) or not obj.get("kind"):
            raise KubeKitError(
                code="INVALID_MANIFEST",
                message=f"error validating {source}: object has no kind",
            )

        mapping = self.mapper.for_kind(obj["kind"], obj.get("apiVersion"))
        metadata = obj.get("metadata") or {}
        name = metadata.get("name")
        if not name:
            raise KubeKitError(
                code="INVALID_MANIFEST",
                message=f"error validating {source}: {mapping.kind} has no metadata.name",
            )

        if not mapping.namespaced:
            return _Target(mapping, None, name)

        obj_namespace = metadata.get("namespace") or namespace
        if enforce_namespace and obj_namespace != namespace:
            raise KubeKitError(
                code="NAMESPACE_MISMATCH",
                message=(
                    f'the namespace from the provided object "{obj_namespace}" does not match the '
                    f'namespace "{namespace}". You must pass \'--namespace={obj_namespace}\' to '
                    "perform this operation."
                ),
            )
        return _Target(mapping, obj_namespace, name)

    def _read_manifests(self, filenames: list[str], recursive: bool) -> Iterator[tuple[str, str]]:
        for path in _expand_paths(filenames, recursive):
            if path == "-":
                yield "STDIN", sys.stdin.read()
                continue
            try:
                yield str(path), Path(path).read_text()
            except OSError as e:
                raise KubeKitError(
                    code="FILE_READ_ERROR",
                    message=f"unable to read {path}: {e}",
                ) from e


def _expand_paths(filenames: list[str], recursive: bool) -> list[str]:
    """Expand directories into the manifest files they hold.

    Missing paths are fatal and reported before any file is read.
    """
    paths: list[str] = []
    for name in filenames:
        if name == "-":
            paths.append(name)
            continue

        path = Path(name)
        if not path.exists():
            raise KubeKitError(
                code="FILE_NOT_FOUND",
                message=f'the path "{name}" does not exist',
            )
        if path.is_dir():
            pattern = "**/*" if recursive else "*"
            paths.extend(
                str(p) for p in sorted(path.glob(pattern))
                if p.is_file() and p.suffix in MANIFEST_EXTENSIONS
            )
        else:
            paths.append(str(path))
    return paths


def _flatten_lists(documents: list[Any]) -> Iterator[Any]:
    """Yield objects, expanding ``kind: List`` documents into their items."""
    for doc in documents:
        if isinstance(doc, dict) and str(doc.get("kind") or "").endswith("List") and "items" in doc:
            yield from _flatten_lists(doc.get("items") or [])
        else:
            yield doc
