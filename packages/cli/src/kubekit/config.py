"""Configuration management for KubeKit.

Cluster connection settings come from a kubeconfig file. The file is picked
from --kubeconfig, then the first entry of $KUBECONFIG, then ~/.kube/config.
"""

import base64
import binascii
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from kubekit.errors import KubeKitError

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"
DEFAULT_KUBECONFIG = Path("~/.kube/config")


@dataclass
class KubeKitConfig:
    """KubeKit cluster configuration settings."""

    config_file: Path | None = None
    context: str | None = None

    # Cluster
    server: str = ""
    certificate_authority: Path | None = None
    insecure_skip_tls_verify: bool = False

    # User
    token: str | None = None
    username: str | None = None
    password: str | None = None
    client_certificate: Path | None = None
    client_key: Path | None = None

    # Context defaults
    namespace: str = DEFAULT_NAMESPACE
    namespace_enforced: bool = False

    request_timeout: float | None = None

    # Files written for inline credentials, removed by cleanup()
    temp_files: list[Path] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Convert string paths to Path objects if needed."""
        for field_name in ("config_file", "certificate_authority", "client_certificate", "client_key"):
            value = getattr(self, field_name)
            if isinstance(value, str):
                setattr(self, field_name, Path(value))

    @staticmethod
    def default_path() -> Path:
        """Locate the kubeconfig file to read when none is given."""
        env_value = os.environ.get("KUBECONFIG", "")
        for entry in env_value.split(os.pathsep):
            if entry:
                return Path(entry).expanduser()
        return DEFAULT_KUBECONFIG.expanduser()

    @classmethod
    def load(cls, config_path: Path | None = None, context: str | None = None) -> "KubeKitConfig":
        """Load configuration from a kubeconfig file, falling back to defaults."""
        if config_path is None:
            config_path = cls.default_path()

        data: dict[str, Any] = {}
        if config_path.exists():
            try:
                with open(config_path) as f:
                    data = yaml.safe_load(f) or {}
            except (yaml.YAMLError, OSError) as e:
                logger.warning("Ignoring unreadable kubeconfig %s: %s", config_path, e)
                data = {}
        else:
            logger.debug("No kubeconfig at %s, using defaults", config_path)

        config = cls._from_kubeconfig(data, context, base_dir=config_path.parent)
        config.config_file = config_path
        return config

    @classmethod
    def _from_kubeconfig(
        cls,
        data: dict[str, Any],
        context: str | None = None,
        base_dir: Path | None = None,
    ) -> "KubeKitConfig":
        """Create config from a parsed kubeconfig document."""
        context_name = context or data.get("current-context")
        ctx = _named(data.get("contexts"), context_name, "context")
        cluster = _named(data.get("clusters"), ctx.get("cluster"), "cluster")
        user = _named(data.get("users"), ctx.get("user"), "user")

        kwargs: dict[str, Any] = {"context": context_name}
        temp_files: list[Path] = []
        try:
            kwargs.update(_credentials(cluster, user, base_dir, temp_files))
        except Exception:
            _remove(temp_files)
            raise

        if ctx.get("namespace"):
            kwargs["namespace"] = ctx["namespace"]

        if cluster.get("server"):
            kwargs["server"] = cluster["server"].rstrip("/")
        kwargs["insecure_skip_tls_verify"] = bool(cluster.get("insecure-skip-tls-verify", False))
        return cls(temp_files=temp_files, **kwargs)

    def apply_overrides(
        self,
        server: str | None = None,
        token: str | None = None,
        namespace: str | None = None,
        insecure_skip_tls_verify: bool | None = None,
        request_timeout: float | None = None,
    ) -> "KubeKitConfig":
        """Apply command-line overrides on top of the loaded file."""
        if server:
            self.server = server.rstrip("/")
        if token:
            self.token = token
        if namespace:
            self.namespace = namespace
            self.namespace_enforced = True
        if insecure_skip_tls_verify:
            self.insecure_skip_tls_verify = True
        if request_timeout is not None:
            self.request_timeout = request_timeout
        return self

    def require_server(self) -> str:
        """Return the API server URL, failing when none is configured."""
        if not self.server:
            raise KubeKitError(
                code="NOT_CONFIGURED",
                message="No cluster API server is configured",
                suggestion="Pass --server or point --kubeconfig at a file with a current context",
            )
        return self.server

    def cleanup(self) -> None:
        """Remove the files written for inline credentials."""
        _remove(self.temp_files)


def _named(entries: list[dict[str, Any]] | None, name: str | None, key: str) -> dict[str, Any]:
    """Find the named entry in a kubeconfig list section."""
    if not name:
        return {}
    for entry in entries or []:
        if entry.get("name") == name:
            return entry.get(key) or {}
    logger.debug("kubeconfig has no %s named %r", key, name)
    return {}


def _resolve(path: str, base_dir: Path | None) -> Path:
    resolved = Path(path).expanduser()
    if not resolved.is_absolute() and base_dir is not None:
        resolved = base_dir / resolved
    return resolved


def _remove(paths: list[Path]) -> None:
    for path in paths:
        path.unlink(missing_ok=True)
    paths.clear()


def _invalid(message: str) -> KubeKitError:
    return KubeKitError(
        code="INVALID_KUBECONFIG",
        message=message,
        suggestion="Check the user and cluster entries of your kubeconfig",
    )


def _credentials(
    cluster: dict[str, Any],
    user: dict[str, Any],
    base_dir: Path | None,
    temp_files: list[Path],
) -> dict[str, Any]:
    """Read TLS material and user credentials, writing inline data to temp files."""
    kwargs: dict[str, Any] = {
        "certificate_authority": _file_or_data(
            cluster, "certificate-authority", base_dir, ".crt", temp_files
        ),
    }

    # Map kubeconfig user keys to dataclass fields
    mappings = {
        "token": "token",
        "username": "username",
        "password": "password",
    }
    for yaml_key, field_name in mappings.items():
        if yaml_key in user:
            kwargs[field_name] = user[yaml_key]
    if "tokenFile" in user and "token" not in user:
        token_path = _resolve(user["tokenFile"], base_dir)
        try:
            kwargs["token"] = token_path.read_text().strip()
        except OSError as e:
            raise _invalid(f"unable to read tokenFile {token_path}: {e}") from e

    kwargs["client_certificate"] = _file_or_data(
        user, "client-certificate", base_dir, ".crt", temp_files
    )
    kwargs["client_key"] = _file_or_data(user, "client-key", base_dir, ".key", temp_files)
    return kwargs


def _file_or_data(
    section: dict[str, Any],
    key: str,
    base_dir: Path | None,
    suffix: str,
    temp_files: list[Path],
) -> Path | None:
    """Resolve a kubeconfig credential given either as a path or inline data."""
    if section.get(key):
        return _resolve(section[key], base_dir)

    inline = section.get(f"{key}-data")
    if not inline:
        return None

    try:
        content = base64.b64decode("".join(str(inline).split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise _invalid(f"{key}-data is not valid base64: {e}") from e

    # requests only accepts certificate paths
    with tempfile.NamedTemporaryFile(prefix="kubekit-", suffix=suffix, delete=False) as f:
        f.write(content)
    path = Path(f.name)
    temp_files.append(path)
    return path


def get_config(
    kubeconfig: Path | None = None,
    context: str | None = None,
    **overrides: Any,
) -> KubeKitConfig:
    """Load the kubeconfig and apply command-line overrides on top."""
    return KubeKitConfig.load(kubeconfig, context=context).apply_overrides(**overrides)
