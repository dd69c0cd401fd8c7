"""KubeKit - cluster workload management CLI."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("kubekit")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
