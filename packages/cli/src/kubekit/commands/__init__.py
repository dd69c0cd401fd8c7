"""KubeKit CLI commands."""
