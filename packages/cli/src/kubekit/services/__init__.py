"""KubeKit services."""
