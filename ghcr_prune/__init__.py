"""ghcr-prune: remove outdated container images from GitHub Container Registry."""

__version__ = "0.1.0"
