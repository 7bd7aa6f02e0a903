"""kubesource -- Kubernetes resource discovery for topology and inventory engines."""

__version__ = "0.1.0"
