"""
A Kubernetes operator core that keeps the Deployment, Service, Ingress and
Certificate of a Plant in sync and reports their readiness in its status.
"""

__all__ = [
    "client",
    "controller",
    "exceptions",
    "manifest",
    "runner",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
