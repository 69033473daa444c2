"""Certificate issued for the Plant host.

The Certificate is only managed when the Plant references an issuer. In that
case the issued secret is used for the Ingress TLS, otherwise the Plant may
name an existing secret directly.
"""

from typing import Any

from plant_operator.client import Client
from plant_operator.manifest import CERTIFICATE_KIND, Certificate, ObjectMeta, Plant
from plant_operator.resource import Executor

from .common import managed_executor

__all__ = [
    "build_certificate",
    "is_certificate_ready",
    "new_tls_or_nop_executor",
]


def tls_secret_name(plant: Plant) -> str:
    """Return the name of the secret the issued certificate is stored in."""
    return f"{plant.name}-tls"


def build_certificate(plant: Plant) -> Certificate | None:
    """Return the desired Certificate, or None if no issuer is referenced."""
    if (issuer_ref := plant.spec.tls_cert_issuer_ref) is None:
        return None
    return Certificate(
        metadata=ObjectMeta(
            name=plant.name,
            namespace=plant.namespace,
            labels=plant.operator_labels(),
        ),
        spec={
            "secretName": tls_secret_name(plant),
            "dnsNames": [plant.spec.host],
            "issuerRef": issuer_ref.to_dict(),
        },
    )


def is_certificate_ready(obj: Certificate) -> bool:
    """Return True when the Ready condition of the Certificate is True."""
    conditions: list[dict[str, Any]] = obj.status.get("conditions") or []
    return any(
        cond.get("type") == "Ready" and cond.get("status") == "True"
        for cond in conditions
    )


def new_tls_or_nop_executor(
    client: Client, plant: Plant, timeout: float | None = None
) -> tuple[str | None, Executor[Any]]:
    """Return the TLS secret name for the Ingress and the Certificate executor.

    Without an issuer reference the secret is taken from the Plant (and may be
    None for a plain HTTP Ingress) and the Certificate is skipped.
    """
    if (desired := build_certificate(plant)) is None:
        return plant.spec.tls_secret_name, Executor.nop(
            CERTIFICATE_KIND, Certificate.group_version_kind()
        )
    return tls_secret_name(plant), managed_executor(
        client, plant, desired, is_certificate_ready, timeout
    )
