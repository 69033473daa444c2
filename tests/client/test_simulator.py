"""Tests for the readiness simulator."""

from plant_operator.client import InMemoryClient, ReadinessSimulator
from plant_operator.manifest import Certificate, Deployment, ObjectMeta, Service
from plant_operator.task import get_task_service


async def test_marks_objects_ready(client: InMemoryClient) -> None:
    """Test Deployments and Certificates are marked ready when written."""
    simulator = ReadinessSimulator(client)
    simulator.start()

    deployment = await client.create(
        Deployment(
            metadata=ObjectMeta(name="web", namespace="default"),
            spec={"replicas": 3},
        )
    )
    certificate = await client.create(
        Certificate(
            metadata=ObjectMeta(name="web", namespace="default"),
            spec={"secretName": "web-tls"},
        )
    )
    service = await client.create(
        Service(metadata=ObjectMeta(name="web", namespace="default"), spec={})
    )
    await get_task_service().block_till_done()

    deployment = await client.get(deployment.resource_id, Deployment)
    assert deployment.status["availableReplicas"] == 3
    certificate = await client.get(certificate.resource_id, Certificate)
    assert certificate.status["conditions"][0]["type"] == "Ready"
    assert certificate.status["conditions"][0]["status"] == "True"
    service = await client.get(service.resource_id, Service)
    assert service.status == {}

    # Scaling the Deployment is picked up again
    deployment.spec["replicas"] = 1
    await client.update(deployment)
    await get_task_service().block_till_done()
    deployment = await client.get(deployment.resource_id, Deployment)
    assert deployment.status["availableReplicas"] == 1

    simulator.stop()
    deployment.spec["replicas"] = 2
    await client.update(deployment)
    await get_task_service().block_till_done()
    deployment = await client.get(deployment.resource_id, Deployment)
    assert deployment.status["availableReplicas"] == 1
