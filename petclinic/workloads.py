"""
PetClinic Workloads
Namespace plus one Deployment and one NodePort Service per logical service
"""
from dataclasses import dataclass
from typing import Any, Dict

import pulumi

from .graph import Ref, ResourceGraph

NAMESPACE = "petclinic-namespace"
CONTAINER_PORT = 80
HEALTH_PATH = "/actuator/health"
NAME_LABEL = "app.kubernetes.io/name"


@dataclass(frozen=True)
class ServiceSpec:
    suffix: str
    image: str

    @property
    def deployment_name(self) -> str:
        return f"petclinic-{self.suffix}"

    @property
    def service_name(self) -> str:
        return f"petclinic-{self.suffix}-service"

    @property
    def labels(self) -> Dict[str, str]:
        return {NAME_LABEL: self.deployment_name}


def namespace_manifest() -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {"name": NAMESPACE},
    }


def deployment_manifest(service: ServiceSpec, secret_name: Any) -> Dict[str, Any]:
    """
    Single-replica Deployment for one service

    The container runs as root and always pulls its image; the database
    credentials are only referenced through SECRETS_NAME.
    """
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": service.deployment_name,
            "namespace": NAMESPACE,
        },
        "spec": {
            "selector": {"matchLabels": service.labels},
            "replicas": 1,
            "template": {
                "metadata": {"labels": service.labels},
                "spec": {
                    "containers": [{
                        "image": service.image,
                        "imagePullPolicy": "Always",
                        "name": service.deployment_name,
                        "securityContext": {"runAsUser": 0},
                        "ports": [{"containerPort": CONTAINER_PORT, "protocol": "TCP"}],
                        "env": [{"name": "SECRETS_NAME", "value": secret_name}],
                        "livenessProbe": {
                            "httpGet": {"path": HEALTH_PATH, "port": CONTAINER_PORT},
                        },
                    }],
                },
            },
        },
    }


def service_manifest(service: ServiceSpec) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {
            "namespace": NAMESPACE,
            "name": service.service_name,
        },
        "spec": {
            "ports": [{"port": CONTAINER_PORT, "targetPort": CONTAINER_PORT, "protocol": "TCP"}],
            "type": "NodePort",
            "selector": service.labels,
        },
    }


def create_namespace(graph: ResourceGraph, provider: str) -> str:
    namespace = graph.add("namespace", "kubernetes:manifest:Namespace",
                          namespace_manifest(), provider=provider)
    return namespace.name


def create_workload(graph: ResourceGraph, provider: str, service: ServiceSpec,
                    secret: Ref, namespace: str) -> Dict[str, str]:
    """
    Add the Deployment and Service for one logical service

    Args:
        graph: Graph to add resources to
        provider: Name of the Kubernetes provider node
        service: Suffix and image of the service
        secret: Reference to the database credential secret identifier
        namespace: Name of the namespace node both objects depend on

    Returns:
        Dict with the deployment and service node names
    """
    if not service.image or not service.image.strip():
        raise ValueError(f"Image reference for {service.suffix!r} must not be empty")

    deployment = graph.add(f"deployment-{service.suffix}", "kubernetes:manifest:Deployment",
                           deployment_manifest(service, secret),
                           depends_on=(namespace,), provider=provider)

    k8s_service = graph.add(f"service-{service.suffix}", "kubernetes:manifest:Service",
                            service_manifest(service),
                            depends_on=(namespace,), provider=provider)

    pulumi.log.debug(f"workload: {service.deployment_name} -> {service.image}")
    return {"deployment": deployment.name, "service": k8s_service.name}
