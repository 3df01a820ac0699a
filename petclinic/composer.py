"""
PetClinic Construct
Composes the whole topology (network, EKS, controller identity, database,
workloads and ingress) into a single dependency-ordered resource graph
"""
from dataclasses import dataclass
from typing import Dict, List, Tuple

import pulumi

from .cluster import create_cluster, create_kubernetes_provider, create_node_group, create_sts_endpoint
from .controller import install_load_balancer_controller
from .database import create_database
from .graph import ResourceGraph
from .identity import IdentityBinding, bind_controller_identity, create_oidc_provider
from .ingress import IngressRoute, build_routes, create_ingress
from .network import create_network, create_security_group
from .workloads import ServiceSpec, create_namespace, create_workload


@dataclass(frozen=True)
class PetClinicImages:
    """Container image references, one per logical service"""

    ui: str
    customer: str
    vets: str
    visits: str

    def services(self) -> List[ServiceSpec]:
        return [
            ServiceSpec("ui", self.ui),
            ServiceSpec("customer", self.customer),
            ServiceSpec("vets", self.vets),
            ServiceSpec("visits", self.visits),
        ]


@dataclass(frozen=True)
class PetClinicTopology:
    graph: ResourceGraph
    services: Tuple[ServiceSpec, ...]
    routes: Tuple[IngressRoute, ...]
    identity: IdentityBinding
    handles: Dict[str, object]


def compose_petclinic(images: PetClinicImages,
                      cluster_name: str = "Cluster",
                      cluster_version: str = "1.31",
                      region: str = "us-west-2",
                      availability_zones: List[str] = None,
                      vpc_cidr: str = "10.0.0.0/16",
                      node_instance_type: str = "m5a.large",
                      node_ami_type: str = "AL2023_x86_64_STANDARD",
                      tags: Dict[str, str] = None) -> PetClinicTopology:
    """
    Build the PetClinic resource graph

    Pure and deterministic: no cloud calls are made, and the same input
    always yields a structurally identical graph.

    Args:
        images: Image references for the ui, customer, vets and visits services
        cluster_name: EKS cluster name
        cluster_version: Kubernetes version
        region: AWS region, used for AZ defaults and the STS endpoint
        availability_zones: AZs for the subnets (defaults to <region>a, <region>b)
        vpc_cidr: VPC CIDR block
        node_instance_type: EC2 instance type of the worker nodes
        node_ami_type: AMI type of the worker nodes
        tags: Additional tags for AWS resources

    Returns:
        PetClinicTopology holding the graph and the composed values
    """
    services = images.services()
    for service in services:
        if not service.image or not service.image.strip():
            raise ValueError(f"Image reference for {service.suffix!r} must not be empty")

    tags = tags or {}
    availability_zones = availability_zones or [f"{region}a", f"{region}b"]
    graph = ResourceGraph()

    # 1. Network and perimeter
    network = create_network(graph, cluster_name, vpc_cidr, availability_zones, tags)
    security_group = create_security_group(graph, network["vpc"], tags)

    # 2. Cluster and compute
    cluster = create_cluster(graph, network, security_group, cluster_name, cluster_version, tags)
    node_group = create_node_group(graph, cluster, network["private_subnets"],
                                   node_instance_type, node_ami_type, tags)
    sts_endpoint = create_sts_endpoint(graph, network["vpc"], vpc_cidr, network["private_subnets"],
                                       security_group, region, tags)
    k8s_provider = create_kubernetes_provider(graph, cluster)

    # 3. Controller identity and installation; the service account needs the namespace
    oidc_provider = create_oidc_provider(graph, cluster)
    namespace = create_namespace(graph, k8s_provider)
    identity = bind_controller_identity(graph, oidc_provider, k8s_provider, namespace)
    controller = install_load_balancer_controller(graph, cluster, network["vpc"], region, identity,
                                                  k8s_provider, wait_for=(node_group,))

    # 4. Database
    database = create_database(graph, network["private_subnets"], security_group, tags)

    # 5. Workloads and ingress
    workloads = {
        service.suffix: create_workload(graph, k8s_provider, service, database["secret"], namespace)
        for service in services
    }
    routes = build_routes(services)
    ingress = create_ingress(graph, k8s_provider, routes, namespace)

    pulumi.log.info(
        f"petclinic: composed {len(graph)} resources, {len(graph.edges)} explicit edges, "
        f"{len(workloads)} services, {len(routes)} routes"
    )

    return PetClinicTopology(
        graph=graph,
        services=tuple(services),
        routes=tuple(routes),
        identity=identity,
        handles={
            "vpc": network["vpc"],
            "security_group": security_group,
            "cluster": cluster,
            "node_group": node_group,
            "sts_endpoint": sts_endpoint,
            "k8s_provider": k8s_provider,
            "oidc_provider": oidc_provider,
            "controller": controller,
            "database": database["cluster"],
            "database_secret": database["secret_resource"],
            "namespace": namespace,
            "workloads": workloads,
            "ingress": ingress,
        },
    )
