"""
EKS Cluster Core
Control plane, managed node group, STS endpoint and the Kubernetes provider
"""
from typing import Dict, List

import pulumi

from .graph import Derived, Ref, ResourceGraph
from .policies import CLUSTER_MANAGED_POLICIES, NODE_MANAGED_POLICIES, service_trust_policy

NODE_MIN_SIZE = 2
NODE_MAX_SIZE = 3
HTTPS_PORT = 443


def render_kubeconfig(endpoint: str, ca_data: str, cluster_name: str) -> str:
    return f"""apiVersion: v1
clusters:
- cluster:
    certificate-authority-data: {ca_data}
    server: {endpoint}
  name: {cluster_name}
contexts:
- context:
    cluster: {cluster_name}
    user: {cluster_name}
  name: {cluster_name}
current-context: {cluster_name}
kind: Config
users:
- name: {cluster_name}
  user:
    exec:
      apiVersion: client.authentication.k8s.io/v1beta1
      command: aws
      args:
        - eks
        - get-token
        - --cluster-name
        - {cluster_name}
"""


def create_cluster(graph: ResourceGraph, network: Dict[str, object], security_group: str,
                   cluster_name: str, cluster_version: str, tags: Dict[str, str] = None) -> str:
    """
    Create the EKS control plane with zero default capacity

    Args:
        graph: Graph to add resources to
        network: Result of create_network
        security_group: Name of the shared security group node
        cluster_name: EKS cluster name
        cluster_version: Kubernetes version
        tags: Additional tags

    Returns:
        Name of the cluster node
    """
    tags = tags or {}

    role = graph.add("eks-cluster-role", "aws:iam:Role", {
        "assume_role_policy": service_trust_policy("eks.amazonaws.com"),
        "tags": {**tags, "Name": f"{cluster_name}-cluster-role"},
    })

    attachments = []
    for policy_name, policy_arn in CLUSTER_MANAGED_POLICIES:
        attachment = graph.add(f"eks-{policy_name}-policy", "aws:iam:RolePolicyAttachment", {
            "policy_arn": policy_arn,
            "role": Ref(role.name, "name"),
        })
        attachments.append(attachment.name)

    subnets = network["private_subnets"] + network["public_subnets"]
    cluster = graph.add("eks-cluster", "aws:eks:Cluster", {
        "name": cluster_name,
        "version": cluster_version,
        "role_arn": Ref(role.name, "arn"),
        "vpc_config": {
            "subnet_ids": [Ref(subnet) for subnet in subnets],
            "security_group_ids": [Ref(security_group)],
            "endpoint_public_access": True,
            "endpoint_private_access": True,
        },
        "enabled_cluster_log_types": ["api", "audit", "authenticator"],
        "tags": {**tags, "Name": cluster_name},
    }, depends_on=tuple(attachments))

    pulumi.log.debug(f"cluster: {cluster_name} ({cluster_version}) across {len(subnets)} subnets")
    return cluster.name


def create_node_group(graph: ResourceGraph, cluster: str, private_subnets: List[str],
                      instance_type: str, ami_type: str, tags: Dict[str, str] = None) -> str:
    """Create the worker node group and its dedicated node role"""
    tags = tags or {}

    node_role = graph.add("eks-node-role", "aws:iam:Role", {
        "assume_role_policy": service_trust_policy("ec2.amazonaws.com"),
        "tags": {**tags, "Name": "petclinic-node-role"},
    })

    attachments = []
    for policy_name, policy_arn in NODE_MANAGED_POLICIES:
        attachment = graph.add(f"node-{policy_name}-policy", "aws:iam:RolePolicyAttachment", {
            "policy_arn": policy_arn,
            "role": Ref(node_role.name, "name"),
        })
        attachments.append(attachment.name)

    node_group = graph.add("eks-node-group", "aws:eks:NodeGroup", {
        "cluster_name": Ref(cluster, "name"),
        "node_role_arn": Ref(node_role.name, "arn"),
        "subnet_ids": [Ref(subnet) for subnet in private_subnets],
        "instance_types": [instance_type],
        "ami_type": ami_type,
        "capacity_type": "ON_DEMAND",
        "scaling_config": {
            "desired_size": NODE_MIN_SIZE,
            "min_size": NODE_MIN_SIZE,
            "max_size": NODE_MAX_SIZE,
        },
        "tags": {**tags, "Name": "petclinic-nodes"},
    }, depends_on=(cluster, *attachments))

    return node_group.name


def create_sts_endpoint(graph: ResourceGraph, vpc: str, vpc_cidr: str, private_subnets: List[str],
                        security_group: str, region: str, tags: Dict[str, str] = None) -> str:
    """
    Create an STS interface endpoint

    Worker nodes sit in private subnets and cannot otherwise reach the
    regional STS service used for service account tokens. With private DNS
    every STS call in the VPC lands on the endpoint, so it carries its own
    group admitting HTTPS from the VPC next to the shared one.
    """
    tags = tags or {}

    endpoint_sg = graph.add("sts-endpoint-sg", "aws:ec2:SecurityGroup", {
        "vpc_id": Ref(vpc),
        "description": "HTTPS from the VPC to the STS endpoint",
        "ingress": [{
            "protocol": "tcp",
            "from_port": HTTPS_PORT,
            "to_port": HTTPS_PORT,
            "cidr_blocks": [vpc_cidr],
        }],
        "egress": [{
            "protocol": "-1",
            "from_port": 0,
            "to_port": 0,
            "cidr_blocks": ["0.0.0.0/0"],
        }],
        "tags": {**tags, "Name": "petclinic-sts-endpoint-sg"},
    })

    endpoint = graph.add("sts-endpoint", "aws:ec2:VpcEndpoint", {
        "vpc_id": Ref(vpc),
        "service_name": f"com.amazonaws.{region}.sts",
        "vpc_endpoint_type": "Interface",
        "private_dns_enabled": True,
        "subnet_ids": [Ref(subnet) for subnet in private_subnets],
        "security_group_ids": [Ref(security_group), Ref(endpoint_sg.name)],
        "tags": {**tags, "Name": "petclinic-sts-endpoint"},
    })
    return endpoint.name


def create_kubernetes_provider(graph: ResourceGraph, cluster: str) -> str:
    """Kubernetes provider authenticating through `aws eks get-token`"""
    provider = graph.add("k8s-provider", "kubernetes::Provider", {
        "kubeconfig": Derived(render_kubeconfig, (
            Ref(cluster, "endpoint"),
            Ref(cluster, "certificate_authority.data"),
            Ref(cluster, "name"),
        )),
    })
    return provider.name
