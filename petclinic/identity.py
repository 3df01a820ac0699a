"""
Controller Identity (IRSA)
Binds the load balancer controller's service account to an IAM role
"""
from dataclasses import dataclass
from typing import Tuple

import pulumi

from .graph import CompositionError, Derived, Ref, ResourceGraph
from .policies import (
    CONTROLLER_POLICY_STATEMENTS,
    PolicyStatement,
    policy_document,
    validate_statements,
    web_identity_trust_policy,
)
from .workloads import NAMESPACE

CONTROLLER_SERVICE_ACCOUNT = "aws-load-balancer-controller"

# AWS EKS root CA thumbprint
EKS_OIDC_THUMBPRINT = "9e99a48a9960b14926bb7f3b02e22da2b0ab7280"


class IdentityFederationError(CompositionError):
    """Raised when the cluster has no OIDC provider to federate with"""


@dataclass(frozen=True)
class IdentityBinding:
    """Service account on one side, IAM role plus its statements on the other"""

    namespace: str
    service_account: str
    service_account_resource: str
    role: str
    policy: str
    statements: Tuple[PolicyStatement, ...]


def create_oidc_provider(graph: ResourceGraph, cluster: str) -> str:
    """Register the cluster's OIDC issuer with IAM"""
    provider = graph.add("eks-oidc-provider", "aws:iam:OpenIdConnectProvider", {
        "client_id_lists": ["sts.amazonaws.com"],
        "thumbprint_lists": [EKS_OIDC_THUMBPRINT],
        "url": Ref(cluster, "identities[0].oidcs[0].issuer"),
    })
    return provider.name


def bind_controller_identity(graph: ResourceGraph, oidc_provider: str, k8s_provider: str,
                             namespace: str,
                             statements: Tuple[PolicyStatement, ...] = CONTROLLER_POLICY_STATEMENTS
                             ) -> IdentityBinding:
    """
    Create the controller's IAM role, policy and annotated service account

    Everything is validated before the first node is added so a failure
    leaves no partial identity in the graph.

    Args:
        graph: Graph to add resources to
        oidc_provider: Name of the cluster's OIDC provider node
        k8s_provider: Name of the Kubernetes provider node
        namespace: Name of the namespace node the service account lives in
        statements: Permission envelope attached to the role

    Returns:
        IdentityBinding describing both sides of the federation
    """
    if oidc_provider not in graph or graph.get(oidc_provider).kind != "OpenIdConnectProvider":
        raise IdentityFederationError(f"No OIDC provider {oidc_provider!r} to federate the controller identity with")
    validate_statements(statements)
    document = policy_document(statements)

    role = graph.add("lb-controller-role", "aws:iam:Role", {
        "assume_role_policy": Derived(web_identity_trust_policy, (
            Ref(oidc_provider, "arn"),
            Ref(oidc_provider, "url"),
            NAMESPACE,
            CONTROLLER_SERVICE_ACCOUNT,
        )),
    })

    policy = graph.add("lb-controller-policy", "aws:iam:Policy", {
        "description": "AWS Load Balancer Controller permissions",
        "policy": document,
    })

    graph.add("lb-controller-policy-attach", "aws:iam:RolePolicyAttachment", {
        "role": Ref(role.name, "name"),
        "policy_arn": Ref(policy.name, "arn"),
    })

    service_account = graph.add("lb-controller-sa", "kubernetes:manifest:ServiceAccount", {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": {
            "name": CONTROLLER_SERVICE_ACCOUNT,
            "namespace": NAMESPACE,
            "labels": {"app.kubernetes.io/name": CONTROLLER_SERVICE_ACCOUNT},
            "annotations": {"eks.amazonaws.com/role-arn": Ref(role.name, "arn")},
        },
    }, depends_on=(namespace,), provider=k8s_provider)

    pulumi.log.debug(f"identity: {NAMESPACE}/{CONTROLLER_SERVICE_ACCOUNT} bound with {len(statements)} statements")

    return IdentityBinding(
        namespace=NAMESPACE,
        service_account=CONTROLLER_SERVICE_ACCOUNT,
        service_account_resource=service_account.name,
        role=role.name,
        policy=policy.name,
        statements=tuple(statements),
    )
