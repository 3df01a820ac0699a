"""
IAM Policy Tables
Managed policy lists and the AWS Load Balancer Controller permission envelope,
kept as data so they can be diffed and tested
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Sequence, Tuple

ALLOW = "Allow"

CLUSTER_TAG_KEY = "elbv2.k8s.aws/cluster"
REQUEST_TAG = f"aws:RequestTag/{CLUSTER_TAG_KEY}"
RESOURCE_TAG = f"aws:ResourceTag/{CLUSTER_TAG_KEY}"

CLUSTER_MANAGED_POLICIES = [
    ("cluster", "arn:aws:iam::aws:policy/AmazonEKSClusterPolicy"),
]

NODE_MANAGED_POLICIES = [
    ("worker", "arn:aws:iam::aws:policy/AmazonEKSWorkerNodePolicy"),
    ("registry", "arn:aws:iam::aws:policy/AmazonEC2ContainerRegistryReadOnly"),
    ("cni", "arn:aws:iam::aws:policy/AmazonEKS_CNI_Policy"),
    ("rds", "arn:aws:iam::aws:policy/AmazonRDSFullAccess"),
    ("secrets", "arn:aws:iam::aws:policy/SecretsManagerReadWrite"),
    ("logs", "arn:aws:iam::aws:policy/CloudWatchLogsFullAccess"),
]


@dataclass(frozen=True)
class PolicyStatement:
    actions: Tuple[str, ...]
    resources: Tuple[str, ...] = ("*",)
    conditions: Dict[str, Dict[str, str]] = field(default_factory=dict)
    effect: str = ALLOW

    def to_dict(self) -> Dict[str, Any]:
        statement = {
            "Effect": self.effect,
            "Action": list(self.actions),
            "Resource": list(self.resources),
        }
        if self.conditions:
            statement["Condition"] = {op: dict(values) for op, values in self.conditions.items()}
        return statement


CONTROLLER_POLICY_STATEMENTS = (
    # Read-only discovery
    PolicyStatement(actions=(
        "iam:CreateServiceLinkedRole",
        "ec2:DescribeAccountAttributes",
        "ec2:DescribeAddresses",
        "ec2:DescribeInternetGateways",
        "ec2:DescribeVpcs",
        "ec2:DescribeSubnets",
        "ec2:DescribeSecurityGroups",
        "ec2:DescribeInstances",
        "ec2:DescribeNetworkInterfaces",
        "ec2:DescribeTags",
        "elasticloadbalancing:DescribeLoadBalancers",
        "elasticloadbalancing:DescribeLoadBalancerAttributes",
        "elasticloadbalancing:DescribeListeners",
        "elasticloadbalancing:DescribeListenerCertificates",
        "elasticloadbalancing:DescribeSSLPolicies",
        "elasticloadbalancing:DescribeRules",
        "elasticloadbalancing:DescribeTargetGroups",
        "elasticloadbalancing:DescribeTargetGroupAttributes",
        "elasticloadbalancing:DescribeTargetHealth",
        "elasticloadbalancing:DescribeTags",
    )),
    # Certificates, WAF and Shield integrations
    PolicyStatement(actions=(
        "cognito-idp:DescribeUserPoolClient",
        "acm:ListCertificates",
        "acm:DescribeCertificate",
        "iam:ListServerCertificates",
        "iam:GetServerCertificate",
        "waf-regional:GetWebACL",
        "waf-regional:GetWebACLForResource",
        "waf-regional:AssociateWebACL",
        "waf-regional:DisassociateWebACL",
        "wafv2:GetWebACL",
        "wafv2:GetWebACLForResource",
        "wafv2:AssociateWebACL",
        "wafv2:DisassociateWebACL",
        "shield:GetSubscriptionState",
        "shield:DescribeProtection",
        "shield:CreateProtection",
        "shield:DeleteProtection",
    )),
    # Security group lifecycle
    PolicyStatement(actions=(
        "ec2:AuthorizeSecurityGroupIngress",
        "ec2:RevokeSecurityGroupIngress",
        "ec2:AuthorizeSecurityGroupEgress",
        "ec2:RevokeSecurityGroupEgress",
        "ec2:CreateSecurityGroup",
    )),
    # Tag security groups only as part of creating them for this cluster
    PolicyStatement(
        actions=("ec2:CreateTags",),
        resources=("arn:aws:ec2:*:*:security-group/*",),
        conditions={
            "StringEquals": {"ec2:CreateAction": "CreateSecurityGroup"},
            "Null": {REQUEST_TAG: "false"},
        },
    ),
    PolicyStatement(
        actions=("ec2:CreateTags", "ec2:DeleteTags"),
        resources=("arn:aws:ec2:*:*:security-group/*",),
        conditions={
            "Null": {REQUEST_TAG: "true", RESOURCE_TAG: "false"},
        },
    ),
    PolicyStatement(
        actions=(
            "ec2:AuthorizeSecurityGroupIngress",
            "ec2:RevokeSecurityGroupIngress",
            "ec2:DeleteSecurityGroup",
        ),
        conditions={
            "Null": {RESOURCE_TAG: "false"},
        },
    ),
    PolicyStatement(
        actions=(
            "elasticloadbalancing:CreateLoadBalancer",
            "elasticloadbalancing:CreateTargetGroup",
        ),
        conditions={
            "Null": {REQUEST_TAG: "false"},
        },
    ),
    PolicyStatement(actions=(
        "elasticloadbalancing:CreateListener",
        "elasticloadbalancing:DeleteListener",
        "elasticloadbalancing:CreateRule",
        "elasticloadbalancing:DeleteRule",
    )),
    PolicyStatement(
        actions=(
            "elasticloadbalancing:AddTags",
            "elasticloadbalancing:RemoveTags",
        ),
        resources=(
            "arn:aws:elasticloadbalancing:*:*:loadbalancer/*",
            "arn:aws:elasticloadbalancing:*:*:targetgroup/*",
        ),
        conditions={
            "Null": {REQUEST_TAG: "true", RESOURCE_TAG: "false"},
        },
    ),
    PolicyStatement(
        actions=(
            "elasticloadbalancing:ModifyLoadBalancerAttributes",
            "elasticloadbalancing:SetIpAddressType",
            "elasticloadbalancing:SetSecurityGroups",
            "elasticloadbalancing:SetSubnets",
            "elasticloadbalancing:DeleteLoadBalancer",
            "elasticloadbalancing:ModifyTargetGroup",
            "elasticloadbalancing:ModifyTargetGroupAttributes",
            "elasticloadbalancing:RegisterTargets",
            "elasticloadbalancing:DeregisterTargets",
            "elasticloadbalancing:DeleteTargetGroup",
        ),
        conditions={
            "Null": {RESOURCE_TAG: "false"},
        },
    ),
    PolicyStatement(actions=(
        "elasticloadbalancing:SetWebAcl",
        "elasticloadbalancing:ModifyListener",
        "elasticloadbalancing:AddListenerCertificates",
        "elasticloadbalancing:RemoveListenerCertificates",
        "elasticloadbalancing:ModifyRule",
    )),
)


def validate_statements(statements: Sequence[PolicyStatement]) -> None:
    """Reject anything but additive Allow statements"""
    for index, statement in enumerate(statements):
        if statement.effect != ALLOW:
            raise ValueError(f"Policy statement {index} has effect {statement.effect!r}; only {ALLOW} is permitted")
        if not statement.actions:
            raise ValueError(f"Policy statement {index} has no actions")


def policy_document(statements: Sequence[PolicyStatement]) -> str:
    """Render statements as an IAM policy JSON document"""
    validate_statements(statements)
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [statement.to_dict() for statement in statements]
    })


def service_trust_policy(service: str) -> str:
    """Trust policy letting an AWS service assume a role"""
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Action": "sts:AssumeRole",
            "Effect": "Allow",
            "Principal": {"Service": service}
        }]
    })


def web_identity_trust_policy(provider_arn: str, provider_url: str,
                              namespace: str, service_account: str) -> str:
    """
    Trust policy letting one Kubernetes service account assume a role

    Args:
        provider_arn: ARN of the cluster's IAM OIDC provider
        provider_url: Issuer URL of the provider, with or without scheme
        namespace: Namespace of the service account
        service_account: Name of the service account

    Returns:
        IAM trust policy JSON document
    """
    issuer = provider_url.replace("https://", "")
    return json.dumps({
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"Federated": provider_arn},
            "Action": "sts:AssumeRoleWithWebIdentity",
            "Condition": {
                "StringEquals": {
                    f"{issuer}:sub": f"system:serviceaccount:{namespace}:{service_account}",
                    f"{issuer}:aud": "sts.amazonaws.com"
                }
            }
        }]
    })
