"""
AWS Load Balancer Controller
Helm release wired to the pre-authorized service account
"""
from typing import Tuple

import pulumi

from .graph import Ref, ResourceGraph
from .identity import IdentityBinding

CHART = "aws-load-balancer-controller"
CHART_REPOSITORY = "https://aws.github.io/eks-charts"


def install_load_balancer_controller(graph: ResourceGraph, cluster: str, vpc: str, region: str,
                                     binding: IdentityBinding, k8s_provider: str,
                                     wait_for: Tuple[str, ...] = ()) -> str:
    """
    Install the controller chart into the binding's namespace

    The chart must not create its own service account and needs the
    cluster name to tag and discover the load balancers it owns.
    """
    release = graph.add("alb-ingress-controller", "kubernetes:helm.v3:Release", {
        "chart": CHART,
        "namespace": binding.namespace,
        "repository_opts": {"repo": CHART_REPOSITORY},
        "values": {
            "clusterName": Ref(cluster, "name"),
            "region": region,
            "vpcId": Ref(vpc),
            "serviceAccount": {
                "create": False,
                "name": binding.service_account,
            },
        },
    }, depends_on=(binding.service_account_resource, *wait_for), provider=k8s_provider)

    pulumi.log.debug(f"controller: {CHART} using service account {binding.service_account}")
    return release.name
