"""
Unit tests for the network, perimeter and compute builders
"""

import unittest
import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from petclinic.cluster import (
    NODE_MAX_SIZE,
    NODE_MIN_SIZE,
    create_cluster,
    create_kubernetes_provider,
    create_node_group,
    create_sts_endpoint,
    render_kubeconfig,
)
from petclinic.graph import Derived, Ref, ResourceGraph
from petclinic.network import create_network, create_security_group


class TestNetwork(unittest.TestCase):
    """Test VPC and security group composition"""

    def setUp(self):
        self.graph = ResourceGraph()
        self.network = create_network(self.graph, "Cluster", "10.0.0.0/16", ["us-west-2a", "us-west-2b"])
        self.sg = create_security_group(self.graph, self.network["vpc"])

    def test_subnets_per_az(self):
        self.assertEqual(len(self.network["public_subnets"]), 2)
        self.assertEqual(len(self.network["private_subnets"]), 2)
        cidrs = [spec.props["cidr_block"] for spec in self.graph.of_kind("Subnet")]
        self.assertEqual(len(set(cidrs)), 4)

    def test_single_nat_gateway(self):
        self.assertEqual(self.graph.count("NatGateway"), 1)
        nat = self.graph.get(self.network["nat_gateway"])
        self.assertEqual(nat.props["subnet_id"], Ref(self.network["public_subnets"][0]))

    def test_private_subnets_route_through_nat(self):
        private_rt = self.graph.get("private-rt")
        self.assertEqual(private_rt.props["routes"][0]["nat_gateway_id"], Ref("nat-gateway"))

    def test_exactly_four_ingress_rules(self):
        """Test TCP 3306 and 80 open to IPv4 and IPv6 any"""
        ingress = [
            spec.props for spec in self.graph.of_kind("aws:ec2:SecurityGroupRule")
            if spec.props["type"] == "ingress"
        ]
        self.assertEqual(len(ingress), 4)
        seen = set()
        for rule in ingress:
            self.assertEqual(rule["protocol"], "tcp")
            self.assertEqual(rule["from_port"], rule["to_port"])
            self.assertEqual(rule["security_group_id"], Ref(self.sg))
            cidr = (rule.get("cidr_blocks") or rule.get("ipv6_cidr_blocks"))[0]
            seen.add((rule["from_port"], cidr))
        self.assertEqual(seen, {
            (3306, "0.0.0.0/0"),
            (3306, "::/0"),
            (80, "0.0.0.0/0"),
            (80, "::/0"),
        })

    def test_all_outbound_allowed(self):
        egress = [
            spec.props for spec in self.graph.of_kind("SecurityGroupRule")
            if spec.props["type"] == "egress"
        ]
        self.assertEqual(len(egress), 1)
        self.assertEqual(egress[0]["protocol"], "-1")


class TestCompute(unittest.TestCase):
    """Test cluster, node group and STS endpoint composition"""

    def setUp(self):
        self.graph = ResourceGraph()
        self.network = create_network(self.graph, "Cluster", "10.0.0.0/16", ["us-west-2a", "us-west-2b"])
        self.sg = create_security_group(self.graph, self.network["vpc"])
        self.cluster = create_cluster(self.graph, self.network, self.sg, "Cluster", "1.31")
        self.node_group = create_node_group(self.graph, self.cluster, self.network["private_subnets"],
                                            "m5a.large", "AL2023_x86_64_STANDARD")
        self.endpoint = create_sts_endpoint(self.graph, self.network["vpc"], "10.0.0.0/16",
                                            self.network["private_subnets"],
                                            self.sg, "us-west-2")

    def test_cluster_bound_to_security_group(self):
        cluster = self.graph.get(self.cluster)
        self.assertEqual(cluster.props["name"], "Cluster")
        self.assertEqual(cluster.props["vpc_config"]["security_group_ids"], [Ref(self.sg)])
        self.assertIn("eks-cluster-policy", cluster.depends_on)

    def test_node_group_sizing(self):
        node_group = self.graph.get(self.node_group)
        scaling = node_group.props["scaling_config"]
        self.assertEqual((scaling["min_size"], scaling["max_size"]), (2, 3))
        self.assertEqual((NODE_MIN_SIZE, NODE_MAX_SIZE), (2, 3))
        self.assertEqual(node_group.props["instance_types"], ["m5a.large"])

    def test_node_group_after_cluster(self):
        node_group = self.graph.get(self.node_group)
        self.assertIn(self.cluster, node_group.depends_on)
        self.assertEqual(node_group.props["cluster_name"], Ref(self.cluster, "name"))
        self.assertEqual(node_group.props["node_role_arn"], Ref("eks-node-role", "arn"))

    def test_node_role_has_six_managed_policies(self):
        attachments = [
            spec for spec in self.graph.of_kind("RolePolicyAttachment")
            if spec.props["role"] == Ref("eks-node-role", "name")
        ]
        self.assertEqual(len(attachments), 6)

    def test_sts_endpoint(self):
        endpoint = self.graph.get(self.endpoint)
        self.assertEqual(endpoint.props["service_name"], "com.amazonaws.us-west-2.sts")
        self.assertEqual(endpoint.props["vpc_endpoint_type"], "Interface")
        self.assertTrue(endpoint.props["private_dns_enabled"])
        self.assertEqual(endpoint.props["security_group_ids"], [Ref(self.sg), Ref("sts-endpoint-sg")])

    def test_sts_endpoint_reachable_over_https(self):
        """Test that the endpoint's groups admit 443 from inside the VPC"""
        endpoint = self.graph.get(self.endpoint)
        allowed = []
        for ref in endpoint.props["security_group_ids"]:
            group = self.graph.get(ref.resource)
            allowed.extend(group.props.get("ingress", []))
            allowed.extend(
                rule.props for rule in self.graph.of_kind("SecurityGroupRule")
                if rule.props["type"] == "ingress" and rule.props["security_group_id"] == ref
            )
        https = [
            rule for rule in allowed
            if rule["from_port"] <= 443 <= rule["to_port"] and "10.0.0.0/16" in rule.get("cidr_blocks", [])
        ]
        self.assertEqual(len(https), 1)
        self.assertEqual(https[0]["protocol"], "tcp")

    def test_endpoint_group_leaves_shared_rules_untouched(self):
        ingress = [
            rule for rule in self.graph.of_kind("SecurityGroupRule")
            if rule.props["type"] == "ingress"
        ]
        self.assertEqual(len(ingress), 4)

    def test_kubernetes_provider_uses_cluster_outputs(self):
        provider = self.graph.get(create_kubernetes_provider(self.graph, self.cluster))
        kubeconfig = provider.props["kubeconfig"]
        self.assertIsInstance(kubeconfig, Derived)
        self.assertIs(kubeconfig.fn, render_kubeconfig)
        self.assertEqual(self.graph.dependencies(provider.name), (self.cluster,))

    def test_render_kubeconfig(self):
        rendered = render_kubeconfig("https://example.eks.amazonaws.com", "Q0E=", "Cluster")
        self.assertIn("server: https://example.eks.amazonaws.com", rendered)
        self.assertIn("certificate-authority-data: Q0E=", rendered)
        self.assertIn("- --cluster-name\n        - Cluster", rendered)


if __name__ == "__main__":
    unittest.main(verbosity=2)
