"""
Unit tests for the workload and ingress builders
"""

import unittest
import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from petclinic.graph import Ref, ResourceGraph
from petclinic.ingress import (
    CATCH_ALL,
    INGRESS_ANNOTATIONS,
    IngressRoute,
    build_routes,
    create_ingress,
    ingress_manifest,
    resolve_route,
    validate_routes,
)
from petclinic.workloads import (
    NAMESPACE,
    ServiceSpec,
    create_namespace,
    create_workload,
    deployment_manifest,
    service_manifest,
)

SERVICES = [
    ServiceSpec("ui", "example/petclinic-ui:latest"),
    ServiceSpec("customer", "example/petclinic-customer:latest"),
    ServiceSpec("vets", "example/petclinic-vets:latest"),
    ServiceSpec("visits", "example/petclinic-visits:latest"),
]

SECRET = Ref("aurora-secret", "name")


class TestWorkloads(unittest.TestCase):
    """Test Deployment and Service rendering"""

    def setUp(self):
        self.graph = ResourceGraph()
        self.graph.add("k8s-provider", "kubernetes::Provider", {"kubeconfig": "{}"})
        self.graph.add("aurora-secret", "aws:secretsmanager:Secret", {"name": "petclinic-dbsecret"})
        self.namespace = create_namespace(self.graph, "k8s-provider")

    def test_names(self):
        service = SERVICES[1]
        self.assertEqual(service.deployment_name, "petclinic-customer")
        self.assertEqual(service.service_name, "petclinic-customer-service")

    def test_deployment_manifest(self):
        manifest = deployment_manifest(SERVICES[0], SECRET)
        self.assertEqual(manifest["metadata"]["namespace"], NAMESPACE)
        self.assertEqual(manifest["spec"]["replicas"], 1)
        container = manifest["spec"]["template"]["spec"]["containers"][0]
        self.assertEqual(container["image"], "example/petclinic-ui:latest")
        self.assertEqual(container["imagePullPolicy"], "Always")
        self.assertEqual(container["securityContext"], {"runAsUser": 0})
        self.assertEqual(container["ports"], [{"containerPort": 80, "protocol": "TCP"}])
        self.assertEqual(container["env"], [{"name": "SECRETS_NAME", "value": SECRET}])
        self.assertEqual(container["livenessProbe"]["httpGet"], {"path": "/actuator/health", "port": 80})

    def test_selector_matches_template_labels(self):
        manifest = deployment_manifest(SERVICES[2], SECRET)
        self.assertEqual(manifest["spec"]["selector"]["matchLabels"],
                         manifest["spec"]["template"]["metadata"]["labels"])
        self.assertEqual(service_manifest(SERVICES[2])["spec"]["selector"],
                         manifest["spec"]["template"]["metadata"]["labels"])

    def test_service_manifest(self):
        spec = service_manifest(SERVICES[3])["spec"]
        self.assertEqual(spec["type"], "NodePort")
        self.assertEqual(spec["ports"], [{"port": 80, "targetPort": 80, "protocol": "TCP"}])

    def test_workload_depends_on_namespace(self):
        names = create_workload(self.graph, "k8s-provider", SERVICES[0], SECRET, self.namespace)
        for name in names.values():
            self.assertIn(self.namespace, self.graph.dependencies(name))
            self.assertEqual(self.graph.get(name).provider, "k8s-provider")
        self.assertIn("aurora-secret", self.graph.dependencies(names["deployment"]))

    def test_blank_image_rejected(self):
        with self.assertRaises(ValueError):
            create_workload(self.graph, "k8s-provider", ServiceSpec("vets", "  "), SECRET, self.namespace)
        self.assertEqual(self.graph.count("Deployment"), 0)


class TestIngress(unittest.TestCase):
    """Test the ordered routing table"""

    def setUp(self):
        self.routes = build_routes(SERVICES)

    def test_route_order(self):
        self.assertEqual([route.path for route in self.routes], ["/owners*", "/vets*", "/visits*", "/*"])
        self.assertEqual([route.service_name for route in self.routes], [
            "petclinic-customer-service",
            "petclinic-vets-service",
            "petclinic-visits-service",
            "petclinic-ui-service",
        ])

    def test_first_match_wins(self):
        self.assertEqual(resolve_route(self.routes, "/owners/7").service_name, "petclinic-customer-service")
        self.assertEqual(resolve_route(self.routes, "/vets").service_name, "petclinic-vets-service")
        self.assertEqual(resolve_route(self.routes, "/visits/3/pets").service_name, "petclinic-visits-service")
        self.assertEqual(resolve_route(self.routes, "/").service_name, "petclinic-ui-service")
        self.assertEqual(resolve_route(self.routes, "/api/owners").service_name, "petclinic-ui-service")

    def test_no_match_without_catch_all(self):
        self.assertIsNone(resolve_route(self.routes[:-1], "/"))

    def test_catch_all_must_be_last(self):
        with self.assertRaises(ValueError):
            validate_routes(self.routes[:-1])
        with self.assertRaises(ValueError):
            validate_routes([IngressRoute(CATCH_ALL, "a"), *self.routes])
        with self.assertRaises(ValueError):
            validate_routes([])

    def test_manifest(self):
        manifest = ingress_manifest(self.routes)
        self.assertEqual(manifest["apiVersion"], "networking.k8s.io/v1")
        self.assertEqual(manifest["metadata"]["annotations"], INGRESS_ANNOTATIONS)
        self.assertEqual(manifest["metadata"]["annotations"]["alb.ingress.kubernetes.io/scheme"],
                         "internet-facing")
        paths = manifest["spec"]["rules"][0]["http"]["paths"]
        self.assertEqual(paths[-1]["path"], "/*")
        self.assertEqual(paths[0]["backend"]["service"], {
            "name": "petclinic-customer-service",
            "port": {"number": 80},
        })

    def test_create_ingress_depends_on_namespace(self):
        graph = ResourceGraph()
        graph.add("k8s-provider", "kubernetes::Provider", {"kubeconfig": "{}"})
        namespace = create_namespace(graph, "k8s-provider")
        ingress = create_ingress(graph, "k8s-provider", self.routes, namespace)
        self.assertEqual(graph.dependencies(ingress), (namespace, "k8s-provider"))


if __name__ == "__main__":
    unittest.main(verbosity=2)
