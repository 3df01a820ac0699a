"""
Path-based Ingress
Ordered, first-match-wins routing table served by an internet-facing ALB
"""
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Any, Dict, List, Optional, Sequence

from .graph import ResourceGraph
from .workloads import CONTAINER_PORT, HEALTH_PATH, NAMESPACE, ServiceSpec

CATCH_ALL = "/*"

# Specific prefixes, in evaluation order; everything else goes to the UI
ROUTED_PREFIXES = [
    ("/owners*", "customer"),
    ("/vets*", "vets"),
    ("/visits*", "visits"),
]
DEFAULT_SUFFIX = "ui"

INGRESS_ANNOTATIONS = {
    "kubernetes.io/ingress.class": "alb",
    "alb.ingress.kubernetes.io/scheme": "internet-facing",
    "alb.ingress.kubernetes.io/healthcheck-port": str(CONTAINER_PORT),
    "alb.ingress.kubernetes.io/healthcheck-path": HEALTH_PATH,
    "alb.ingress.kubernetes.io/healthcheck-protocol": "HTTP",
    "alb.ingress.kubernetes.io/target-type": "ip",
}


@dataclass(frozen=True)
class IngressRoute:
    path: str
    service_name: str
    port: int = CONTAINER_PORT

    def matches(self, request_path: str) -> bool:
        return fnmatchcase(request_path, self.path)


def build_routes(services: Sequence[ServiceSpec]) -> List[IngressRoute]:
    """Routing table for the given services, catch-all last"""
    by_suffix = {service.suffix: service for service in services}
    routes = [
        IngressRoute(path, by_suffix[suffix].service_name)
        for path, suffix in ROUTED_PREFIXES
    ]
    routes.append(IngressRoute(CATCH_ALL, by_suffix[DEFAULT_SUFFIX].service_name))
    validate_routes(routes)
    return routes


def validate_routes(routes: Sequence[IngressRoute]) -> None:
    if not routes or routes[-1].path != CATCH_ALL:
        raise ValueError(f"Routing table must end with the {CATCH_ALL} catch-all")
    if any(route.path == CATCH_ALL for route in routes[:-1]):
        raise ValueError(f"{CATCH_ALL} may only appear as the last route")


def resolve_route(routes: Sequence[IngressRoute], request_path: str) -> Optional[IngressRoute]:
    """First route whose pattern matches the request path"""
    for route in routes:
        if route.matches(request_path):
            return route
    return None


def ingress_manifest(routes: Sequence[IngressRoute]) -> Dict[str, Any]:
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": {
            "namespace": NAMESPACE,
            "name": "petclinic-ingress",
            "annotations": dict(INGRESS_ANNOTATIONS),
        },
        "spec": {
            "rules": [{
                "http": {
                    "paths": [
                        {
                            "path": route.path,
                            "pathType": "ImplementationSpecific",
                            "backend": {
                                "service": {
                                    "name": route.service_name,
                                    "port": {"number": route.port},
                                },
                            },
                        }
                        for route in routes
                    ],
                },
            }],
        },
    }


def create_ingress(graph: ResourceGraph, provider: str, routes: Sequence[IngressRoute],
                   namespace: str) -> str:
    validate_routes(routes)
    ingress = graph.add("petclinic-ingress", "kubernetes:manifest:Ingress",
                        ingress_manifest(routes), depends_on=(namespace,), provider=provider)
    return ingress.name
