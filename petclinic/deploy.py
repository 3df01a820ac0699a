"""
Graph Realizer
Turns a ResourceGraph into Pulumi resources, dependencies first
"""
from functools import reduce
from typing import Any, Dict, List

import pulumi
import pulumi_aws as aws
import pulumi_kubernetes as k8s
import pulumi_random as random
from pulumi_kubernetes.yaml.v2 import ConfigGroup

from .graph import CompositionError, Derived, Ref, ResourceGraph, ResourceSpec

PACKAGES = {
    "aws": aws,
    "kubernetes": k8s,
    "random": random,
}


def _walk(value: Any, steps: List[Any]) -> Any:
    for step in steps:
        value = value[step] if isinstance(step, int) else getattr(value, step)
    return value


def resolve(value: Any, resources: Dict[str, pulumi.Resource]) -> Any:
    """Replace Ref and Derived placeholders with Pulumi outputs"""
    if isinstance(value, Ref):
        steps = value.steps
        output = getattr(resources[value.resource], steps[0])
        if len(steps) == 1:
            return output
        return output.apply(lambda resolved: _walk(resolved, steps[1:]))
    if isinstance(value, Derived):
        inputs = [resolve(item, resources) for item in value.inputs]
        return pulumi.Output.all(*inputs).apply(lambda args: value.fn(*args))
    if isinstance(value, dict):
        return {key: resolve(item, resources) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [resolve(item, resources) for item in value]
    return value


def _resource_class(spec: ResourceSpec):
    root = PACKAGES.get(spec.package)
    if root is None:
        raise CompositionError(f"Unsupported package {spec.package!r} for {spec.name}")
    try:
        module = reduce(getattr, [part for part in spec.module.split(".") if part], root)
        return getattr(module, spec.kind)
    except AttributeError:
        raise CompositionError(f"Unknown resource type {spec.type} for {spec.name}") from None


def deploy_resource(spec: ResourceSpec, resources: Dict[str, pulumi.Resource]) -> pulumi.Resource:
    """Create the Pulumi resource for a single node"""
    is_manifest = spec.package == "kubernetes" and spec.module == "manifest"
    resource_class = ConfigGroup if is_manifest else _resource_class(spec)

    opts = pulumi.ResourceOptions(
        depends_on=[resources[name] for name in spec.depends_on] or None,
        provider=resources[spec.provider] if spec.provider else None,
    )
    props = resolve(spec.props, resources)

    if is_manifest:
        return resource_class(spec.name, objs=[props], opts=opts)
    return resource_class(spec.name, **props, opts=opts)


def deploy_graph(graph: ResourceGraph) -> Dict[str, pulumi.Resource]:
    """
    Realize every node of the graph

    Args:
        graph: Composed resource graph

    Returns:
        Dict mapping node names to the created Pulumi resources
    """
    resources: Dict[str, pulumi.Resource] = {}
    for spec in graph.topological_order():
        resources[spec.name] = deploy_resource(spec, resources)
        pulumi.log.debug(f"realized {spec.type} {spec.name}")
    return resources
