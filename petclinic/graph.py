"""
Resource Graph
Immutable resource nodes plus explicit dependency edges, handed whole to Pulumi
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

_STEP = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)((?:\[\d+\])*)$")
_INDEX = re.compile(r"\[(\d+)\]")


class CompositionError(Exception):
    """Raised when the resource graph cannot be described validly"""


@dataclass(frozen=True)
class Ref:
    """Reference to an output attribute of another node in the graph"""

    resource: str
    attribute: str = "id"

    @property
    def steps(self) -> List[Any]:
        """Attribute path as a list of attribute names and list indices"""
        steps: List[Any] = []
        for part in self.attribute.split("."):
            match = _STEP.match(part)
            if not match:
                raise CompositionError(f"Malformed attribute path {self.attribute!r} on {self.resource!r}")
            steps.append(match.group(1))
            steps.extend(int(i) for i in _INDEX.findall(match.group(2)))
        return steps


@dataclass(frozen=True)
class Derived:
    """Value computed by a module-level function from resolved inputs"""

    fn: Callable[..., Any]
    inputs: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class DependencyEdge:
    dependent: str
    dependency: str


@dataclass(frozen=True)
class ResourceSpec:
    """A single declarative resource: what to create, never how"""

    name: str
    type: str
    props: Dict[str, Any] = field(default_factory=dict)
    depends_on: Tuple[str, ...] = ()
    provider: Optional[str] = None

    @property
    def package(self) -> str:
        return self.type.split(":")[0]

    @property
    def module(self) -> str:
        return self.type.split(":")[1]

    @property
    def kind(self) -> str:
        return self.type.split(":")[2]

    @property
    def references(self) -> Tuple[str, ...]:
        """Names of nodes this resource reads outputs from, in first-seen order"""
        seen: List[str] = []
        for ref in iter_refs(self.props):
            if ref.resource not in seen:
                seen.append(ref.resource)
        return tuple(seen)


def iter_refs(value: Any) -> Iterator[Ref]:
    """Yield every Ref nested in a props value"""
    if isinstance(value, Ref):
        yield value
    elif isinstance(value, Derived):
        for item in value.inputs:
            yield from iter_refs(item)
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_refs(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_refs(item)


class ResourceGraph:
    """
    Append-only dependency graph of ResourceSpecs

    A node may only depend on (or reference) nodes that are already in the
    graph, so the graph is acyclic by construction.
    """

    def __init__(self):
        self._nodes: Dict[str, ResourceSpec] = {}

    def add(self, name: str, type: str, props: Dict[str, Any] = None,
            depends_on: Tuple[str, ...] = (), provider: Optional[str] = None) -> ResourceSpec:
        """
        Add a resource node

        Args:
            name: Unique logical name, also used as the Pulumi resource name
            type: Type token in the form package:module:Kind
            props: Resource arguments, may contain Ref and Derived values
            depends_on: Names of nodes that must be applied first
            provider: Name of the provider node for Kubernetes resources

        Returns:
            The immutable ResourceSpec that was recorded
        """
        if name in self._nodes:
            raise CompositionError(f"Duplicate resource name: {name}")
        if type.count(":") != 2 or not type.split(":")[2]:
            raise CompositionError(f"Malformed resource type {type!r} for {name}")

        spec = ResourceSpec(
            name=name,
            type=type,
            props=props or {},
            depends_on=tuple(depends_on),
            provider=provider
        )

        for dependency in spec.depends_on + spec.references:
            if dependency not in self._nodes:
                raise CompositionError(f"{name} depends on unknown resource {dependency}")
        if provider is not None and provider not in self._nodes:
            raise CompositionError(f"{name} uses unknown provider {provider}")

        self._nodes[name] = spec
        return spec

    def get(self, name: str) -> ResourceSpec:
        try:
            return self._nodes[name]
        except KeyError:
            raise CompositionError(f"Unknown resource: {name}") from None

    def __contains__(self, name: str) -> bool:
        return name in self._nodes

    def __iter__(self) -> Iterator[ResourceSpec]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def edges(self) -> List[DependencyEdge]:
        """Explicit dependency edges, in insertion order"""
        return [
            DependencyEdge(dependent=spec.name, dependency=dependency)
            for spec in self._nodes.values()
            for dependency in spec.depends_on
        ]

    def dependencies(self, name: str) -> Tuple[str, ...]:
        """Explicit, provider and reference-implied dependencies of a node"""
        spec = self.get(name)
        result = list(spec.depends_on)
        implied = list(spec.references)
        if spec.provider:
            implied.append(spec.provider)
        for dependency in implied:
            if dependency not in result:
                result.append(dependency)
        return tuple(result)

    def of_kind(self, kind: str) -> List[ResourceSpec]:
        """Nodes matching a full type token (with ':') or a bare kind"""
        if ":" in kind:
            return [spec for spec in self._nodes.values() if spec.type == kind]
        return [spec for spec in self._nodes.values() if spec.kind == kind]

    def count(self, kind: str) -> int:
        return len(self.of_kind(kind))

    def topological_order(self) -> List[ResourceSpec]:
        """
        Order nodes so every dependency precedes its dependents

        Ties are broken by insertion order, which makes the result stable
        across repeated compositions.
        """
        remaining = {name: set(self.dependencies(name)) for name in self._nodes}
        ordered: List[ResourceSpec] = []
        while remaining:
            ready = [name for name in self._nodes if name in remaining and not remaining[name]]
            if not ready:
                raise CompositionError(f"Dependency cycle among: {sorted(remaining)}")
            for name in ready:
                ordered.append(self._nodes[name])
                del remaining[name]
            for deps in remaining.values():
                deps.difference_update(ready)
        return ordered

    def describe(self) -> Dict[str, Any]:
        """Structural summary used to compare two compositions"""
        return {
            "nodes": [(spec.name, spec.type) for spec in self._nodes.values()],
            "edges": [(edge.dependent, edge.dependency) for edge in self.edges],
        }
