"""
PetClinic on EKS
Declarative composition of the PetClinic reference application onto EKS and Aurora
"""

from .composer import PetClinicImages, PetClinicTopology, compose_petclinic
from .deploy import deploy_graph
from .graph import CompositionError, ResourceGraph

__all__ = [
    "PetClinicImages",
    "PetClinicTopology",
    "compose_petclinic",
    "deploy_graph",
    "CompositionError",
    "ResourceGraph",
]
