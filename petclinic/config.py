"""
Configuration management for the PetClinic EKS deployment
"""

import pulumi
from typing import Dict, List

from .composer import PetClinicImages


class Config:
    """Centralized configuration for the PetClinic stack"""

    def __init__(self):
        self.config = pulumi.Config()
        aws_config = pulumi.Config("aws")

        # AWS Configuration
        self.aws_region = aws_config.get("region") or "us-west-2"

        # Images
        self.ui_image = self.config.require("ui_image")
        self.customer_image = self.config.require("customer_image")
        self.vets_image = self.config.require("vets_image")
        self.visits_image = self.config.require("visits_image")

        # Cluster Configuration
        self.cluster_name = self.config.get("cluster_name") or "Cluster"
        self.cluster_version = self.config.get("cluster_version") or "1.31"

        # Node Configuration
        self.node_instance_type = self.config.get("node_instance_type") or "m5a.large"
        self.node_ami_type = self.config.get("node_ami_type") or "AL2023_x86_64_STANDARD"

        # VPC Configuration
        self.vpc_cidr = self.config.get("vpc_cidr") or "10.0.0.0/16"
        self.availability_zones = self.config.get_object("availability_zones") or [
            f"{self.aws_region}a",
            f"{self.aws_region}b",
        ]

        # Additional tags
        self.additional_tags = self.config.get_object("tags") or {}

    @property
    def common_tags(self) -> Dict[str, str]:
        """Get common tags for all resources"""
        base_tags = {
            "Project": "petclinic-eks",
            "ManagedBy": "pulumi",
        }
        base_tags.update(self.additional_tags)
        return base_tags

    @property
    def images(self) -> PetClinicImages:
        return PetClinicImages(
            ui=self.ui_image,
            customer=self.customer_image,
            vets=self.vets_image,
            visits=self.visits_image,
        )

    @property
    def composer_args(self) -> Dict[str, object]:
        """Keyword arguments for compose_petclinic"""
        return {
            "cluster_name": self.cluster_name,
            "cluster_version": self.cluster_version,
            "region": self.aws_region,
            "availability_zones": self.availability_zones,
            "vpc_cidr": self.vpc_cidr,
            "node_instance_type": self.node_instance_type,
            "node_ami_type": self.node_ami_type,
            "tags": self.common_tags,
        }


def get_config() -> Config:
    """Get the global configuration instance"""
    return Config()
