"""
Database Infrastructure
Aurora MySQL Serverless v2 with a generated credential secret in Secrets Manager
"""
import json
from typing import Dict, List

import pulumi

from .graph import Derived, Ref, ResourceGraph
from .network import DATABASE_PORT

MIN_CAPACITY = 8.0
MAX_CAPACITY = 32.0
MASTER_USERNAME = "syscdk"

# Services look the secret up by the first two dash-separated parts of
# SECRETS_NAME, so the name must have exactly one dash
SECRET_NAME = "petclinic-dbsecret"

# Characters RDS rejects in master passwords ('/', '@', '"', ' ') are excluded
PASSWORD_SPECIALS = "!#$%&*()-_=+[]{}<>:?"


def secret_lookup_name(secrets_name: str) -> str:
    """Secret id the services derive from their SECRETS_NAME value"""
    parts = secrets_name.split("-")
    return "-".join(parts[:2])


def render_credentials(username: str, password: str, host: str, port: int, cluster_identifier: str) -> str:
    """Secret payload in the shape RDS-attached secrets use"""
    return json.dumps({
        "engine": "mysql",
        "username": username,
        "password": password,
        "host": host,
        "port": port,
        "dbClusterIdentifier": cluster_identifier,
    })


def create_database(graph: ResourceGraph, private_subnets: List[str], security_group: str,
                    tags: Dict[str, str] = None) -> Dict[str, object]:
    """
    Create the Aurora cluster with the Data API enabled

    The master password is generated, handed to the cluster and stored,
    together with the cluster endpoint, in a named Secrets Manager secret.

    Returns:
        Dict with the cluster and secret node names and a Ref to the secret name
    """
    tags = tags or {}
    if secret_lookup_name(SECRET_NAME) != SECRET_NAME:
        raise ValueError(f"Secret name {SECRET_NAME!r} would not survive the services' lookup")

    password = graph.add("aurora-master-password", "random::RandomPassword", {
        "length": 32,
        "special": True,
        "override_special": PASSWORD_SPECIALS,
    })

    secret = graph.add("aurora-secret", "aws:secretsmanager:Secret", {
        "name": SECRET_NAME,
        "description": "Generated credentials for the PetClinic Aurora cluster",
        "recovery_window_in_days": 0,
        "tags": {**tags, "Name": SECRET_NAME},
    })

    subnet_group = graph.add("aurora-subnet-group", "aws:rds:SubnetGroup", {
        "subnet_ids": [Ref(subnet) for subnet in private_subnets],
        "tags": {**tags, "Name": "petclinic-aurora-subnet-group"},
    })

    cluster = graph.add("aurora-mysql", "aws:rds:Cluster", {
        "engine": "aurora-mysql",
        "engine_mode": "provisioned",
        "engine_version": "8.0.mysql_aurora.3.08.0",
        "master_username": MASTER_USERNAME,
        "master_password": Ref(password.name, "result"),
        "enable_http_endpoint": True,
        "db_subnet_group_name": Ref(subnet_group.name, "name"),
        "vpc_security_group_ids": [Ref(security_group)],
        "serverlessv2_scaling_configuration": {
            "min_capacity": MIN_CAPACITY,
            "max_capacity": MAX_CAPACITY,
        },
        "storage_encrypted": True,
        "skip_final_snapshot": True,
        "tags": {**tags, "Name": "petclinic-aurora"},
    })

    # Single writer instance
    graph.add("aurora-instance", "aws:rds:ClusterInstance", {
        "cluster_identifier": Ref(cluster.name),
        "instance_class": "db.serverless",
        "engine": Ref(cluster.name, "engine"),
        "engine_version": Ref(cluster.name, "engine_version"),
    })

    graph.add("aurora-secret-version", "aws:secretsmanager:SecretVersion", {
        "secret_id": Ref(secret.name),
        "secret_string": Derived(render_credentials, (
            MASTER_USERNAME,
            Ref(password.name, "result"),
            Ref(cluster.name, "endpoint"),
            DATABASE_PORT,
            Ref(cluster.name, "cluster_identifier"),
        )),
    })

    pulumi.log.debug(f"database: aurora-mysql {MIN_CAPACITY}-{MAX_CAPACITY} ACU, credentials in {SECRET_NAME}")

    return {
        "cluster": cluster.name,
        "secret_resource": secret.name,
        "secret": Ref(secret.name, "name"),
    }
