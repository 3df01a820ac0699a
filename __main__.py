"""
PetClinic on EKS
Network, cluster, load balancer controller, Aurora and the four PetClinic services
"""
import pulumi
from petclinic import compose_petclinic, deploy_graph
from petclinic.config import get_config

# Configuration
config = get_config()

# 1. Compose the resource graph
topology = compose_petclinic(config.images, **config.composer_args)

# 2. Hand it to Pulumi
resources = deploy_graph(topology.graph)

cluster = resources[topology.handles["cluster"]]
database = resources[topology.handles["database"]]
database_secret = resources[topology.handles["database_secret"]]
controller_role = resources[topology.identity.role]

# Exports
pulumi.export("cluster_name", cluster.name)
pulumi.export("cluster_endpoint", cluster.endpoint)
pulumi.export("vpc_id", resources[topology.handles["vpc"]].id)
pulumi.export("database_endpoint", database.endpoint)
pulumi.export("database_secret_name", database_secret.name)
pulumi.export("controller_role_arn", controller_role.arn)
pulumi.export("kubeconfig_command",
    pulumi.Output.concat(
        f"aws eks update-kubeconfig --region {config.aws_region} --name ",
        cluster.name
    ))
pulumi.export("ingress_routes", [f"{route.path} -> {route.service_name}" for route in topology.routes])
