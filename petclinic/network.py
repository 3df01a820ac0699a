"""
Network Infrastructure
VPC with public/private subnets, one NAT gateway and the shared security group
"""

import ipaddress
from typing import Dict, List

import pulumi

from .graph import Ref, ResourceGraph

DATABASE_PORT = 3306
HTTP_PORT = 80

# Public inbound on the database port is kept as-is; see DESIGN.md
INGRESS_RULES = [
    ("mysql-ipv4", DATABASE_PORT, "cidr_blocks", "0.0.0.0/0"),
    ("mysql-ipv6", DATABASE_PORT, "ipv6_cidr_blocks", "::/0"),
    ("http-ipv4", HTTP_PORT, "cidr_blocks", "0.0.0.0/0"),
    ("http-ipv6", HTTP_PORT, "ipv6_cidr_blocks", "::/0"),
]


def _subnet_cidrs(vpc_cidr: str, count: int) -> List[str]:
    """Carve /19 blocks out of the VPC range, public ones first"""
    network = ipaddress.ip_network(vpc_cidr)
    return [str(subnet) for subnet in list(network.subnets(new_prefix=19))[:count]]


def create_network(graph: ResourceGraph, name: str, vpc_cidr: str,
                   availability_zones: List[str], tags: Dict[str, str] = None) -> Dict[str, object]:
    """
    Create VPC with a public and a private subnet per AZ

    Private subnets egress through a single NAT gateway in the first public
    subnet.

    Args:
        graph: Graph to add resources to
        name: Cluster name, used for subnet discovery tags
        vpc_cidr: VPC CIDR block
        availability_zones: AZs to spread subnets over
        tags: Additional tags

    Returns:
        Dict with the names of the VPC and subnet nodes
    """
    tags = tags or {}
    cidrs = _subnet_cidrs(vpc_cidr, len(availability_zones) * 2)

    vpc = graph.add("vpc", "aws:ec2:Vpc", {
        "cidr_block": vpc_cidr,
        "enable_dns_hostnames": True,
        "enable_dns_support": True,
        "tags": {**tags, "Name": "petclinic-vpc"},
    })

    igw = graph.add("igw", "aws:ec2:InternetGateway", {
        "vpc_id": Ref(vpc.name),
        "tags": {**tags, "Name": "petclinic-igw"},
    })

    public_subnets = []
    private_subnets = []
    for i, az in enumerate(availability_zones):
        public = graph.add(f"public-subnet-{i+1}", "aws:ec2:Subnet", {
            "vpc_id": Ref(vpc.name),
            "cidr_block": cidrs[i],
            "availability_zone": az,
            "map_public_ip_on_launch": True,
            "tags": {
                **tags,
                "Name": f"petclinic-public-{i+1}",
                f"kubernetes.io/cluster/{name}": "shared",
                "kubernetes.io/role/elb": "1",
            },
        })
        public_subnets.append(public.name)

        private = graph.add(f"private-subnet-{i+1}", "aws:ec2:Subnet", {
            "vpc_id": Ref(vpc.name),
            "cidr_block": cidrs[len(availability_zones) + i],
            "availability_zone": az,
            "tags": {
                **tags,
                "Name": f"petclinic-private-{i+1}",
                f"kubernetes.io/cluster/{name}": "shared",
                "kubernetes.io/role/internal-elb": "1",
            },
        })
        private_subnets.append(private.name)

    # Single NAT gateway
    eip = graph.add("nat-eip", "aws:ec2:Eip", {
        "domain": "vpc",
        "tags": {**tags, "Name": "petclinic-nat-eip"},
    }, depends_on=(igw.name,))

    nat = graph.add("nat-gateway", "aws:ec2:NatGateway", {
        "allocation_id": Ref(eip.name),
        "subnet_id": Ref(public_subnets[0]),
        "tags": {**tags, "Name": "petclinic-nat"},
    })

    public_rt = graph.add("public-rt", "aws:ec2:RouteTable", {
        "vpc_id": Ref(vpc.name),
        "routes": [{"cidr_block": "0.0.0.0/0", "gateway_id": Ref(igw.name)}],
        "tags": {**tags, "Name": "petclinic-public-rt"},
    })

    private_rt = graph.add("private-rt", "aws:ec2:RouteTable", {
        "vpc_id": Ref(vpc.name),
        "routes": [{"cidr_block": "0.0.0.0/0", "nat_gateway_id": Ref(nat.name)}],
        "tags": {**tags, "Name": "petclinic-private-rt"},
    })

    for i, subnet in enumerate(public_subnets):
        graph.add(f"public-rta-{i+1}", "aws:ec2:RouteTableAssociation", {
            "subnet_id": Ref(subnet),
            "route_table_id": Ref(public_rt.name),
        })

    for i, subnet in enumerate(private_subnets):
        graph.add(f"private-rta-{i+1}", "aws:ec2:RouteTableAssociation", {
            "subnet_id": Ref(subnet),
            "route_table_id": Ref(private_rt.name),
        })

    pulumi.log.debug(f"network: {len(public_subnets)} public, {len(private_subnets)} private subnets")

    return {
        "vpc": vpc.name,
        "public_subnets": public_subnets,
        "private_subnets": private_subnets,
        "nat_gateway": nat.name,
    }


def create_security_group(graph: ResourceGraph, vpc: str, tags: Dict[str, str] = None) -> str:
    """Create the shared security group: all outbound, TCP 3306/80 inbound from anywhere"""
    tags = tags or {}

    sg = graph.add("petclinic-sg", "aws:ec2:SecurityGroup", {
        "vpc_id": Ref(vpc),
        "description": "PetClinic cluster, database and load balancer traffic",
        "tags": {**tags, "Name": "petclinic-sg"},
    })

    graph.add("petclinic-sg-egress", "aws:ec2:SecurityGroupRule", {
        "type": "egress",
        "from_port": 0,
        "to_port": 0,
        "protocol": "-1",
        "cidr_blocks": ["0.0.0.0/0"],
        "security_group_id": Ref(sg.name),
    })

    for rule_name, port, cidr_field, cidr in INGRESS_RULES:
        graph.add(f"petclinic-sg-{rule_name}", "aws:ec2:SecurityGroupRule", {
            "type": "ingress",
            "from_port": port,
            "to_port": port,
            "protocol": "tcp",
            cidr_field: [cidr],
            "description": f"Port {port} for inbound traffic from {'IPv6' if ':' in cidr else 'IPv4'}",
            "security_group_id": Ref(sg.name),
        })

    pulumi.log.warn(f"{sg.name} allows TCP {DATABASE_PORT} from 0.0.0.0/0 and ::/0")
    return sg.name
