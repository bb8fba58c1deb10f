from dataclasses import dataclass
from typing import Any, List, Optional

from aws_cdk import (
    Stack,
    aws_certificatemanager as acm,
    aws_ec2 as ec2,
    aws_ecr as ecr,
    aws_secretsmanager as sm,
)
from constructs import Construct

from topology import GraphError

# Component names, also used as graph node names
NETWORK = "Network"
REGISTRY = "Registry"
DATABASE = "Database"
IDENTITY = "Identity"
COMPUTE = "Compute"
CERTIFICATE = "Certificate"
EDGE = "Edge"


# =================================================================
# OUTPUT HANDLES
# =================================================================
# Read-only references handed from a producing stack to its consumers.
# The producer keeps ownership of the underlying resources.

@dataclass(frozen=True)
class NetworkHandle:
    producer: str
    vpc: ec2.IVpc
    az_count: int
    nat_gateway_count: int


@dataclass(frozen=True)
class RegistryHandle:
    producer: str
    repository: ecr.IRepository


@dataclass(frozen=True)
class DatabaseHandle:
    producer: str
    secret: sm.ISecret
    security_group: ec2.ISecurityGroup
    endpoint_address: str
    port: int
    database_name: str


@dataclass(frozen=True)
class IdentityHandle:
    producer: str
    user_pool_id: str
    user_pool_client_id: str


@dataclass(frozen=True)
class ComputeHandle:
    producer: str
    load_balancer_dns_name: str
    listener_port: int
    https: bool


@dataclass(frozen=True)
class CertificateHandle:
    producer: str
    certificate: acm.ICertificate


class ComponentStack(Stack):
    """
    A stack that is one node of the deployment graph.
    Subclasses set `component`, read their inputs through consume() and
    publish their own handle as `self.outputs`.
    """
    component: str = ""

    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.consumed: List[Any] = []
        self.outputs: Optional[Any] = None

    def consume(self, handle):
        """Records a read-only reference to another component's output."""
        if handle.producer == self.component:
            raise GraphError(f"❌ {self.component} cannot consume its own output")
        self.consumed.append(handle)
        return handle
