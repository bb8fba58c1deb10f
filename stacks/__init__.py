"""CDK Stacks package: one stack per deployment component."""

from stacks.certificate_stack import CertificateStack
from stacks.compute_stack import ComputeStack
from stacks.database_stack import DatabaseStack
from stacks.edge_stack import EdgeStack
from stacks.identity_stack import IdentityStack
from stacks.network_stack import NetworkStack
from stacks.registry_stack import RegistryStack

__all__ = [
    "NetworkStack",
    "RegistryStack",
    "DatabaseStack",
    "IdentityStack",
    "ComputeStack",
    "CertificateStack",
    "EdgeStack",
]
