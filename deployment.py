from typing import Dict

import aws_cdk as cdk
from constructs import Construct

from config import DeploymentConfig
from topology import DependencyGraph
from stacks.component import ComponentStack, NETWORK, IDENTITY, EDGE
from stacks.network_stack import NetworkStack
from stacks.registry_stack import RegistryStack
from stacks.database_stack import DatabaseStack
from stacks.identity_stack import IdentityStack
from stacks.compute_stack import ComputeStack
from stacks.certificate_stack import CertificateStack
from stacks.edge_stack import EdgeStack

# CloudFront-scoped WAF ACLs and viewer certificates must live in us-east-1
EDGE_REGION = "us-east-1"


class Deployment:
    """
    Result of one construction pass: the stacks by component name, the
    validated dependency graph and the externally reachable entry point.
    """
    def __init__(self, config: DeploymentConfig, graph: DependencyGraph, entry_point: str) -> None:
        self.config = config
        self.graph = graph
        self.entry_point = entry_point

    @property
    def components(self) -> Dict[str, ComponentStack]:
        return {name: self.graph[name] for name in self.graph.construction_order()}

    def __getitem__(self, name: str) -> ComponentStack:
        return self.graph[name]


def _place(graph: DependencyGraph, stack: ComponentStack) -> ComponentStack:
    """Registers a freshly built stack; its consumed handles become DATA edges."""
    return graph.add_component(stack.component, stack, stack.consumed)


def _link(consumer: ComponentStack, producer: ComponentStack, reason: str) -> None:
    consumer.add_dependency(producer, reason)


def build_deployment(scope: Construct, config: DeploymentConfig) -> Deployment:
    """
    Instantiates every component in topological order, routing each one's
    inputs from the resolved config or from an earlier component's handle.
    """
    graph = DependencyGraph()
    prefix = config.project_name

    main_env = cdk.Environment(account=config.account, region=config.region)
    edge_env = cdk.Environment(account=config.account, region=EDGE_REGION)
    cross_region = config.region != EDGE_REGION

    # =================================================================
    # 1. LEAVES: NETWORK & REGISTRY
    # =================================================================
    network = _place(graph, NetworkStack(
        scope, f"{prefix}-NetworkStack",
        config=config,
        env=main_env
    ))

    registry = _place(graph, RegistryStack(
        scope, f"{prefix}-ECRStack",
        config=config,
        env=main_env
    ))

    # =================================================================
    # 2. DATABASE & IDENTITY
    # =================================================================
    database = _place(graph, DatabaseStack(
        scope, f"{prefix}-DatabaseStack",
        config=config,
        network=network.outputs,
        env=main_env
    ))

    _place(graph, IdentityStack(
        scope, f"{prefix}-AuthStack",
        config=config,
        env=main_env
    ))

    # =================================================================
    # 3. COMPUTE (ECS + ALB)
    # =================================================================
    compute = _place(graph, ComputeStack(
        scope, f"{prefix}-EcsStack",
        config=config,
        network=network.outputs,
        database=database.outputs,
        registry=None if config.container_image_uri else registry.outputs,
        env=main_env,
        cross_region_references=cross_region
    ))

    # =================================================================
    # 4. EDGE (CloudFront + WAF), with its optional certificate
    # =================================================================
    certificate = None
    if config.frontend_domain and not config.frontend_cert_arn:
        certificate = _place(graph, CertificateStack(
            scope, f"{prefix}-CertStack",
            config=config,
            env=edge_env
        ))
    elif config.frontend_domain:
        print("⏭️ Skipping CertificateStack: using FRONTEND_CERT_ARN")

    edge = _place(graph, EdgeStack(
        scope, f"{prefix}-FrontendStack",
        config=config,
        compute=compute.outputs,
        certificate=certificate.outputs if certificate else None,
        env=edge_env,
        cross_region_references=cross_region
    ))

    # Deploy-after constraints with no data flowing between the stacks
    graph.add_ordering_edge(EDGE, NETWORK, "VPC endpoints in place before traffic is served")
    graph.add_ordering_edge(EDGE, IDENTITY, "sign-in client exists before the frontend is published")

    # =================================================================
    # 5. DEPLOYMENT DEPENDENCIES
    # =================================================================
    # Validation happens before any stack dependency is applied
    graph.apply(_link)
    print(f"🧭 Deployment order: {' -> '.join(graph.topological_order())}")

    # =================================================================
    # 6. TERMINAL OUTPUT
    # =================================================================
    entry_point = config.frontend_domain or edge.distribution.distribution_domain_name
    cdk.CfnOutput(edge, "FrontendURL",
        value=f"https://{entry_point}",
        description="Public URL of the application frontend"
    )

    return Deployment(config=config, graph=graph, entry_point=entry_point)
