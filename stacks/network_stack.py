from aws_cdk import (
    CfnOutput,
    Fn,
    Token,
    aws_ec2 as ec2,
)
from constructs import Construct

from stacks.component import ComponentStack, NetworkHandle, NETWORK

# Subnet group names other stacks select by
PUBLIC_SUBNETS = "Public"
APPLICATION_SUBNETS = "Application"
DATABASE_SUBNETS = "Database"


class NetworkStack(ComponentStack):
    """
    Deploys the isolated network domain:
    1. VPC with public, application (private with egress) and database (isolated) tiers.
    2. One NAT Gateway per AZ for high availability.
    3. Gateway and interface endpoints so tasks reach AWS APIs without leaving the VPC.
    """
    component = NETWORK

    def __init__(self, scope: Construct, construct_id: str, config, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        prefix = config.project_name

        # =================================================================
        # 1. VPC & SUBNET TIERS
        # =================================================================
        if Token.is_unresolved(self.account) or Token.is_unresolved(self.region):
            # Environment-agnostic stacks only expose two AZs; pick MAX_AZS of the
            # region's zones at deploy time instead
            az_placement = {
                "availability_zones": [Fn.select(i, Fn.get_azs()) for i in range(config.max_azs)],
            }
        else:
            az_placement = {"max_azs": config.max_azs}

        self.vpc = ec2.Vpc(self, f"{prefix}-VPC",
            ip_addresses=ec2.IpAddresses.cidr(config.vpc_cidr),
            nat_gateways=config.max_azs,
            **az_placement,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name=PUBLIC_SUBNETS,
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=24,
                ),
                ec2.SubnetConfiguration(
                    name=APPLICATION_SUBNETS,
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                    cidr_mask=24,
                ),
                ec2.SubnetConfiguration(
                    name=DATABASE_SUBNETS,
                    subnet_type=ec2.SubnetType.PRIVATE_ISOLATED,
                    cidr_mask=24,
                ),
            ],
        )

        # =================================================================
        # 2. ENDPOINT SECURITY GROUP
        # =================================================================
        # Only the application subnets may call the interface endpoints
        self.endpoints_security_group = ec2.SecurityGroup(self, f"{prefix}-EndpointsSG",
            vpc=self.vpc,
            description="Allows access to VPC endpoints only from the application subnets",
            allow_all_outbound=True
        )

        application_subnets = self.vpc.select_subnets(subnet_group_name=APPLICATION_SUBNETS).subnets
        for subnet in application_subnets:
            self.endpoints_security_group.add_ingress_rule(
                ec2.Peer.ipv4(subnet.ipv4_cidr_block),
                ec2.Port.tcp(443),
                "Allow HTTPS from application subnets"
            )

        # =================================================================
        # 3. VPC ENDPOINTS
        # =================================================================
        # Private S3 access without NAT
        self.vpc.add_gateway_endpoint(f"{prefix}-S3Endpoint",
            service=ec2.GatewayVpcEndpointAwsService.S3,
            subnets=[
                ec2.SubnetSelection(subnet_group_name=APPLICATION_SUBNETS),
                ec2.SubnetSelection(subnet_group_name=DATABASE_SUBNETS),
            ]
        )

        interface_endpoints = {
            "ECR-ApiEndpoint": ec2.InterfaceVpcEndpointAwsService.ECR,
            "ECR-DockerEndpoint": ec2.InterfaceVpcEndpointAwsService.ECR_DOCKER,
            "CloudWatchEndpoint": ec2.InterfaceVpcEndpointAwsService.CLOUDWATCH_LOGS,
            "SecretsManagerEndpoint": ec2.InterfaceVpcEndpointAwsService.SECRETS_MANAGER,
        }
        for name, service in interface_endpoints.items():
            self.vpc.add_interface_endpoint(f"{prefix}-{name}",
                service=service,
                subnets=ec2.SubnetSelection(subnet_group_name=APPLICATION_SUBNETS),
                security_groups=[self.endpoints_security_group],
                open=False  # Ingress comes only from the rules above
            )

        # =================================================================
        # 4. OUTPUTS
        # =================================================================
        az_count = len(self.vpc.availability_zones)
        self.outputs = NetworkHandle(
            producer=self.component,
            vpc=self.vpc,
            az_count=az_count,
            nat_gateway_count=min(config.max_azs, az_count),
        )

        CfnOutput(self, "VpcId", value=self.vpc.vpc_id)
