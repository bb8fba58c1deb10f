from typing import Optional

from aws_cdk import (
    CfnOutput,
    Duration,
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_elasticloadbalancingv2 as elbv2,
    aws_iam as iam,
    aws_logs as logs,
)
from constructs import Construct

from config import ConfigError
from stacks.component import (
    ComponentStack,
    ComputeHandle,
    DatabaseHandle,
    NetworkHandle,
    RegistryHandle,
    COMPUTE,
)
from stacks.network_stack import APPLICATION_SUBNETS


class ComputeStack(ComponentStack):
    """
    Deploys the container tier:
    1. ECS Cluster, task role and Fargate task definition.
    2. Security groups chaining CloudFront -> ALB -> tasks -> database.
    3. Internet-facing ALB, target group and Fargate service in the application subnets.
    """
    component = COMPUTE

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config,
        network: NetworkHandle,
        database: DatabaseHandle,
        registry: Optional[RegistryHandle] = None,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        prefix = config.project_name
        vpc = self.consume(network).vpc
        database = self.consume(database)

        # =================================================================
        # 1. CLUSTER & TASK DEFINITION
        # =================================================================
        cluster = ecs.Cluster(self, f"{prefix}-EcsCluster",
            vpc=vpc,
            cluster_name=f"{prefix}-cluster"
        )

        # Role assumed by the running containers
        task_role = iam.Role(self, f"{prefix}-TaskRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            description="IAM role used by the ECS containers to reach AWS services"
        )
        # Read-only: the Database stack keeps ownership of the secret
        database.secret.grant_read(task_role)

        self.task_definition = ecs.FargateTaskDefinition(self, f"{prefix}-TaskDef",
            memory_limit_mib=config.task_memory,
            cpu=config.task_cpu,
            task_role=task_role
        )

        if config.container_image_uri:
            image = ecs.ContainerImage.from_registry(config.container_image_uri)
        elif registry is None:
            raise ConfigError("CONTAINER_IMAGE_URI", "is required when no registry repository is wired into the compute stack")
        else:
            image = ecs.ContainerImage.from_ecr_repository(self.consume(registry).repository, tag="latest")

        container = self.task_definition.add_container(f"{prefix}-AppContainer",
            image=image,
            container_name="app",
            memory_limit_mib=config.task_memory,
            cpu=config.task_cpu,
            essential=True,
            logging=ecs.LogDrivers.aws_logs(
                stream_prefix=f"{prefix}-app",
                log_retention=logs.RetentionDays.ONE_MONTH
            ),
            environment={
                "DB_HOST": database.endpoint_address,
                "DB_PORT": str(database.port),
                "DB_NAME": database.database_name,
            },
            secrets={
                "DB_USER": ecs.Secret.from_secrets_manager(database.secret, "username"),
                "DB_PASSWORD": ecs.Secret.from_secrets_manager(database.secret, "password"),
            }
        )
        container.add_port_mappings(ecs.PortMapping(container_port=config.container_port))

        # =================================================================
        # 2. SECURITY GROUPS
        # =================================================================
        self.service_security_group = ec2.SecurityGroup(self, f"{prefix}-App-SG",
            vpc=vpc,
            description="Allows access to the ECS tasks only from the ALB",
            allow_all_outbound=True
        )

        self.alb_security_group = ec2.SecurityGroup(self, f"{prefix}-ALB-SG",
            vpc=vpc,
            description="Allows access to the ALB only from CloudFront, and egress to the ECS tasks",
            allow_all_outbound=False
        )

        https = bool(config.backend_cert_arn)
        listener_port = 443 if https else 80

        # CloudFront origin-facing prefix list is the only allowed source
        self.alb_security_group.add_ingress_rule(
            ec2.Peer.prefix_list(config.cloudfront_prefix_list_id),
            ec2.Port.tcp(listener_port),
            "Allow CloudFront only"
        )
        self.alb_security_group.add_egress_rule(
            self.service_security_group,
            ec2.Port.tcp(config.container_port),
            "Allow ALB to reach ECS tasks"
        )
        self.service_security_group.add_ingress_rule(
            self.alb_security_group,
            ec2.Port.tcp(config.container_port),
            "Allow traffic from ALB"
        )

        # The task boundary authorises itself towards the database boundary.
        # The ingress rule lands in this stack, so Database never references Compute.
        self.service_security_group.connections.allow_to(
            database.security_group,
            ec2.Port.tcp(database.port),
            "Allow ECS tasks to access RDS"
        )

        # =================================================================
        # 3. LOAD BALANCER & SERVICE
        # =================================================================
        self.load_balancer = elbv2.ApplicationLoadBalancer(self, f"{prefix}-ALB",
            vpc=vpc,
            internet_facing=True,
            security_group=self.alb_security_group,
            load_balancer_name=f"{prefix}-alb"
        )

        if https:
            listener = self.load_balancer.add_listener("HttpsListener",
                port=443,
                certificates=[elbv2.ListenerCertificate.from_arn(config.backend_cert_arn)],
                open=False  # Access is controlled by the security group
            )
        else:
            # CloudFront terminates HTTPS for viewers
            listener = self.load_balancer.add_listener("HttpListener",
                port=80,
                open=False
            )

        target_group = elbv2.ApplicationTargetGroup(self, f"{prefix}-TG",
            vpc=vpc,
            port=config.container_port,
            protocol=elbv2.ApplicationProtocol.HTTP,
            target_type=elbv2.TargetType.IP,  # Fargate uses IP target mode
            health_check=elbv2.HealthCheck(
                path="/health",
                interval=Duration.seconds(30),
                unhealthy_threshold_count=2,
                healthy_threshold_count=3,
                timeout=Duration.seconds(5)
            )
        )
        listener.add_target_groups("EcsTargetGroup", target_groups=[target_group])

        self.service = ecs.FargateService(self, f"{prefix}-Service",
            cluster=cluster,
            task_definition=self.task_definition,
            desired_count=config.desired_count,
            security_groups=[self.service_security_group],
            assign_public_ip=False,
            vpc_subnets=ec2.SubnetSelection(subnet_group_name=APPLICATION_SUBNETS)
        )
        self.service.attach_to_application_target_group(target_group)

        # =================================================================
        # 4. OUTPUTS
        # =================================================================
        self.outputs = ComputeHandle(
            producer=self.component,
            load_balancer_dns_name=self.load_balancer.load_balancer_dns_name,
            listener_port=listener_port,
            https=https,
        )

        CfnOutput(self, "AlbDNS",
            value=self.load_balancer.load_balancer_dns_name,
            description="Application Load Balancer DNS name (CloudFront origin)"
        )
