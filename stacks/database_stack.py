import json

from aws_cdk import (
    CfnOutput,
    RemovalPolicy,
    aws_ec2 as ec2,
    aws_kms as kms,
    aws_rds as rds,
    aws_secretsmanager as sm,
)
from constructs import Construct

from stacks.component import ComponentStack, DatabaseHandle, NetworkHandle, DATABASE
from stacks.network_stack import DATABASE_SUBNETS


def engine_for(engine: str, version: str) -> rds.IInstanceEngine:
    """Maps the configured engine name and version onto an RDS instance engine."""
    parts = version.split(".")
    if engine == "postgres":
        # PostgreSQL majors are a single number from 10 onwards
        major = ".".join(parts[:2]) if parts[0] == "9" else parts[0]
        return rds.DatabaseInstanceEngine.postgres(
            version=rds.PostgresEngineVersion.of(version, major)
        )
    major = ".".join(parts[:2])
    if engine == "mariadb":
        return rds.DatabaseInstanceEngine.maria_db(
            version=rds.MariaDbEngineVersion.of(version, major)
        )
    return rds.DatabaseInstanceEngine.mysql(
        version=rds.MysqlEngineVersion.of(version, major)
    )


class DatabaseStack(ComponentStack):
    """
    Deploys the relational store inside the isolated database subnets:
    1. Security group with no inbound rules; consumers authorise themselves.
    2. KMS key and generated credentials secret.
    3. Encrypted RDS instance.
    """
    component = DATABASE

    def __init__(self, scope: Construct, construct_id: str, config, network: NetworkHandle, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        prefix = config.project_name
        vpc = self.consume(network).vpc

        # =================================================================
        # 1. SECURITY GROUP
        # =================================================================
        # Inbound access from the application tier is declared by the Compute stack
        self.security_group = ec2.SecurityGroup(self, f"{prefix}-DB-SG",
            vpc=vpc,
            description="Allows database access only from the ECS application tier",
            allow_all_outbound=True
        )

        # =================================================================
        # 2. ENCRYPTION KEY & CREDENTIALS
        # =================================================================
        kms_key = kms.Key(self, f"{prefix}-DB-KMSKey",
            description=f"CMK for RDS data encryption ({prefix})",
            alias=f"{prefix.lower()}-rds-key",
            enable_key_rotation=True
        )

        self.secret = sm.Secret(self, f"{prefix}-DBCredentials",
            description=f"Administrator credentials for RDS {prefix}",
            generate_secret_string=sm.SecretStringGenerator(
                secret_string_template=json.dumps({"username": config.db_username}),
                generate_string_key="password",
                exclude_punctuation=True,
                include_space=False
            )
        )

        # =================================================================
        # 3. RDS INSTANCE
        # =================================================================
        self.instance = rds.DatabaseInstance(self, f"{prefix}-Database",
            engine=engine_for(config.db_engine, config.db_engine_version),
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_group_name=DATABASE_SUBNETS),
            instance_type=ec2.InstanceType(config.db_instance_class[len("db."):]),
            port=config.db_port,
            allocated_storage=20,
            storage_encrypted=True,
            storage_encryption_key=kms_key,
            credentials=rds.Credentials.from_secret(self.secret),
            multi_az=False,  # Single-AZ for dev; enable in prod at extra cost
            security_groups=[self.security_group],
            database_name=config.db_name,
            removal_policy=RemovalPolicy.SNAPSHOT
        )

        self.outputs = DatabaseHandle(
            producer=self.component,
            secret=self.secret,
            security_group=self.security_group,
            endpoint_address=self.instance.db_instance_endpoint_address,
            port=config.db_port,
            database_name=config.db_name,
        )

        # =================================================================
        # 4. OUTPUTS
        # =================================================================
        CfnOutput(self, "DatabaseEndpoint",
            value=self.instance.instance_endpoint.socket_address,
            description="RDS endpoint (host:port)"
        )
        CfnOutput(self, "DatabaseSecretName",
            value=self.secret.secret_name,
            description="Secrets Manager secret holding the database credentials"
        )
