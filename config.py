import os
import re
import ipaddress
from dataclasses import dataclass
from typing import Mapping, Optional

import tldextract
from dotenv import load_dotenv
from aws_cdk import RemovalPolicy

# Load environment variables from a .env file
load_dotenv()

# Offline extractor: resolve registrable domains from the bundled suffix snapshot
_domain_extractor = tldextract.TLDExtract(suffix_list_urls=())

# Documented defaults. Settings derived from PROJECT_NAME are resolved in resolve_config().
STRING_DEFAULTS = {
    "ENV_NAME": "dev",
    "AWS_REGION": "us-east-1",
    "PROJECT_NAME": "webapp-core",
    "VPC_CIDR": "10.0.0.0/16",
    "DB_NAME": "appdb",
    "DB_ENGINE": "mysql",
    "DB_ENGINE_VERSION": "8.0.39",
    "DB_INSTANCE_CLASS": "db.t3.micro",
    "DB_USERNAME": "admin",
    "CLOUDFRONT_PREFIX_LIST_ID": "pl-3b927c52",  # com.amazonaws.global.cloudfront.origin-facing (us-east-1)
}

NUMERIC_DEFAULTS = {
    "MAX_AZS": 2,
    "ECS_CONTAINER_PORT": 80,
    "ECS_DESIRED_COUNT": 2,
    "ECS_TASK_CPU": 256,
    "ECS_TASK_MEMORY": 512,
}

OPTIONAL_SETTINGS = (
    "CONTAINER_IMAGE_URI",
    "FRONTEND_DOMAIN",
    "FRONTEND_CERT_ARN",
    "FRONTEND_HOSTED_ZONE",
    "BACKEND_CERT_ARN",
)

SUPPORTED_ENGINES = ("mysql", "postgres", "mariadb")

_INSTANCE_CLASS_PATTERN = re.compile(r"^db\.[a-z0-9-]+\.[a-z0-9]+$")

# PROJECT_NAME prefixes bucket, cluster and load balancer names (ALB names stop at 32 characters)
_PROJECT_NAME_PATTERN = re.compile(r"^[a-z](?:[a-z0-9-]{0,26}[a-z0-9])?$")
_REPOSITORY_NAME_PATTERN = re.compile(r"^[a-z0-9]+(?:[._-][a-z0-9]+)*(?:/[a-z0-9]+(?:[._-][a-z0-9]+)*)*$")
# ENV_NAME lands in the frontend bucket name, which S3 caps at 63 characters
_ENV_NAME_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,10}[a-z0-9])?$")


class ConfigError(RuntimeError):
    """Raised when a setting cannot be turned into a usable value."""

    def __init__(self, key: str, message: str):
        super().__init__(f"❌ INVALID CONFIG: '{key}' {message}")
        self.key = key


@dataclass(frozen=True)
class DeploymentConfig:
    """
    Fully resolved configuration for the whole deployment.
    Built once, then handed to every stack constructor.
    """
    env_name: str
    account: Optional[str]
    region: str
    project_name: str

    # Network
    vpc_cidr: str
    max_azs: int

    # Database
    db_name: str
    db_engine: str
    db_engine_version: str
    db_instance_class: str
    db_username: str

    # Registry / Identity
    ecr_repo_name: str
    user_pool_name: str
    web_client_name: str

    # Compute
    container_image_uri: Optional[str]
    container_port: int
    desired_count: int
    task_cpu: int
    task_memory: int
    backend_cert_arn: Optional[str]
    cloudfront_prefix_list_id: str

    # Edge
    frontend_domain: Optional[str]
    frontend_cert_arn: Optional[str]
    manage_dns: bool
    hosted_zone_name: Optional[str]

    # Data Lifecycle Policy:
    # In 'prod', we retain resources and disable auto-delete to prevent data loss.
    # In other environments, we clean up to save costs.
    @property
    def removal_policy(self) -> RemovalPolicy:
        if self.env_name == "prod":
            return RemovalPolicy.RETAIN
        return RemovalPolicy.DESTROY

    @property
    def auto_delete_objects(self) -> bool:
        return self.env_name != "prod"

    @property
    def db_port(self) -> int:
        return 5432 if self.db_engine == "postgres" else 3306


def _override(overrides: Mapping[str, str], *keys: str) -> Optional[str]:
    """Returns the first non-empty override among the given keys."""
    for key in keys:
        value = overrides.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _positive_int(overrides: Mapping[str, str], key: str) -> int:
    """
    Lenient numeric parsing: anything that is not a positive integer
    resolves to the documented default instead of failing the build.
    """
    default = NUMERIC_DEFAULTS[key]
    raw = _override(overrides, key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _flag(overrides: Mapping[str, str], key: str) -> bool:
    raw = _override(overrides, key)
    return raw is not None and raw.lower() in ("1", "true", "yes")


def _engine(raw: str) -> str:
    name = raw.lower()
    if "postgres" in name:
        return "postgres"
    if "maria" in name:
        return "mariadb"
    if "mysql" in name:
        return "mysql"
    raise ConfigError("DB_ENGINE", f"must be one of {', '.join(SUPPORTED_ENGINES)} (got '{raw}')")


def zone_name_for(domain: str) -> str:
    """Registrable zone of a domain, e.g. 'example.com' from 'app.example.com'."""
    extracted = _domain_extractor(domain)
    if not extracted.suffix:
        return domain
    return f"{extracted.domain}.{extracted.suffix}"


def resolve_config(overrides: Mapping[str, str]) -> DeploymentConfig:
    """
    Pure resolution of the deployment settings: a non-empty override wins,
    otherwise the documented default applies.
    """
    def setting(key: str) -> str:
        return _override(overrides, key) or STRING_DEFAULTS[key]

    project_name = setting("PROJECT_NAME")
    if not _PROJECT_NAME_PATTERN.match(project_name):
        raise ConfigError(
            "PROJECT_NAME",
            f"must be lowercase letters, digits and hyphens, at most 28 characters (got '{project_name}')",
        )

    ecr_repo_name = _override(overrides, "ECR_REPO_NAME") or f"{project_name}-app-repo"
    if len(ecr_repo_name) < 2 or len(ecr_repo_name) > 256 or not _REPOSITORY_NAME_PATTERN.match(ecr_repo_name):
        raise ConfigError("ECR_REPO_NAME", f"is not a valid ECR repository name (got '{ecr_repo_name}')")

    env_name = setting("ENV_NAME")
    if not _ENV_NAME_PATTERN.match(env_name):
        raise ConfigError("ENV_NAME", f"must be lowercase letters, digits and hyphens, at most 12 characters (got '{env_name}')")

    vpc_cidr = setting("VPC_CIDR")
    try:
        ipaddress.ip_network(vpc_cidr)
    except ValueError:
        raise ConfigError("VPC_CIDR", f"is not a valid network block (got '{vpc_cidr}')")

    db_instance_class = setting("DB_INSTANCE_CLASS").lower()
    if not _INSTANCE_CLASS_PATTERN.match(db_instance_class):
        raise ConfigError("DB_INSTANCE_CLASS", f"must look like 'db.t3.micro' (got '{db_instance_class}')")

    account = _override(overrides, "CDK_DEFAULT_ACCOUNT", "AWS_ACCOUNT_ID")

    frontend_domain = _override(overrides, "FRONTEND_DOMAIN")
    frontend_cert_arn = _override(overrides, "FRONTEND_CERT_ARN")
    manage_dns = _flag(overrides, "FRONTEND_MANAGE_DNS")

    if frontend_cert_arn and not frontend_domain:
        raise ConfigError("FRONTEND_CERT_ARN", "requires FRONTEND_DOMAIN to be set")
    if frontend_domain and not frontend_cert_arn and not manage_dns:
        raise ConfigError(
            "FRONTEND_CERT_ARN",
            "is required for a custom FRONTEND_DOMAIN unless FRONTEND_MANAGE_DNS is enabled",
        )
    if manage_dns and not frontend_domain:
        raise ConfigError("FRONTEND_MANAGE_DNS", "requires FRONTEND_DOMAIN to be set")
    if manage_dns and not account:
        raise ConfigError("CDK_DEFAULT_ACCOUNT", "is required to look up the hosted zone for FRONTEND_MANAGE_DNS")

    hosted_zone_name = None
    if frontend_domain:
        hosted_zone_name = _override(overrides, "FRONTEND_HOSTED_ZONE") or zone_name_for(frontend_domain)

    return DeploymentConfig(
        env_name=env_name,
        account=account,
        region=_override(overrides, "AWS_REGION", "CDK_DEFAULT_REGION") or STRING_DEFAULTS["AWS_REGION"],
        project_name=project_name,
        vpc_cidr=vpc_cidr,
        max_azs=_positive_int(overrides, "MAX_AZS"),
        db_name=setting("DB_NAME"),
        db_engine=_engine(setting("DB_ENGINE")),
        db_engine_version=setting("DB_ENGINE_VERSION"),
        db_instance_class=db_instance_class,
        db_username=setting("DB_USERNAME"),
        ecr_repo_name=ecr_repo_name,
        user_pool_name=_override(overrides, "COGNITO_USER_POOL_NAME") or f"{project_name}-users",
        web_client_name=_override(overrides, "COGNITO_APP_CLIENT_NAME") or f"{project_name}-web-client",
        container_image_uri=_override(overrides, "CONTAINER_IMAGE_URI"),
        container_port=_positive_int(overrides, "ECS_CONTAINER_PORT"),
        desired_count=_positive_int(overrides, "ECS_DESIRED_COUNT"),
        task_cpu=_positive_int(overrides, "ECS_TASK_CPU"),
        task_memory=_positive_int(overrides, "ECS_TASK_MEMORY"),
        backend_cert_arn=_override(overrides, "BACKEND_CERT_ARN"),
        cloudfront_prefix_list_id=setting("CLOUDFRONT_PREFIX_LIST_ID"),
        frontend_domain=frontend_domain,
        frontend_cert_arn=frontend_cert_arn,
        manage_dns=manage_dns,
        hosted_zone_name=hosted_zone_name,
    )


def get_config(scope) -> DeploymentConfig:
    """
    Factory function to generate the DeploymentConfig from .env, the process
    environment and CDK context.
    Usage: cdk deploy -c env=prod
    """
    overrides = dict(os.environ)

    # CDK context wins over ENV_NAME from the environment
    env_name = scope.node.try_get_context("env")
    if env_name:
        overrides["ENV_NAME"] = env_name

    config = resolve_config(overrides)
    print(f"🔍 Initializing CDK Infrastructure for environment: {config.env_name.upper()} ({config.project_name})")
    return config
