import dataclasses

import pytest
from aws_cdk import RemovalPolicy

from config import (
    NUMERIC_DEFAULTS,
    OPTIONAL_SETTINGS,
    STRING_DEFAULTS,
    ConfigError,
    resolve_config,
    zone_name_for,
)

STRING_FIELDS = {
    "ENV_NAME": "env_name",
    "AWS_REGION": "region",
    "PROJECT_NAME": "project_name",
    "VPC_CIDR": "vpc_cidr",
    "DB_NAME": "db_name",
    "DB_ENGINE": "db_engine",
    "DB_ENGINE_VERSION": "db_engine_version",
    "DB_INSTANCE_CLASS": "db_instance_class",
    "DB_USERNAME": "db_username",
    "CLOUDFRONT_PREFIX_LIST_ID": "cloudfront_prefix_list_id",
}

NUMERIC_FIELDS = {
    "MAX_AZS": "max_azs",
    "ECS_CONTAINER_PORT": "container_port",
    "ECS_DESIRED_COUNT": "desired_count",
    "ECS_TASK_CPU": "task_cpu",
    "ECS_TASK_MEMORY": "task_memory",
}

OPTIONAL_FIELDS = {
    "CONTAINER_IMAGE_URI": "container_image_uri",
    "FRONTEND_DOMAIN": "frontend_domain",
    "FRONTEND_CERT_ARN": "frontend_cert_arn",
    "FRONTEND_HOSTED_ZONE": "hosted_zone_name",
    "BACKEND_CERT_ARN": "backend_cert_arn",
}


@pytest.mark.parametrize("key", sorted(STRING_DEFAULTS))
def test_string_settings_default(key):
    config = resolve_config({})
    assert getattr(config, STRING_FIELDS[key]) == STRING_DEFAULTS[key]


@pytest.mark.parametrize("key", sorted(NUMERIC_DEFAULTS))
def test_numeric_settings_default(key):
    config = resolve_config({})
    assert getattr(config, NUMERIC_FIELDS[key]) == NUMERIC_DEFAULTS[key]


@pytest.mark.parametrize("key", OPTIONAL_SETTINGS)
def test_optional_settings_default_to_none(key):
    config = resolve_config({})
    assert getattr(config, OPTIONAL_FIELDS[key]) is None


def test_other_defaults():
    config = resolve_config({})
    assert config.account is None
    assert config.manage_dns is False
    assert config.ecr_repo_name == "webapp-core-app-repo"
    assert config.user_pool_name == "webapp-core-users"
    assert config.web_client_name == "webapp-core-web-client"
    assert config.db_port == 3306


def test_names_follow_project_prefix():
    config = resolve_config({"PROJECT_NAME": "shop"})
    assert config.ecr_repo_name == "shop-app-repo"
    assert config.user_pool_name == "shop-users"
    assert config.web_client_name == "shop-web-client"


def test_namespaced_repository_name_is_accepted():
    assert resolve_config({"ECR_REPO_NAME": "team/web.app_repo"}).ecr_repo_name == "team/web.app_repo"


def test_explicit_overrides_win():
    config = resolve_config({
        "ECR_REPO_NAME": "custom-repo",
        "MAX_AZS": "3",
        "ECS_DESIRED_COUNT": " 4 ",
        "DB_USERNAME": "root",
    })
    assert config.ecr_repo_name == "custom-repo"
    assert config.max_azs == 3
    assert config.desired_count == 4
    assert config.db_username == "root"


def test_empty_override_counts_as_missing():
    config = resolve_config({"PROJECT_NAME": "", "MAX_AZS": "  ", "FRONTEND_DOMAIN": ""})
    assert config.project_name == "webapp-core"
    assert config.max_azs == 2
    assert config.frontend_domain is None


@pytest.mark.parametrize("key", sorted(NUMERIC_DEFAULTS))
@pytest.mark.parametrize("raw", ["abc", "2.5", "0", "-3", "1e3"])
def test_bad_numeric_override_falls_back_to_default(key, raw):
    config = resolve_config({key: raw})
    assert getattr(config, NUMERIC_FIELDS[key]) == NUMERIC_DEFAULTS[key]


def test_region_falls_back_to_cdk_default_region():
    assert resolve_config({"CDK_DEFAULT_REGION": "eu-west-1"}).region == "eu-west-1"
    assert resolve_config({"CDK_DEFAULT_REGION": "eu-west-1", "AWS_REGION": "us-west-2"}).region == "us-west-2"


def test_account_sources():
    assert resolve_config({"AWS_ACCOUNT_ID": "111111111111"}).account == "111111111111"
    assert resolve_config({"CDK_DEFAULT_ACCOUNT": "222222222222", "AWS_ACCOUNT_ID": "111111111111"}).account == "222222222222"


@pytest.mark.parametrize("raw,engine,port", [
    ("mysql", "mysql", 3306),
    ("PostgreSQL", "postgres", 5432),
    ("postgres", "postgres", 5432),
    ("mariadb", "mariadb", 3306),
])
def test_engine_names_are_normalised(raw, engine, port):
    config = resolve_config({"DB_ENGINE": raw})
    assert config.db_engine == engine
    assert config.db_port == port


def test_lifecycle_policy_follows_environment():
    dev = resolve_config({})
    prod = resolve_config({"ENV_NAME": "prod"})
    assert dev.removal_policy == RemovalPolicy.DESTROY
    assert dev.auto_delete_objects is True
    assert prod.removal_policy == RemovalPolicy.RETAIN
    assert prod.auto_delete_objects is False


def test_config_is_immutable():
    config = resolve_config({})
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.max_azs = 5


def test_resolution_is_pure():
    overrides = {"MAX_AZS": "3"}
    assert resolve_config(overrides) == resolve_config(dict(overrides))
    assert overrides == {"MAX_AZS": "3"}


@pytest.mark.parametrize("overrides,key", [
    ({"VPC_CIDR": "not-a-cidr"}, "VPC_CIDR"),
    ({"VPC_CIDR": "10.0.0.1/16"}, "VPC_CIDR"),
    ({"DB_ENGINE": "oracle"}, "DB_ENGINE"),
    ({"DB_INSTANCE_CLASS": "t3.micro"}, "DB_INSTANCE_CLASS"),
    ({"FRONTEND_DOMAIN": "app.example.com"}, "FRONTEND_CERT_ARN"),
    ({"FRONTEND_CERT_ARN": "arn:aws:acm:us-east-1:123456789012:certificate/x"}, "FRONTEND_CERT_ARN"),
    ({"FRONTEND_MANAGE_DNS": "true"}, "FRONTEND_MANAGE_DNS"),
    ({"FRONTEND_DOMAIN": "app.example.com", "FRONTEND_MANAGE_DNS": "true"}, "CDK_DEFAULT_ACCOUNT"),
    ({"PROJECT_NAME": "WebApp"}, "PROJECT_NAME"),
    ({"PROJECT_NAME": "web_app"}, "PROJECT_NAME"),
    ({"PROJECT_NAME": "webapp-"}, "PROJECT_NAME"),
    ({"PROJECT_NAME": "a-very-long-project-name-for-an-alb"}, "PROJECT_NAME"),
    ({"ECR_REPO_NAME": "My-Repo"}, "ECR_REPO_NAME"),
    ({"ECR_REPO_NAME": "repo--"}, "ECR_REPO_NAME"),
    ({"ENV_NAME": "Prod"}, "ENV_NAME"),
    ({"ENV_NAME": "production-eu-west"}, "ENV_NAME"),
])
def test_invalid_settings_name_the_setting(overrides, key):
    with pytest.raises(ConfigError) as excinfo:
        resolve_config(overrides)
    assert excinfo.value.key == key
    assert key in str(excinfo.value)


def test_hosted_zone_defaults_to_registrable_domain():
    config = resolve_config({
        "FRONTEND_DOMAIN": "app.example.com",
        "FRONTEND_MANAGE_DNS": "yes",
        "CDK_DEFAULT_ACCOUNT": "123456789012",
    })
    assert config.manage_dns is True
    assert config.hosted_zone_name == "example.com"


def test_hosted_zone_override():
    config = resolve_config({
        "FRONTEND_DOMAIN": "app.internal.example.com",
        "FRONTEND_CERT_ARN": "arn:aws:acm:us-east-1:123456789012:certificate/x",
        "FRONTEND_HOSTED_ZONE": "internal.example.com",
    })
    assert config.hosted_zone_name == "internal.example.com"


@pytest.mark.parametrize("domain,zone", [
    ("example.com", "example.com"),
    ("app.example.com", "example.com"),
    ("www.shop.example.co.uk", "example.co.uk"),
])
def test_zone_name_for(domain, zone):
    assert zone_name_for(domain) == zone
