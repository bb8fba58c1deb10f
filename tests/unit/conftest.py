import aws_cdk as core
import pytest

from config import resolve_config
from deployment import build_deployment


@pytest.fixture
def build():
    """Builds a fresh deployment in its own App from string overrides."""
    def _build(**overrides):
        app = core.App()
        return build_deployment(app, resolve_config(overrides))
    return _build


@pytest.fixture
def deployment(build):
    return build()
