import aws_cdk as cdk
from config import get_config
from deployment import build_deployment

app = cdk.App()
config = get_config(app)

# =================================================================
# COMPONENTS, IN DEPENDENCY ORDER
# =================================================================
# Network & Registry -> Database & Identity -> Compute -> (Certificate) -> Frontend.
# Every cross-stack reference becomes a stack dependency; the graph is
# validated before anything is synthesized.
deployment = build_deployment(app, config)

app.synth()
