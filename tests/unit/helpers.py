import aws_cdk.assertions as assertions

TEST_ACCOUNT = "123456789012"
TEST_CERT_ARN = f"arn:aws:acm:us-east-1:{TEST_ACCOUNT}:certificate/11111111-2222-3333-4444-555555555555"


def template_of(deployment, component):
    """Synthesized CloudFormation template of one component's stack."""
    return assertions.Template.from_stack(deployment[component])
