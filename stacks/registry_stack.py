from aws_cdk import (
    CfnOutput,
    aws_ecr as ecr,
)
from constructs import Construct

from stacks.component import ComponentStack, RegistryHandle, REGISTRY


class RegistryStack(ComponentStack):
    """
    Image storage for the application container.
    """
    component = REGISTRY

    def __init__(self, scope: Construct, construct_id: str, config, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.repository = ecr.Repository(self, f"{config.project_name}-EcrRepo",
            repository_name=config.ecr_repo_name,
            image_scan_on_push=True,
            encryption=ecr.RepositoryEncryption.AES_256,
            removal_policy=config.removal_policy,
            empty_on_delete=config.auto_delete_objects
        )

        self.outputs = RegistryHandle(producer=self.component, repository=self.repository)

        # URI used when building and pushing the image
        CfnOutput(self, "EcrRepoUri",
            value=self.repository.repository_uri,
            description="ECR repository URI for the application image"
        )
