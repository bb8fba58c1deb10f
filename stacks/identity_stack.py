from aws_cdk import (
    CfnOutput,
    aws_cognito as cognito,
)
from constructs import Construct

from stacks.component import ComponentStack, IdentityHandle, IDENTITY


class IdentityStack(ComponentStack):
    """
    User directory and the public web client the frontend signs in with.
    """
    component = IDENTITY

    def __init__(self, scope: Construct, construct_id: str, config, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.user_pool = cognito.UserPool(self, "UserPool",
            user_pool_name=config.user_pool_name,
            self_sign_up_enabled=True,
            sign_in_aliases=cognito.SignInAliases(email=True),
            account_recovery=cognito.AccountRecovery.EMAIL_ONLY,
            password_policy=cognito.PasswordPolicy(
                min_length=8,
                require_symbols=False,
                require_uppercase=False,
                require_digits=False,
                require_lowercase=False
            ),
            removal_policy=config.removal_policy
        )

        callback_urls = ["https://localhost:3000/callback"]
        logout_urls = ["https://localhost:3000/"]
        if config.frontend_domain:
            callback_urls.append(f"https://{config.frontend_domain}/callback")
            logout_urls.append(f"https://{config.frontend_domain}/")

        # Public client: browsers cannot keep a secret
        self.user_pool_client = cognito.UserPoolClient(self, "UserPoolClient",
            user_pool=self.user_pool,
            user_pool_client_name=config.web_client_name,
            generate_secret=False,
            auth_flows=cognito.AuthFlow(user_password=True, user_srp=True),
            o_auth=cognito.OAuthSettings(
                flows=cognito.OAuthFlows(implicit_code_grant=True),
                callback_urls=callback_urls,
                logout_urls=logout_urls
            )
        )

        self.outputs = IdentityHandle(
            producer=self.component,
            user_pool_id=self.user_pool.user_pool_id,
            user_pool_client_id=self.user_pool_client.user_pool_client_id,
        )

        CfnOutput(self, "CognitoUserPoolId", value=self.user_pool.user_pool_id)
        CfnOutput(self, "CognitoUserPoolClientId", value=self.user_pool_client.user_pool_client_id)
