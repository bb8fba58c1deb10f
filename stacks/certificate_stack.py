from aws_cdk import (
    aws_certificatemanager as acm,
    aws_route53 as route53
)
from constructs import Construct

from stacks.component import ComponentStack, CertificateHandle, CERTIFICATE


class CertificateStack(ComponentStack):
    """
    Handles SSL/TLS certificate creation and DNS validation for the custom frontend domain.
    Note: This stack MUST be deployed in us-east-1 for CloudFront compatibility.
    """
    component = CERTIFICATE

    def __init__(self, scope: Construct, construct_id: str, config, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # 1. Look up the existing Hosted Zone in Route53 (e.g. 'example.com' for 'app.example.com')
        hosted_zone = route53.HostedZone.from_lookup(self, "HostedZone",
            domain_name=config.hosted_zone_name
        )

        # 2. Request Public Certificate with DNS Validation
        self.certificate = acm.Certificate(self, "FrontendCert",
            domain_name=config.frontend_domain,
            validation=acm.CertificateValidation.from_dns(hosted_zone)
        )

        self.outputs = CertificateHandle(producer=self.component, certificate=self.certificate)
