from typing import Optional

from aws_cdk import (
    CfnOutput,
    aws_certificatemanager as acm,
    aws_cloudfront as cloudfront,
    aws_cloudfront_origins as origins,
    aws_route53 as route53,
    aws_route53_targets as targets,
    aws_s3 as s3,
    aws_wafv2 as wafv2,
)
from constructs import Construct

from stacks.component import ComponentStack, CertificateHandle, ComputeHandle, EDGE

# AWS managed rule groups attached to the Web ACL, in priority order
MANAGED_RULE_GROUPS = (
    ("AWSManagedRulesCommonRuleSet", "common-rules"),
    ("AWSManagedRulesAmazonIpReputationList", "ip-reputation"),
)


def _visibility(metric_name: str) -> wafv2.CfnWebACL.VisibilityConfigProperty:
    return wafv2.CfnWebACL.VisibilityConfigProperty(
        cloud_watch_metrics_enabled=True,
        metric_name=metric_name,
        sampled_requests_enabled=True
    )


class EdgeStack(ComponentStack):
    """
    Deploys the public entry point:
    1. Private S3 bucket for static assets, read by CloudFront through Origin Access Control.
    2. WAF Web ACL with AWS managed rules.
    3. CloudFront Distribution routing static content to S3 and /api/* to the ALB.
    4. Route53 alias records when the custom domain's DNS is managed here.
    """
    component = EDGE

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config,
        compute: ComputeHandle,
        certificate: Optional[CertificateHandle] = None,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        prefix = config.project_name
        compute = self.consume(compute)

        # =================================================================
        # 1. FRONTEND BUCKET
        # =================================================================
        self.site_bucket = s3.Bucket(self, f"{prefix}-FrontendBucket",
            bucket_name=f"{prefix}-frontend-{config.env_name}-{self.account}",
            encryption=s3.BucketEncryption.S3_MANAGED,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            enforce_ssl=True,
            versioned=True,
            removal_policy=config.removal_policy,
            auto_delete_objects=config.auto_delete_objects
        )

        # =================================================================
        # 2. WAF WEB ACL
        # =================================================================
        self.web_acl = wafv2.CfnWebACL(self, f"{prefix}-WebACL",
            scope="CLOUDFRONT",
            default_action=wafv2.CfnWebACL.DefaultActionProperty(allow={}),
            visibility_config=_visibility(f"{prefix}-webacl"),
            description=f"WAF Web ACL for CloudFront - {prefix}",
            name=f"{prefix}-WebACL",
            rules=[
                wafv2.CfnWebACL.RuleProperty(
                    name=f"AWS-{rule_group}",
                    priority=priority,
                    override_action=wafv2.CfnWebACL.OverrideActionProperty(none={}),
                    statement=wafv2.CfnWebACL.StatementProperty(
                        managed_rule_group_statement=wafv2.CfnWebACL.ManagedRuleGroupStatementProperty(
                            name=rule_group,
                            vendor_name="AWS"
                        )
                    ),
                    visibility_config=_visibility(f"{prefix}-{metric}")
                )
                for priority, (rule_group, metric) in enumerate(MANAGED_RULE_GROUPS, start=1)
            ]
        )

        # =================================================================
        # 3. CLOUDFRONT DISTRIBUTION
        # =================================================================
        # A. API Origin: the ALB public DNS name, speaking whatever its listener speaks
        if compute.https:
            alb_origin = origins.HttpOrigin(compute.load_balancer_dns_name,
                protocol_policy=cloudfront.OriginProtocolPolicy.HTTPS_ONLY,
                https_port=compute.listener_port
            )
        else:
            alb_origin = origins.HttpOrigin(compute.load_balancer_dns_name,
                protocol_policy=cloudfront.OriginProtocolPolicy.HTTP_ONLY,
                http_port=compute.listener_port
            )

        # B. Custom domain certificate: imported by ARN or issued by the Certificate stack
        viewer_certificate = None
        if certificate is not None:
            viewer_certificate = self.consume(certificate).certificate
        elif config.frontend_cert_arn:
            viewer_certificate = acm.Certificate.from_certificate_arn(self, "CFCustomCert", config.frontend_cert_arn)

        # C. The Global Distribution
        self.distribution = cloudfront.Distribution(self, f"{prefix}-CloudFront",
            default_root_object="index.html",
            enabled=True,
            comment=f"{prefix} CloudFront distribution",
            certificate=viewer_certificate,
            domain_names=[config.frontend_domain] if config.frontend_domain else None,
            web_acl_id=self.web_acl.attr_arn,

            # Static Content Behavior (Cached)
            default_behavior=cloudfront.BehaviorOptions(
                origin=origins.S3BucketOrigin.with_origin_access_control(self.site_bucket),
                viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
                allowed_methods=cloudfront.AllowedMethods.ALLOW_GET_HEAD_OPTIONS,
                cache_policy=cloudfront.CachePolicy.CACHING_OPTIMIZED,
                compress=True
            ),

            # API Behavior (Dynamic - No Cache)
            additional_behaviors={
                "api/*": cloudfront.BehaviorOptions(
                    origin=alb_origin,
                    viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
                    allowed_methods=cloudfront.AllowedMethods.ALLOW_ALL,
                    cache_policy=cloudfront.CachePolicy.CACHING_DISABLED,
                    origin_request_policy=cloudfront.OriginRequestPolicy.ALL_VIEWER
                )
            }
        )

        # =================================================================
        # 4. DNS MANAGEMENT (Route53)
        # =================================================================
        if config.manage_dns:
            hosted_zone = route53.HostedZone.from_lookup(self, "FrontendZone", domain_name=config.hosted_zone_name)
            # Zone apex gets an unnamed record, subdomains their fully qualified name
            record_name = None if config.frontend_domain == config.hosted_zone_name else config.frontend_domain

            # Alias records pointing to the CloudFront Distribution
            route53.ARecord(self, "AliasRecord",
                zone=hosted_zone,
                record_name=record_name,
                target=route53.RecordTarget.from_alias(targets.CloudFrontTarget(self.distribution))
            )
            route53.AaaaRecord(self, "AliasRecordIPv6",
                zone=hosted_zone,
                record_name=record_name,
                target=route53.RecordTarget.from_alias(targets.CloudFrontTarget(self.distribution))
            )

        # =================================================================
        # 5. OUTPUTS
        # =================================================================
        CfnOutput(self, "CloudFrontURL",
            value=f"https://{self.distribution.distribution_domain_name}",
            description="Frontend URL served by CloudFront"
        )
        CfnOutput(self, "SiteBucketName", value=self.site_bucket.bucket_name)

