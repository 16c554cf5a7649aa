from typing import Optional

from aws_cdk import (
    aws_certificatemanager as acm,
    aws_elasticloadbalancingv2 as elbv2,
    aws_route53 as route53,
    aws_route53_targets as targets,
    Environment,
    Stack,
)
from constructs import Construct

from app_constructs.network import Network, NetworkOutputParameters
from app_constructs.parameter_store import ParameterStore, SsmParameterStore
from config.environments import ApplicationEnvironment
from config.parameters import DomainParameters


class DomainStack(Stack):
    """
    Points the application domain at the load balancer of a previously
    deployed Network, optionally with a DNS-validated certificate.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        aws_environment: Environment,
        app_env: ApplicationEnvironment,
        parameters: DomainParameters,
        network_output_parameters: Optional[NetworkOutputParameters] = None,
        parameter_store: Optional[ParameterStore] = None,
        **kwargs,
    ) -> None:
        if aws_environment is None or app_env is None or parameters is None:
            raise ValueError(
                "An AWS environment, an application environment and domain parameters are required"
            )
        super().__init__(
            scope,
            construct_id,
            stack_name=app_env.prefixed("Domain"),
            env=aws_environment,
            **kwargs,
        )

        self.hosted_zone = route53.HostedZone.from_lookup(
            self, "HostedZone", domain_name=parameters.hosted_zone_domain_name
        )

        network = network_output_parameters or Network.output_parameters_from(
            self, app_env, parameter_store or SsmParameterStore()
        )
        self.load_balancer = elbv2.ApplicationLoadBalancer.from_application_load_balancer_attributes(
            self,
            "AppLoadBalancer",
            load_balancer_arn=network.load_balancer_arn,
            security_group_id=network.load_balancer_security_group_id,
            load_balancer_canonical_hosted_zone_id=network.load_balancer_canonical_hosted_zone_id,
            load_balancer_dns_name=network.load_balancer_dns_name,
        )

        self.certificate = None
        if parameters.ssl_certificate_activated:
            self.certificate = acm.Certificate(
                self,
                "AppCertificate",
                domain_name=parameters.application_domain_name,
                validation=acm.CertificateValidation.from_dns(self.hosted_zone),
            )

        self.a_record = route53.ARecord(
            self,
            "ARecord",
            record_name=parameters.application_domain_name,
            zone=self.hosted_zone,
            target=route53.RecordTarget.from_alias(targets.LoadBalancerTarget(self.load_balancer)),
        )

        app_env.tag(self)
