from dataclasses import dataclass, field
from typing import List, Optional

from aws_cdk import (
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_elasticloadbalancingv2 as elbv2,
    Annotations,
)
from constructs import Construct

from app_constructs.parameter_store import NULL_VALUE, ParameterStore, SsmParameterStore, parameter_name
from app_constructs.util import subnet_configurations
from config.environments import ApplicationEnvironment
from config.parameters import NetworkParameters

ALL_IP_RANGES_CIDR = "0.0.0.0/0"
ALL_IP_PROTOCOLS = "-1"

DEFAULT_NUMBER_OF_ISOLATED_SUBNETS_PER_AZ = 1
DEFAULT_NUMBER_OF_PUBLIC_SUBNETS_PER_AZ = 1
DEFAULT_NUMBER_OF_AZ = 2


def is_arn_not_null(arn: Optional[str]) -> bool:
    """False for None, blank strings and the "null" placeholder"""
    return arn is not None and arn.strip() != "" and arn.lower() != NULL_VALUE


@dataclass(frozen=True)
class NetworkOutputParameters:
    """Values published by a Network for the stacks deployed on top of it"""

    vpc_id: Optional[str]
    http_listener_arn: Optional[str]
    load_balancer_security_group_id: Optional[str]
    ecs_cluster_name: Optional[str]
    load_balancer_arn: Optional[str]
    load_balancer_dns_name: Optional[str]
    load_balancer_canonical_hosted_zone_id: Optional[str]
    availability_zones: List[str] = field(default_factory=list)
    isolated_subnet_ids: List[str] = field(default_factory=list)
    public_subnet_ids: List[str] = field(default_factory=list)
    https_listener_arn: Optional[str] = None
    ssl_certificate_arn: Optional[str] = None


class Network(Construct):
    """
    Base network for an application served from ECS: a VPC with public and
    isolated subnets, an ECS cluster and an internet-facing load balancer
    with an HTTP and an optional HTTPS listener.

    Everything dependent stacks need is published to the parameter store
    under "<env>-<app>-Network-<name>".
    """

    CONSTRUCT_NAME = "Network"

    PARAM_VPC_ID = "vpcId"
    PARAM_HTTP_LISTENER_ARN = "httpListenerArn"
    PARAM_HTTPS_LISTENER_ARN = "httpsListenerArn"
    PARAM_LOAD_BALANCER_SECURITY_GROUP_ID = "loadbalancerSecurityGroupId"
    PARAM_LOAD_BALANCER_ARN = "loadBalancerArn"
    PARAM_LOAD_BALANCER_DNS_NAME = "loadBalancerDnsName"
    PARAM_LOAD_BALANCER_CANONICAL_HOSTED_ZONE_ID = "loadBalancerCanonicalHostedZoneId"
    PARAM_CLUSTER_NAME = "ecsClusterName"
    PARAM_AVAILABILITY_ZONES = "availabilityZones"
    PARAM_ISOLATED_SUBNETS = "isolatedSubnets"
    PARAM_PUBLIC_SUBNETS = "publicSubnets"
    PARAM_SSL_CERTIFICATE_ARN = "sslCertificateArn"

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        app_env: ApplicationEnvironment,
        parameters: NetworkParameters,
        parameter_store: Optional[ParameterStore] = None,
        **kwargs,
    ) -> None:
        if app_env is None or parameters is None:
            raise ValueError("An application environment and network parameters are required")
        super().__init__(scope, construct_id, **kwargs)

        self.app_env = app_env
        self.parameters = parameters
        self.parameter_store = parameter_store or SsmParameterStore()

        # VPC: isolated + public subnets in every AZ
        self.vpc = ec2.Vpc(
            self,
            "vpc",
            nat_gateways=parameters.nat_gateway_number,
            max_azs=parameters.max_azs,
            subnet_configuration=subnet_configurations(
                parameters.isolated_subnets_per_az,
                parameters.public_subnets_per_az,
                app_env.prefixed("isolatedSubnet"),
                app_env.prefixed("publicSubnet"),
            ),
        )

        self.ecs_cluster = ecs.Cluster(
            self, "cluster", vpc=self.vpc, cluster_name=app_env.prefixed("EcsCluster")
        )

        self._create_load_balancer()
        self._save_to_parameter_store()

        app_env.tag(self)

    def _create_load_balancer(self):
        """Create the load balancer, its security group and listeners"""
        params = self.parameters

        self.load_balancer_security_group = ec2.SecurityGroup(
            self,
            "loadbalancerSecurityGroup",
            vpc=self.vpc,
            security_group_name=self.app_env.prefixed("loadbalancerSecurityGroup"),
            description="Public access to the load balancer.",
        )
        # Open to the world; routing restrictions live in listeners and target groups
        ec2.CfnSecurityGroupIngress(
            self,
            "ingressToLoadbalancer",
            group_id=self.load_balancer_security_group.security_group_id,
            cidr_ip=ALL_IP_RANGES_CIDR,
            ip_protocol=ALL_IP_PROTOCOLS,
        )

        self.load_balancer = elbv2.ApplicationLoadBalancer(
            self,
            "loadbalancer",
            vpc=self.vpc,
            internet_facing=True,
            security_group=self.load_balancer_security_group,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
        )

        # Services attach their own listener rules; this one only catches the rest
        self.no_op_target_group = elbv2.ApplicationTargetGroup(
            self,
            "targetGroup",
            vpc=self.vpc,
            port=params.internal_http_port,
            protocol=elbv2.ApplicationProtocol.HTTP,
            target_type=elbv2.TargetType.IP,
        )

        self.http_listener = self.load_balancer.add_listener(
            "httpListener",
            port=params.external_http_port,
            protocol=elbv2.ApplicationProtocol.HTTP,
            open=True,
            default_target_groups=[self.no_op_target_group],
        )

        self.https_listener = None
        if is_arn_not_null(params.ssl_certificate_arn):
            self.https_listener = self.load_balancer.add_listener(
                "httpsListener",
                port=params.https_port,
                protocol=elbv2.ApplicationProtocol.HTTPS,
                certificates=[elbv2.ListenerCertificate.from_arn(params.ssl_certificate_arn)],
                open=True,
                default_target_groups=[self.no_op_target_group],
            )

            elbv2.ApplicationListenerRule(
                self,
                "HttpListenerRule",
                listener=self.http_listener,
                priority=1,
                conditions=[elbv2.ListenerCondition.path_patterns(["*"])],
                action=elbv2.ListenerAction.redirect(
                    protocol="HTTPS", port=str(params.https_port)
                ),
            )
        else:
            Annotations.of(self).add_info(
                "No SSL certificate ARN given, the load balancer only listens on HTTP"
            )

    def _save_to_parameter_store(self):
        """Publish the network outputs for the dependent stacks"""
        outputs = self.output_parameters

        self._put(self.PARAM_VPC_ID, outputs.vpc_id)
        self._put(self.PARAM_CLUSTER_NAME, outputs.ecs_cluster_name)
        self._put(
            self.PARAM_LOAD_BALANCER_SECURITY_GROUP_ID, outputs.load_balancer_security_group_id
        )
        self._put(self.PARAM_LOAD_BALANCER_ARN, outputs.load_balancer_arn)
        self._put(self.PARAM_LOAD_BALANCER_DNS_NAME, outputs.load_balancer_dns_name)
        self._put(
            self.PARAM_LOAD_BALANCER_CANONICAL_HOSTED_ZONE_ID,
            outputs.load_balancer_canonical_hosted_zone_id,
        )
        self._put(self.PARAM_HTTP_LISTENER_ARN, outputs.http_listener_arn)
        self._put(self.PARAM_HTTPS_LISTENER_ARN, outputs.https_listener_arn or NULL_VALUE)
        self._put(self.PARAM_SSL_CERTIFICATE_ARN, outputs.ssl_certificate_arn or NULL_VALUE)

        for param_id, values in (
            (self.PARAM_AVAILABILITY_ZONES, outputs.availability_zones),
            (self.PARAM_ISOLATED_SUBNETS, outputs.isolated_subnet_ids),
            (self.PARAM_PUBLIC_SUBNETS, outputs.public_subnet_ids),
        ):
            self.parameter_store.put_list(
                self, param_id, parameter_name(self.app_env, self.CONSTRUCT_NAME, param_id), values
            )

    def _put(self, param_id: str, value: Optional[str]):
        self.parameter_store.put(
            self, param_id, parameter_name(self.app_env, self.CONSTRUCT_NAME, param_id), value
        )

    @property
    def output_parameters(self) -> NetworkOutputParameters:
        ssl_certificate_arn = self.parameters.ssl_certificate_arn
        return NetworkOutputParameters(
            vpc_id=self.vpc.vpc_id,
            http_listener_arn=self.http_listener.listener_arn,
            load_balancer_security_group_id=self.load_balancer_security_group.security_group_id,
            ecs_cluster_name=self.ecs_cluster.cluster_name,
            load_balancer_arn=self.load_balancer.load_balancer_arn,
            load_balancer_dns_name=self.load_balancer.load_balancer_dns_name,
            load_balancer_canonical_hosted_zone_id=(
                self.load_balancer.load_balancer_canonical_hosted_zone_id
            ),
            availability_zones=list(self.vpc.availability_zones),
            isolated_subnet_ids=[subnet.subnet_id for subnet in self.vpc.isolated_subnets],
            public_subnet_ids=[subnet.subnet_id for subnet in self.vpc.public_subnets],
            https_listener_arn=self.https_listener.listener_arn if self.https_listener else None,
            ssl_certificate_arn=(
                ssl_certificate_arn if is_arn_not_null(ssl_certificate_arn) else None
            ),
        )

    @classmethod
    def get_parameter(
        cls,
        scope: Construct,
        app_env: ApplicationEnvironment,
        param_id: str,
        parameter_store: Optional[ParameterStore] = None,
    ) -> Optional[str]:
        store = parameter_store or SsmParameterStore()
        return store.get(scope, param_id, parameter_name(app_env, cls.CONSTRUCT_NAME, param_id))

    @classmethod
    def get_parameter_list(
        cls,
        scope: Construct,
        app_env: ApplicationEnvironment,
        param_id: str,
        total_elements: int,
        parameter_store: Optional[ParameterStore] = None,
    ) -> List[str]:
        store = parameter_store or SsmParameterStore()
        return store.get_list(
            scope, param_id, parameter_name(app_env, cls.CONSTRUCT_NAME, param_id), total_elements
        )

    @classmethod
    def output_parameters_from(
        cls,
        scope: Construct,
        app_env: ApplicationEnvironment,
        parameter_store: Optional[ParameterStore] = None,
        isolated_subnets_per_az: int = DEFAULT_NUMBER_OF_ISOLATED_SUBNETS_PER_AZ,
        public_subnets_per_az: int = DEFAULT_NUMBER_OF_PUBLIC_SUBNETS_PER_AZ,
        total_availability_zones: int = DEFAULT_NUMBER_OF_AZ,
    ) -> NetworkOutputParameters:
        """
        Read back the outputs of a previously deployed Network.

        Subnets live in exactly one AZ, so the number of subnets to read is the
        per-AZ count times the number of AZs.
        """
        if scope is None or app_env is None:
            raise ValueError("A scope and an application environment are required")
        if isolated_subnets_per_az < 1 or public_subnets_per_az < 1 or total_availability_zones < 1:
            raise ValueError(
                "The number of isolated and public subnets and the total availability zones "
                "must be greater than 0"
            )

        store = parameter_store or SsmParameterStore()

        def get(param_id: str) -> Optional[str]:
            return cls.get_parameter(scope, app_env, param_id, store)

        def get_list(param_id: str, total: int) -> List[str]:
            return cls.get_parameter_list(scope, app_env, param_id, total, store)

        https_listener_arn = get(cls.PARAM_HTTPS_LISTENER_ARN)
        ssl_certificate_arn = get(cls.PARAM_SSL_CERTIFICATE_ARN)
        return NetworkOutputParameters(
            vpc_id=get(cls.PARAM_VPC_ID),
            http_listener_arn=get(cls.PARAM_HTTP_LISTENER_ARN),
            load_balancer_security_group_id=get(cls.PARAM_LOAD_BALANCER_SECURITY_GROUP_ID),
            ecs_cluster_name=get(cls.PARAM_CLUSTER_NAME),
            load_balancer_arn=get(cls.PARAM_LOAD_BALANCER_ARN),
            load_balancer_dns_name=get(cls.PARAM_LOAD_BALANCER_DNS_NAME),
            load_balancer_canonical_hosted_zone_id=get(
                cls.PARAM_LOAD_BALANCER_CANONICAL_HOSTED_ZONE_ID
            ),
            availability_zones=get_list(cls.PARAM_AVAILABILITY_ZONES, total_availability_zones),
            isolated_subnet_ids=get_list(
                cls.PARAM_ISOLATED_SUBNETS, isolated_subnets_per_az * total_availability_zones
            ),
            public_subnet_ids=get_list(
                cls.PARAM_PUBLIC_SUBNETS, public_subnets_per_az * total_availability_zones
            ),
            https_listener_arn=https_listener_arn if is_arn_not_null(https_listener_arn) else None,
            ssl_certificate_arn=(
                ssl_certificate_arn if is_arn_not_null(ssl_certificate_arn) else None
            ),
        )
