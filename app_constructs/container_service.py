from typing import Dict, List

from aws_cdk import (
    aws_ec2 as ec2,
    aws_ecr as ecr,
    aws_ecs as ecs,
    aws_elasticloadbalancingv2 as elbv2,
    aws_iam as iam,
    aws_logs as logs,
    Environment,
    Fn,
    CfnCondition,
    RemovalPolicy,
)
from constructs import Construct

from app_constructs.network import ALL_IP_PROTOCOLS, NetworkOutputParameters
from app_constructs.parameter_store import NULL_VALUE
from config.environments import ApplicationEnvironment
from config.parameters import EcrImage, ServiceParameters

ECS_TASKS_PRINCIPAL = "ecs-tasks.amazonaws.com"
NETWORK_MODE_AWS_VPC = "awsvpc"
LAUNCH_TYPE_FARGATE = "FARGATE"
TARGET_TYPE_IP = "ip"
LOG_DRIVER_AWS_LOGS = "awslogs"

STICKY_SESSIONS_ENABLED = "stickiness.enabled"
STICKY_SESSIONS_TYPE = "stickiness.type"
STICKY_SESSIONS_LB_COOKIE_DURATION = "stickiness.lb_cookie.duration_seconds"
STICKY_SESSIONS_TYPE_LB_COOKIE = "lb_cookie"

LISTENER_RULE_ACTION_TYPE_FORWARD = "forward"
LISTENER_RULE_CONDITION_PATH_PATTERN = "path-pattern"
HTTPS_LISTENER_RULE_PRIORITY = 3
HTTP_LISTENER_RULE_PRIORITY = 5


def sticky_sessions_attributes(
    params: ServiceParameters,
) -> List[elbv2.CfnTargetGroup.TargetGroupAttributeProperty]:
    """Target group attributes for lb_cookie sticky sessions, empty when disabled"""
    if not params.sticky_sessions_enabled:
        return []
    return [
        elbv2.CfnTargetGroup.TargetGroupAttributeProperty(
            key=STICKY_SESSIONS_ENABLED, value="true"
        ),
        elbv2.CfnTargetGroup.TargetGroupAttributeProperty(
            key=STICKY_SESSIONS_TYPE, value=STICKY_SESSIONS_TYPE_LB_COOKIE
        ),
        elbv2.CfnTargetGroup.TargetGroupAttributeProperty(
            key=STICKY_SESSIONS_LB_COOKIE_DURATION,
            value=str(params.sticky_sessions_cookie_duration),
        ),
    ]


class ElasticContainerService(Construct):
    """
    Fargate service running one container behind the network's load balancer.

    The service gets its own target group, listener rules on the HTTP and (if
    present) HTTPS listeners, log group, IAM roles, task definition and
    security group.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        aws_environment: Environment,
        app_env: ApplicationEnvironment,
        parameters: ServiceParameters,
        network_output_parameters: NetworkOutputParameters,
        **kwargs,
    ) -> None:
        if aws_environment is None or not aws_environment.region:
            raise ValueError("An AWS environment with a region is required")
        if app_env is None or parameters is None or network_output_parameters is None:
            raise ValueError(
                "An application environment, service parameters and network outputs are required"
            )
        super().__init__(scope, construct_id, **kwargs)

        self.app_env = app_env
        self.parameters = parameters
        self.network = network_output_parameters
        self.container_name = app_env.prefixed("container")

        self.target_group = self._create_target_group()
        self.http_listener_rule, self.https_listener_rule = self._create_listener_rules()

        self.log_group = logs.LogGroup(
            self,
            "ecsLogGroup",
            log_group_name=app_env.prefixed("logs"),
            retention=parameters.log_retention,
            removal_policy=RemovalPolicy.DESTROY,
        )

        self.task_execution_role = self._create_task_execution_role()
        self.task_role = self._create_task_role()
        self.image = self._docker_image_url()

        self.task_definition = self._create_task_definition(aws_environment.region)
        self.security_group = self._create_security_group()
        self.service = self._create_service()

        # The target group must be attached to a listener before the service registers in it
        self.service.add_dependency(self.http_listener_rule)

        app_env.tag(self)

    def _create_target_group(self) -> elbv2.CfnTargetGroup:
        params = self.parameters
        return elbv2.CfnTargetGroup(
            self,
            "targetGroup",
            health_check_interval_seconds=params.health_check_interval_seconds,
            health_check_path=params.health_check_path,
            health_check_port=str(params.health_check_port),
            health_check_protocol=params.health_check_protocol,
            health_check_timeout_seconds=params.health_check_timeout_seconds,
            healthy_threshold_count=params.healthy_threshold_count,
            unhealthy_threshold_count=params.unhealthy_threshold_count,
            target_group_attributes=sticky_sessions_attributes(params),
            target_type=TARGET_TYPE_IP,
            port=params.application_port,
            protocol=params.application_protocol,
            vpc_id=self.network.vpc_id,
        )

    def _create_listener_rules(self):
        """
        Forward everything to the service from both listeners.

        The HTTPS rule is always declared but only deployed when the network
        published a real HTTPS listener ARN instead of the "null" placeholder.
        """
        actions = [
            elbv2.CfnListenerRule.ActionProperty(
                type=LISTENER_RULE_ACTION_TYPE_FORWARD,
                target_group_arn=self.target_group.ref,
            )
        ]
        conditions = [
            elbv2.CfnListenerRule.RuleConditionProperty(
                field=LISTENER_RULE_CONDITION_PATH_PATTERN, values=["*"]
            )
        ]

        https_listener_arn = self.network.https_listener_arn or NULL_VALUE
        https_listener_exists = CfnCondition(
            self,
            "httpsListenerRuleCondition",
            expression=Fn.condition_not(Fn.condition_equals(https_listener_arn, NULL_VALUE)),
        )
        https_rule = elbv2.CfnListenerRule(
            self,
            "httpsListenerRule",
            actions=actions,
            conditions=conditions,
            listener_arn=https_listener_arn,
            priority=HTTPS_LISTENER_RULE_PRIORITY,
        )
        https_rule.cfn_options.condition = https_listener_exists

        http_rule = elbv2.CfnListenerRule(
            self,
            "httpListenerRule",
            actions=actions,
            conditions=conditions,
            listener_arn=self.network.http_listener_arn,
            priority=HTTP_LISTENER_RULE_PRIORITY,
        )
        return http_rule, https_rule

    def _create_task_execution_role(self) -> iam.Role:
        """Role ECS uses to pull the image and write logs"""
        return iam.Role(
            self,
            "ecsTaskExecutionRole",
            assumed_by=iam.ServicePrincipal(ECS_TASKS_PRINCIPAL),
            path="/",
            inline_policies={
                self.app_env.prefixed("ecsTaskExecutionRolePolicy"): iam.PolicyDocument(
                    statements=[
                        iam.PolicyStatement(
                            effect=iam.Effect.ALLOW,
                            actions=[
                                "ecr:GetAuthorizationToken",
                                "ecr:BatchCheckLayerAvailability",
                                "ecr:GetDownloadUrlForLayer",
                                "ecr:BatchGetImage",
                                "logs:CreateLogStream",
                                "logs:PutLogEvents",
                            ],
                            resources=["*"],
                        )
                    ]
                )
            },
        )

    def _create_task_role(self) -> iam.Role:
        """Role assumed by the running container"""
        statements = self.parameters.task_role_policy_statements
        inline_policies = None
        if statements:
            inline_policies = {
                self.app_env.prefixed("ecsTaskRolePolicy"): iam.PolicyDocument(
                    statements=statements
                )
            }
        return iam.Role(
            self,
            "ecsTaskRole",
            assumed_by=iam.ServicePrincipal(ECS_TASKS_PRINCIPAL),
            path="/",
            inline_policies=inline_policies,
        )

    def _docker_image_url(self) -> str:
        docker_image = self.parameters.docker_image
        if isinstance(docker_image, EcrImage):
            repository = ecr.Repository.from_repository_name(
                self, "ecrRepository", docker_image.repository_name
            )
            repository.grant_pull_push(self.task_execution_role)
            return repository.repository_uri_for_tag(docker_image.tag)
        return docker_image.url

    def _create_task_definition(self, region: str) -> ecs.CfnTaskDefinition:
        params = self.parameters

        log_configuration = ecs.CfnTaskDefinition.LogConfigurationProperty(
            log_driver=LOG_DRIVER_AWS_LOGS,
            options={
                "awslogs-group": self.log_group.log_group_name,
                "awslogs-region": region,
                "awslogs-stream-prefix": self.app_env.prefixed("stream"),
                "awslogs-datetime-format": params.aws_logs_datetime_format,
            },
        )

        container_ports = [params.application_port]
        if params.health_check_port != params.application_port:
            container_ports.append(params.health_check_port)

        container_definition = ecs.CfnTaskDefinition.ContainerDefinitionProperty(
            name=self.container_name,
            cpu=params.cpu,
            memory=params.memory,
            image=self.image,
            log_configuration=log_configuration,
            port_mappings=[
                ecs.CfnTaskDefinition.PortMappingProperty(container_port=port)
                for port in container_ports
            ],
            environment=key_value_pairs(params.environment_variables),
        )

        return ecs.CfnTaskDefinition(
            self,
            "taskDefinition",
            cpu=str(params.cpu),
            memory=str(params.memory),
            network_mode=NETWORK_MODE_AWS_VPC,
            requires_compatibilities=[LAUNCH_TYPE_FARGATE],
            execution_role_arn=self.task_execution_role.role_arn,
            task_role_arn=self.task_role.role_arn,
            container_definitions=[container_definition],
        )

    def _create_security_group(self) -> ec2.CfnSecurityGroup:
        security_group = ec2.CfnSecurityGroup(
            self,
            "ecsSecurityGroup",
            vpc_id=self.network.vpc_id,
            group_description="Security Group for the ECS container",
        )

        # Containers reach each other
        ec2.CfnSecurityGroupIngress(
            self,
            "ecsIngressFromSelf",
            ip_protocol=ALL_IP_PROTOCOLS,
            source_security_group_id=security_group.attr_group_id,
            group_id=security_group.attr_group_id,
        )

        # Load balancer reaches the containers
        ec2.CfnSecurityGroupIngress(
            self,
            "ecsIngressFromLoadBalancer",
            ip_protocol=ALL_IP_PROTOCOLS,
            source_security_group_id=self.network.load_balancer_security_group_id,
            group_id=security_group.attr_group_id,
        )

        # Containers reach shared services (databases, side-cars...)
        for counter, group_id in enumerate(
            self.parameters.security_group_ids_to_grant_ingress_from_ecs, start=1
        ):
            ec2.CfnSecurityGroupIngress(
                self,
                f"securityGroupIngress{counter}",
                source_security_group_id=security_group.attr_group_id,
                group_id=group_id,
                ip_protocol=ALL_IP_PROTOCOLS,
            )

        return security_group

    def _create_service(self) -> ecs.CfnService:
        params = self.parameters
        return ecs.CfnService(
            self,
            "ecsService",
            cluster=self.network.ecs_cluster_name,
            launch_type=LAUNCH_TYPE_FARGATE,
            deployment_configuration=ecs.CfnService.DeploymentConfigurationProperty(
                maximum_percent=params.maximum_instances_percent,
                minimum_healthy_percent=params.minimum_healthy_instances_percent,
            ),
            desired_count=params.desired_instances_count,
            task_definition=self.task_definition.ref,
            load_balancers=[
                ecs.CfnService.LoadBalancerProperty(
                    container_name=self.container_name,
                    container_port=params.application_port,
                    target_group_arn=self.target_group.ref,
                )
            ],
            network_configuration=ecs.CfnService.NetworkConfigurationProperty(
                awsvpc_configuration=ecs.CfnService.AwsVpcConfigurationProperty(
                    assign_public_ip="ENABLED" if params.assign_public_ip else "DISABLED",
                    security_groups=[self.security_group.attr_group_id],
                    subnets=self.network.public_subnet_ids,
                )
            ),
        )


def key_value_pairs(
    source: Dict[str, str],
) -> List[ecs.CfnTaskDefinition.KeyValuePairProperty]:
    return [
        ecs.CfnTaskDefinition.KeyValuePairProperty(name=name, value=value)
        for name, value in source.items()
    ]
