import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from aws_cdk import (
    Duration,
    aws_cognito as cognito,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_logs as logs,
)

LAMBDA_FUNCTIONS_DIRECTORY = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "lambda_functions"
)


@dataclass
class NetworkParameters:
    ssl_certificate_arn: Optional[str] = None
    nat_gateway_number: int = 0
    isolated_subnets_per_az: int = 1
    public_subnets_per_az: int = 1
    max_azs: int = 2
    internal_http_port: int = 8080
    external_http_port: int = 80
    https_port: int = 443

    def __post_init__(self):
        if self.isolated_subnets_per_az < 1 or self.public_subnets_per_az < 1 or self.max_azs < 1:
            raise ValueError("Number of isolated/public subnets and AZs must be >= 1")
        if self.nat_gateway_number < 0:
            raise ValueError("Number of NAT gateways must be >= 0")


@dataclass(frozen=True)
class EcrImage:
    """Image pulled from an ECR repository in the deployment account"""

    repository_name: str
    tag: str = "latest"

    def __post_init__(self):
        if not self.repository_name or not self.tag:
            raise ValueError("An ECR image needs both a repository name and a tag")


@dataclass(frozen=True)
class ExternalImage:
    """Image pulled verbatim from any registry"""

    url: str

    def __post_init__(self):
        if not self.url:
            raise ValueError("An external image needs a url")


DockerImage = Union[EcrImage, ExternalImage]


def docker_image_from(
    repository_name: Optional[str] = None,
    tag: Optional[str] = None,
    url: Optional[str] = None,
) -> DockerImage:
    """
    Pick the image source from loosely typed values (e.g. CDK context).
    Exactly one of ``repository_name`` or ``url`` must be given.
    """
    if repository_name and url:
        raise ValueError("Specify either a docker repository name or a docker image url, not both")
    if repository_name:
        return EcrImage(repository_name=repository_name, tag=tag or "latest")
    if url:
        return ExternalImage(url=url)
    raise ValueError(
        "You need to either specify the docker repository name and docker image tag "
        "or the docker image url"
    )


@dataclass
class ServiceParameters:
    docker_image: DockerImage
    environment_variables: Dict[str, str] = field(default_factory=dict)
    security_group_ids_to_grant_ingress_from_ecs: List[str] = field(default_factory=list)
    task_role_policy_statements: List[iam.PolicyStatement] = field(default_factory=list)
    application_protocol: str = "HTTP"
    application_port: int = 8080
    health_check_protocol: str = "HTTP"
    # defaults to the application port
    health_check_port: Optional[int] = None
    health_check_path: str = "/"
    health_check_interval_seconds: int = 15
    health_check_timeout_seconds: int = 5
    healthy_threshold_count: int = 2
    unhealthy_threshold_count: int = 8
    log_retention: logs.RetentionDays = logs.RetentionDays.ONE_WEEK
    cpu: int = 256
    memory: int = 512
    desired_instances_count: int = 2
    maximum_instances_percent: int = 200
    minimum_healthy_instances_percent: int = 50
    sticky_sessions_enabled: bool = False
    sticky_sessions_cookie_duration: int = 3600
    aws_logs_datetime_format: str = "%Y-%m-%dT%H:%M:%S.%f%z"
    assign_public_ip: bool = True

    def __post_init__(self):
        if not isinstance(self.docker_image, (EcrImage, ExternalImage)):
            raise ValueError("docker_image must be an EcrImage or an ExternalImage")
        if self.health_check_port is None:
            self.health_check_port = self.application_port
        # ALB accepts 1 second to 7 days
        if self.sticky_sessions_enabled and not 1 <= self.sticky_sessions_cookie_duration <= 604800:
            raise ValueError("Sticky sessions cookie duration must be between 1 and 604800 seconds")


@dataclass
class DatabaseParameters:
    storage_capacity_in_gb: int = 10
    instance_class: str = "db.t3.micro"
    engine: str = "postgres"
    engine_version: str = "13.4"
    deletion_protection: bool = False
    storage_encrypted: bool = True
    backup_retention_days: int = 7
    publicly_accessible: bool = False

    @property
    def storage_capacity_in_gb_string(self) -> str:
        return str(self.storage_capacity_in_gb)


@dataclass
class CognitoParameters:
    login_page_domain_prefix: str
    application_name: str
    application_url: str
    self_sign_up_enabled: bool = False
    account_recovery: cognito.AccountRecovery = cognito.AccountRecovery.EMAIL_ONLY
    sign_in_auto_verify_email: bool = False
    sign_in_alias_username: bool = True
    sign_in_alias_email: bool = True
    sign_in_case_sensitive: bool = True
    sign_in_email_required: bool = True
    sign_in_email_mutable: bool = False
    mfa: cognito.Mfa = cognito.Mfa.OFF
    password_require_lowercase: bool = True
    password_require_digits: bool = True
    password_require_symbols: bool = True
    password_require_uppercase: bool = True
    password_min_length: int = 8
    temp_password_validity_in_days: int = 7
    user_pool_generate_secret: bool = True
    supported_identity_providers: List[cognito.UserPoolClientIdentityProvider] = field(
        default_factory=list
    )
    oauth_callback_urls: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not (self.login_page_domain_prefix and self.application_name and self.application_url):
            raise ValueError(
                "login_page_domain_prefix, application_name and application_url are required"
            )


@dataclass
class DockerRepositoryParameters:
    repository_name: str
    account_id: str
    max_image_count: int = 10
    retain_registry_on_delete: bool = True
    immutable_tags: bool = True

    def __post_init__(self):
        if not self.repository_name or not self.account_id:
            raise ValueError("A repository name and an account id are required")
        if self.max_image_count < 1:
            raise ValueError("max_image_count must be >= 1")


@dataclass
class DeploymentSequencerParameters:
    github_token: str
    code_directory: str = LAMBDA_FUNCTIONS_DIRECTORY
    fifo: bool = True
    queue_name: str = "depQueue"
    runtime: lambda_.Runtime = field(default_factory=lambda: lambda_.Runtime.PYTHON_3_11)
    handler: str = "deployment_sequencer.handler"
    log_retention: logs.RetentionDays = logs.RetentionDays.TWO_WEEKS
    reserved_concurrent_executions: int = 1
    timeout: Duration = field(default_factory=lambda: Duration.seconds(60))
    github_token_key: str = "GITHUB_TOKEN"
    queue_url_key: str = "QUEUE_URL"
    region_key: str = "REGION"

    FIFO_SUFFIX = ".fifo"

    def __post_init__(self):
        if not self.github_token:
            raise ValueError("A github token is required")
        if not self.code_directory:
            raise ValueError("A code directory is required")

    @property
    def full_queue_name(self) -> str:
        return self.queue_name + (self.FIFO_SUFFIX if self.fifo else "")


@dataclass
class DomainParameters:
    hosted_zone_domain_name: str
    application_domain_name: str
    ssl_certificate_activated: bool = True

    def __post_init__(self):
        if not self.hosted_zone_domain_name or not self.application_domain_name:
            raise ValueError("Both the hosted zone and the application domain names are required")
