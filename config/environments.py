from dataclasses import dataclass, field
from typing import Optional

from aws_cdk import App, Environment, Tags
from constructs import IConstruct

from app_constructs.util import DASH_JOINER, joined_string, sanitize
from config.parameters import (
    CognitoParameters,
    DatabaseParameters,
    DeploymentSequencerParameters,
    DockerRepositoryParameters,
    DomainParameters,
    NetworkParameters,
    ServiceParameters,
    docker_image_from,
)


@dataclass(frozen=True)
class ApplicationEnvironment:
    """
    Namespace shared by every resource of one application in one environment.
    The sanitized prefix "<environment>-<application>" is used to name
    resources, and both names are attached as tags.
    """

    application_name: str
    environment_name: str

    def __post_init__(self):
        if not self.application_name or not self.environment_name:
            raise ValueError("Both the application name and the environment name are required")

    @property
    def prefix(self) -> str:
        return sanitize(joined_string(DASH_JOINER, self.environment_name, self.application_name))

    def prefixed(self, name: str) -> str:
        # Only the prefix is sanitized, e.g. a ".fifo" suffix must survive
        return joined_string(DASH_JOINER, self.prefix, name)

    def tag(self, construct: IConstruct) -> None:
        Tags.of(construct).add("environment", self.environment_name)
        Tags.of(construct).add("application", self.application_name)

    def __str__(self) -> str:
        return self.prefix


@dataclass
class EnvironmentConfig:
    application_environment: ApplicationEnvironment
    aws_environment: Environment
    network: NetworkParameters
    service: Optional[ServiceParameters] = None
    database: DatabaseParameters = field(default_factory=DatabaseParameters)
    cognito: Optional[CognitoParameters] = None
    domain: Optional[DomainParameters] = None
    docker_repository: Optional[DockerRepositoryParameters] = None
    deployment_sequencer: Optional[DeploymentSequencerParameters] = None

    @classmethod
    def from_context(cls, app: App) -> "EnvironmentConfig":
        """
        Read an environment configuration from the CDK context
        (cdk.json or ``-c key=value`` on the command line).

        Only the application/environment names, the account and the region are
        required; every optional stack is configured only when its context
        keys are present.
        """

        def required(key: str) -> str:
            value = app.node.try_get_context(key)
            if not value:
                raise ValueError(f"Context variable '{key}' is required")
            return value

        def optional(key: str) -> Optional[str]:
            return app.node.try_get_context(key) or None

        app_env = ApplicationEnvironment(
            application_name=required("applicationName"),
            environment_name=required("environmentName"),
        )
        aws_env = Environment(account=required("accountId"), region=required("region"))

        network = NetworkParameters(
            ssl_certificate_arn=optional("sslCertificateArn"),
            nat_gateway_number=int(optional("natGatewayNumber") or 0),
        )

        service = None
        if optional("dockerImageUrl") or optional("dockerRepositoryName"):
            service = ServiceParameters(
                docker_image=docker_image_from(
                    repository_name=optional("dockerRepositoryName"),
                    tag=optional("dockerImageTag"),
                    url=optional("dockerImageUrl"),
                ),
                environment_variables={"ENVIRONMENT_NAME": app_env.environment_name},
            )

        cognito = None
        if optional("loginPageDomainPrefix"):
            cognito = CognitoParameters(
                login_page_domain_prefix=required("loginPageDomainPrefix"),
                application_name=app_env.application_name,
                application_url=required("applicationUrl"),
            )

        domain = None
        if optional("hostedZoneDomain"):
            domain = DomainParameters(
                hosted_zone_domain_name=required("hostedZoneDomain"),
                application_domain_name=required("applicationDomain"),
            )

        docker_repository = None
        if optional("dockerRepositoryName"):
            docker_repository = DockerRepositoryParameters(
                repository_name=required("dockerRepositoryName"),
                account_id=aws_env.account,
            )

        deployment_sequencer = None
        if optional("githubToken"):
            deployment_sequencer = DeploymentSequencerParameters(
                github_token=required("githubToken")
            )

        return cls(
            application_environment=app_env,
            aws_environment=aws_env,
            network=network,
            service=service,
            cognito=cognito,
            domain=domain,
            docker_repository=docker_repository,
            deployment_sequencer=deployment_sequencer,
        )
