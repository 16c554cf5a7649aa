from typing import Optional

from aws_cdk import Environment, Stack
from constructs import Construct

from app_constructs.container_service import ElasticContainerService
from app_constructs.database import Database
from app_constructs.docker_repository import DockerRepository
from app_constructs.network import Network, NetworkOutputParameters
from app_constructs.parameter_store import ParameterStore, SsmParameterStore
from app_constructs.util import DASH_JOINER, joined_string, sanitize
from config.environments import ApplicationEnvironment
from config.parameters import (
    DatabaseParameters,
    DockerRepositoryParameters,
    NetworkParameters,
    ServiceParameters,
)


class NetworkStack(Stack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        aws_environment: Environment,
        app_env: ApplicationEnvironment,
        parameters: NetworkParameters,
        parameter_store: Optional[ParameterStore] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            scope,
            construct_id,
            stack_name=app_env.prefixed(Network.CONSTRUCT_NAME),
            env=aws_environment,
            **kwargs,
        )

        self.network = Network(
            self, "Network", app_env, parameters, parameter_store=parameter_store
        )


class ServiceStack(Stack):
    """
    Fargate service of the application. Without explicit network outputs, the
    outputs of the Network of the same environment are read from the
    parameter store.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        aws_environment: Environment,
        app_env: ApplicationEnvironment,
        parameters: ServiceParameters,
        network_output_parameters: Optional[NetworkOutputParameters] = None,
        parameter_store: Optional[ParameterStore] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            scope,
            construct_id,
            stack_name=app_env.prefixed("Service"),
            env=aws_environment,
            **kwargs,
        )

        store = parameter_store or SsmParameterStore()
        network = network_output_parameters or Network.output_parameters_from(
            self, app_env, store
        )

        self.service = ElasticContainerService(
            self, "Service", aws_environment, app_env, parameters, network
        )


class DatabaseStack(Stack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        aws_environment: Environment,
        app_env: ApplicationEnvironment,
        parameters: DatabaseParameters,
        network_output_parameters: Optional[NetworkOutputParameters] = None,
        parameter_store: Optional[ParameterStore] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            scope,
            construct_id,
            stack_name=app_env.prefixed(Database.CONSTRUCT_NAME),
            env=aws_environment,
            **kwargs,
        )

        self.database = Database(
            self,
            "Database",
            app_env,
            parameters,
            network_output_parameters=network_output_parameters,
            parameter_store=parameter_store,
        )


class DockerRepositoryStack(Stack):
    """ECR repository shared by every environment of the account"""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        aws_environment: Environment,
        parameters: DockerRepositoryParameters,
        **kwargs,
    ) -> None:
        super().__init__(
            scope,
            construct_id,
            stack_name=sanitize(
                joined_string(DASH_JOINER, parameters.repository_name, "DockerRepository")
            ),
            env=aws_environment,
            **kwargs,
        )

        self.docker_repository = DockerRepository(self, "DockerRepository", parameters)
