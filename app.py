#!/usr/bin/env python3
import logging

import aws_cdk as cdk

from config.environments import EnvironmentConfig
from stacks.cognito_stack import CognitoStack
from stacks.deployment_sequencer_stack import DeploymentSequencerStack
from stacks.domain_stack import DomainStack
from stacks.platform_stacks import DatabaseStack, DockerRepositoryStack, NetworkStack, ServiceStack

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = cdk.App()

# Names, account and region come from cdk.json or -c key=value
config = EnvironmentConfig.from_context(app)
app_env = config.application_environment
env = config.aws_environment
logger.info("Synthesizing %s in %s/%s", app_env, env.account, env.region)

# Stacks read the outputs of the stacks they depend on from SSM at deploy
# time, so dependencies only order the deployments
network_stack = NetworkStack(app, "NetworkStack", env, app_env, config.network)

database_stack = DatabaseStack(app, "DatabaseStack", env, app_env, config.database)
database_stack.add_dependency(network_stack)

if config.docker_repository:
    docker_repository_stack = DockerRepositoryStack(
        app, "DockerRepositoryStack", env, config.docker_repository
    )
else:
    docker_repository_stack = None

if config.service:
    service_stack = ServiceStack(app, "ServiceStack", env, app_env, config.service)
    service_stack.add_dependency(network_stack)
    if docker_repository_stack:
        service_stack.add_dependency(docker_repository_stack)
else:
    logger.info("No docker image configured, skipping the service stack")

if config.cognito:
    CognitoStack(app, "CognitoStack", env, app_env, config.cognito)

if config.domain:
    domain_stack = DomainStack(app, "DomainStack", env, app_env, config.domain)
    domain_stack.add_dependency(network_stack)

if config.deployment_sequencer:
    DeploymentSequencerStack(app, env, app_env, config.deployment_sequencer)

app.synth()
