from aws_cdk import (
    aws_lambda as lambda_,
    aws_lambda_event_sources as event_sources,
    aws_sqs as sqs,
    Environment,
    Stack,
)
from constructs import Construct

from app_constructs.util import DASH_JOINER, joined_string
from config.environments import ApplicationEnvironment
from config.parameters import DeploymentSequencerParameters

FUNCTION_ID = "depSeqFun"
GITHUB_TOKEN_KEY = "GITHUB_TOKEN_KEY"
QUEUE_URL_KEY = "QUEUE_URL_KEY"
REGION_KEY = "REGION_KEY"


class DeploymentSequencerStack(Stack):
    """
    Queue of deployment requests consumed one at a time by a Lambda function,
    so that GitHub deployments of the same application never overlap.
    """

    def __init__(
        self,
        scope: Construct,
        aws_environment: Environment,
        app_env: ApplicationEnvironment,
        parameters: DeploymentSequencerParameters,
        **kwargs,
    ) -> None:
        if aws_environment is None or not aws_environment.region:
            raise ValueError("An AWS environment with a region is required")
        if app_env is None or parameters is None:
            raise ValueError(
                "An application environment and deployment sequencer parameters are required"
            )
        name = app_env.prefixed(joined_string(DASH_JOINER, "deployment", "seq", "stack"))
        super().__init__(scope, name, stack_name=name, env=aws_environment, **kwargs)

        queue_name = app_env.prefixed(parameters.full_queue_name)
        self.queue = sqs.Queue(
            self,
            queue_name,
            queue_name=queue_name,
            fifo=parameters.fifo or None,
            content_based_deduplication=True if parameters.fifo else None,
            visibility_timeout=parameters.timeout,
        )

        self.function = lambda_.Function(
            self,
            app_env.prefixed(FUNCTION_ID),
            code=lambda_.Code.from_asset(parameters.code_directory),
            runtime=parameters.runtime,
            handler=parameters.handler,
            timeout=parameters.timeout,
            log_retention=parameters.log_retention,
            reserved_concurrent_executions=parameters.reserved_concurrent_executions,
            environment={
                parameters.github_token_key: parameters.github_token,
                parameters.queue_url_key: self.queue.queue_url,
                parameters.region_key: aws_environment.region,
                # Names of the three variables above, for handlers that allow renaming them
                GITHUB_TOKEN_KEY: parameters.github_token_key,
                QUEUE_URL_KEY: parameters.queue_url_key,
                REGION_KEY: parameters.region_key,
            },
        )
        # One message per invocation
        self.function.add_event_source(event_sources.SqsEventSource(self.queue, batch_size=1))

        app_env.tag(self)
