from aws_cdk import (
    aws_ecr as ecr,
    aws_iam as iam,
    RemovalPolicy,
)
from constructs import Construct

from config.parameters import DockerRepositoryParameters

LIFECYCLE_RULE_PRIORITY = 1


class DockerRepository(Construct):
    """
    ECR repository keeping at most ``max_image_count`` images, readable and
    writable from the given account.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        parameters: DockerRepositoryParameters,
        **kwargs,
    ) -> None:
        if parameters is None:
            raise ValueError("Docker repository parameters are required")
        super().__init__(scope, construct_id, **kwargs)

        self.repository = ecr.Repository(
            self,
            f"ecRepository-{construct_id}",
            repository_name=parameters.repository_name,
            image_tag_mutability=(
                ecr.TagMutability.IMMUTABLE
                if parameters.immutable_tags
                else ecr.TagMutability.MUTABLE
            ),
            removal_policy=(
                RemovalPolicy.RETAIN
                if parameters.retain_registry_on_delete
                else RemovalPolicy.DESTROY
            ),
            lifecycle_rules=[
                ecr.LifecycleRule(
                    rule_priority=LIFECYCLE_RULE_PRIORITY,
                    description=lifecycle_description(parameters),
                    max_image_count=parameters.max_image_count,
                )
            ],
        )

        self.repository.grant_pull_push(iam.AccountPrincipal(parameters.account_id))


def lifecycle_description(parameters: DockerRepositoryParameters) -> str:
    return "Docker ECR '{}' will hold a maximum of {} images. It will {} retained on deletion and tags are {}".format(
        parameters.repository_name,
        parameters.max_image_count,
        "be" if parameters.retain_registry_on_delete else "not be",
        "immutable" if parameters.immutable_tags else "mutable",
    )
