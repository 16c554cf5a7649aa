from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from aws_cdk import aws_ssm as ssm
from constructs import Construct

from app_constructs.util import DASH_JOINER, joined_string
from config.environments import ApplicationEnvironment

# Placeholder stored for values that do not exist, e.g. an HTTPS listener ARN
# on an HTTP-only network. SSM refuses empty values.
NULL_VALUE = "null"


def parameter_name(app_env: ApplicationEnvironment, construct_name: str, name: str) -> str:
    """Key of a value published by ``construct_name``: <env>-<app>-<construct>-<name>"""
    return joined_string(
        DASH_JOINER, app_env.environment_name, app_env.application_name, construct_name, name
    )


def list_item_id(name: str, index: int) -> str:
    return joined_string(DASH_JOINER, name, index)


class ParameterStore(ABC):
    """
    Key/value store used to hand outputs of one stack to the stacks deployed
    after it. Values are strings; lists are stored one item per key.
    """

    @abstractmethod
    def put(self, scope: Construct, parameter_id: str, name: str, value: Optional[str]) -> None:
        ...

    @abstractmethod
    def get(self, scope: Construct, parameter_id: str, name: str) -> Optional[str]:
        ...

    def put_list(self, scope: Construct, parameter_id: str, name: str, values: List[str]) -> None:
        for i, value in enumerate(values):
            self.put(scope, list_item_id(parameter_id, i), list_item_id(name, i), value)

    def get_list(
        self, scope: Construct, parameter_id: str, name: str, total_elements: int
    ) -> List[str]:
        values = (
            self.get(scope, list_item_id(parameter_id, i), list_item_id(name, i))
            for i in range(total_elements)
        )
        return [value for value in values if value is not None]


class SsmParameterStore(ParameterStore):
    """
    SSM Parameter Store backend. Reads resolve at deploy time, so ``get``
    returns a CloudFormation token rather than the stored value.
    """

    def put(self, scope: Construct, parameter_id: str, name: str, value: Optional[str]) -> None:
        ssm.StringParameter(
            scope,
            parameter_id,
            parameter_name=name,
            string_value=value if value else NULL_VALUE,
        )

    def get(self, scope: Construct, parameter_id: str, name: str) -> Optional[str]:
        return ssm.StringParameter.value_for_string_parameter(scope, name)


class InMemoryParameterStore(ParameterStore):
    """
    Dictionary backend, for synthesizing several environments in one process
    and for tests. Values are read back exactly as written.
    """

    def __init__(self, values: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = dict(values or {})

    def put(self, scope: Construct, parameter_id: str, name: str, value: Optional[str]) -> None:
        self.values[name] = NULL_VALUE if value is None else value

    def get(self, scope: Construct, parameter_id: str, name: str) -> Optional[str]:
        return self.values.get(name)
