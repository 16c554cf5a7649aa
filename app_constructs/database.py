import json
from dataclasses import dataclass
from typing import List, Optional

from aws_cdk import (
    aws_ec2 as ec2,
    aws_rds as rds,
    aws_secretsmanager as secretsmanager,
)
from constructs import Construct

from app_constructs.network import Network, NetworkOutputParameters
from app_constructs.parameter_store import ParameterStore, SsmParameterStore, parameter_name
from app_constructs.util import db_sanitized
from config.environments import ApplicationEnvironment
from config.parameters import DatabaseParameters

TARGET_TYPE_AWS_RDS_DBINSTANCE = "AWS::RDS::DBInstance"
USERNAME_SECRET_HOLDER = "username"
PASSWORD_SECRET_HOLDER = "password"


@dataclass(frozen=True)
class DatabaseOutputParameters:
    endpoint_address: Optional[str]
    endpoint_port: Optional[str]
    database_name: Optional[str]
    secret_arn: Optional[str]
    security_group_id: Optional[str]


class Database(Construct):
    """
    RDS instance (PostgreSQL by default) in the isolated subnets of a Network.

    The network outputs are read from the parameter store unless given, so
    the Network must be deployed first. Credentials are generated into a
    Secrets Manager secret attached to the instance.
    """

    CONSTRUCT_NAME = "Database"

    PARAM_ENDPOINT_ADDRESS = "endpointAddress"
    PARAM_ENDPOINT_PORT = "endpointPort"
    PARAM_DATABASE_NAME = "databaseName"
    PARAM_SECURITY_GROUP_ID = "securityGroupId"
    PARAM_SECRET_ARN = "secretArn"

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        app_env: ApplicationEnvironment,
        parameters: DatabaseParameters,
        network_output_parameters: Optional[NetworkOutputParameters] = None,
        parameter_store: Optional[ParameterStore] = None,
        **kwargs,
    ) -> None:
        if app_env is None or parameters is None:
            raise ValueError("An application environment and database parameters are required")

        store = parameter_store or SsmParameterStore()
        network = network_output_parameters or Network.output_parameters_from(
            scope, app_env, store
        )
        # Fail before any resource is declared
        validate_network(network)

        super().__init__(scope, construct_id, **kwargs)

        self.app_env = app_env
        self.parameters = parameters
        self.parameter_store = store

        self.security_group = ec2.CfnSecurityGroup(
            self,
            "databaseSecurityGroup",
            vpc_id=network.vpc_id,
            group_description="Database security group",
            group_name=app_env.prefixed("databaseSecurityGroup"),
        )

        self.username = db_sanitized(app_env.prefixed("dbuser"))
        self.secret = secretsmanager.Secret(
            self,
            "databaseSecret",
            secret_name=app_env.prefixed("databaseSecret"),
            description="Credentials to be used by the RDS instance",
            generate_secret_string=secretsmanager.SecretStringGenerator(
                secret_string_template=json.dumps({USERNAME_SECRET_HOLDER: self.username}),
                generate_string_key=PASSWORD_SECRET_HOLDER,
                password_length=37,
                exclude_characters='@/\\" ',
            ),
        )

        self.subnet_group = rds.CfnDBSubnetGroup(
            self,
            "databaseSubnetGroup",
            db_subnet_group_description="RDS subnet group",
            db_subnet_group_name=app_env.prefixed("databaseSubnetGroup"),
            subnet_ids=network.isolated_subnet_ids,
        )

        self.database_name = db_sanitized(app_env.prefixed("database"))
        self.instance = self._create_instance(network.availability_zones[0])

        # Lets rotation tooling find the instance behind the secret
        secretsmanager.CfnSecretTargetAttachment(
            self,
            "databaseSecretTargetAttachment",
            secret_id=self.secret.secret_arn,
            target_id=self.instance.ref,
            target_type=TARGET_TYPE_AWS_RDS_DBINSTANCE,
        )

        self._save_to_parameter_store()
        app_env.tag(self)

    def _create_instance(self, availability_zone: str) -> rds.CfnDBInstance:
        params = self.parameters
        return rds.CfnDBInstance(
            self,
            "databaseInstance",
            allocated_storage=params.storage_capacity_in_gb_string,
            availability_zone=availability_zone,
            db_instance_class=params.instance_class,
            db_name=self.database_name,
            db_subnet_group_name=self.subnet_group.ref,
            engine=params.engine,
            engine_version=params.engine_version,
            master_username=self.username,
            master_user_password=self.secret.secret_value_from_json(
                PASSWORD_SECRET_HOLDER
            ).unsafe_unwrap(),
            publicly_accessible=params.publicly_accessible,
            storage_encrypted=params.storage_encrypted,
            deletion_protection=params.deletion_protection,
            backup_retention_period=params.backup_retention_days,
            vpc_security_groups=[self.security_group.attr_group_id],
        )

    def _save_to_parameter_store(self):
        outputs = self.output_parameters
        for param_id, value in (
            (self.PARAM_ENDPOINT_ADDRESS, outputs.endpoint_address),
            (self.PARAM_ENDPOINT_PORT, outputs.endpoint_port),
            (self.PARAM_DATABASE_NAME, outputs.database_name),
            (self.PARAM_SECURITY_GROUP_ID, outputs.security_group_id),
            (self.PARAM_SECRET_ARN, outputs.secret_arn),
        ):
            self.parameter_store.put(
                self, param_id, parameter_name(self.app_env, self.CONSTRUCT_NAME, param_id), value
            )

    @property
    def output_parameters(self) -> DatabaseOutputParameters:
        return DatabaseOutputParameters(
            endpoint_address=self.instance.attr_endpoint_address,
            endpoint_port=self.instance.attr_endpoint_port,
            database_name=self.database_name,
            secret_arn=self.secret.secret_arn,
            security_group_id=self.security_group.attr_group_id,
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
    def get_db_endpoint_address(cls, scope, app_env, parameter_store=None) -> Optional[str]:
        return cls.get_parameter(scope, app_env, cls.PARAM_ENDPOINT_ADDRESS, parameter_store)

    @classmethod
    def get_db_endpoint_port(cls, scope, app_env, parameter_store=None) -> Optional[str]:
        return cls.get_parameter(scope, app_env, cls.PARAM_ENDPOINT_PORT, parameter_store)

    @classmethod
    def get_db_name(cls, scope, app_env, parameter_store=None) -> Optional[str]:
        return cls.get_parameter(scope, app_env, cls.PARAM_DATABASE_NAME, parameter_store)

    @classmethod
    def get_db_secret_arn(cls, scope, app_env, parameter_store=None) -> Optional[str]:
        return cls.get_parameter(scope, app_env, cls.PARAM_SECRET_ARN, parameter_store)

    @classmethod
    def get_db_security_group_id(cls, scope, app_env, parameter_store=None) -> Optional[str]:
        return cls.get_parameter(scope, app_env, cls.PARAM_SECURITY_GROUP_ID, parameter_store)

    @classmethod
    def output_parameters_from(
        cls,
        scope: Construct,
        app_env: ApplicationEnvironment,
        parameter_store: Optional[ParameterStore] = None,
    ) -> DatabaseOutputParameters:
        store = parameter_store or SsmParameterStore()
        return DatabaseOutputParameters(
            endpoint_address=cls.get_db_endpoint_address(scope, app_env, store),
            endpoint_port=cls.get_db_endpoint_port(scope, app_env, store),
            database_name=cls.get_db_name(scope, app_env, store),
            secret_arn=cls.get_db_secret_arn(scope, app_env, store),
            security_group_id=cls.get_db_security_group_id(scope, app_env, store),
        )


def validate_network(network: NetworkOutputParameters) -> None:
    """Reject network outputs a database cannot be placed in"""
    if not network.availability_zones:
        raise ValueError("No availability zones in network")
    if not network.vpc_id:
        raise ValueError("No VPC in network")
    subnets: List[str] = network.isolated_subnet_ids or []
    if len(subnets) < 2:
        raise ValueError(
            "Subnet groups must contain at least two subnets in two different "
            "Availability Zones in the same region"
        )
