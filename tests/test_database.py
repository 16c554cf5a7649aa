import json

import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Match, Template

from app_constructs.database import Database, DatabaseOutputParameters
from app_constructs.network import NetworkOutputParameters
from app_constructs.parameter_store import InMemoryParameterStore
from config.environments import ApplicationEnvironment
from config.parameters import DatabaseParameters, NetworkParameters
from stacks.platform_stacks import DatabaseStack, NetworkStack

APP_ENV = ApplicationEnvironment(application_name="blog", environment_name="staging")
AWS_ENV = cdk.Environment(account="123456789012", region="us-east-1")


def network_outputs(
    vpc_id="vpc-1",
    availability_zones=("us-east-1a", "us-east-1b"),
    isolated_subnet_ids=("subnet-1", "subnet-2"),
) -> NetworkOutputParameters:
    return NetworkOutputParameters(
        vpc_id=vpc_id,
        http_listener_arn="http-arn",
        load_balancer_security_group_id="sg-lb",
        ecs_cluster_name="cluster",
        load_balancer_arn="lb-arn",
        load_balancer_dns_name="lb.example.com",
        load_balancer_canonical_hosted_zone_id="Z1",
        availability_zones=list(availability_zones or []),
        isolated_subnet_ids=list(isolated_subnet_ids or []),
        public_subnet_ids=["subnet-3", "subnet-4"],
    )


def database(network: NetworkOutputParameters, store=None):
    stack = cdk.Stack(cdk.App(), "DatabaseStack", env=AWS_ENV)
    construct = Database(
        stack,
        "Database",
        APP_ENV,
        DatabaseParameters(),
        network_output_parameters=network,
        parameter_store=store or InMemoryParameterStore(),
    )
    return stack, construct


class TestDatabasePreconditions:
    """Test the database refuses networks it cannot be placed in"""

    @pytest.mark.parametrize("availability_zones", [None, ()])
    def test_no_availability_zones(self, availability_zones):
        with pytest.raises(ValueError, match="availability zones"):
            database(network_outputs(availability_zones=availability_zones))

    @pytest.mark.parametrize("isolated_subnet_ids", [None, (), ("subnet-1",)])
    def test_fewer_than_two_isolated_subnets(self, isolated_subnet_ids):
        with pytest.raises(ValueError, match="at least two subnets"):
            database(network_outputs(isolated_subnet_ids=isolated_subnet_ids))

    @pytest.mark.parametrize("vpc_id", [None, ""])
    def test_no_vpc(self, vpc_id):
        with pytest.raises(ValueError, match="No VPC"):
            database(network_outputs(vpc_id=vpc_id))

    def test_nothing_declared_on_failure(self):
        stack = cdk.Stack(cdk.App(), "DatabaseStack", env=AWS_ENV)

        with pytest.raises(ValueError):
            Database(
                stack,
                "Database",
                APP_ENV,
                DatabaseParameters(),
                network_output_parameters=network_outputs(isolated_subnet_ids=["subnet-1"]),
            )

        assert stack.node.try_find_child("Database") is None


class TestDatabase:
    """Test the database resources and published outputs"""

    def test_instance(self):
        stack, _ = database(network_outputs())
        template = Template.from_stack(stack)

        template.has_resource_properties(
            "AWS::RDS::DBInstance",
            {
                "AllocatedStorage": "10",
                "AvailabilityZone": "us-east-1a",
                "DBInstanceClass": "db.t3.micro",
                "DBName": "stagingblogdatabase",
                "Engine": "postgres",
                "EngineVersion": "13.4",
                "MasterUsername": "stagingblogdbuser",
                "PubliclyAccessible": False,
                "StorageEncrypted": True,
                "DeletionProtection": False,
                "BackupRetentionPeriod": 7,
            },
        )
        template.has_resource_properties(
            "AWS::RDS::DBSubnetGroup", {"SubnetIds": ["subnet-1", "subnet-2"]}
        )
        template.has_resource_properties("AWS::EC2::SecurityGroup", {"VpcId": "vpc-1"})

    def test_secret(self):
        stack, _ = database(network_outputs())
        template = Template.from_stack(stack)

        template.has_resource_properties(
            "AWS::SecretsManager::Secret",
            {
                "GenerateSecretString": {
                    "SecretStringTemplate": json.dumps({"username": "stagingblogdbuser"}),
                    "GenerateStringKey": "password",
                    "PasswordLength": 37,
                    "ExcludeCharacters": '@/\\" ',
                }
            },
        )
        template.has_resource_properties(
            "AWS::SecretsManager::SecretTargetAttachment",
            {"TargetType": "AWS::RDS::DBInstance", "SecretId": Match.any_value()},
        )

    def test_outputs_round_trip_through_store(self):
        store = InMemoryParameterStore()
        stack, construct = database(network_outputs(), store)

        assert Database.output_parameters_from(stack, APP_ENV, store) == construct.output_parameters
        assert construct.output_parameters.database_name == "stagingblogdatabase"

    @pytest.mark.parametrize("value", ["db.example.com", ""])
    def test_getters_read_back_written_values(self, value):
        store = InMemoryParameterStore()
        store.put(None, "endpointAddress", "staging-blog-Database-endpointAddress", value)
        store.put(None, "databaseName", "staging-blog-Database-databaseName", value)

        assert Database.get_db_endpoint_address(None, APP_ENV, store) == value
        assert Database.get_db_name(None, APP_ENV, store) == value

    def test_output_parameters_from_missing_values(self):
        outputs = Database.output_parameters_from(None, APP_ENV, InMemoryParameterStore())

        assert outputs == DatabaseOutputParameters(None, None, None, None, None)


class TestDatabaseStack:
    def test_reads_network_from_parameter_store(self):
        app = cdk.App()
        store = InMemoryParameterStore()
        NetworkStack(app, "NetworkStack", AWS_ENV, APP_ENV, NetworkParameters(), store)

        stack = DatabaseStack(
            app, "DatabaseStack", AWS_ENV, APP_ENV, DatabaseParameters(), parameter_store=store
        )

        assert stack.stack_name == "staging-blog-Database"
        assert "staging-blog-Database-secretArn" in store.values
