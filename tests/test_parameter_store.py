import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Template

from app_constructs.parameter_store import (
    NULL_VALUE,
    InMemoryParameterStore,
    ParameterStore,
    SsmParameterStore,
    list_item_id,
    parameter_name,
)
from config.environments import ApplicationEnvironment

APP_ENV = ApplicationEnvironment(application_name="blog", environment_name="staging")


class TestParameterStorePort:
    def test_incomplete_backend_cannot_be_created(self):
        class WriteOnlyStore(ParameterStore):
            def put(self, scope, parameter_id, name, value):
                pass

        with pytest.raises(TypeError):
            WriteOnlyStore()


class TestParameterNames:
    def test_parameter_name(self):
        assert parameter_name(APP_ENV, "Network", "vpcId") == "staging-blog-Network-vpcId"

    def test_list_item_id(self):
        assert list_item_id("isolatedSubnets", 1) == "isolatedSubnets-1"


class TestInMemoryParameterStore:
    """Test values are read back exactly as written"""

    @pytest.mark.parametrize("value", ["vpc-123", "", " spaced ", "null"])
    def test_round_trip(self, value):
        store = InMemoryParameterStore()

        store.put(None, "id", "key", value)

        assert store.get(None, "id", "key") == value

    def test_none_stored_as_null(self):
        store = InMemoryParameterStore()

        store.put(None, "id", "key", None)

        assert store.get(None, "id", "key") == NULL_VALUE

    def test_missing_key(self):
        assert InMemoryParameterStore().get(None, "id", "missing") is None

    def test_list_round_trip(self):
        store = InMemoryParameterStore()

        store.put_list(None, "subnets", "staging-blog-Network-subnets", ["a", "b"])

        assert store.values["staging-blog-Network-subnets-1"] == "b"
        assert store.get_list(None, "subnets", "staging-blog-Network-subnets", 2) == ["a", "b"]

    def test_get_list_skips_missing_items(self):
        store = InMemoryParameterStore({"subnets-0": "a"})

        assert store.get_list(None, "subnets", "subnets", 3) == ["a"]


class TestSsmParameterStore:
    """Test the SSM backend declares parameters and reads them at deploy time"""

    def test_put_declares_string_parameter(self):
        stack = cdk.Stack(cdk.App(), "TestStack")

        SsmParameterStore().put(stack, "vpcId", "staging-blog-Network-vpcId", "vpc-123")

        Template.from_stack(stack).has_resource_properties(
            "AWS::SSM::Parameter",
            {"Name": "staging-blog-Network-vpcId", "Type": "String", "Value": "vpc-123"},
        )

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_values_stored_as_null(self, value):
        stack = cdk.Stack(cdk.App(), "TestStack")

        SsmParameterStore().put(stack, "httpsListenerArn", "key", value)

        Template.from_stack(stack).has_resource_properties(
            "AWS::SSM::Parameter", {"Name": "key", "Value": NULL_VALUE}
        )

    def test_get_returns_token(self):
        stack = cdk.Stack(cdk.App(), "TestStack")

        value = SsmParameterStore().get(stack, "vpcId", "staging-blog-Network-vpcId")

        assert cdk.Token.is_unresolved(value)
        Template.from_stack(stack).has_parameter(
            "*",
            {"Type": "AWS::SSM::Parameter::Value<String>", "Default": "staging-blog-Network-vpcId"},
        )
