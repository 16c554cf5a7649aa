import aws_cdk as cdk
import pytest
from aws_cdk import aws_cognito as cognito
from aws_cdk.assertions import Match, Template

from app_constructs.parameter_store import InMemoryParameterStore
from config.environments import ApplicationEnvironment
from config.parameters import CognitoParameters
from stacks.cognito_stack import CognitoOutputParameters, CognitoStack

APP_ENV = ApplicationEnvironment(application_name="blog", environment_name="staging")
AWS_ENV = cdk.Environment(account="123456789012", region="us-east-1")


def cognito_parameters(**kwargs) -> CognitoParameters:
    return CognitoParameters(
        login_page_domain_prefix="blog-login",
        application_name="blog",
        application_url="https://blog.example.com",
        **kwargs,
    )


def cognito_stack(parameters: CognitoParameters, store=None) -> CognitoStack:
    return CognitoStack(
        cdk.App(), "CognitoStack", AWS_ENV, APP_ENV, parameters, store or InMemoryParameterStore()
    )


class TestCognitoStack:
    """Test the user pool, its client and hosted login domain"""

    def test_user_pool(self):
        template = Template.from_stack(cognito_stack(cognito_parameters()))

        template.has_resource_properties(
            "AWS::Cognito::UserPool",
            {
                "UserPoolName": "blog-user-pool",
                "AdminCreateUserConfig": {"AllowAdminCreateUserOnly": True},
                "Policies": {
                    "PasswordPolicy": {
                        "MinimumLength": 8,
                        "RequireLowercase": True,
                        "RequireNumbers": True,
                        "RequireSymbols": True,
                        "RequireUppercase": True,
                        "TemporaryPasswordValidityDays": 7,
                    }
                },
                "MfaConfiguration": "OFF",
            },
        )

    def test_user_pool_client(self):
        template = Template.from_stack(
            cognito_stack(
                cognito_parameters(
                    oauth_callback_urls=["http://localhost:8080/login/oauth2/code/cognito"]
                )
            )
        )

        template.has_resource_properties(
            "AWS::Cognito::UserPoolClient",
            {
                "ClientName": "blog-client",
                "GenerateSecret": True,
                "AllowedOAuthFlows": ["code"],
                "AllowedOAuthScopes": Match.array_with(["email", "openid", "profile"]),
                "CallbackURLs": [
                    "https://blog.example.com/login/oauth2/code/cognito",
                    "http://localhost:8080/login/oauth2/code/cognito",
                ],
                "LogoutURLs": ["https://blog.example.com"],
                "SupportedIdentityProviders": ["COGNITO"],
            },
        )

    def test_additional_identity_providers(self):
        template = Template.from_stack(
            cognito_stack(
                cognito_parameters(
                    supported_identity_providers=[cognito.UserPoolClientIdentityProvider.GOOGLE]
                )
            )
        )

        template.has_resource_properties(
            "AWS::Cognito::UserPoolClient",
            {"SupportedIdentityProviders": ["COGNITO", "Google"]},
        )

    def test_domain(self):
        template = Template.from_stack(cognito_stack(cognito_parameters()))

        template.has_resource_properties("AWS::Cognito::UserPoolDomain", {"Domain": "blog-login"})

    def test_client_secret_lookup(self):
        template = Template.from_stack(cognito_stack(cognito_parameters()))

        template.resource_count_is("Custom::DescribeCognitoUserPoolClient", 1)
        template.has_resource_properties(
            "AWS::Lambda::Function",
            {"Handler": "user_pool_client_secret.handler", "Runtime": "python3.11"},
        )
        template.has_resource_properties(
            "AWS::IAM::Policy",
            {
                "PolicyDocument": {
                    "Statement": Match.array_with(
                        [Match.object_like({"Action": "cognito-idp:DescribeUserPoolClient"})]
                    )
                }
            },
        )

    def test_outputs_published(self):
        store = InMemoryParameterStore()
        stack = cognito_stack(cognito_parameters(), store)

        outputs = CognitoStack.output_parameters_from(stack, APP_ENV, store)

        assert stack.stack_name == "staging-blog-Cognito"
        assert outputs == stack.output_parameters
        assert outputs.logout_url == "https://blog-login.auth.us-east-1.amazoncognito.com/logout"
        assert cdk.Token.is_unresolved(outputs.user_pool_client_secret)

    def test_outputs_published_to_ssm(self):
        template = Template.from_stack(
            CognitoStack(cdk.App(), "CognitoStack", AWS_ENV, APP_ENV, cognito_parameters())
        )

        for name in (
            "userPoolId",
            "userPoolClientId",
            "userPoolClientSecret",
            "userPoolLogoutUrl",
            "userPoolProviderUrl",
        ):
            template.has_resource_properties(
                "AWS::SSM::Parameter", {"Name": f"staging-blog-Cognito-{name}"}
            )

    def test_region_required(self):
        with pytest.raises(ValueError):
            CognitoStack(
                cdk.App(),
                "CognitoStack",
                cdk.Environment(account="123456789012"),
                APP_ENV,
                cognito_parameters(),
            )


def test_output_parameters_equality():
    assert CognitoOutputParameters("a", "b", "c", "d", "e") == CognitoOutputParameters(
        "a", "b", "c", "d", "e"
    )
