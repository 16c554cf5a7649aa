from dataclasses import dataclass
from typing import Optional

from aws_cdk import (
    aws_cognito as cognito,
    aws_iam as iam,
    aws_lambda as lambda_,
    custom_resources as cr,
    CustomResource,
    Duration,
    Environment,
    Stack,
)
from constructs import Construct

from app_constructs.parameter_store import ParameterStore, SsmParameterStore, parameter_name
from config.environments import ApplicationEnvironment
from config.parameters import LAMBDA_FUNCTIONS_DIRECTORY, CognitoParameters

LOGOUT_URL_TEMPLATE = "https://{}.auth.{}.amazoncognito.com/logout"
OAUTH_CALLBACK_PATH = "/login/oauth2/code/cognito"
DESCRIBE_USER_POOL_CLIENT_RESOURCE_TYPE = "Custom::DescribeCognitoUserPoolClient"
CLIENT_SECRET_ATTRIBUTE = "ClientSecret"


@dataclass(frozen=True)
class CognitoOutputParameters:
    user_pool_id: Optional[str]
    user_pool_client_id: Optional[str]
    user_pool_client_secret: Optional[str]
    logout_url: Optional[str]
    provider_url: Optional[str]


class CognitoStack(Stack):
    """
    Cognito user pool with an OAuth app client and a hosted login page.

    CloudFormation does not return the generated client secret, so it is read
    by a custom resource calling DescribeUserPoolClient once the client exists.
    """

    CONSTRUCT_NAME = "Cognito"

    PARAM_USER_POOL_ID = "userPoolId"
    PARAM_USER_POOL_CLIENT_ID = "userPoolClientId"
    PARAM_USER_POOL_CLIENT_SECRET = "userPoolClientSecret"
    PARAM_USER_POOL_LOGOUT_URL = "userPoolLogoutUrl"
    PARAM_USER_POOL_PROVIDER_URL = "userPoolProviderUrl"

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        aws_environment: Environment,
        app_env: ApplicationEnvironment,
        parameters: CognitoParameters,
        parameter_store: Optional[ParameterStore] = None,
        **kwargs,
    ) -> None:
        if aws_environment is None or not aws_environment.region:
            raise ValueError("An AWS environment with a region is required")
        if app_env is None or parameters is None:
            raise ValueError("An application environment and cognito parameters are required")
        super().__init__(
            scope,
            construct_id,
            stack_name=app_env.prefixed(self.CONSTRUCT_NAME),
            env=aws_environment,
            **kwargs,
        )

        self.app_env = app_env
        self.parameters = parameters
        self.parameter_store = parameter_store or SsmParameterStore()

        self.user_pool = self._create_user_pool()
        self.user_pool_client = self._create_user_pool_client()
        self.user_pool_domain = self.user_pool.add_domain(
            "userPoolDomain",
            cognito_domain=cognito.CognitoDomainOptions(
                domain_prefix=parameters.login_page_domain_prefix
            ),
        )
        self.logout_url = LOGOUT_URL_TEMPLATE.format(
            parameters.login_page_domain_prefix, aws_environment.region
        )
        self.user_pool_client_secret = self._user_pool_client_secret(aws_environment.region)

        self._save_to_parameter_store()
        app_env.tag(self)

    def _create_user_pool(self) -> cognito.UserPool:
        params = self.parameters
        return cognito.UserPool(
            self,
            "userPool",
            user_pool_name=f"{params.application_name}-user-pool",
            self_sign_up_enabled=params.self_sign_up_enabled,
            account_recovery=params.account_recovery,
            auto_verify=cognito.AutoVerifiedAttrs(email=params.sign_in_auto_verify_email),
            sign_in_aliases=cognito.SignInAliases(
                username=params.sign_in_alias_username, email=params.sign_in_alias_email
            ),
            sign_in_case_sensitive=params.sign_in_case_sensitive,
            standard_attributes=cognito.StandardAttributes(
                email=cognito.StandardAttribute(
                    required=params.sign_in_email_required,
                    mutable=params.sign_in_email_mutable,
                )
            ),
            mfa=params.mfa,
            password_policy=cognito.PasswordPolicy(
                require_lowercase=params.password_require_lowercase,
                require_digits=params.password_require_digits,
                require_symbols=params.password_require_symbols,
                require_uppercase=params.password_require_uppercase,
                min_length=params.password_min_length,
                temp_password_validity=Duration.days(params.temp_password_validity_in_days),
            ),
        )

    def _create_user_pool_client(self) -> cognito.UserPoolClient:
        params = self.parameters
        callback_urls = [params.application_url + OAUTH_CALLBACK_PATH] + list(
            params.oauth_callback_urls
        )
        identity_providers = [cognito.UserPoolClientIdentityProvider.COGNITO] + list(
            params.supported_identity_providers
        )
        return cognito.UserPoolClient(
            self,
            "userPoolClient",
            user_pool=self.user_pool,
            user_pool_client_name=f"{params.application_name}-client",
            generate_secret=params.user_pool_generate_secret,
            o_auth=cognito.OAuthSettings(
                callback_urls=callback_urls,
                logout_urls=[params.application_url],
                flows=cognito.OAuthFlows(authorization_code_grant=True),
                scopes=[
                    cognito.OAuthScope.EMAIL,
                    cognito.OAuthScope.OPENID,
                    cognito.OAuthScope.PROFILE,
                ],
            ),
            supported_identity_providers=identity_providers,
        )

    def _user_pool_client_secret(self, region: str) -> str:
        """Deploy the client secret lookup and return the secret as a token"""
        on_event = lambda_.Function(
            self,
            "describeUserPoolClientFunction",
            runtime=lambda_.Runtime.PYTHON_3_11,
            handler="user_pool_client_secret.handler",
            code=lambda_.Code.from_asset(LAMBDA_FUNCTIONS_DIRECTORY),
            timeout=Duration.minutes(1),
        )
        on_event.add_to_role_policy(
            iam.PolicyStatement(
                actions=["cognito-idp:DescribeUserPoolClient"],
                resources=[self.user_pool.user_pool_arn],
            )
        )

        provider = cr.Provider(
            self,
            "describeUserPoolClientProvider",
            on_event_handler=on_event,
        )
        resource = CustomResource(
            self,
            "describeUserPool",
            service_token=provider.service_token,
            resource_type=DESCRIBE_USER_POOL_CLIENT_RESOURCE_TYPE,
            properties={
                "UserPoolId": self.user_pool.user_pool_id,
                "ClientId": self.user_pool_client.user_pool_client_id,
                "Region": region,
            },
        )
        return resource.get_att_string(CLIENT_SECRET_ATTRIBUTE)

    def _save_to_parameter_store(self):
        for param_id, value in (
            (self.PARAM_USER_POOL_ID, self.user_pool.user_pool_id),
            (self.PARAM_USER_POOL_CLIENT_ID, self.user_pool_client.user_pool_client_id),
            (self.PARAM_USER_POOL_CLIENT_SECRET, self.user_pool_client_secret),
            (self.PARAM_USER_POOL_LOGOUT_URL, self.logout_url),
            (self.PARAM_USER_POOL_PROVIDER_URL, self.user_pool.user_pool_provider_url),
        ):
            self.parameter_store.put(
                self, param_id, parameter_name(self.app_env, self.CONSTRUCT_NAME, param_id), value
            )

    @property
    def output_parameters(self) -> CognitoOutputParameters:
        return CognitoOutputParameters(
            user_pool_id=self.user_pool.user_pool_id,
            user_pool_client_id=self.user_pool_client.user_pool_client_id,
            user_pool_client_secret=self.user_pool_client_secret,
            logout_url=self.logout_url,
            provider_url=self.user_pool.user_pool_provider_url,
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
    def output_parameters_from(
        cls,
        scope: Construct,
        app_env: ApplicationEnvironment,
        parameter_store: Optional[ParameterStore] = None,
    ) -> CognitoOutputParameters:
        store = parameter_store or SsmParameterStore()

        def get(param_id: str) -> Optional[str]:
            return cls.get_parameter(scope, app_env, param_id, store)

        return CognitoOutputParameters(
            user_pool_id=get(cls.PARAM_USER_POOL_ID),
            user_pool_client_id=get(cls.PARAM_USER_POOL_CLIENT_ID),
            user_pool_client_secret=get(cls.PARAM_USER_POOL_CLIENT_SECRET),
            logout_url=get(cls.PARAM_USER_POOL_LOGOUT_URL),
            provider_url=get(cls.PARAM_USER_POOL_PROVIDER_URL),
        )
