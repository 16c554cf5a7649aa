import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger()
logger.setLevel(logging.INFO)


@dataclass(frozen=True)
class ClientSecretLookup:
    """Outcome of reading the secret of a Cognito user pool client"""

    secret: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def describe_client_secret(client, user_pool_id: str, client_id: str) -> ClientSecretLookup:
    """CloudFormation does not expose generated client secrets, so ask Cognito for it"""
    try:
        response = client.describe_user_pool_client(UserPoolId=user_pool_id, ClientId=client_id)
    except ClientError as e:
        return ClientSecretLookup(error=str(e))

    secret = response.get("UserPoolClient", {}).get("ClientSecret")
    if not secret:
        return ClientSecretLookup(
            error=f"User pool client {client_id} was created without a secret"
        )
    return ClientSecretLookup(secret=secret)


def handler(event: Dict[str, Any], context) -> Dict[str, Any]:
    """Custom resource handler returning the client secret as the ClientSecret attribute"""
    request_type = event["RequestType"]
    properties = event["ResourceProperties"]
    client_id = properties["ClientId"]

    if request_type == "Delete":
        # Nothing was created
        return {"PhysicalResourceId": event.get("PhysicalResourceId", client_id)}

    client = boto3.client("cognito-idp", region_name=properties.get("Region"))
    lookup = describe_client_secret(client, properties["UserPoolId"], client_id)
    if not lookup.ok:
        logger.error("Could not read the user pool client secret: %s", lookup.error)
        raise RuntimeError(lookup.error)

    logger.info("Read the secret of user pool client %s", client_id)
    return {
        "PhysicalResourceId": client_id,
        "NoEcho": True,
        "Data": {"ClientSecret": lookup.secret},
    }
