import re
from typing import Any, List

from aws_cdk import aws_ec2 as ec2

DASH_JOINER = "-"
NON_ALPHANUMERIC_VALUES = r"[^a-zA-Z0-9-]"
NON_DB_ALPHANUMERIC_VALUES = r"[^a-zA-Z0-9]"


def joined_string(joiner: str, *values: Any) -> str:
    """Join the string form of every non-None value with ``joiner``"""
    return joiner.join(str(value) for value in values if value is not None)


def sanitize(value: str) -> str:
    """Strip every character that is not alphanumeric or a hyphen"""
    return re.sub(NON_ALPHANUMERIC_VALUES, "", value)


def db_sanitized(value: str) -> str:
    # RDS database names and master usernames only accept alphanumerics
    return re.sub(NON_DB_ALPHANUMERIC_VALUES, "", value)


def subnet_configurations(
    isolated_subnets_per_az: int,
    public_subnets_per_az: int,
    isolated_subnets_name_prefix: str,
    public_subnets_name_prefix: str,
) -> List[ec2.SubnetConfiguration]:
    """
    Build the isolated + public subnet groups of a VPC.

    Each group is replicated by CDK across every AZ of the VPC, so the counts
    given here are per availability zone.
    """
    if isolated_subnets_per_az < 1 or public_subnets_per_az < 1:
        raise ValueError("The number of isolated and public subnets per AZ must be >= 1")

    isolated = [
        ec2.SubnetConfiguration(
            name=f"{isolated_subnets_name_prefix}{i}",
            subnet_type=ec2.SubnetType.PRIVATE_ISOLATED,
        )
        for i in range(isolated_subnets_per_az)
    ]
    public = [
        ec2.SubnetConfiguration(
            name=f"{public_subnets_name_prefix}{i}",
            subnet_type=ec2.SubnetType.PUBLIC,
        )
        for i in range(public_subnets_per_az)
    ]
    return isolated + public
