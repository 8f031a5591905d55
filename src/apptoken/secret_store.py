"""Private key retrieval from AWS Secrets Manager."""

from __future__ import annotations

import logging

from apptoken.errors import InputError

logger = logging.getLogger(__name__)


def get_github_app_private_key(secret_name: str, region: str) -> str:
    """Fetch the GitHub App PEM private key from AWS Secrets Manager."""
    import boto3
    from botocore.exceptions import BotoCoreError, ClientError

    logger.info("Fetching private key from Secrets Manager secret %s (%s)", secret_name, region)
    client = boto3.client("secretsmanager", region_name=region)
    try:
        response = client.get_secret_value(SecretId=secret_name)
    except (BotoCoreError, ClientError) as exc:
        raise InputError(f"Could not read secret '{secret_name}' in {region}: {exc}") from exc

    secret = response.get("SecretString")
    if not secret:
        raise InputError(f"Secret '{secret_name}' has no string value; store the PEM as text")
    return secret
