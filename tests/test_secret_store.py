"""Tests for AWS Secrets Manager key retrieval."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from apptoken.errors import InputError
from apptoken.secret_store import get_github_app_private_key


class TestGetGithubAppPrivateKey:
    @patch("boto3.client")
    def test_returns_secret_string(self, mock_client, private_key_pem):
        mock_client.return_value.get_secret_value.return_value = {"SecretString": private_key_pem}

        assert get_github_app_private_key("ci/app", "eu-west-1") == private_key_pem
        mock_client.assert_called_once_with("secretsmanager", region_name="eu-west-1")
        mock_client.return_value.get_secret_value.assert_called_once_with(SecretId="ci/app")

    @patch("boto3.client")
    def test_client_error_is_input_error(self, mock_client):
        error = ClientError(
            {"Error": {"Code": "ResourceNotFoundException", "Message": "not found"}},
            "GetSecretValue",
        )
        mock_client.return_value = MagicMock(get_secret_value=MagicMock(side_effect=error))

        with pytest.raises(InputError, match="Could not read secret 'ci/app'"):
            get_github_app_private_key("ci/app", "us-east-1")

    @patch("boto3.client")
    def test_binary_secret_is_rejected(self, mock_client):
        mock_client.return_value.get_secret_value.return_value = {"SecretBinary": b"\x00"}

        with pytest.raises(InputError, match="no string value"):
            get_github_app_private_key("ci/app", "us-east-1")
