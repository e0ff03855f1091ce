"""Tests for the credentials provider and the handler client proxy."""

from unittest.mock import patch

import pytest

from provocation.budget import TimeBudget
from provocation.credentials import SessionCredentialsProvider
from provocation.proxy import ClientProxy
from provocation.schemas import Credentials

PLATFORM = Credentials("AKIAPLATFORM", "platform-secret", "platform-token")
OTHER = Credentials("AKIAOTHER", "other-secret")


class TestSessionCredentialsProvider:

    def test_session_requires_credentials(self):
        with pytest.raises(RuntimeError, match="No credentials"):
            SessionCredentialsProvider().session()

    def test_builds_session_once(self):
        provider = SessionCredentialsProvider(region="us-east-1")
        provider.set_credentials(PLATFORM)

        with patch("provocation.credentials.boto3.Session") as session_cls:
            first = provider.session()
            second = provider.session()

        assert first is second
        session_cls.assert_called_once_with(
            aws_access_key_id="AKIAPLATFORM",
            aws_secret_access_key="platform-secret",
            aws_session_token="platform-token",
            region_name="us-east-1",
        )

    def test_same_credentials_reuse_session(self):
        provider = SessionCredentialsProvider()
        provider.set_credentials(PLATFORM)

        with patch("provocation.credentials.boto3.Session") as session_cls:
            provider.session()
            provider.set_credentials(Credentials("AKIAPLATFORM", "platform-secret", "platform-token"))
            provider.session()

        assert session_cls.call_count == 1

    def test_new_credentials_rebuild_session(self):
        provider = SessionCredentialsProvider()
        provider.set_credentials(PLATFORM)

        with patch("provocation.credentials.boto3.Session") as session_cls:
            provider.session()
            provider.set_credentials(OTHER)
            provider.session()

        assert session_cls.call_count == 2
        assert provider.credentials == OTHER

    def test_client(self):
        provider = SessionCredentialsProvider()
        provider.set_credentials(PLATFORM)

        with patch("provocation.credentials.boto3.Session") as session_cls:
            provider.client("events", region_name="eu-west-1")

        session_cls.return_value.client.assert_called_once_with("events", region_name="eu-west-1")


class TestClientProxy:

    def test_caches_clients(self):
        proxy = ClientProxy(OTHER, TimeBudget(lambda: 1000), region="us-west-2")

        with patch("provocation.credentials.boto3.Session") as session_cls:
            session_cls.return_value.client.side_effect = lambda name, **kw: object()
            first = proxy.client("s3")
            second = proxy.client("s3")

        assert first is second
        session_cls.assert_called_once()
        assert session_cls.call_args.kwargs["aws_access_key_id"] == "AKIAOTHER"

    def test_remaining_millis(self):
        proxy = ClientProxy(OTHER, TimeBudget(lambda: 4321), first_invocation=False)
        assert proxy.remaining_millis() == 4321
        assert proxy.first_invocation is False
