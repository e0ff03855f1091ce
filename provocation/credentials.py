"""
Credentials providers for collaborator clients.

A host process may serve many logical operations over its lifetime, so the
boto3 session built from the current credentials is cached and only rebuilt
when the credentials handed in by the caller change.
"""

import logging
from typing import Any, Optional

import boto3

from provocation.schemas import Credentials

logger = logging.getLogger(__name__)


class SessionCredentialsProvider:
    """
    Holds the credentials of one principal and hands out boto3 clients.

    Usage:
        platform = SessionCredentialsProvider(region="us-east-1")
        platform.set_credentials(request.request_data.platform_credentials)
        events = platform.client("events")
    """

    def __init__(self, region: Optional[str] = None):
        self._region = region
        self._credentials: Optional[Credentials] = None
        self._session: Optional[boto3.Session] = None

    @property
    def credentials(self) -> Optional[Credentials]:
        return self._credentials

    def set_credentials(self, credentials: Credentials, region: Optional[str] = None) -> None:
        """Replace credentials, invalidating the cached session if they changed."""
        region = region or self._region
        if credentials == self._credentials and region == self._region and self._session is not None:
            return
        self._credentials = credentials
        self._region = region
        self._session = None

    def session(self) -> boto3.Session:
        """Return the cached session, building it on first use."""
        if self._credentials is None:
            raise RuntimeError("No credentials have been set on this provider")
        if self._session is None:
            logger.debug("Building session for %r", self._credentials)
            self._session = boto3.Session(
                aws_access_key_id=self._credentials.access_key_id,
                aws_secret_access_key=self._credentials.secret_access_key,
                aws_session_token=self._credentials.session_token,
                region_name=self._region,
            )
        return self._session

    def client(self, service_name: str, **kwargs: Any) -> Any:
        """Build a boto3 client for service_name from the cached session."""
        return self.session().client(service_name, **kwargs)
