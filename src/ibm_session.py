"""
Session providers for the IBM Cloud usage reports service.
"""

import logging
from abc import ABC, abstractmethod

import jwt
from ibm_cloud_sdk_core.authenticators import IAMAuthenticator
from ibm_platform_services import UsageReportsV4

from configuration import IBMParameters


class SessionProvider(ABC):
    """Supplies an authenticated usage reports client and the caller's account."""

    @abstractmethod
    def usage_reports_client(self) -> UsageReportsV4:
        pass

    @abstractmethod
    def account_id(self) -> str:
        pass


class IBMCloudSession(SessionProvider):
    """Session backed by an IBM Cloud IAM API key."""

    def __init__(self, parameters: IBMParameters):
        self.parameters = parameters
        self._authenticator = None
        self._client = None
        self._account_id = parameters.account_id

    @property
    def authenticator(self) -> IAMAuthenticator:
        if self._authenticator is None:
            kwargs = {}
            if self.parameters.iam_url:
                kwargs["url"] = self.parameters.iam_url
            self._authenticator = IAMAuthenticator(self.parameters.api_key, **kwargs)
        return self._authenticator

    def usage_reports_client(self) -> UsageReportsV4:
        if self._client is None:
            client = UsageReportsV4(authenticator=self.authenticator)
            client.set_service_url(self.parameters.service_url)
            logging.info(f"Usage reports client initialized for {self.parameters.service_url}")
            self._client = client
        return self._client

    def account_id(self) -> str:
        """
        Return the configured account ID, or the one the API key belongs to.

        The account is read from the ``account.bss`` claim of the IAM access
        token. The token signature is not verified, it only comes from IAM.
        """
        if not self._account_id:
            token = self.authenticator.token_manager.get_token()
            self._account_id = account_id_from_token(token)
            logging.info(f"Resolved account ID {self._account_id} from IAM token")
        return self._account_id


def account_id_from_token(token: str) -> str:
    claims = jwt.decode(token, options={"verify_signature": False})
    account_id = claims.get("account", {}).get("bss")
    if not account_id:
        raise ValueError("IAM access token does not carry an account ID (account.bss claim)")
    return account_id
