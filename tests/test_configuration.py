import sys
import unittest
from pathlib import Path
from unittest import mock

import jwt
from keboola.component.exceptions import UserException

# Add src directory to path
sys.path.append(str(Path(__file__).parent.parent / "src"))

from configuration import Configuration
from ibm_session import IBMCloudSession, account_id_from_token

PARAMETERS = {
    "ibm_parameters": {"#api_key": "secret-key"},
    "month": "2024-05",
}


class TestConfiguration(unittest.TestCase):
    """Test component configuration parsing."""

    def test_minimal_parameters(self):
        """Test defaults with only the API key and month."""
        config = Configuration(**PARAMETERS)

        self.assertEqual(config.ibm_parameters.api_key, "secret-key")
        self.assertEqual(config.ibm_parameters.service_url, "https://billing.cloud.ibm.com")
        self.assertIsNone(config.date_from)
        self.assertIsNone(config.date_to)
        self.assertIsNone(config.max_pages)
        self.assertFalse(config.loading_options.incremental_output_bool)

    def test_date_window(self):
        """Test the optional date window is parsed."""
        config = Configuration(**PARAMETERS, date_from=1714521600000, date_to=1717199999000)

        self.assertEqual(config.date_from, 1714521600000)
        self.assertEqual(config.date_to, 1717199999000)

    def test_invalid_month_is_user_error(self):
        """Test a month not in YYYY-MM format is a user error."""
        for month in ("2024-13", "2024-5", "May 2024", ""):
            with self.subTest(month=month), self.assertRaises(UserException) as ctx:
                Configuration(**{**PARAMETERS, "month": month})
            self.assertIn("month", str(ctx.exception))

    def test_missing_api_key_is_user_error(self):
        """Test a missing API key is reported with its location."""
        with self.assertRaises(UserException) as ctx:
            Configuration(ibm_parameters={}, month="2024-05")

        self.assertIn("ibm_parameters.#api_key", str(ctx.exception))

    def test_max_pages_must_be_positive(self):
        """Test max_pages rejects zero."""
        with self.assertRaises(UserException):
            Configuration(**PARAMETERS, max_pages=0)


class TestIBMCloudSession(unittest.TestCase):
    """Test the IBM Cloud session provider."""

    def test_account_id_from_token(self):
        """Test the account ID is read from the account.bss claim."""
        token = jwt.encode({"account": {"bss": "acc-123"}, "iam_id": "IBMid-1"}, "key", algorithm="HS256")

        self.assertEqual(account_id_from_token(token), "acc-123")

    def test_token_without_account_fails(self):
        """Test a token without account claim is rejected."""
        token = jwt.encode({"iam_id": "IBMid-1"}, "key", algorithm="HS256")

        with self.assertRaises(ValueError):
            account_id_from_token(token)

    def test_configured_account_id_skips_iam(self):
        """Test a configured account ID needs no IAM token."""
        config = Configuration(**{**PARAMETERS, "ibm_parameters": {"#api_key": "k", "account_id": "acc-9"}})

        with mock.patch("ibm_session.IAMAuthenticator") as authenticator:
            self.assertEqual(IBMCloudSession(config.ibm_parameters).account_id(), "acc-9")

        authenticator.assert_not_called()

    def test_account_id_resolved_from_iam_token(self):
        """Test the account ID is resolved once from the IAM token."""
        config = Configuration(**PARAMETERS)
        token = jwt.encode({"account": {"bss": "acc-123"}}, "key", algorithm="HS256")

        with mock.patch("ibm_session.IAMAuthenticator") as authenticator:
            authenticator.return_value.token_manager.get_token.return_value = token
            session = IBMCloudSession(config.ibm_parameters)

            self.assertEqual(session.account_id(), "acc-123")
            self.assertEqual(session.account_id(), "acc-123")

        authenticator.assert_called_once_with("secret-key")
        authenticator.return_value.token_manager.get_token.assert_called_once()

    def test_usage_reports_client_uses_service_url(self):
        """Test the client is created once with the configured service URL."""
        config = Configuration(
            **{**PARAMETERS, "ibm_parameters": {"#api_key": "k", "service_url": "https://billing.test.cloud.ibm.com"}}
        )
        session = IBMCloudSession(config.ibm_parameters)

        client = session.usage_reports_client()

        self.assertEqual(client.service_url, "https://billing.test.cloud.ibm.com")
        self.assertIs(session.usage_reports_client(), client)


if __name__ == "__main__":
    unittest.main()
