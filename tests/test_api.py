"""Tests for the authenticated request executor.

The HTTP session is a mock, so these tests never touch the network. The
credential store is a small fake that counts refresh calls.
"""

import json
import unittest
from typing import Any, Dict, List, Optional
from unittest.mock import Mock

import requests

from kavach_cli.api import MAX_BODY_EXCERPT, RequestExecutor
from kavach_cli.credentials import CredentialStore
from kavach_cli.errors import ErrorKind, KavachAPIError
from kavach_cli.models import Organization


class FakeResponse:
    """Just enough of ``requests.Response`` for the executor."""

    def __init__(self, status_code: int = 200, body: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self._body = body
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self.text = text

    def json(self) -> Any:
        return json.loads(self.text)


class FakeCredentials(CredentialStore):
    """In-memory credential store."""

    def __init__(self, authenticated: bool = True, refresh_error: Optional[Exception] = None) -> None:
        self.authenticated = authenticated
        self.refresh_error = refresh_error
        self.token = "access-1"
        self.refresh_calls = 0

    def is_authenticated(self) -> bool:
        return self.authenticated

    def attach_auth_header(self, headers: Dict[str, str]) -> None:
        headers['Authorization'] = f"Bearer {self.token}"

    def refresh(self) -> None:
        self.refresh_calls += 1
        if self.refresh_error is not None:
            raise self.refresh_error
        self.token = "access-2"


def ok(data: Any = None) -> FakeResponse:
    return FakeResponse(200, {"success": True, "data": data})


def failed(code: str, msg: str = "", status: int = 400) -> FakeResponse:
    return FakeResponse(status, {"success": False, "error_code": code, "error_msg": msg})


class TestRequestExecutor(unittest.TestCase):
    """Test cases for RequestExecutor.execute."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        self.session = Mock()
        self.credentials = FakeCredentials()
        self.executor = RequestExecutor(
            "https://kavach.test/api/v1",
            self.credentials,
            session=self.session,
            timeout=7,
            logger=Mock()
        )

    def respond(self, *responses: Any) -> None:
        self.session.request.side_effect = list(responses)

    def sent_auth_headers(self) -> List[str]:
        return [call.kwargs['headers']['Authorization'] for call in self.session.request.call_args_list]

    def test_base_url_gets_trailing_slash(self) -> None:
        """Test that paths are appended to the base URL."""
        self.respond(ok())
        self.executor.execute('GET', 'organizations/my')

        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ('GET', 'https://kavach.test/api/v1/organizations/my'))
        self.assertEqual(kwargs['timeout'], 7)
        self.assertEqual(kwargs['headers']['Content-Type'], 'application/json')

    def test_success_returns_decoded_envelope(self) -> None:
        """Test that the decode callback shapes the data."""
        self.respond(ok({"id": "o1", "name": "acme"}))
        envelope = self.executor.execute('GET', 'organizations/by-name/acme', decode=Organization.from_dict)

        self.assertTrue(envelope.success)
        self.assertEqual(envelope.data, Organization(id="o1", name="acme"))
        self.assertEqual(self.credentials.refresh_calls, 0)

    def test_success_ignores_error_fields(self) -> None:
        """Test that a successful envelope is never turned into an error."""
        self.respond(FakeResponse(200, {"success": True, "data": [], "error_code": "duplicate_organization"}))

        envelope = self.executor.execute('GET', 'organizations/my')

        self.assertTrue(envelope.success)
        self.assertEqual(envelope.data, [])
        self.assertEqual(envelope.error_code, "duplicate_organization")

    def test_success_without_data(self) -> None:
        """Test a successful call with no payload."""
        self.respond(ok())
        envelope = self.executor.execute('DELETE', 'organizations/o1', decode=Organization.from_dict)
        self.assertIsNone(envelope.data)

    def test_body_and_params_are_forwarded(self) -> None:
        """Test request body and query parameters."""
        self.respond(ok())
        self.executor.execute('POST', 'organizations/', json={"name": "acme"}, params={"page": "1"})

        kwargs = self.session.request.call_args.kwargs
        self.assertEqual(kwargs['json'], {"name": "acme"})
        self.assertEqual(kwargs['params'], {"page": "1"})

    def test_not_logged_in_sends_nothing(self) -> None:
        """Test that a missing session fails before any request."""
        self.credentials.authenticated = False

        with self.assertRaises(KavachAPIError) as ctx:
            self.executor.execute('GET', 'organizations/my')

        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_LOGGED_IN)
        self.session.request.assert_not_called()

    def test_transport_failure_is_unreachable_without_refresh(self) -> None:
        """Test that connection errors are never retried."""
        self.respond(requests.exceptions.ConnectionError("refused"))

        with self.assertRaises(KavachAPIError) as ctx:
            self.executor.execute('GET', 'organizations/my')

        self.assertEqual(ctx.exception.kind, ErrorKind.UNREACHABLE)
        self.assertEqual(self.session.request.call_count, 1)
        self.assertEqual(self.credentials.refresh_calls, 0)

    def test_timeout_is_unreachable(self) -> None:
        """Test that a timeout is reported as unreachable."""
        self.respond(requests.exceptions.Timeout("slow"))

        with self.assertRaises(KavachAPIError) as ctx:
            self.executor.execute('GET', 'organizations/my')
        self.assertEqual(ctx.exception.kind, ErrorKind.UNREACHABLE)

    def test_401_refreshes_once_and_resends(self) -> None:
        """Test that a rejected token is refreshed and the call repeated."""
        self.respond(FakeResponse(401, text="Unauthorized"), ok([]))

        envelope = self.executor.execute('GET', 'organizations/my')

        self.assertTrue(envelope.success)
        self.assertEqual(self.credentials.refresh_calls, 1)
        self.assertEqual(self.sent_auth_headers(), ["Bearer access-1", "Bearer access-2"])

    def test_auth_error_code_refreshes(self) -> None:
        """Test that an auth code inside a 200 envelope also triggers a refresh."""
        self.respond(failed("expired_token", status=200), ok())

        self.executor.execute('GET', 'organizations/my')
        self.assertEqual(self.credentials.refresh_calls, 1)

    def test_second_auth_failure_is_invalid_token(self) -> None:
        """Test that there is never a second refresh."""
        self.respond(FakeResponse(401, text=""), FakeResponse(401, text=""))

        with self.assertRaises(KavachAPIError) as ctx:
            self.executor.execute('GET', 'organizations/my')

        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_TOKEN)
        self.assertEqual(self.credentials.refresh_calls, 1)
        self.assertEqual(self.session.request.call_count, 2)

    def test_failed_refresh_is_propagated(self) -> None:
        """Test that a refresh failure stops the call without resending."""
        self.credentials.refresh_error = KavachAPIError(ErrorKind.INVALID_TOKEN)
        self.respond(FakeResponse(401, text=""))

        with self.assertRaises(KavachAPIError) as ctx:
            self.executor.execute('GET', 'organizations/my')

        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_TOKEN)
        self.assertEqual(self.session.request.call_count, 1)

    def test_resend_after_refresh_classifies_normally(self) -> None:
        """Test that the retried response goes through normal classification."""
        self.respond(FakeResponse(401, text=""), failed("duplicate_organization"))

        with self.assertRaises(KavachAPIError) as ctx:
            self.executor.execute('POST', 'organizations/', json={"name": "acme"})
        self.assertEqual(ctx.exception.kind, ErrorKind.DUPLICATE_ORGANIZATION)

    def test_403_is_access_denied(self) -> None:
        """Test that a forbidden status is access denied without refresh."""
        self.respond(FakeResponse(403, text="Forbidden"))

        with self.assertRaises(KavachAPIError) as ctx:
            self.executor.execute('DELETE', 'organizations/o1')

        self.assertEqual(ctx.exception.kind, ErrorKind.ACCESS_DENIED)
        self.assertEqual(self.credentials.refresh_calls, 0)

    def test_failed_envelope_is_classified(self) -> None:
        """Test that envelope codes map to kinds."""
        self.respond(failed("foreign_key_constraint_violation", "still in use", status=409))

        with self.assertRaises(KavachAPIError) as ctx:
            self.executor.execute('DELETE', 'organizations/o1')
        self.assertEqual(ctx.exception.kind, ErrorKind.FOREIGN_KEY_VIOLATION)

    def test_unknown_code_keeps_backend_message(self) -> None:
        """Test that unknown failures are unclassified with the raw message."""
        self.respond(failed("something_new", "the backend says no", status=500))

        with self.assertRaises(KavachAPIError) as ctx:
            self.executor.execute('GET', 'organizations/my')

        self.assertEqual(ctx.exception.kind, ErrorKind.UNCLASSIFIED)
        self.assertEqual(ctx.exception.message, "the backend says no")

    def test_non_json_body_is_unclassified(self) -> None:
        """Test that an HTML error page becomes an unclassified error."""
        self.respond(FakeResponse(502, text="<html>Bad Gateway</html>"))

        with self.assertRaises(KavachAPIError) as ctx:
            self.executor.execute('GET', 'organizations/my')

        self.assertEqual(ctx.exception.kind, ErrorKind.UNCLASSIFIED)
        self.assertIn("HTTP 502", ctx.exception.message)
        self.assertIn("Bad Gateway", ctx.exception.message)

    def test_long_body_is_truncated(self) -> None:
        """Test that only an excerpt of the body ends up in the message."""
        self.respond(FakeResponse(500, text="x" * (MAX_BODY_EXCERPT * 3)))

        with self.assertRaises(KavachAPIError) as ctx:
            self.executor.execute('GET', 'organizations/my')
        self.assertLess(len(ctx.exception.message), MAX_BODY_EXCERPT * 2)

    def test_json_without_success_flag_is_unclassified(self) -> None:
        """Test that a JSON body that is not an envelope is rejected."""
        self.respond(FakeResponse(200, {"data": []}))

        with self.assertRaises(KavachAPIError) as ctx:
            self.executor.execute('GET', 'organizations/my')
        self.assertEqual(ctx.exception.kind, ErrorKind.UNCLASSIFIED)

    def test_wrongly_typed_error_fields_are_unclassified(self) -> None:
        """Test that non-string error fields are a malformed envelope, not a crash."""
        bodies = [
            {"success": False, "error_code": 404},
            {"success": False, "error_code": ["invalid_token"]},
            {"success": False, "error_code": "", "error_msg": {"detail": "expired"}},
        ]
        for body in bodies:
            with self.subTest(body=body):
                self.session.request.reset_mock()
                self.respond(FakeResponse(400, body))

                with self.assertRaises(KavachAPIError) as ctx:
                    self.executor.execute('GET', 'organizations/my')

                self.assertEqual(ctx.exception.kind, ErrorKind.UNCLASSIFIED)
                self.assertIn("HTTP 400", ctx.exception.message)
                self.assertEqual(self.credentials.refresh_calls, 0)

    def test_undecodable_data_is_unclassified(self) -> None:
        """Test that data missing required fields is reported, not crashed on."""
        self.respond(ok({"unexpected": True}))

        with self.assertRaises(KavachAPIError) as ctx:
            self.executor.execute('GET', 'organizations/by-name/acme', decode=Organization.from_dict)
        self.assertEqual(ctx.exception.kind, ErrorKind.UNCLASSIFIED)

    def test_context_manager_closes_session(self) -> None:
        """Test that leaving the context closes the session."""
        with self.executor:
            pass
        self.session.close.assert_called_once()


if __name__ == '__main__':
    unittest.main()
