"""Tests for the CloudFront edge handler."""

import base64
import json

import pytest
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials
from botocore.exceptions import NoCredentialsError

from webhook_edge_auth.config import Settings
from webhook_edge_auth.edge import EdgeAuthHandler, unauthorized_response
from webhook_edge_auth.headers import format_signature_header
from webhook_edge_auth.models import InvalidReason, SigningCredential, VerificationResult
from webhook_edge_auth.resigner import RequestSigner
from webhook_edge_auth.secret_store import SecretsManagerProvider, StaticSecretProvider
from webhook_edge_auth.signing import create_signature, current_time_ms

SECRET = "whsec_test"
HOST = "abc123.lambda-url.eu-west-1.on.aws"
BODY = b'{"data":{"post":{"id":"p1"},"eventType":"post_created"},"metadata":{"uuid":"u1"}}'


def make_event(body=BODY, signature=None, encoding="base64", extra_headers=None, querystring=""):
    headers = {
        "host": [{"key": "Host", "value": HOST}],
        "content-type": [{"key": "Content-Type", "value": "application/json"}],
        "x-forwarded-for": [{"key": "X-Forwarded-For", "value": "203.0.113.7"}],
    }
    if signature is not None:
        headers["x-hashnode-signature"] = [{"key": "X-Hashnode-Signature", "value": signature}]
    headers.update(extra_headers or {})
    data = base64.b64encode(body).decode() if encoding == "base64" else body.decode()
    return {
        "Records": [{
            "cf": {
                "request": {
                    "clientIp": "203.0.113.7",
                    "method": "POST",
                    "uri": "/",
                    "querystring": querystring,
                    "headers": headers,
                    "body": {
                        "action": "read-only",
                        "data": data,
                        "encoding": encoding,
                        "inputTruncated": False,
                    },
                },
            },
        }],
    }


def sign(body=BODY, timestamp=None, secret=SECRET):
    if timestamp is None:
        timestamp = current_time_ms()
    return format_signature_header(timestamp, create_signature(timestamp, body, secret))


class RecordingSigner(RequestSigner):
    def __init__(self, credential):
        super().__init__(credential)
        self.signed = []

    def sign(self, request, signing_region=None):
        signed = super().sign(request, signing_region)
        self.signed.append(signed)
        return signed


@pytest.fixture
def handler():
    return EdgeAuthHandler(
        secret_provider=StaticSecretProvider(SECRET),
        signer=RequestSigner(SigningCredential("AKIDEXAMPLE", "secret", region="us-east-1")),
    )


class TestEdgeAuthHandler:
    """Tests for EdgeAuthHandler.handle."""

    def test_valid_request_is_signed(self, handler):
        result = handler.handle(make_event(signature=sign()))

        headers = result["headers"]
        authorization = headers["authorization"][0]["value"]
        assert authorization.startswith("AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/")
        assert "/eu-west-1/lambda/aws4_request" in authorization
        assert "x-amz-date" in headers
        assert result["uri"] == "/"

    def test_forwarded_for_removed(self, handler):
        result = handler.handle(make_event(signature=sign()))
        assert "x-forwarded-for" not in result["headers"]

    def test_original_header_keys_kept(self, handler):
        result = handler.handle(make_event(signature=sign()))
        assert result["headers"]["host"] == [{"key": "Host", "value": HOST}]
        assert result["headers"]["content-type"][0]["key"] == "Content-Type"

    def test_header_names_lowercase(self, handler):
        result = handler.handle(make_event(signature=sign()))
        assert all(name == name.lower() for name in result["headers"])

    def test_text_encoded_body(self, handler):
        result = handler.handle(make_event(signature=sign(), encoding="text"))
        assert "authorization" in result["headers"]

    def test_querystring_is_signed(self, handler):
        result = handler.handle(make_event(signature=sign(), querystring="a=1&b=2"))
        assert "authorization" in result["headers"]
        assert result["querystring"] == "a=1&b=2"

    def test_forwarded_querystring_matches_signed_query(self):
        """The origin sees the same canonical query the signature covers."""
        signer = RecordingSigner(SigningCredential("AKIDEXAMPLE", "secret"))
        handler = EdgeAuthHandler(StaticSecretProvider(SECRET), signer)

        result = handler.handle(
            make_event(signature=sign(), querystring="q=a+b&tag=x%2By&flag")
        )

        auth = SigV4Auth(Credentials("AKIDEXAMPLE", "secret"), "lambda", "eu-west-1")
        forwarded_url = f"https://{HOST}{result['uri']}?{result['querystring']}"
        assert auth.canonical_query_string(
            AWSRequest(method="POST", url=signer.signed[0].url)
        ) == auth.canonical_query_string(AWSRequest(method="POST", url=forwarded_url))
        assert result["querystring"] == "q=a%20b&tag=x%2By&flag="

    def test_empty_querystring_stays_empty(self, handler):
        result = handler.handle(make_event(signature=sign()))
        assert result["querystring"] == ""

    def test_missing_signature(self, handler):
        result = handler.handle(make_event())
        assert result["status"] == "401"
        assert json.loads(result["body"]) == {"error": "Missing signature"}

    def test_malformed_header(self, handler):
        result = handler.handle(make_event(signature="garbage"))
        assert result["status"] == "401"
        assert json.loads(result["body"]) == {"error": "Invalid signature header"}

    def test_tampered_body(self, handler):
        event = make_event(body=BODY.replace(b"p1", b"p2"), signature=sign())
        result = handler.handle(event)
        assert result["status"] == "401"
        assert json.loads(result["body"]) == {"error": "Invalid signature"}

    def test_stale_timestamp(self, handler):
        stale = current_time_ms() - 10 * 60 * 1000
        result = handler.handle(make_event(signature=sign(timestamp=stale)))
        assert json.loads(result["body"]) == {"error": "Invalid timestamp"}

    def test_replay_check_disabled(self):
        handler = EdgeAuthHandler(
            secret_provider=StaticSecretProvider(SECRET),
            signer=RequestSigner(SigningCredential("AKID", "secret")),
            valid_for_seconds=0,
        )
        result = handler.handle(make_event(signature=sign(timestamp=1)))
        assert "authorization" in result["headers"]

    def test_empty_secret_rejects(self):
        handler = EdgeAuthHandler(
            secret_provider=StaticSecretProvider(""),
            signer=RequestSigner(SigningCredential("AKID", "secret")),
        )
        result = handler.handle(make_event(signature=sign()))
        assert result["status"] == "401"

    def test_invalid_base64_body_rejects(self, handler):
        event = make_event(signature=sign())
        event["Records"][0]["cf"]["request"]["body"]["data"] = "!!not base64!!"
        result = handler.handle(event)
        assert json.loads(result["body"]) == {"error": "Invalid signature"}

    def test_rejected_request_is_not_signed(self, handler):
        event = make_event(signature="t=1,v1=00")
        handler.handle(event)
        assert "authorization" not in event["Records"][0]["cf"]["request"]["headers"]

    def test_signing_failure_propagates(self):
        handler = EdgeAuthHandler(
            secret_provider=StaticSecretProvider(SECRET),
            signer=RequestSigner(None),
        )
        with pytest.raises(NoCredentialsError):
            handler.handle(make_event(signature=sign()))

    def test_non_function_url_host_uses_credential_region(self, handler):
        event = make_event(
            signature=sign(),
            extra_headers={"host": [{"key": "Host", "value": "webhooks.example.com"}]},
        )
        result = handler.handle(event)
        assert "/us-east-1/lambda/aws4_request" in result["headers"]["authorization"][0]["value"]


class TestFromSettings:
    """Tests for EdgeAuthHandler.from_settings."""

    def test_static_secret(self):
        settings = Settings(
            credential=SigningCredential("AKID", "secret"),
            webhook_secret="whsec_env",
            valid_for_seconds=60,
        )
        handler = EdgeAuthHandler.from_settings(settings)
        assert isinstance(handler.secret_provider, StaticSecretProvider)
        assert handler.secret_provider.get_secret() == "whsec_env"
        assert handler.valid_for_seconds == 60
        assert handler.signer.credential == settings.credential

    def test_secrets_manager(self, monkeypatch):
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
        settings = Settings(credential=SigningCredential("AKID", "secret"), secret_name="custom/secret")
        handler = EdgeAuthHandler.from_settings(settings)
        assert isinstance(handler.secret_provider, SecretsManagerProvider)
        assert handler.secret_provider.secret_id == "custom/secret"


class TestUnauthorizedResponse:
    """Tests for unauthorized_response."""

    def test_shape(self):
        response = unauthorized_response(
            VerificationResult.invalid(InvalidReason.SIGNATURE_MISMATCH)
        )
        assert response["status"] == "401"
        assert response["statusDescription"] == "Unauthorized"
        assert response["headers"]["content-type"][0]["value"] == "application/json"
        assert json.loads(response["body"]) == {"error": "Invalid signature"}
