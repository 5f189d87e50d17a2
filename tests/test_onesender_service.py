from unittest.mock import MagicMock, Mock, patch

import httpx
import pytest

from app.services.onesender_service import (
    FAILURE_NOT_CONFIGURED,
    FAILURE_PERMANENT,
    FAILURE_TRANSIENT,
    NOT_ON_WHATSAPP_ERROR,
    build_payload,
    classify_failure,
    resolve_endpoint,
    send_message,
)
from app.services.settings_service import GatewaySettings


def make_response(status_code=200, text=""):
    response = Mock()
    response.status_code = status_code
    response.is_success = 200 <= status_code < 300
    response.text = text
    return response


class TestBuildPayload:
    def test_text(self):
        assert build_payload("628", "text", "Halo") == {
            "to": "628",
            "type": "text",
            "priority": 10,
            "text": {"body": "Halo"},
        }

    def test_image(self):
        payload = build_payload("628", "image", "Promo", "https://cdn/p.jpg")
        assert payload["image"] == {"link": "https://cdn/p.jpg", "caption": "Promo"}

    def test_document_with_filename(self):
        payload = build_payload("628", "document", "Katalog", "https://cdn/k.pdf", filename="katalog.pdf")
        assert payload["document"]["filename"] == "katalog.pdf"

    def test_unsupported_type(self):
        assert build_payload("628", "sticker", "x") is None


class TestResolveEndpoint:
    def test_image_uses_media_endpoint(self):
        url = "https://gw.example.com/api/v1/message/send"
        assert resolve_endpoint(url, "image") == "https://gw.example.com/api/v1/media"

    def test_other_types_keep_url(self):
        url = "https://gw.example.com/api/v1/message/send"
        assert resolve_endpoint(url, "document") == url


class TestClassifyFailure:
    @pytest.mark.parametrize("status_code", [400, 404])
    def test_client_errors_are_permanent(self, status_code):
        assert classify_failure(status_code, "") == FAILURE_PERMANENT

    def test_not_registered_body_is_permanent(self):
        assert classify_failure(500, "Number is NOT REGISTERED") == FAILURE_PERMANENT

    def test_server_errors_are_transient(self):
        assert classify_failure(502, "Bad gateway") == FAILURE_TRANSIENT


class TestSendMessage:
    @patch("app.services.onesender_service.httpx.Client")
    def test_missing_gateway_makes_no_call(self, mock_client_class):
        result = send_message(None, "628", "text", "Halo")

        assert result.has_code(FAILURE_NOT_CONFIGURED)
        mock_client_class.assert_not_called()

    @patch("app.services.onesender_service.httpx.Client")
    def test_posts_with_bearer_auth(self, mock_client_class, gateway):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.return_value = make_response(200)

        result = send_message(gateway, "628", "text", "Halo")

        assert result.ok is True
        args, kwargs = mock_client.post.call_args
        assert args[0] == gateway.api_url
        assert kwargs["headers"]["Authorization"] == "Bearer gw-key"
        assert kwargs["json"]["text"] == {"body": "Halo"}

    @patch("app.services.onesender_service.httpx.Client")
    def test_explicit_endpoint_overrides_url(self, mock_client_class, gateway):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.return_value = make_response(201)

        send_message(gateway, "628", "image", "Promo", "https://cdn/p.jpg", endpoint="https://gw/api/v1/media")

        assert mock_client.post.call_args[0][0] == "https://gw/api/v1/media"

    @patch("app.services.onesender_service.httpx.Client")
    def test_not_registered_is_permanent(self, mock_client_class, gateway):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.return_value = make_response(404, text="not found")

        result = send_message(gateway, "628", "text", "Halo")

        assert result.has_code(FAILURE_PERMANENT)
        assert result.error == NOT_ON_WHATSAPP_ERROR
        assert result.status_code == 404

    @patch("app.services.onesender_service.httpx.Client")
    def test_server_error_is_transient(self, mock_client_class, gateway):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.return_value = make_response(503, text="Service Unavailable")

        result = send_message(gateway, "628", "text", "Halo")

        assert result.has_code(FAILURE_TRANSIENT)
        assert result.error == "Service Unavailable"

    @patch("app.services.onesender_service.httpx.Client")
    def test_network_error_is_transient(self, mock_client_class, gateway):
        mock_client_class.return_value.__enter__.side_effect = httpx.ConnectError("refused")

        result = send_message(gateway, "628", "text", "Halo")

        assert result.has_code(FAILURE_TRANSIENT)

    def test_malformed_url_is_permanent(self):
        gateway = GatewaySettings(api_url="https://gw.example:80a/api/v1/message/send", api_key="k")

        result = send_message(gateway, "628", "text", "hi")

        assert result.has_code(FAILURE_PERMANENT)

    @patch("app.services.onesender_service.httpx.Client")
    def test_missing_scheme_is_permanent(self, mock_client_class):
        mock_client_class.return_value.__enter__.return_value.post.side_effect = httpx.UnsupportedProtocol("no scheme")

        result = send_message(GatewaySettings(api_url="gw.example/send", api_key="k"), "628", "text", "hi")

        assert result.has_code(FAILURE_PERMANENT)

    def test_blank_credentials_are_not_configured(self):
        result = send_message(GatewaySettings(api_url="", api_key=""), "628", "text", "Halo")
        assert result.has_code(FAILURE_NOT_CONFIGURED)
