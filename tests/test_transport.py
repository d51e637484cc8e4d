"""HTTP 传输单元测试。"""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from wxpay.services.exceptions import ConfigError, TransportError
from wxpay.services.transport import HttpTransport


def _mock_client(mock_client_cls, status_code=200, text="<xml></xml>"):
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.text = text

    mock_client = MagicMock()
    mock_client.post.return_value = mock_response
    mock_client.__enter__ = MagicMock(return_value=mock_client)
    mock_client.__exit__ = MagicMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


class TestHttpTransport:
    """HttpTransport.post 测试。"""

    @patch("wxpay.services.transport.httpx.Client")
    def test_returns_status_and_text(self, mock_client_cls):
        _mock_client(mock_client_cls, 200, "<xml><return_code>SUCCESS</return_code></xml>")

        status, text = HttpTransport().post("https://example.com/pay", "<xml></xml>")

        assert status == 200
        assert text == "<xml><return_code>SUCCESS</return_code></xml>"

    @patch("wxpay.services.transport.httpx.Client")
    def test_non_200_is_returned_not_raised(self, mock_client_cls):
        _mock_client(mock_client_cls, 500, "bad response")
        assert HttpTransport().post("https://example.com/pay", "<xml></xml>") == (500, "bad response")

    @patch("wxpay.services.transport.httpx.Client")
    def test_sends_xml_body(self, mock_client_cls):
        mock_client = _mock_client(mock_client_cls)

        HttpTransport(timeout=5.0).post("https://example.com/pay", "<xml><body>报名费</body></xml>")

        assert mock_client_cls.call_args.kwargs["timeout"] == 5.0
        assert mock_client_cls.call_args.kwargs["verify"] is True
        call_args = mock_client.post.call_args
        assert call_args.args[0] == "https://example.com/pay"
        assert call_args.kwargs["content"] == "<xml><body>报名费</body></xml>".encode("utf-8")
        assert call_args.kwargs["headers"]["Content-Type"].startswith("text/xml")

    @patch("wxpay.services.transport.ssl.create_default_context")
    @patch("wxpay.services.transport.httpx.Client")
    def test_attaches_cert(self, mock_client_cls, mock_ctx_factory):
        _mock_client(mock_client_cls)
        ctx = MagicMock()
        mock_ctx_factory.return_value = ctx

        HttpTransport().post("https://example.com/refund", "<xml></xml>", cert="/path/to/cert.pem")

        ctx.load_cert_chain.assert_called_once_with("/path/to/cert.pem")
        assert mock_client_cls.call_args.kwargs["verify"] is ctx

    def test_missing_cert_file_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="无法加载商户证书"):
            HttpTransport().post(
                "https://example.com/refund", "<xml></xml>",
                cert=str(tmp_path / "missing.pem"),
            )

    @patch("wxpay.services.transport.httpx.Client")
    def test_http_error_raises(self, mock_client_cls):
        mock_client = _mock_client(mock_client_cls)
        mock_client.post.side_effect = httpx.ConnectError("Connection refused")

        with pytest.raises(TransportError, match="请求微信支付接口失败"):
            HttpTransport().post("https://example.com/pay", "<xml></xml>")
