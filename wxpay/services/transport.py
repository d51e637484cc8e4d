"""
HTTP 传输适配：向微信支付接口 POST XML 报文。

不做重试；退款等接口需要双向 TLS，由调用方按次传入商户证书路径。
"""

import logging
import ssl

import httpx

from wxpay.services.exceptions import ConfigError, TransportError

logger = logging.getLogger(__name__)


def _verify_context(cert: str | None):
    """无证书时使用 httpx 默认校验；有证书时加载商户证书构造 SSL 上下文。"""
    if not cert:
        return True
    ctx = ssl.create_default_context()
    try:
        ctx.load_cert_chain(cert)
    except (OSError, ssl.SSLError) as e:
        raise ConfigError(f"无法加载商户证书 {cert}: {e}") from e
    return ctx


class HttpTransport:
    """基于 httpx 的同步传输实现。"""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def post(self, url: str, body: str, cert: str | None = None) -> tuple[int, str]:
        """
        POST XML 报文。

        Args:
            url: 接口地址。
            body: XML 请求报文。
            cert: 商户证书路径（PEM，包含私钥），需要双向认证时传入。

        Returns:
            (HTTP 状态码, 响应文本)

        Raises:
            ConfigError: 商户证书无法加载。
            TransportError: 网络请求失败。
        """
        verify = _verify_context(cert)
        try:
            with httpx.Client(timeout=self.timeout, verify=verify) as client:
                response = client.post(
                    url,
                    content=body.encode("utf-8"),
                    headers={"Content-Type": "text/xml; charset=utf-8"},
                )
        except httpx.HTTPError as e:
            logger.warning("请求微信支付接口失败 (url=%s): %s", url, e)
            raise TransportError(f"请求微信支付接口失败: {e}") from e

        return response.status_code, response.text
