"""微信支付客户端异常定义。"""


class WxPayError(Exception):
    """微信支付客户端异常基类。"""
    pass


class ConfigError(WxPayError):
    """商户配置不完整。"""
    pass


class TransportError(WxPayError):
    """请求微信支付接口失败（网络层异常）。"""
    pass


class BadResponseError(TransportError):
    """微信支付响应异常：非 200 状态码或响应缺少 return_code。"""

    def __init__(self, body: str):
        self.body = body
        super().__init__(f"微信支付响应异常: {body}")


class VendorBusinessError(WxPayError):
    """微信支付返回业务失败，消息格式为 "<message>(<code>)"。"""

    def __init__(self, code: str, message: str | None):
        self.code = code
        self.message = message
        super().__init__(f"{message or ''}({code})")


class ForgedNotificationError(WxPayError):
    """通知缺少签名，视为伪造。"""
    pass


class SignatureVerificationError(WxPayError):
    """签名校验失败。"""
    pass


class DecodeError(WxPayError):
    """内容既不是 XML 也不是查询字符串。"""
    pass
