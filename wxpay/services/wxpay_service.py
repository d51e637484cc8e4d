"""
微信支付商户接口客户端（V2，XML + MD5 签名）。

主要功能：
- 统一下单（APP / NATIVE / JSAPI），下单成功后生成客户端调起支付参数
- 订单查询、申请退款（双向证书）、退款查询
- 支付结果异步通知：防伪造校验、签名校验、解析并回调

AppPayService 与 JsApiPayService 的差异集中在类属性上：
通知应答格式、回调异常是否吞掉、return_code 失败时是否回调。
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable

from wxpay.config import MerchantConfig
from wxpay.models.schemas import (
    AppPayParams,
    JsApiParams,
    NotifyError,
    RefundItem,
    RefundQueryResult,
    RefundResult,
    TradeResult,
    TradeUpdateNotification,
)
from wxpay.services.exceptions import (
    BadResponseError,
    ConfigError,
    DecodeError,
    ForgedNotificationError,
    SignatureVerificationError,
    VendorBusinessError,
)
from wxpay.services.sign import generate_sign, verify_sign
from wxpay.services.support import (
    Clock,
    NonceGenerator,
    generate_refund_no,
    order_window,
    random_string,
)
from wxpay.services.transport import HttpTransport
from wxpay.services.xml_codec import decode, to_xml

logger = logging.getLogger(__name__)

API_BASE = "https://api.mch.weixin.qq.com"

UNIFIED_ORDER_PATH = "/pay/unifiedorder"
ORDER_QUERY_PATH = "/pay/orderquery"
REFUND_PATH = "/secapi/pay/refund"
REFUND_QUERY_PATH = "/pay/refundquery"

# 各接口成功响应是否先校验签名再使用字段；退款类接口走双向证书，不校验
VERIFY_RESPONSE_SIGN = {
    UNIFIED_ORDER_PATH: True,
    ORDER_QUERY_PATH: True,
    REFUND_PATH: False,
    REFUND_QUERY_PATH: False,
}

SUCCESS = "SUCCESS"


def _filter_empty(params: dict) -> dict:
    return {k: v for k, v in params.items() if v is not None and v != ""}


def _to_int(value) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as e:
        raise BadResponseError(f"数值字段格式错误: {value!r}") from e


class WxPayService:
    """微信支付接口客户端基类：请求组装、签名、响应解析与通知校验。"""

    # 通知应答
    ACK_SUCCESS = "SUCCESS"
    ACK_FAILURE = "FAIL"
    # 回调抛出的异常是否吞掉并应答失败
    SWALLOW_CALLBACK_ERRORS = False

    def __init__(
        self,
        config: MerchantConfig,
        transport: HttpTransport | None = None,
        clock: Clock | None = None,
        nonce: NonceGenerator | None = None,
        base_url: str = API_BASE,
    ):
        """
        Args:
            config: 商户配置。
            transport: HTTP 传输，需提供 post(url, body, cert=None) -> (status, text)。
            clock: 当前时间提供者，默认 datetime.now。
            nonce: 随机串生成器，参数为长度，默认 random_string。
            base_url: 接口域名，可替换为仿真测试环境。
        """
        self.config = config
        self.transport = transport or HttpTransport()
        self.clock = clock or datetime.now
        self.nonce = nonce or random_string
        self.base_url = base_url.rstrip("/")

    # ── 统一下单 ──────────────────────────────────────────────

    def _unified_order_params(
        self,
        trade_type: str,
        order_no: str,
        fee: int,
        description: str,
        client_ip: str,
        expire_after: int | None = 3600,
        detail: str = "",
        attach: str = "",
    ) -> dict:
        """组装统一下单业务参数（不含公共参数和签名）。"""
        required = {
            "order_no": order_no,
            "fee": fee,
            "description": description,
            "client_ip": client_ip,
        }
        missing = [name for name, value in required.items() if value is None or value == ""]
        if missing:
            raise ValueError(f"统一下单缺少必填参数: {', '.join(missing)}")

        time_start, time_expire = order_window(self.clock(), expire_after)
        return {
            "out_trade_no": order_no,
            "total_fee": fee,
            "body": description,
            "spbill_create_ip": client_ip,
            "time_start": time_start,
            "time_expire": time_expire,
            "detail": detail,
            "attach": attach,
            "trade_type": trade_type,
        }

    def prepare_trade(self, params: dict) -> TradeResult:
        """
        统一下单公共流程：补充 notify_url、公共参数和签名，请求并解析响应。

        下单成功后按 trade_type 生成客户端调起支付参数：
        APP → app_params，JSAPI → js_api_params，NATIVE 使用 qr_link。
        """
        params = dict(params)
        params["notify_url"] = self.config.notify_url
        data = self._post(UNIFIED_ORDER_PATH, self._sign_request(params))

        result = TradeResult(code=self._response_code(data), message=self._response_message(data))
        if not self._checked_success(UNIFIED_ORDER_PATH, data):
            return result

        result = replace(
            result,
            code=SUCCESS,
            trade_type=data.get("trade_type"),
            prepay_id=data.get("prepay_id"),
            nonce_str=data.get("nonce_str"),
            qr_link=data.get("code_url"),
        )
        compose = self._CLIENT_PARAMS.get(params.get("trade_type"))
        if compose is not None:
            result = compose(self, result)
        return result

    def _compose_app_params(self, result: TradeResult) -> TradeResult:
        """APP 调起支付参数，签名覆盖除 sign 外的六个字段。"""
        params = {
            "appid": self.config.app_id,
            "partnerid": self.config.mch_id,
            "prepayid": result.prepay_id,
            "package": "Sign=WXPay",
            "noncestr": result.nonce_str,
            "timestamp": str(int(self.clock().timestamp())),
        }
        params["sign"] = generate_sign(params, self.config.key)
        return replace(result, app_params=AppPayParams(**params))

    def _compose_js_api_params(self, result: TradeResult) -> TradeResult:
        """公众号 JSAPI 调起支付参数，paySign 为前五个字段的签名。"""
        params = {
            "appId": self.config.app_id,
            "timeStamp": str(int(self.clock().timestamp())),
            "nonceStr": self.nonce(32),
            "package": f"prepay_id={result.prepay_id}",
            "signType": "MD5",
        }
        pay_sign = generate_sign(params, self.config.key)
        return replace(
            result,
            js_api_params=JsApiParams(
                app_id=params["appId"],
                time_stamp=params["timeStamp"],
                nonce_str=params["nonceStr"],
                package=params["package"],
                sign_type=params["signType"],
                pay_sign=pay_sign,
            ),
        )

    _CLIENT_PARAMS = {
        "APP": _compose_app_params,
        "JSAPI": _compose_js_api_params,
    }

    # ── 订单查询 ──────────────────────────────────────────────

    def query_order(self, order_no: str | None, trans_id: str | None = None) -> TradeResult:
        """
        查询订单。

        Args:
            order_no: 商户订单号。
            trans_id: 微信支付订单号（可选）。

        Returns:
            TradeResult，code 为 SUCCESS 时填充 trade_state、fee、paid_at 等字段。
            trade_state 取值：SUCCESS / REFUND / NOTPAY / CLOSED / REVOKED /
            USERPAYING / PAYERROR。
        """
        params = _filter_empty({
            "transaction_id": trans_id,
            "out_trade_no": order_no,
        })
        if not params:
            raise ValueError("查询订单需要提供商户订单号或微信支付订单号")

        data = self._post(ORDER_QUERY_PATH, self._sign_request(params))

        result = TradeResult(code=self._response_code(data), message=self._response_message(data))
        if not self._checked_success(ORDER_QUERY_PATH, data):
            return result

        return replace(
            result,
            code=SUCCESS,
            device_info=data.get("device_info"),
            open_id=data.get("openid"),
            subscribed=data.get("is_subscribe") == "Y",
            trade_type=data.get("trade_type"),
            trade_state=data.get("trade_state"),
            trade_state_desc=data.get("trade_state_desc"),
            bank=data.get("bank_type"),
            fee=_to_int(data.get("total_fee")),
            fee_type=data.get("fee_type") or "CNY",
            cash_fee=_to_int(data.get("cash_fee")),
            cash_fee_type=data.get("cash_fee_type") or "CNY",
            coupon_fee=_to_int(data.get("coupon_fee")),
            coupon_count=_to_int(data.get("coupon_count")),
            trans_id=data.get("transaction_id"),
            order_no=data.get("out_trade_no"),
            attach=data.get("attach"),
            paid_at=data.get("time_end"),
        )

    # ── 退款 ──────────────────────────────────────────────────

    def refund_trade(
        self,
        order_no: str,
        fee: int,
        refund_fee: int,
        trans_id: str | None = None,
    ) -> RefundResult:
        """
        申请退款，请求携带商户证书（双向认证）。

        Args:
            order_no: 商户订单号。
            fee: 订单总金额，单位分。
            refund_fee: 退款金额，单位分。
            trans_id: 微信支付订单号（可选）。

        Returns:
            RefundResult，refund_no 为本次生成的商户退款单号（成功失败均返回）。
        """
        params = _filter_empty({
            "transaction_id": trans_id,
            "out_trade_no": order_no,
            "out_refund_no": generate_refund_no(self.clock()),
            "total_fee": fee,
            "refund_fee": refund_fee,
            "refund_fee_type": "CNY",
            "op_user_id": self.config.mch_id,
        })
        data = self._post(REFUND_PATH, self._sign_request(params), cert=True)

        if self._checked_success(REFUND_PATH, data):
            code = SUCCESS
        else:
            code = self._response_code(data)
        return RefundResult(
            code=code,
            refund_no=params["out_refund_no"],
            message=self._response_message(data),
        )

    def query_refund(
        self,
        refund_no: str,
        order_no: str,
        trans_id: str | None = None,
    ) -> RefundQueryResult:
        """
        查询退款。

        退款明细 status 取值：SUCCESS / FAIL / PROCESSING / NOTSURE / CHANGE。
        """
        params = _filter_empty({
            "transaction_id": trans_id,
            "out_trade_no": order_no,
            "out_refund_no": refund_no,
        })
        data = self._post(REFUND_QUERY_PATH, self._sign_request(params))

        message = self._response_message(data)
        if not self._checked_success(REFUND_QUERY_PATH, data):
            return RefundQueryResult(code=self._response_code(data), message=message)

        refund_count = _to_int(data.get("refund_count")) or 0
        items = [
            RefundItem(
                id=data.get(f"refund_id_{i}"),
                refund_no=data.get(f"out_refund_no_{i}"),
                fee=_to_int(data.get(f"refund_fee_{i}")),
                status=data.get(f"refund_status_{i}"),
            )
            for i in range(refund_count)
        ]
        return RefundQueryResult(
            code=SUCCESS,
            message=message,
            trans_id=data.get("transaction_id"),
            items=items,
        )

    # ── 支付结果通知 ──────────────────────────────────────────

    def trade_updated(self, notification: dict | str | bytes, callback: Callable):
        """
        处理支付结果异步通知。

        Args:
            notification: 通知字段字典，或原始报文（XML / 查询字符串）。
            callback: 业务回调，返回真值表示处理成功。

        Returns:
            应答内容，由调用方原样写回给微信支付。

        Raises:
            DecodeError: 原始报文无法解析。
            ForgedNotificationError: 通知缺少签名。
            SignatureVerificationError: 签名不匹配。
        """
        if isinstance(notification, (str, bytes)):
            notification = decode(notification)
        else:
            notification = dict(notification)

        if notification.get("return_code") != SUCCESS:
            logger.warning(
                "支付通知通信失败: return_code=%s, return_msg=%s",
                notification.get("return_code"), notification.get("return_msg"),
            )
            self._notify_error(notification, callback)
            return self.ACK_FAILURE

        self._ensure_not_forged(notification)
        trade = self._parse_trade_update(notification)
        if trade.code != SUCCESS:
            logger.info("支付通知交易未成功 (out_trade_no=%s, result_code=%s)",
                        trade.order_no, trade.code)
            return self.ACK_FAILURE

        try:
            handled = self._invoke_callback(callback, trade)
        except Exception:
            if not self.SWALLOW_CALLBACK_ERRORS:
                raise
            logger.exception("支付通知回调异常 (out_trade_no=%s)", trade.order_no)
            return self.ACK_FAILURE

        return self.ACK_SUCCESS if handled else self.ACK_FAILURE

    def _notify_error(self, notification: dict, callback: Callable) -> None:
        """return_code 非 SUCCESS 时的处理，默认不回调。"""

    def _invoke_callback(self, callback: Callable, trade: TradeUpdateNotification):
        return callback(trade)

    @staticmethod
    def _parse_trade_update(notification: dict) -> TradeUpdateNotification:
        return TradeUpdateNotification(
            order_no=notification.get("out_trade_no"),
            code=notification.get("result_code"),
            open_id=notification.get("openid"),
            trade_type=notification.get("trade_type"),
            bank=notification.get("bank_type"),
            fee=notification.get("total_fee"),
            trans_id=notification.get("transaction_id"),
            attach=notification.get("attach"),
            paid_at=notification.get("time_end"),
        )

    # ── 请求与校验 ────────────────────────────────────────────

    def _sign_request(self, params: dict) -> dict:
        """补充 appid、mch_id、nonce_str，过滤空值后追加 sign。"""
        signed = _filter_empty({
            **params,
            "appid": self.config.app_id,
            "mch_id": self.config.mch_id,
            "nonce_str": self.nonce(32),
        })
        signed["sign"] = generate_sign(signed, self.config.key)
        return signed

    def _post(self, path: str, params: dict, cert: bool = False) -> dict:
        """
        POST XML 请求并解析响应。

        Raises:
            ConfigError: 需要证书但未配置 mch_cert。
            BadResponseError: 非 200 状态码，或响应无法解析 / 缺少 return_code。
        """
        cert_path = None
        if cert:
            if not self.config.mch_cert:
                raise ConfigError(f"接口 {path} 需要商户证书，请配置 mch_cert")
            cert_path = self.config.mch_cert

        logger.info("请求微信支付接口 %s (out_trade_no=%s)", path, params.get("out_trade_no"))
        status, text = self.transport.post(self.base_url + path, to_xml(params), cert=cert_path)
        if status != 200:
            logger.warning("微信支付接口 %s 返回 HTTP %s", path, status)
            raise BadResponseError(text)

        try:
            data = decode(text)
        except DecodeError as e:
            raise BadResponseError(text) from e
        if not data.get("return_code"):
            raise BadResponseError(text)
        return data

    def _checked_success(self, path: str, data: dict) -> bool:
        """return_code 与 result_code 均为 SUCCESS 时按接口策略校验签名后返回 True。"""
        if data.get("return_code") != SUCCESS or data.get("result_code") != SUCCESS:
            logger.warning(
                "微信支付接口 %s 业务失败: code=%s, message=%s",
                path, self._response_code(data), self._response_message(data),
            )
            return False
        if VERIFY_RESPONSE_SIGN[path]:
            self._ensure_not_forged(data)
        return True

    def _ensure_not_forged(self, data: dict) -> None:
        """
        确认报文来自微信支付。

        Raises:
            ForgedNotificationError: 缺少 sign。
            SignatureVerificationError: sign 与重新计算的签名不一致。
        """
        sign = data.get("sign")
        if not sign:
            raise ForgedNotificationError("伪造的交易通知：缺少签名")
        if not verify_sign(data, sign, self.config.key):
            raise SignatureVerificationError("签名验证失败")

    @staticmethod
    def _response_code(data: dict, default: str = "FAIL") -> str:
        if "err_code" in data:
            return data["err_code"]
        if "return_code" in data:
            return data["return_code"]
        return default

    @staticmethod
    def _response_message(data: dict, default: str | None = None) -> str | None:
        if "return_msg" in data:
            return data["return_msg"]
        if "err_code_des" in data:
            return data["err_code_des"]
        return default


class AppPayService(WxPayService):
    """APP / NATIVE 支付：下单失败抛出异常，通知应答为 XML，回调异常被吞掉。"""

    ACK_SUCCESS = (
        "<xml><return_code><![CDATA[SUCCESS]]></return_code>"
        "<return_msg><![CDATA[OK]]></return_msg></xml>"
    )
    ACK_FAILURE = (
        "<xml><return_code><![CDATA[FAILURE]]></return_code>"
        "<return_msg><![CDATA[NO]]></return_msg></xml>"
    )
    SWALLOW_CALLBACK_ERRORS = True

    def place_order(
        self,
        order_no: str,
        fee: int,
        description: str,
        client_ip: str,
        expire_after: int | None = 3600,
        detail: str = "",
        attach: str = "",
    ) -> TradeResult:
        """
        APP 统一下单。

        Args:
            order_no: 商户订单号。
            fee: 订单金额，单位分。
            description: 商品描述。
            client_ip: 用户端 IP，如 8.8.8.8。
            expire_after: 订单有效期（秒），0 或 None 表示不设置过期时间。
            detail: 商品详情。
            attach: 附加数据，支付通知中原样返回。

        Returns:
            TradeResult，app_params 为 APP 调起支付参数。

        Raises:
            VendorBusinessError: 下单失败，消息格式 "<message>(<code>)"。
        """
        params = self._unified_order_params(
            "APP", order_no, fee, description, client_ip, expire_after, detail, attach,
        )
        return self._raise_on_failure(self.prepare_trade(params))

    def place_native_order(
        self,
        order_no: str,
        fee: int,
        description: str,
        client_ip: str,
        product_id: str,
        expire_after: int | None = 3600,
        detail: str = "",
        attach: str = "",
    ) -> TradeResult:
        """扫码（NATIVE）统一下单，qr_link 为二维码链接。"""
        if not product_id:
            raise ValueError("NATIVE 下单需要 product_id")
        params = self._unified_order_params(
            "NATIVE", order_no, fee, description, client_ip, expire_after, detail, attach,
        )
        params["product_id"] = product_id
        return self._raise_on_failure(self.prepare_trade(params))

    @staticmethod
    def _raise_on_failure(trade: TradeResult) -> TradeResult:
        if trade.code != SUCCESS:
            raise VendorBusinessError(trade.code, trade.message)
        return trade

    def _notify_error(self, notification: dict, callback: Callable) -> None:
        error = NotifyError(
            code=notification.get("return_code"),
            message=notification.get("return_msg"),
        )
        try:
            callback(None, error)
        except Exception:
            logger.exception("支付通知错误回调异常 (return_code=%s)", error.code)

    def _invoke_callback(self, callback: Callable, trade: TradeUpdateNotification):
        return callback(trade, None)


class JsApiPayService(WxPayService):
    """公众号 JSAPI 支付：下单失败以结果返回，通知应答为 SUCCESS / FAIL，回调异常向上抛出。"""

    def place_order(
        self,
        open_id: str,
        order_no: str,
        fee: int,
        description: str,
        client_ip: str,
        expire_after: int | None = 3600,
        detail: str = "",
        attach: str = "",
    ) -> TradeResult:
        """
        JSAPI 统一下单。

        Returns:
            TradeResult；code 为 SUCCESS 时 js_api_params 为前端调起支付参数。
        """
        if not open_id:
            raise ValueError("JSAPI 下单需要 openid")
        params = {
            "openid": open_id,
            **self._unified_order_params(
                "JSAPI", order_no, fee, description, client_ip, expire_after, detail, attach,
            ),
        }
        return self.prepare_trade(params)
