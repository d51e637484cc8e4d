"""
结果类型定义：下单、查单、退款、退款查询与支付通知。
使用 dataclass 保持轻量；除 code / message 外的字段仅在 code 为 SUCCESS 时填充。
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class JsApiParams:
    """公众号 JSAPI 调起支付参数。"""
    app_id: str
    time_stamp: str
    nonce_str: str
    package: str
    sign_type: str
    pay_sign: str

    def as_dict(self) -> dict:
        """转换为 WeixinJSBridge 需要的字段名。"""
        return {
            "appId": self.app_id,
            "timeStamp": self.time_stamp,
            "nonceStr": self.nonce_str,
            "package": self.package,
            "signType": self.sign_type,
            "paySign": self.pay_sign,
        }


@dataclass
class AppPayParams:
    """APP 端调起微信支付 SDK 所需参数，字段名与 SDK 一致。"""
    appid: str
    partnerid: str
    prepayid: str
    package: str
    noncestr: str
    timestamp: str
    sign: str

    def as_dict(self) -> dict:
        return {
            "appid": self.appid,
            "partnerid": self.partnerid,
            "prepayid": self.prepayid,
            "package": self.package,
            "noncestr": self.noncestr,
            "timestamp": self.timestamp,
            "sign": self.sign,
        }


@dataclass
class TradeResult:
    code: str
    message: Optional[str] = None
    # 统一下单
    trade_type: Optional[str] = None
    prepay_id: Optional[str] = None
    nonce_str: Optional[str] = None
    qr_link: Optional[str] = None
    js_api_params: Optional[JsApiParams] = None
    app_params: Optional[AppPayParams] = None
    # 订单查询
    device_info: Optional[str] = None
    open_id: Optional[str] = None
    subscribed: Optional[bool] = None
    trade_state: Optional[str] = None
    trade_state_desc: Optional[str] = None
    bank: Optional[str] = None
    fee: Optional[int] = None
    fee_type: Optional[str] = None
    cash_fee: Optional[int] = None
    cash_fee_type: Optional[str] = None
    coupon_fee: Optional[int] = None
    coupon_count: Optional[int] = None
    trans_id: Optional[str] = None
    order_no: Optional[str] = None
    attach: Optional[str] = None
    paid_at: Optional[str] = None  # yyyyMMddHHmmss

    @property
    def succeeded(self) -> bool:
        return self.code == "SUCCESS"


@dataclass
class RefundResult:
    code: str
    refund_no: str
    message: Optional[str] = None


@dataclass
class RefundItem:
    id: str
    refund_no: str
    fee: Optional[int]
    status: str  # SUCCESS / FAIL / PROCESSING / NOTSURE / CHANGE


@dataclass
class RefundQueryResult:
    code: str
    message: Optional[str] = None
    trans_id: Optional[str] = None
    items: list[RefundItem] = field(default_factory=list)


@dataclass
class TradeUpdateNotification:
    order_no: str
    code: str
    open_id: str
    trade_type: str
    bank: str
    fee: str
    trans_id: str
    attach: Optional[str] = None
    paid_at: Optional[str] = None  # yyyyMMddHHmmss

    @property
    def pay_at(self) -> Optional[str]:
        """JSAPI 通知沿用的字段名，与 paid_at 相同。"""
        return self.paid_at


@dataclass
class NotifyError:
    """通知 return_code 非 SUCCESS 时传给回调的错误信息。"""
    code: str
    message: Optional[str] = None
