"""
支付结果通知路由：接收微信支付 POST 的通知报文，校验后回调业务处理，
并将应答原样写回。
"""

import logging
from typing import Callable

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from wxpay.services.exceptions import (
    DecodeError,
    ForgedNotificationError,
    SignatureVerificationError,
)
from wxpay.services.wxpay_service import WxPayService

logger = logging.getLogger(__name__)

DEFAULT_NOTIFY_PATH = "/wxpay/notify"


def _ack_response(ack: str) -> Response:
    media_type = "application/xml" if ack.startswith("<xml>") else "text/plain"
    return Response(content=ack, media_type=media_type)


def create_notify_router(
    service: WxPayService,
    callback: Callable,
    path: str = DEFAULT_NOTIFY_PATH,
) -> APIRouter:
    """
    创建通知路由。

    Args:
        service: AppPayService 或 JsApiPayService，决定应答格式与回调约定。
        callback: 业务回调，返回真值表示处理成功。
        path: 路由路径，应与商户配置的 notify_url 对应。
    """
    router = APIRouter()

    @router.post(path)
    async def trade_notify(request: Request):
        body = await request.body()
        try:
            ack = await run_in_threadpool(service.trade_updated, body, callback)
        except (DecodeError, ForgedNotificationError, SignatureVerificationError) as e:
            logger.warning("拒绝支付通知: %s", e)
            ack = service.ACK_FAILURE
        return _ack_response(ack)

    return router
