"""
通知服务入口：FastAPI 应用工厂、日志配置、通知路由注册。

启动：uvicorn wxpay.main:create_app --factory
"""

import importlib
import logging
import os
from typing import Callable

from dotenv import load_dotenv
from fastapi import FastAPI

from wxpay.config import MerchantConfig
from wxpay.routes.notify import DEFAULT_NOTIFY_PATH, create_notify_router
from wxpay.services.exceptions import ConfigError
from wxpay.services.wxpay_service import AppPayService, JsApiPayService, WxPayService

logger = logging.getLogger(__name__)

_FLAVORS = {
    "app": AppPayService,
    "jsapi": JsApiPayService,
}


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _build_service() -> WxPayService:
    """按 WXPAY_FLAVOR（app / jsapi，默认 app）创建客户端。"""
    flavor = os.environ.get("WXPAY_FLAVOR", "app").lower()
    service_cls = _FLAVORS.get(flavor)
    if service_cls is None:
        raise ConfigError(f"未知的 WXPAY_FLAVOR: {flavor}，可选值: {', '.join(_FLAVORS)}")
    return service_cls(MerchantConfig.from_env())


def _reject_all(*args) -> bool:
    logger.warning("未配置 WXPAY_TRADE_HANDLER，支付通知将应答失败")
    return False


def resolve_handler(spec: str | None) -> Callable:
    """
    按 "module:function" 加载业务回调；未配置时返回一律应答失败的回调，
    微信支付会继续重发通知。
    """
    if not spec:
        return _reject_all
    module_name, sep, attr = spec.partition(":")
    if not sep or not attr:
        raise ConfigError(f"WXPAY_TRADE_HANDLER 格式应为 module:function，实际为 {spec}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


def create_app(
    service: WxPayService | None = None,
    callback: Callable | None = None,
) -> FastAPI:
    """创建通知服务应用。未传入的 service / callback 从环境变量构造。"""
    load_dotenv()
    _configure_logging()

    if service is None:
        service = _build_service()
    if callback is None:
        callback = resolve_handler(os.environ.get("WXPAY_TRADE_HANDLER"))

    path = os.environ.get("WXPAY_NOTIFY_PATH", DEFAULT_NOTIFY_PATH)

    app = FastAPI(title="WxPay Notify", description="微信支付结果通知服务")
    app.include_router(create_notify_router(service, callback, path))
    logger.info("支付通知路由已注册: POST %s (%s)", path, type(service).__name__)

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app
