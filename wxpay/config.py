"""
商户配置：app_id、mch_id、签名密钥、商户证书路径、通知地址。

支持从字典（app_id / mch_id / key / mch_cert / notify_url）或环境变量
（WXPAY_ 前缀，读取 .env）构造。
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from wxpay.services.exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "WXPAY_"

_REQUIRED = ("app_id", "mch_id", "key")


@dataclass(frozen=True)
class MerchantConfig:
    app_id: str
    mch_id: str
    key: str = field(repr=False)
    mch_cert: str | None = None
    notify_url: str | None = None

    @classmethod
    def from_mapping(cls, config: dict) -> "MerchantConfig":
        """
        从配置字典构造。

        Raises:
            ConfigError: 缺少 app_id、mch_id 或 key。
        """
        missing = [name for name in _REQUIRED if not config.get(name)]
        if missing:
            error_msg = f"缺少必要的商户配置项: {', '.join(missing)}"
            logger.error(error_msg)
            raise ConfigError(error_msg)

        return cls(
            app_id=str(config["app_id"]),
            mch_id=str(config["mch_id"]),
            key=str(config["key"]),
            mch_cert=config.get("mch_cert") or None,
            notify_url=config.get("notify_url") or None,
        )

    @classmethod
    def from_env(cls) -> "MerchantConfig":
        """读取 .env 与环境变量 WXPAY_APP_ID、WXPAY_MCH_ID、WXPAY_KEY 等。"""
        load_dotenv()
        names = _REQUIRED + ("mch_cert", "notify_url")
        config = {name: os.getenv(ENV_PREFIX + name.upper()) for name in names}

        missing = [ENV_PREFIX + name.upper() for name in _REQUIRED if not config[name]]
        if missing:
            error_msg = f"缺少必要的环境变量: {', '.join(missing)}，请检查 .env 配置"
            logger.error(error_msg)
            raise ConfigError(error_msg)

        return cls.from_mapping(config)
