"""全局测试配置：商户配置、固定时钟、模拟传输。"""

import os
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from wxpay.config import MerchantConfig

TEST_CONFIG = {
    "app_id": "wx2421b1c4370ec43b",
    "mch_id": "10000100",
    "key": "c6d725f7ff5b80c0a95f",
    "mch_cert": "/path/to/merchant/cert",
    "notify_url": "http://localhost/trade.php",
}

FIXED_NOW = datetime(2016, 7, 23, 0, 55, 22)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """每个测试前移除 WXPAY_ 环境变量，避免本地 .env 干扰。"""
    for name in list(os.environ):
        if name.startswith("WXPAY_"):
            monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def config():
    return MerchantConfig.from_mapping(TEST_CONFIG)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def transport():
    """模拟传输，post 返回 (status, text)，由测试设置 return_value。"""
    return MagicMock()
