"""
随机串、时间与退款单号生成。

时钟与随机串生成器作为可注入依赖传给 WxPayService，测试中可固定取值。
"""

import random
import string
from datetime import datetime, timedelta
from typing import Callable

NONCE_POOL = string.digits + string.ascii_lowercase + string.ascii_uppercase

# 微信支付时间格式：yyyyMMddHHmmss
TIME_FORMAT = "%Y%m%d%H%M%S"

Clock = Callable[[], datetime]
NonceGenerator = Callable[[int], str]


def random_string(length: int = 32, pool: str = NONCE_POOL) -> str:
    """生成指定长度的随机字母数字串。"""
    return "".join(random.choice(pool) for _ in range(length))


def format_time(moment: datetime) -> str:
    return moment.strftime(TIME_FORMAT)


def order_window(now: datetime, expire_after: int | None) -> tuple[str, str]:
    """
    计算订单的 time_start 和 time_expire。

    expire_after 为 0 或 None 时不设置过期时间，time_expire 返回空字符串。
    """
    time_start = format_time(now)
    if not expire_after:
        return time_start, ""
    return time_start, format_time(now + timedelta(seconds=expire_after))


def unique_token(now: datetime) -> str:
    """13 位十六进制唯一串：秒（8 位）+ 微秒（5 位）。"""
    return f"{int(now.timestamp()):08x}{now.microsecond:05x}"


def generate_refund_no(now: datetime) -> str:
    """
    生成商户退款单号（32 位）。

    格式：当前日期时间（14 位）+ 唯一串（13 位）+ 随机数（5 位，[1, 99999] 左补零）。
    """
    rand = f"{random.randint(1, 99999):05d}"
    return format_time(now) + unique_token(now) + rand
