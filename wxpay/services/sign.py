"""微信支付 MD5 签名生成与验证模块。"""

import hashlib


def generate_sign(params: dict, key: str) -> str:
    """
    生成 MD5 签名。

    1. 过滤空值（None 和空字符串）
    2. 按参数名 ASCII 码从小到大排序
    3. 拼接 URL 键值对（参数值不 URL 编码）
    4. 拼接 &key=商户密钥 后 MD5 加密

    返回大写 32 位十六进制签名字符串。
    """
    filtered = {
        k: v
        for k, v in params.items()
        if v is not None and str(v) != ""
    }

    sorted_keys = sorted(filtered.keys())
    query_string = "&".join(f"{k}={filtered[k]}" for k in sorted_keys)

    sign_str = f"{query_string}&key={key}"
    return hashlib.md5(sign_str.encode("utf-8")).hexdigest().upper()


def verify_sign(params: dict, sign: str, key: str) -> bool:
    """验证签名是否正确，sign 字段本身不参与计算。"""
    unsigned = {k: v for k, v in params.items() if k != "sign"}
    return generate_sign(unsigned, key) == sign
