"""
XML 编解码：微信支付请求报文序列化，响应与通知报文解析。

- to_xml: 参数字典 → <xml> 报文，数值直接输出，其余使用 CDATA 包裹
- from_xml: 容错解析 XML（忽略实体错误、去除 CDATA），返回扁平字典，字段值原样保留
- decode: 先按 XML 解析，失败后按 URL 查询字符串解析
"""

import numbers
from urllib.parse import parse_qsl

from lxml import etree

from wxpay.services.exceptions import DecodeError


_BOM = b"\xef\xbb\xbf"


def _parser() -> etree.XMLParser:
    # lxml 解析器实例不可跨线程共享，每次解析新建
    return etree.XMLParser(
        recover=True,
        strip_cdata=True,
        resolve_entities=False,
        no_network=True,
    )


def _is_numeric(value) -> bool:
    return isinstance(value, numbers.Number) and not isinstance(value, bool)


def _cdata(value: str) -> str:
    # "]]>" 会提前结束 CDATA，拆成两段
    return "<![CDATA[" + value.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def to_xml(params: dict) -> str:
    """将参数字典序列化为微信支付请求报文，字段顺序与字典插入顺序一致。"""
    parts = ["<xml>"]
    for k, v in params.items():
        if _is_numeric(v):
            parts.append(f"<{k}>{v}</{k}>")
        else:
            parts.append(f"<{k}>{_cdata(str(v))}</{k}>")
    parts.append("</xml>")
    return "".join(parts)


def from_xml(content: str | bytes) -> dict | None:
    """
    容错解析 XML 报文，返回根节点下一级子节点组成的扁平字典。

    Returns:
        字段字典；内容不是 XML 时返回 None。
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    content = content.strip().removeprefix(_BOM)
    if not content.lstrip().startswith(b"<"):
        return None

    try:
        root = etree.fromstring(content, parser=_parser())
    except etree.XMLSyntaxError:
        return None
    if root is None:
        return None

    return {
        child.tag: child.text or ""
        for child in root
        if isinstance(child.tag, str)
    }


def decode(content: str | bytes) -> dict:
    """
    解析 XML 或 URL 查询字符串为参数字典。

    Raises:
        DecodeError: 两种格式均无法解析出字段。
    """
    parsed = from_xml(content)
    if parsed is not None:
        return parsed

    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    content = content.strip()
    if not content:
        raise DecodeError("报文为空")
    # 允许空字段段落（如末尾多余的 &），但至少要有一个 key=value
    if "=" not in content:
        raise DecodeError(f"无法解析报文: {content[:200]}")
    return dict(parse_qsl(content, keep_blank_values=True))
