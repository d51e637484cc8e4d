"""XML 编解码单元测试。"""

from decimal import Decimal
from urllib.parse import urlencode

import pytest

from wxpay.services.exceptions import DecodeError
from wxpay.services.xml_codec import decode, from_xml, to_xml


class TestToXml:
    """to_xml 单元测试。"""

    def test_numeric_values_are_bare(self):
        xml = to_xml({"total_fee": 1, "body": "报名费"})
        assert xml == (
            "<xml><total_fee>1</total_fee>"
            "<body><![CDATA[报名费]]></body></xml>"
        )

    def test_decimal_is_numeric(self):
        assert to_xml({"rate": Decimal("0.6")}) == "<xml><rate>0.6</rate></xml>"

    def test_bool_is_wrapped(self):
        assert to_xml({"flag": True}) == "<xml><flag><![CDATA[True]]></flag></xml>"

    def test_keeps_insertion_order(self):
        xml = to_xml({"z": "1", "a": "2"})
        assert xml.index("<z>") < xml.index("<a>")

    def test_cdata_terminator_in_value(self):
        xml = to_xml({"attach": "x]]>y"})
        assert decode(xml) == {"attach": "x]]>y"}

    def test_empty_map(self):
        assert to_xml({}) == "<xml></xml>"


class TestDecode:
    """decode / from_xml 单元测试。"""

    def test_round_trip(self):
        params = {
            "appid": "wx2421b1c4370ec43b",
            "total_fee": 1,
            "body": "报名费",
            "attach": "a&b<c>",
        }
        assert decode(to_xml(params)) == {k: str(v) for k, v in params.items()}

    @pytest.mark.parametrize("value", [
        " order 42 ",
        "   ",
        "第一行\n第二行\n",
        "\tcampaign=7",
    ])
    def test_round_trip_keeps_value_verbatim(self, value):
        assert decode(to_xml({"attach": value, "a": "1"})) == {"attach": value, "a": "1"}

    def test_strips_cdata_keeps_text(self):
        xml = """
        <xml>
            <return_code><![CDATA[SUCCESS]]></return_code>
            <total_fee>  1 </total_fee>
        </xml>
        """
        assert decode(xml) == {"return_code": "SUCCESS", "total_fee": "  1 "}

    def test_leading_bom(self):
        body = b"\xef\xbb\xbf<xml><return_code>SUCCESS</return_code></xml>"
        assert decode(body) == {"return_code": "SUCCESS"}

    def test_leading_bom_in_text(self):
        assert decode("\ufeff<xml><a>1</a></xml>") == {"a": "1"}

    def test_xml_declaration_with_encoding(self):
        xml = '<?xml version="1.0" encoding="UTF-8"?><xml><body>报名费</body></xml>'
        assert decode(xml) == {"body": "报名费"}

    def test_bytes_input(self):
        assert decode("<xml><body>报名费</body></xml>".encode("utf-8")) == {"body": "报名费"}

    def test_empty_element(self):
        assert decode("<xml><attach></attach><a>1</a></xml>") == {"attach": "", "a": "1"}

    def test_ignores_comments(self):
        assert decode("<xml><!-- note --><a>1</a></xml>") == {"a": "1"}

    def test_tolerates_undefined_entity(self):
        result = decode("<xml><a>&foo;</a><b>1</b></xml>")
        assert result["b"] == "1"

    def test_empty_xml_root(self):
        assert decode("<xml></xml>") == {}

    def test_query_string_fallback(self):
        text = urlencode({"return_code": "SUCCESS", "attach": "", "body": "报名费"})
        assert decode(text) == {"return_code": "SUCCESS", "attach": "", "body": "报名费"}

    def test_from_xml_returns_none_for_query_string(self):
        assert from_xml("a=1&b=2") is None

    def test_garbage_raises(self):
        with pytest.raises(DecodeError):
            decode("bad response")

    def test_empty_raises(self):
        with pytest.raises(DecodeError):
            decode("")

    def test_query_string_trailing_ampersand(self):
        assert decode("return_code=SUCCESS&a=1&") == {"return_code": "SUCCESS", "a": "1"}

    def test_query_string_empty_segment(self):
        assert decode("a=1&&b=2") == {"a": "1", "b": "2"}

    def test_query_string_without_pairs_raises(self):
        with pytest.raises(DecodeError):
            decode("&&")
