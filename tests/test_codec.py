import json

import pytest

from reportdash_mcp.codec import (
    DecodeError,
    Passthrough,
    RpcError,
    RpcResult,
    decode_line,
    encode,
    has_id,
    rpc_error,
    with_platform,
)


def test_decode_injects_platform():
    msg = decode_line('{"jsonrpc":"2.0","method":"tools/list","id":1}')
    assert msg["platform"] == "claude"
    assert msg["id"] == 1


def test_decode_replaces_null_platform():
    msg = decode_line('{"jsonrpc":"2.0","method":"ping","platform":null}')
    assert msg["platform"] == "claude"


@pytest.mark.parametrize("value", ["cursor", "", 0, False, [], {}])
def test_decode_keeps_explicit_platform(value):
    line = json.dumps({"jsonrpc": "2.0", "method": "ping", "platform": value})
    assert decode_line(line)["platform"] == value


def test_platform_injection_is_idempotent():
    once = decode_line('{"jsonrpc":"2.0","method":"ping","id":3}')
    twice = decode_line(encode(once))
    assert twice["platform"] == once["platform"] == "claude"


def test_decode_custom_platform():
    assert decode_line('{"method":"ping"}', platform="other")["platform"] == "other"


def test_decode_non_object_untouched():
    assert decode_line("[1, 2]") == [1, 2]
    assert decode_line("42") == 42


@pytest.mark.parametrize("line", ["", "   ", "\n", "\t \r\n"])
def test_decode_blank_line(line):
    assert decode_line(line) is None


def test_decode_invalid_json():
    with pytest.raises(DecodeError) as exc_info:
        decode_line("not json")
    assert exc_info.value.detail
    assert isinstance(exc_info.value, ValueError)


def test_with_platform_ignores_non_dict():
    assert with_platform("text") == "text"
    assert with_platform(None) is None


def test_has_id_is_key_presence():
    assert has_id({"id": 1})
    assert has_id({"id": 0})
    assert has_id({"id": None})
    assert has_id({"id": ""})
    assert not has_id({"method": "ping"})
    assert not has_id([{"id": 1}])
    assert not has_id(None)


def test_encode_single_line():
    line = encode({"jsonrpc": "2.0", "id": 1, "result": {"text": "a\nb", "nested": {"x": [1, 2]}}})
    assert line.endswith("\n")
    assert line.count("\n") == 1
    assert json.loads(line)["result"]["text"] == "a\nb"


def test_encode_is_compact_and_keeps_unicode():
    line = encode({"jsonrpc": "2.0", "id": 1, "result": "café"})
    assert line == '{"jsonrpc":"2.0","id":1,"result":"café"}\n'


def test_rpc_result_defaults_to_empty_object():
    assert RpcResult(id=1).to_dict() == {"jsonrpc": "2.0", "id": 1, "result": {}}


def test_rpc_error_omits_missing_data():
    err = rpc_error(id=7, code=-32603, message="Network error: boom")
    assert isinstance(err, RpcError)
    assert err.to_dict() == {
        "jsonrpc": "2.0",
        "id": 7,
        "error": {"code": -32603, "message": "Network error: boom"},
    }


def test_rpc_error_keeps_explicit_none_data():
    assert rpc_error(id=1, data=None).to_dict()["error"] == {"code": -32603, "message": "Internal error", "data": None}


def test_rpc_error_parse_error_shape():
    line = encode(rpc_error(id=None, code=-32700, message="Parse error: Expecting value"))
    assert json.loads(line) == {
        "jsonrpc": "2.0",
        "id": None,
        "error": {"code": -32700, "message": "Parse error: Expecting value"},
    }


def test_passthrough_fills_missing_and_null_id():
    assert Passthrough(body={"jsonrpc": "2.0", "result": {}}, id=5).to_dict()["id"] == 5
    assert Passthrough(body={"jsonrpc": "2.0", "id": None, "result": {}}, id=5).to_dict()["id"] == 5


def test_passthrough_keeps_backend_id():
    body = {"jsonrpc": "2.0", "id": "srv-1", "result": {}}
    out = Passthrough(body=body, id=5).to_dict()
    assert out["id"] == "srv-1"
    assert body == {"jsonrpc": "2.0", "id": "srv-1", "result": {}}


@pytest.mark.parametrize("line", ["NaN", '{"id":1,"v":Infinity}', '{"id":1,"v":[-Infinity]}'])
def test_decode_rejects_non_finite_numbers(line):
    with pytest.raises(DecodeError, match="not valid JSON"):
        decode_line(line)


def test_encode_refuses_non_finite_numbers():
    with pytest.raises(ValueError):
        encode({"jsonrpc": "2.0", "id": 1, "result": float("nan")})
