from datetime import datetime, timedelta, timezone

import pytest

from rediscmd.base import NilError, RedisError, format_ms
from rediscmd.keys import (
    KEY_MISSING,
    NO_EXPIRATION,
    CommandInfo,
    CommandsInfoCache,
    CommandsInfoCmd,
    DurationCmd,
    KeyCommands,
    ScanCmd,
    SliceCmd,
    Sort,
    StringSliceCmd,
)


class FakeServer:
    def __init__(self, reply):
        self.reply = reply
        self.sent = []

    def __call__(self, cmd):
        self.sent.append(list(cmd.args()))
        cmd.read_reply(self.reply)


def client(reply):
    server = FakeServer(reply)
    return KeyCommands(server), server


def test_delete_args_and_result():
    c, server = client(2)
    cmd = c.delete("a", "b")
    assert server.sent == [["del", "a", "b"]]
    assert cmd.result() == 2


def test_exists_touch_unlink_args():
    c, server = client(1)
    c.exists("a")
    c.touch("a", "b")
    c.unlink("x")
    assert server.sent == [["exists", "a"], ["touch", "a", "b"], ["unlink", "x"]]


def test_expire_uses_seconds():
    c, server = client(1)
    cmd = c.expire("k", timedelta(seconds=90))
    assert server.sent == [["expire", "k", 90]]
    assert cmd.result() is True


def test_pexpire_uses_milliseconds():
    c, server = client(0)
    cmd = c.pexpire("k", timedelta(milliseconds=1500))
    assert server.sent == [["pexpire", "k", 1500]]
    assert cmd.result() is False


def test_expire_at_matches_timestamp():
    tm = datetime(2019, 1, 1, tzinfo=timezone.utc)
    c, server = client(1)
    c.expire_at("k", tm)
    assert server.sent == [["expireat", "k", int(tm.timestamp())]]


def test_pexpire_at_matches_timestamp():
    tm = datetime(2019, 1, 1, 0, 0, 0, 500000, tzinfo=timezone.utc)
    c, server = client(1)
    c.pexpire_at("k", tm)
    assert server.sent == [["pexpireat", "k", int(tm.timestamp() * 1000)]]


def test_migrate_sets_read_timeout():
    timeout = timedelta(seconds=5)
    c, server = client("OK")
    cmd = c.migrate("host", "6379", "k", 0, timeout)
    assert cmd.read_timeout() == timeout
    assert server.sent == [["migrate", "host", "6379", "k", 0, format_ms(timeout)]]
    assert cmd.result() == "OK"


def test_ttl_and_pttl_precision():
    c, _ = client(100)
    assert c.ttl("k").result() == timedelta(seconds=100)
    c, _ = client(1500)
    assert c.pttl("k").result() == timedelta(milliseconds=1500)
    c, _ = client(7)
    assert c.object_idle_time("k").result() == timedelta(seconds=7)


def test_ttl_special_values():
    c, _ = client(-2)
    assert c.ttl("k").result() == KEY_MISSING
    c, _ = client(-1)
    assert c.pttl("k").result() == NO_EXPIRATION


def test_duration_error_reply():
    cmd = DurationCmd(timedelta(seconds=1), "ttl", "k")
    with pytest.raises(RedisError):
        cmd.read_reply(RedisError("ERR boom"))
    assert str(cmd.err()) == "ERR boom"


def test_keys_reply_and_string():
    c, _ = client([b"a", b"b"])
    cmd = c.keys("*")
    assert cmd.result() == ["a", "b"]
    assert str(cmd) == "keys *: [a b]"


def test_string_slice_nil_items_become_empty():
    cmd = StringSliceCmd("mget", "a", "b")
    assert cmd.read_reply([b"x", None]) == ["x", ""]


def test_string_slice_nil_reply():
    c, _ = client(None)
    cmd = c.keys("*")
    assert isinstance(cmd.err(), NilError)
    with pytest.raises(NilError):
        cmd.result()


def test_slice_cmd_keeps_nil_and_errors():
    err = RedisError("WRONGTYPE")
    cmd = SliceCmd("mget", "a", "b", "c")
    value = cmd.read_reply([b"hello", None, err, [b"n", 3]])
    assert value == ["hello", None, err, ["n", 3]]


def test_slice_cmd_rejects_non_array():
    cmd = SliceCmd("config", "get", "x")
    with pytest.raises(ValueError):
        cmd.read_reply(b"text")
    assert isinstance(cmd.err(), ValueError)


def test_scan_args():
    c, server = client(["0", []])
    c.scan(0, "k*", 10)
    c.scan(0, "", 0)
    c.sscan("s", 5, "", 3)
    c.hscan("h", 1, "f*", 0)
    c.zscan("z", 2, "", 0)
    assert server.sent == [
        ["scan", 0, "match", "k*", "count", 10],
        ["scan", 0],
        ["sscan", "s", 5, "count", 3],
        ["hscan", "h", 1, "match", "f*"],
        ["zscan", "z", 2],
    ]


def test_scan_reply():
    c, server = client([b"17", [b"a", b"b"]])
    cmd = c.scan(0, "", 0)
    assert cmd.result() == (["a", "b"], 17)
    assert cmd.page == ["a", "b"]
    assert cmd.cursor == 17
    assert cmd.process is server


def test_scan_reply_wrong_length():
    cmd = ScanCmd(lambda cmd: None, "scan", 0)
    with pytest.raises(ValueError):
        cmd.read_reply(["0"])
    assert cmd.page == []
    assert cmd.cursor == 0


def test_sort_args():
    sort = Sort(by="w_*", offset=0, count=10, get=["a", "b"], order="DESC", alpha=True)
    assert sort.args("k") == [
        "sort", "k", "by", "w_*", "limit", 0, 10, "get", "a", "get", "b", "DESC", "alpha",
    ]
    assert Sort().args("k") == ["sort", "k"]


def test_sort_store_and_interfaces():
    c, server = client(3)
    assert c.sort_store("k", "dst", Sort(order="ASC")).result() == 3
    assert server.sent == [["sort", "k", "ASC", "store", "dst"]]
    c, server = client([b"1", None])
    assert c.sort_interfaces("k", Sort()).result() == ["1", None]
    c, server = client([b"1"])
    assert c.sort("k", Sort(alpha=True)).result() == ["1"]
    assert server.sent == [["sort", "k", "alpha"]]


def test_rename_and_restore():
    c, server = client("OK")
    c.rename("a", "b")
    c.restore("k", timedelta(0), "data")
    c.restore_replace("k", timedelta(0), "data")
    assert server.sent == [
        ["rename", "a", "b"],
        ["restore", "k", 0, "data"],
        ["restore", "k", 0, "data", "replace"],
    ]


def test_type_status():
    c, _ = client("string")
    assert c.type("k").result() == "string"


def test_commands_info_reply():
    c, _ = client([
        [b"get", 2, [b"readonly", b"fast"], 1, 1, 1],
        [b"set", -3, [b"write", b"denyoom"], 1, 1, 1],
    ])
    info = c.command().result()
    assert info["get"] == CommandInfo(
        name="get", arity=2, flags=["readonly", "fast"],
        first_key_pos=1, last_key_pos=1, step_count=1, read_only=True,
    )
    assert info["set"].arity == -3
    assert info["set"].read_only is False


def test_commands_info_wrong_element_count():
    cmd = CommandsInfoCmd("command")
    with pytest.raises(ValueError):
        cmd.read_reply([[b"get", 2, []]])
    assert cmd.err() is not None and isinstance(cmd.err(), ValueError)


def test_commands_info_cache_loads_once():
    calls = []

    def load():
        calls.append(1)
        return {"get": CommandInfo(name="get")}

    cache = CommandsInfoCache(load)
    assert cache.get() == {"get": CommandInfo(name="get")}
    assert cache.get() == {"get": CommandInfo(name="get")}
    assert len(calls) == 1


def test_commands_info_cache_retries_after_error():
    attempts = []

    def load():
        attempts.append(1)
        if len(attempts) == 1:
            raise RedisError("ERR down")
        return {}

    cache = CommandsInfoCache(load)
    with pytest.raises(RedisError):
        cache.get()
    assert cache.get() == {}
    assert len(attempts) == 2