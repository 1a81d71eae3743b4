"""String and hash commands and the reply types they use."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

from .base import (
    BaseCmd,
    BaseCommands,
    BoolCmd,
    FloatCmd,
    IntCmd,
    StatusCmd,
    StringCmd,
    _read_int,
    _read_string,
    append_args,
    format_ms,
    format_sec,
    use_precise,
)
from .keys import SliceCmd, StringSliceCmd, _read_array

_NO_EXPIRATION = timedelta(0)


# ---------------------------------------------------------------------------
# Reply types


class IntSliceCmd(BaseCmd):
    """A command answered with an array of integers."""

    def read_reply(self, reply: Any) -> list[int]:
        return self._apply(lambda r: [_read_int(item) for item in _read_array(r)], reply)


def _parse_string_map(reply: Any) -> dict[str, str]:
    items = _read_array(reply)
    if len(items) % 2:
        raise ValueError(f"redis: got {len(items)} elements in map reply, wanted an even number")
    pairs = iter(items)
    return {_read_string(key): _read_string(value) for key, value in zip(pairs, pairs)}


class StringStringMapCmd(BaseCmd):
    """A command answered with alternating field names and string values."""

    def read_reply(self, reply: Any) -> dict[str, str]:
        return self._apply(_parse_string_map, reply)


@dataclass
class BitCount:
    """Byte range given to BITCOUNT."""

    start: int = 0
    end: int = 0


# ---------------------------------------------------------------------------
# Commands


def _with_expiration(head: list[Any], expiration: timedelta) -> list[Any]:
    if use_precise(expiration):
        return [*head, "px", format_ms(expiration)]
    return [*head, "ex", format_sec(expiration)]


class StringCommands(BaseCommands):
    """Commands on string values and bitmaps."""

    def append(self, key: str, value: str) -> IntCmd:
        return self._run(IntCmd("append", key, value))

    def bit_count(self, key: str, bit_count: BitCount | None = None) -> IntCmd:
        args: list[Any] = ["bitcount", key]
        if bit_count is not None:
            args += [bit_count.start, bit_count.end]
        return self._run(IntCmd(*args))

    def _bit_op(self, op: str, dest_key: str, *keys: str) -> IntCmd:
        return self._run(IntCmd("bitop", op, dest_key, *keys))

    def bit_op_and(self, dest_key: str, *keys: str) -> IntCmd:
        return self._bit_op("and", dest_key, *keys)

    def bit_op_or(self, dest_key: str, *keys: str) -> IntCmd:
        return self._bit_op("or", dest_key, *keys)

    def bit_op_xor(self, dest_key: str, *keys: str) -> IntCmd:
        return self._bit_op("xor", dest_key, *keys)

    def bit_op_not(self, dest_key: str, key: str) -> IntCmd:
        return self._bit_op("not", dest_key, key)

    def bit_pos(self, key: str, bit: int, *pos: int) -> IntCmd:
        """BITPOS with an optional start and end byte."""
        if len(pos) > 2:
            raise ValueError("too many arguments")
        return self._run(IntCmd("bitpos", key, bit, *pos))

    def bit_field(self, key: str, *args: Any) -> IntSliceCmd:
        return self._run(IntSliceCmd("bitfield", key, *args))

    def decr(self, key: str) -> IntCmd:
        return self._run(IntCmd("decr", key))

    def decr_by(self, key: str, decrement: int) -> IntCmd:
        return self._run(IntCmd("decrby", key, decrement))

    def get(self, key: str) -> StringCmd:
        """GET; the command carries a NilError when the key does not exist."""
        return self._run(StringCmd("get", key))

    def get_bit(self, key: str, offset: int) -> IntCmd:
        return self._run(IntCmd("getbit", key, offset))

    def get_range(self, key: str, start: int, end: int) -> StringCmd:
        return self._run(StringCmd("getrange", key, start, end))

    def get_set(self, key: str, value: Any) -> StringCmd:
        return self._run(StringCmd("getset", key, value))

    def incr(self, key: str) -> IntCmd:
        return self._run(IntCmd("incr", key))

    def incr_by(self, key: str, value: int) -> IntCmd:
        return self._run(IntCmd("incrby", key, value))

    def incr_by_float(self, key: str, value: float) -> FloatCmd:
        return self._run(FloatCmd("incrbyfloat", key, value))

    def mget(self, *keys: str) -> SliceCmd:
        return self._run(SliceCmd("mget", *keys))

    def mset(self, *pairs: Any) -> StatusCmd:
        return self._run(StatusCmd(*append_args(["mset"], pairs)))

    def msetnx(self, *pairs: Any) -> BoolCmd:
        return self._run(BoolCmd(*append_args(["msetnx"], pairs)))

    def set(self, key: str, value: Any, expiration: timedelta = _NO_EXPIRATION) -> StatusCmd:
        """SET; a zero expiration means the key does not expire."""
        args: list[Any] = ["set", key, value]
        if expiration > _NO_EXPIRATION:
            args = _with_expiration(args, expiration)
        return self._run(StatusCmd(*args))

    def set_bit(self, key: str, offset: int, value: int) -> IntCmd:
        return self._run(IntCmd("setbit", key, offset, value))

    def setnx(self, key: str, value: Any, expiration: timedelta = _NO_EXPIRATION) -> BoolCmd:
        """SET ... NX; without expiration the older SETNX is sent."""
        if expiration == _NO_EXPIRATION:
            return self._run(BoolCmd("setnx", key, value))
        args = _with_expiration(["set", key, value], expiration)
        return self._run(BoolCmd(*args, "nx"))

    def setxx(self, key: str, value: Any, expiration: timedelta = _NO_EXPIRATION) -> BoolCmd:
        """SET ... XX; a zero expiration means the key does not expire."""
        if expiration == _NO_EXPIRATION:
            return self._run(BoolCmd("set", key, value, "xx"))
        args = _with_expiration(["set", key, value], expiration)
        return self._run(BoolCmd(*args, "xx"))

    def set_range(self, key: str, offset: int, value: str) -> IntCmd:
        return self._run(IntCmd("setrange", key, offset, value))

    def str_len(self, key: str) -> IntCmd:
        return self._run(IntCmd("strlen", key))


class HashCommands(BaseCommands):
    """Commands on hash values."""

    def hdel(self, key: str, *fields: str) -> IntCmd:
        return self._run(IntCmd("hdel", key, *fields))

    def hexists(self, key: str, field: str) -> BoolCmd:
        return self._run(BoolCmd("hexists", key, field))

    def hget(self, key: str, field: str) -> StringCmd:
        return self._run(StringCmd("hget", key, field))

    def hgetall(self, key: str) -> StringStringMapCmd:
        return self._run(StringStringMapCmd("hgetall", key))

    def hincrby(self, key: str, field: str, incr: int) -> IntCmd:
        return self._run(IntCmd("hincrby", key, field, incr))

    def hincrbyfloat(self, key: str, field: str, incr: float) -> FloatCmd:
        return self._run(FloatCmd("hincrbyfloat", key, field, incr))

    def hkeys(self, key: str) -> StringSliceCmd:
        return self._run(StringSliceCmd("hkeys", key))

    def hlen(self, key: str) -> IntCmd:
        return self._run(IntCmd("hlen", key))

    def hmget(self, key: str, *fields: str) -> SliceCmd:
        return self._run(SliceCmd("hmget", key, *fields))

    def hmset(self, key: str, fields: Mapping[str, Any]) -> StatusCmd:
        args: list[Any] = ["hmset", key]
        for name, value in fields.items():
            args += [name, value]
        return self._run(StatusCmd(*args))

    def hset(self, key: str, field: str, value: Any) -> BoolCmd:
        return self._run(BoolCmd("hset", key, field, value))

    def hsetnx(self, key: str, field: str, value: Any) -> BoolCmd:
        return self._run(BoolCmd("hsetnx", key, field, value))

    def hvals(self, key: str) -> StringSliceCmd:
        return self._run(StringSliceCmd("hvals", key))


__all__ = [
    "IntSliceCmd",
    "StringStringMapCmd",
    "BitCount",
    "StringCommands",
    "HashCommands",
]