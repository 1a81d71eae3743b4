"""Generic key commands and the reply types they use.

Covers array, string-list, duration, scan and COMMAND replies, the SORT
options and the command set that works on keys of any type.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from .base import (
    MILLISECOND,
    SECOND,
    BaseCmd,
    BaseCommands,
    BoolCmd,
    IntCmd,
    NilError,
    RedisError,
    StatusCmd,
    StringCmd,
    _parse_uint,
    _raise_if_error,
    _read_element,
    _read_int,
    _read_string,
    _trunc_div,
    cmd_string,
    format_ms,
    format_sec,
)

KEY_MISSING = timedelta(microseconds=-2)
"""Duration reported by TTL-like commands when the key does not exist."""

NO_EXPIRATION = timedelta(microseconds=-1)
"""Duration reported by TTL-like commands when the key has no expire."""

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _read_array(reply: Any) -> list[Any]:
    _raise_if_error(reply)
    if not isinstance(reply, (list, tuple)):
        raise ValueError(f"redis: can't parse array reply: {reply!r:.100}")
    return list(reply)


def _int8(value: int) -> int:
    return ((value + 128) % 256) - 128


def _since_epoch(tm: datetime) -> timedelta:
    if tm.tzinfo is None:
        tm = tm.astimezone()
    return tm - _EPOCH


# ---------------------------------------------------------------------------
# Reply types


class SliceCmd(BaseCmd):
    """A command answered with an array of values of any type.

    Nil items become ``None`` and error items are kept as :class:`RedisError`.
    """

    def read_reply(self, reply: Any) -> list[Any]:
        return self._apply(
            lambda r: [_read_element(item) for item in _read_array(r)], reply
        )


def _read_string_or_empty(reply: Any) -> str:
    if reply is None:
        return ""
    return _read_string(reply)


class StringSliceCmd(BaseCmd):
    """A command answered with an array of strings; nil items become ``""``."""

    def read_reply(self, reply: Any) -> list[str]:
        return self._apply(
            lambda r: [_read_string_or_empty(item) for item in _read_array(r)], reply
        )


class DurationCmd(BaseCmd):
    """A command answered with an integer count of ``precision`` units.

    The replies -2 and -1 are kept as :data:`KEY_MISSING` and
    :data:`NO_EXPIRATION`.
    """

    _default = timedelta(0)

    def __init__(self, precision: timedelta, *args: Any) -> None:
        super().__init__(*args)
        self.precision = precision

    def _parse(self, reply: Any) -> timedelta:
        n = _read_int(reply)
        if n == -2:
            return KEY_MISSING
        if n == -1:
            return NO_EXPIRATION
        return n * self.precision

    def read_reply(self, reply: Any) -> timedelta:
        return self._apply(self._parse, reply)


def _parse_scan(reply: Any) -> tuple[list[str], int]:
    items = _read_array(reply)
    if len(items) != 2:
        raise ValueError(f"redis: got {len(items)} elements in scan reply, expected 2")
    cursor = _parse_uint(_read_string(items[0]))
    keys = [_read_string(key) for key in _read_array(items[1])]
    return keys, cursor


class ScanCmd(BaseCmd):
    """A SCAN-family command; its value is ``(keys, cursor)``."""

    def __init__(self, process: Callable[[BaseCmd], Any], *args: Any) -> None:
        super().__init__(*args)
        self.process = process
        self._val = ([], 0)

    @property
    def page(self) -> list[str]:
        return self._val[0]

    @property
    def cursor(self) -> int:
        return self._val[1]

    def read_reply(self, reply: Any) -> tuple[list[str], int]:
        try:
            value = _parse_scan(reply)
        except (RedisError, ValueError) as exc:
            self._val = ([], 0)
            self._err = exc
            raise
        self._val = value
        self._err = None
        return value

    def __str__(self) -> str:
        return cmd_string(self, self.page)


@dataclass
class CommandInfo:
    """What the server reports about one command."""

    name: str = ""
    arity: int = 0
    flags: list[str] = field(default_factory=list)
    first_key_pos: int = 0
    last_key_pos: int = 0
    step_count: int = 0
    read_only: bool = False


def _read_flags(reply: Any) -> list[str]:
    if isinstance(reply, (list, tuple)):
        return [_read_string_or_empty(item) for item in reply]
    _raise_if_error(reply)
    return []


def _parse_command_info(reply: Any) -> CommandInfo:
    items = _read_array(reply)
    if len(items) != 6:
        raise ValueError(
            f"redis: got {len(items)} elements in COMMAND reply, wanted 6"
        )
    name = _read_string(items[0])
    arity = _int8(_read_int(items[1]))
    flags = _read_flags(items[2])
    return CommandInfo(
        name=name,
        arity=arity,
        flags=flags,
        first_key_pos=_int8(_read_int(items[3])),
        last_key_pos=_int8(_read_int(items[4])),
        step_count=_int8(_read_int(items[5])),
        read_only="readonly" in flags,
    )


class CommandsInfoCmd(BaseCmd):
    """The COMMAND command; its value maps names to :class:`CommandInfo`."""

    def _parse(self, reply: Any) -> dict[str, CommandInfo]:
        infos = (_parse_command_info(item) for item in _read_array(reply))
        return {info.name: info for info in infos}

    def read_reply(self, reply: Any) -> dict[str, CommandInfo]:
        return self._apply(self._parse, reply)


class CommandsInfoCache:
    """Loads command information once; a failed load is tried again."""

    def __init__(self, fn: Callable[[], dict[str, CommandInfo]]) -> None:
        self._fn = fn
        self._lock = threading.Lock()
        self._done = False
        self._cmds: dict[str, CommandInfo] | None = None

    def get(self) -> dict[str, CommandInfo] | None:
        if self._done:
            return self._cmds
        with self._lock:
            if not self._done:
                self._cmds = self._fn()
                self._done = True
        return self._cmds


@dataclass
class Sort:
    """Options of the SORT command."""

    by: str = ""
    offset: int = 0
    count: int = 0
    get: list[str] = field(default_factory=list)
    order: str = ""
    alpha: bool = False

    def args(self, key: str) -> list[Any]:
        args: list[Any] = ["sort", key]
        if self.by:
            args += ["by", self.by]
        if self.offset != 0 or self.count != 0:
            args += ["limit", self.offset, self.count]
        for pattern in self.get:
            args += ["get", pattern]
        if self.order:
            args.append(self.order)
        if self.alpha:
            args.append("alpha")
        return args


# ---------------------------------------------------------------------------
# Commands


class KeyCommands(BaseCommands):
    """Commands that work on keys of any type."""

    def command(self) -> CommandsInfoCmd:
        return self._run(CommandsInfoCmd("command"))

    def delete(self, *keys: str) -> IntCmd:
        return self._run(IntCmd("del", *keys))

    def unlink(self, *keys: str) -> IntCmd:
        return self._run(IntCmd("unlink", *keys))

    def dump(self, key: str) -> StringCmd:
        return self._run(StringCmd("dump", key))

    def exists(self, *keys: str) -> IntCmd:
        return self._run(IntCmd("exists", *keys))

    def expire(self, key: str, expiration: timedelta) -> BoolCmd:
        return self._run(BoolCmd("expire", key, format_sec(expiration)))

    def expire_at(self, key: str, tm: datetime) -> BoolCmd:
        return self._run(BoolCmd("expireat", key, _since_epoch(tm) // SECOND))

    def keys(self, pattern: str) -> StringSliceCmd:
        return self._run(StringSliceCmd("keys", pattern))

    def migrate(
        self, host: str, port: str, key: str, db: int, timeout: timedelta
    ) -> StatusCmd:
        cmd = StatusCmd("migrate", host, port, key, db, format_ms(timeout))
        cmd.set_read_timeout(timeout)
        return self._run(cmd)

    def move(self, key: str, db: int) -> BoolCmd:
        return self._run(BoolCmd("move", key, db))

    def object_ref_count(self, key: str) -> IntCmd:
        return self._run(IntCmd("object", "refcount", key))

    def object_encoding(self, key: str) -> StringCmd:
        return self._run(StringCmd("object", "encoding", key))

    def object_idle_time(self, key: str) -> DurationCmd:
        return self._run(DurationCmd(SECOND, "object", "idletime", key))

    def persist(self, key: str) -> BoolCmd:
        return self._run(BoolCmd("persist", key))

    def pexpire(self, key: str, expiration: timedelta) -> BoolCmd:
        return self._run(BoolCmd("pexpire", key, format_ms(expiration)))

    def pexpire_at(self, key: str, tm: datetime) -> BoolCmd:
        millis = _trunc_div(_since_epoch(tm), MILLISECOND)
        return self._run(BoolCmd("pexpireat", key, millis))

    def pttl(self, key: str) -> DurationCmd:
        return self._run(DurationCmd(MILLISECOND, "pttl", key))

    def random_key(self) -> StringCmd:
        return self._run(StringCmd("randomkey"))

    def rename(self, key: str, newkey: str) -> StatusCmd:
        return self._run(StatusCmd("rename", key, newkey))

    def rename_nx(self, key: str, newkey: str) -> BoolCmd:
        return self._run(BoolCmd("renamenx", key, newkey))

    def restore(self, key: str, ttl: timedelta, value: str) -> StatusCmd:
        return self._run(StatusCmd("restore", key, format_ms(ttl), value))

    def restore_replace(self, key: str, ttl: timedelta, value: str) -> StatusCmd:
        return self._run(StatusCmd("restore", key, format_ms(ttl), value, "replace"))

    def sort(self, key: str, sort: Sort) -> StringSliceCmd:
        return self._run(StringSliceCmd(*sort.args(key)))

    def sort_store(self, key: str, store: str, sort: Sort) -> IntCmd:
        args = sort.args(key)
        if store:
            args += ["store", store]
        return self._run(IntCmd(*args))

    def sort_interfaces(self, key: str, sort: Sort) -> SliceCmd:
        return self._run(SliceCmd(*sort.args(key)))

    def touch(self, *keys: str) -> IntCmd:
        return self._run(IntCmd("touch", *keys))

    def ttl(self, key: str) -> DurationCmd:
        return self._run(DurationCmd(SECOND, "ttl", key))

    def type(self, key: str) -> StatusCmd:
        return self._run(StatusCmd("type", key))

    def _scan(self, head: list[Any], match: str, count: int) -> ScanCmd:
        args = list(head)
        if match:
            args += ["match", match]
        if count > 0:
            args += ["count", count]
        return self._run(ScanCmd(self._process, *args))

    def scan(self, cursor: int, match: str, count: int) -> ScanCmd:
        return self._scan(["scan", cursor], match, count)

    def sscan(self, key: str, cursor: int, match: str, count: int) -> ScanCmd:
        return self._scan(["sscan", key, cursor], match, count)

    def hscan(self, key: str, cursor: int, match: str, count: int) -> ScanCmd:
        return self._scan(["hscan", key, cursor], match, count)

    def zscan(self, key: str, cursor: int, match: str, count: int) -> ScanCmd:
        return self._scan(["zscan", key, cursor], match, count)


__all__ = [
    "KEY_MISSING",
    "NO_EXPIRATION",
    "SliceCmd",
    "StringSliceCmd",
    "DurationCmd",
    "ScanCmd",
    "CommandInfo",
    "CommandsInfoCmd",
    "CommandsInfoCache",
    "Sort",
    "KeyCommands",
    "NilError",
]