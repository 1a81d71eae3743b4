"""Command objects, reply decoding and the basic command set.

Replies are handed to ``read_reply`` already decoded: ``str`` or ``bytes``
for status and bulk strings, ``int`` for integers, ``list`` for arrays,
``None`` for a nil reply and a :class:`RedisError` instance for an error
reply.  Durations are :class:`datetime.timedelta` values.
"""

from __future__ import annotations

import logging
import math
import re
import struct
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Iterable, Sequence

logger = logging.getLogger(__name__)

SECOND = timedelta(seconds=1)
MILLISECOND = timedelta(milliseconds=1)
_MICROSECOND = timedelta(microseconds=1)

_ASCII_LOWER = str.maketrans("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz")
_INT_RE = re.compile(r"[+-]?[0-9]+\Z")
_UINT_RE = re.compile(r"[0-9]+\Z")
_RFC3339_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})\Z"
)
_SPECIAL_FLOATS = {
    "inf", "+inf", "-inf", "infinity", "+infinity", "-infinity", "nan",
}
_BOOL_WORDS = {
    "1": True, "t": True, "T": True, "TRUE": True, "true": True, "True": True,
    "0": False, "f": False, "F": False, "FALSE": False, "false": False, "False": False,
}


class RedisError(Exception):
    """An error reply sent by the server."""


class NilError(RedisError):
    """The reply was nil: the key or value does not exist."""

    def __init__(self, message: str = "redis: nil") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Value formatting


def _format_float(x: float) -> str:
    if math.isnan(x):
        return "NaN"
    if math.isinf(x):
        return "+Inf" if x > 0 else "-Inf"
    if x == 0:
        return "-0" if math.copysign(1.0, x) < 0 else "0"
    sign, digit_tuple, exponent = Decimal(repr(x)).normalize().as_tuple()
    digits = "".join(map(str, digit_tuple))
    nd = len(digits)
    dp = nd + exponent
    exp = dp - 1
    eprec = 6
    if eprec > nd and nd >= dp:
        eprec = nd
    prefix = "-" if sign else ""
    if exp < -4 or exp >= eprec:
        mantissa = digits[0] + ("." + digits[1:] if nd > 1 else "")
        return f"{prefix}{mantissa}e{'-' if exp < 0 else '+'}{abs(exp):02d}"
    if dp <= 0:
        return f"{prefix}0.{'0' * -dp}{digits}"
    if dp >= nd:
        return prefix + digits + "0" * (dp - nd)
    return prefix + digits[:dp] + "." + digits[dp:]


def _format_value(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, (bytes, bytearray)):
        return "[" + " ".join(str(b) for b in value) + "]"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_format_value(v) for v in value) + "]"
    if isinstance(value, dict):
        items = sorted((_format_value(k), _format_value(v)) for k, v in value.items())
        return "map[" + " ".join(f"{k}:{v}" for k, v in items) + "]"
    return str(value)


def _decode(data: bytes | bytearray) -> str:
    return bytes(data).decode("utf-8", "surrogateescape")


def _type_name(value: Any) -> str:
    return type(value).__name__


# ---------------------------------------------------------------------------
# Number and time parsing


def _parse_int(text: str) -> int:
    if not _INT_RE.match(text):
        raise ValueError(f"invalid integer: {text!r}")
    value = int(text)
    if not -(2**63) <= value < 2**63:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _parse_uint(text: str) -> int:
    if not _UINT_RE.match(text):
        raise ValueError(f"invalid unsigned integer: {text!r}")
    value = int(text)
    if value >= 2**64:
        raise ValueError(f"unsigned integer out of range: {text!r}")
    return value


def _parse_float(text: str) -> float:
    lowered = text.lower()
    if lowered in _SPECIAL_FLOATS:
        return float(lowered)
    if not text or text != text.strip() or "_" in text:
        raise ValueError(f"invalid float: {text!r}")
    try:
        if "0x" in lowered:
            if "p" not in lowered:
                raise ValueError(f"invalid float: {text!r}")
            value = float.fromhex(text)
        else:
            value = float(text)
    except (ValueError, OverflowError):
        raise ValueError(f"invalid float: {text!r}") from None
    if math.isinf(value):
        raise ValueError(f"float out of range: {text!r}")
    return value


def _round_float32(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _parse_float32(text: str) -> float:
    value = _parse_float(text)
    if math.isinf(value) or math.isnan(value):
        return value
    rounded = _round_float32(value)
    if math.isinf(rounded):
        raise ValueError(f"float out of range: {text!r}")
    return rounded


def _parse_bool(text: str) -> bool:
    try:
        return _BOOL_WORDS[text]
    except KeyError:
        raise ValueError(f"invalid boolean: {text!r}") from None


def _parse_rfc3339(text: str) -> datetime:
    match = _RFC3339_RE.match(text)
    if not match:
        raise ValueError(f"cannot parse {text!r} as RFC 3339 time")
    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    micro = int(((match.group(7) or "") + "000000")[:6])
    zone = match.group(8)
    try:
        if zone == "Z":
            tz = timezone.utc
        else:
            sign = -1 if zone[0] == "-" else 1
            tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
        return datetime(year, month, day, hour, minute, second, micro, tzinfo=tz)
    except ValueError as exc:
        raise ValueError(f"cannot parse {text!r} as RFC 3339 time") from exc


# ---------------------------------------------------------------------------
# Reply readers


def _raise_if_error(reply: Any) -> None:
    if isinstance(reply, RedisError):
        raise reply
    if reply is None:
        raise NilError()


def _read_string(reply: Any) -> str:
    _raise_if_error(reply)
    if isinstance(reply, (bytes, bytearray)):
        return _decode(reply)
    if isinstance(reply, str):
        return reply
    if isinstance(reply, int) and not isinstance(reply, bool):
        return str(reply)
    raise ValueError(f"redis: can't parse reply={reply!r:.100} reading string")


def _read_int(reply: Any) -> int:
    _raise_if_error(reply)
    if isinstance(reply, int) and not isinstance(reply, bool):
        return reply
    raise ValueError(f"redis: can't parse int reply: {reply!r:.100}")


def _read_float(reply: Any) -> float:
    return _parse_float(_read_string(reply))


def _read_element(reply: Any) -> Any:
    if reply is None or isinstance(reply, RedisError):
        return reply
    return _read_any(reply)


def _read_any(reply: Any) -> Any:
    _raise_if_error(reply)
    if isinstance(reply, (bytes, bytearray)):
        return _decode(reply)
    if isinstance(reply, (list, tuple)):
        return [_read_element(item) for item in reply]
    if isinstance(reply, str) or (isinstance(reply, int) and not isinstance(reply, bool)):
        return reply
    raise ValueError(f"redis: can't parse reply={reply!r:.100}")


def _read_bool(reply: Any) -> bool:
    # SET ... NX answers nil when the key exists, SETNX answers 0/1.
    if reply is None:
        return False
    if isinstance(reply, RedisError):
        raise reply
    if isinstance(reply, int) and not isinstance(reply, bool):
        return reply == 1
    if isinstance(reply, (str, bytes, bytearray)):
        text = _decode(reply) if isinstance(reply, (bytes, bytearray)) else reply
        return text == "OK"
    if isinstance(reply, (list, tuple)):
        raise ValueError(f"redis: got {reply!r:.100}, but multi bulk parser is nil")
    raise ValueError(f"got {_type_name(reply)}, wanted int64 or string")


# ---------------------------------------------------------------------------
# Commands


class BaseCmd:
    """A command with its arguments, its decoded value and its error."""

    _default: Any = None

    def __init__(self, *args: Any) -> None:
        self._args: list[Any] = list(args)
        self._err: BaseException | None = None
        self._read_timeout: timedelta | None = None
        self._val: Any = self._default

    def name(self) -> str:
        """The lower-cased command name; the first argument is normalised too."""
        if not self._args:
            return ""
        lowered = self.string_arg(0).translate(_ASCII_LOWER)
        self._args[0] = lowered
        return lowered

    def args(self) -> list[Any]:
        return self._args

    def string_arg(self, pos: int) -> str:
        """The argument at ``pos`` if it is a string, otherwise ``""``."""
        if 0 <= pos < len(self._args):
            arg = self._args[pos]
            return arg if isinstance(arg, str) else ""
        return ""

    def err(self) -> BaseException | None:
        return self._err

    def set_err(self, err: BaseException | None) -> None:
        self._err = err

    def read_timeout(self) -> timedelta | None:
        return self._read_timeout

    def set_read_timeout(self, timeout: timedelta) -> None:
        self._read_timeout = timeout

    @property
    def val(self) -> Any:
        return self._val

    def result(self) -> Any:
        """The value, or the recorded error raised."""
        if self._err is not None:
            raise self._err
        return self._val

    def _apply(self, parse: Callable[[Any], Any], reply: Any) -> Any:
        try:
            value = parse(reply)
        except (RedisError, ValueError) as exc:
            self._val = self._default
            self._err = exc
            raise
        self._val = value
        self._err = None
        return value

    def read_reply(self, reply: Any) -> Any:
        """Store a reply of any shape."""
        return self._apply(_read_any, reply)

    def __str__(self) -> str:
        return cmd_string(self, self._val)


class Cmd(BaseCmd):
    """A command whose reply may be of any type."""

    def read_reply(self, reply: Any) -> Any:
        """Store a reply; nil and error items inside arrays are kept as-is."""
        return self._apply(_read_any, reply)

    def _checked(self) -> Any:
        if self._err is not None:
            raise self._err
        return self._val

    def to_str(self) -> str:
        val = self._checked()
        if isinstance(val, str):
            return val
        raise TypeError(f"redis: unexpected type={_type_name(val)} for String")

    def to_int(self) -> int:
        val = self._checked()
        if isinstance(val, int) and not isinstance(val, bool):
            return val
        if isinstance(val, str):
            return _parse_int(val)
        raise TypeError(f"redis: unexpected type={_type_name(val)} for Int")

    def to_uint64(self) -> int:
        val = self._checked()
        if isinstance(val, int) and not isinstance(val, bool):
            return val % 2**64
        if isinstance(val, str):
            return _parse_uint(val)
        raise TypeError(f"redis: unexpected type={_type_name(val)} for Uint64")

    def to_float32(self) -> float:
        val = self._checked()
        if isinstance(val, int) and not isinstance(val, bool):
            return _round_float32(float(val))
        if isinstance(val, str):
            return _parse_float32(val)
        raise TypeError(f"redis: unexpected type={_type_name(val)} for Float32")

    def to_float(self) -> float:
        val = self._checked()
        if isinstance(val, int) and not isinstance(val, bool):
            return float(val)
        if isinstance(val, str):
            return _parse_float(val)
        raise TypeError(f"redis: unexpected type={_type_name(val)} for Float64")

    def to_bool(self) -> bool:
        val = self._checked()
        if isinstance(val, int) and not isinstance(val, bool):
            return val != 0
        if isinstance(val, str):
            return _parse_bool(val)
        raise TypeError(f"redis: unexpected type={_type_name(val)} for Bool")


class StatusCmd(BaseCmd):
    """A command answered with a status string."""

    _default = ""

    def read_reply(self, reply: Any) -> str:
        return self._apply(_read_string, reply)


class IntCmd(BaseCmd):
    """A command answered with an integer."""

    _default = 0

    def read_reply(self, reply: Any) -> int:
        return self._apply(_read_int, reply)


class BoolCmd(BaseCmd):
    """A command answered with 0/1, OK or nil, read as a boolean."""

    _default = False

    def read_reply(self, reply: Any) -> bool:
        return self._apply(_read_bool, reply)


class FloatCmd(BaseCmd):
    """A command answered with a float encoded as a string."""

    _default = 0.0

    def read_reply(self, reply: Any) -> float:
        return self._apply(_read_float, reply)


class StringCmd(BaseCmd):
    """A command answered with a bulk string."""

    _default = ""

    def read_reply(self, reply: Any) -> str:
        return self._apply(_read_string, reply)

    def _checked(self) -> str:
        if self._err is not None:
            raise self._err
        return self._val

    def to_bytes(self) -> bytes:
        return self._checked().encode("utf-8", "surrogateescape")

    def to_int(self) -> int:
        return _parse_int(self._checked())

    def to_uint64(self) -> int:
        return _parse_uint(self._checked())

    def to_float32(self) -> float:
        return _parse_float32(self._checked())

    def to_float(self) -> float:
        return _parse_float(self._checked())

    def to_time(self) -> datetime:
        return _parse_rfc3339(self._checked())


# ---------------------------------------------------------------------------
# Helpers shared by command sets


def set_cmds_err(cmds: Iterable[BaseCmd], err: BaseException) -> None:
    """Record ``err`` on every command that has no error yet."""
    for cmd in cmds:
        if cmd.err() is None:
            cmd.set_err(err)


def cmds_first_err(cmds: Iterable[BaseCmd]) -> BaseException | None:
    """The first error recorded on any of the commands."""
    return next((cmd.err() for cmd in cmds if cmd.err() is not None), None)


def cmd_string(cmd: BaseCmd, val: Any) -> str:
    """Render a command with its error or value."""
    text = " ".join(_format_value(arg) for arg in cmd.args())
    err = cmd.err()
    if err is not None:
        return f"{text}: {err}"
    if val is not None:
        if isinstance(val, (bytes, bytearray)):
            return f"{text}: {_decode(val)}"
        return f"{text}: {_format_value(val)}"
    return text


def cmd_first_key_pos(cmd: BaseCmd, info: Any) -> int:
    """Position of the first key argument, 0 when unknown."""
    name = cmd.name()
    if name in ("eval", "evalsha"):
        return 3 if cmd.string_arg(2) != "0" else 0
    if name == "publish":
        return 1
    if info is None:
        return 0
    return int(info.first_key_pos)


def _trunc_div(dur: timedelta, unit: timedelta) -> int:
    num = dur // _MICROSECOND
    den = unit // _MICROSECOND
    quotient = abs(num) // den
    return -quotient if num < 0 else quotient


def use_precise(dur: timedelta) -> bool:
    """Whether the duration needs millisecond precision."""
    return dur < SECOND or dur % SECOND != timedelta(0)


def format_ms(dur: timedelta) -> int:
    """Whole milliseconds in ``dur``, truncated toward zero."""
    if timedelta(0) < dur < MILLISECOND:
        logger.warning(
            "specified duration is %s, but minimal supported value is %s", dur, MILLISECOND
        )
    return _trunc_div(dur, MILLISECOND)


def format_sec(dur: timedelta) -> int:
    """Whole seconds in ``dur``, truncated toward zero."""
    if timedelta(0) < dur < SECOND:
        logger.warning(
            "specified duration is %s, but minimal supported value is %s", dur, SECOND
        )
    return _trunc_div(dur, SECOND)


def append_args(dst: Sequence[Any], src: Sequence[Any]) -> list[Any]:
    """``dst`` followed by ``src``; a single list of strings is spread out."""
    if len(src) == 1:
        only = src[0]
        if isinstance(only, (list, tuple)) and all(isinstance(s, str) for s in only):
            return [*dst, *only]
    return [*dst, *src]


class BaseCommands:
    """Builds commands and hands each one to ``process``.

    ``process`` sends the command and feeds its reply to ``read_reply``.
    Anything it raises is recorded on the command, which is returned.
    """

    def __init__(self, process: Callable[[BaseCmd], Any]) -> None:
        self._process = process

    def _run(self, cmd: BaseCmd) -> BaseCmd:
        try:
            self._process(cmd)
        except Exception as exc:  # the command carries its own error
            if cmd.err() is None:
                cmd.set_err(exc)
        return cmd

    def echo(self, message: Any) -> StringCmd:
        return self._run(StringCmd("echo", message))

    def ping(self) -> StatusCmd:
        return self._run(StatusCmd("ping"))

    def wait(self, num_slaves: int, timeout: timedelta) -> IntCmd:
        return self._run(IntCmd("wait", num_slaves, _trunc_div(timeout, MILLISECOND)))