# rediscmd

`rediscmd` describes Redis commands as Python objects. Each command knows its
arguments, turns the server's reply into a Python value, and keeps any error
that came back. The command builders never open a socket: you give them a
`process` callable that sends a command somewhere (a connection, a pipeline,
a test double) and hands the reply to the command's `read_reply`.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Replies

`read_reply` takes a reply that is already decoded from the wire:

- `str` or `bytes` for status and bulk strings,
- `int` for integers,
- `list` for arrays,
- `None` for a nil reply,
- a `RedisError` instance for an error reply.

Durations, both given and returned, are `datetime.timedelta` values.

## Command objects

Every command derives from `rediscmd.base.BaseCmd`. It holds its arguments
(`args()`, `name()`), its value (`val`, `result()`) and its error (`err()`):

```python
from rediscmd.base import StringCmd, NilError

cmd = StringCmd("get", "key")
cmd.read_reply(b"10")
cmd.result()      # "10"
cmd.to_int()      # 10
cmd.to_float()    # 10.0
str(cmd)          # "get key: 10"
```

A nil reply is stored and raised as `NilError`, a subclass of `RedisError`.
`result()` and the `to_*` helpers raise the stored error instead of returning
a value.

The reply types are:

- `rediscmd.base`: `Cmd` (any shape, with `to_str`, `to_int`, `to_uint64`,
  `to_float32`, `to_float`, `to_bool`), `StatusCmd`, `IntCmd`, `BoolCmd`
  (0/1, `"OK"`, or nil read as `False`), `FloatCmd`, and `StringCmd` (with
  `to_bytes`, `to_int`, `to_uint64`, `to_float32`, `to_float` and `to_time`
  for RFC 3339 text).
- `rediscmd.keys`: `SliceCmd` (nil items become `None`, error items are
  kept), `StringSliceCmd` (nil items become `""`), `DurationCmd` (replies -2
  and -1 become `KEY_MISSING` and `NO_EXPIRATION`), `ScanCmd` (value is
  `(keys, cursor)`, also as `page` and `cursor`), and `CommandsInfoCmd`, which
  maps command names to `CommandInfo` records.
- `rediscmd.strings`: `IntSliceCmd` and `StringStringMapCmd`.

## Command builders

`BaseCommands` takes one `process` callable. Each method builds a command,
calls `process(cmd)` and returns the command. If `process` raises, the
exception is recorded on the command rather than propagated.

- `BaseCommands` (`rediscmd.base`): `echo`, `ping`, `wait`.
- `KeyCommands` (`rediscmd.keys`): `delete`, `exists`, `expire`, `ttl`,
  `pttl`, `rename`, `sort` with a `Sort` options object, `scan`, `sscan`,
  `hscan`, `zscan`, `command` and the other key-space commands.
- `StringCommands` (`rediscmd.strings`): `get`, `set`, `setnx`, `setxx`,
  `mget`, `mset`, `incr`, `bit_count` with a `BitCount` range, `bit_op_*`,
  `bit_pos`, `bit_field` and the rest of the string commands.
- `HashCommands` (`rediscmd.strings`): `hget`, `hset`, `hgetall`, `hmset`,
  `hincrby` and the rest of the hash commands.

The builders share one constructor, so they combine:

```python
from datetime import timedelta
from rediscmd.keys import KeyCommands
from rediscmd.strings import HashCommands, StringCommands


class Client(KeyCommands, StringCommands, HashCommands):
    pass


def process(cmd):
    print(cmd.args())
    cmd.read_reply(b"OK")


client = Client(process)
client.set("foo", "bar", timedelta(seconds=10))         # ['set', 'foo', 'bar', 'ex', 10]
client.set("foo", "bar", timedelta(milliseconds=1500))  # ['set', 'foo', 'bar', 'px', 1500]
```

A zero expiration means no expiration; `setnx` without one sends `SETNX`.

## Helpers

`rediscmd.base` also provides `set_cmds_err`, `cmds_first_err`,
`cmd_string`, `cmd_first_key_pos`, `use_precise`, `format_ms`, `format_sec`
and `append_args`. `rediscmd.keys.CommandsInfoCache` loads command
information once and tries again after a failed load.

## What it does not do

- It does not connect to a server, speak the wire protocol, pool
  connections, pipeline or route commands in a cluster; `process` must do
  that.
- It has builders only for generic key, string, bitmap and hash commands.
  There are no builders or reply types for lists, sets, sorted sets,
  HyperLogLog, geo, streams, scripting, pub/sub, server administration or
  cluster commands.