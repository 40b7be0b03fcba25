# demogobbler

A pure Python library for reading and writing Source engine demo files
(`.dem`). It reads the demo header and every top-level message, and it can
decode datatables, net messages and packet entities into Python objects. It
can also write datatables and net messages back out bit for bit.

## Installation

```
pip install .
```

To run the test suite, install the test extra and run pytest:

```
pip install .[test]
pytest
```

## Parsing a demo

Register a handler for each kind of message you want. A message kind that has
no handler is skipped. If no handler is set at all, only the header is read.

```python
from demogobbler.parser import Settings, parse_file

def on_header(state, header):
    print(header.map_name, header.tick_count)

def on_packet(state, packet):
    print(packet.preamble.tick, len(packet.data))

settings = Settings(header_handler=on_header, packet_handler=on_packet)
parse_file(settings, "demo.dem")
```

`parse_buffer(settings, data)` parses demo bytes that are already in memory.
`parse(settings, stream)` reads from any binary file object. Each of them
raises `DemoParseError` if the demo is malformed.

## Net messages

If you set `packet_parsed_handler`, each packet's payload is decoded into net
message dataclasses such as `SvcServerInfo`, `NetTick` and
`SvcPacketEntities`:

```python
from demogobbler.parser import Settings, parse_file

def on_parsed(state, parsed):
    for message in parsed.messages:
        print(type(message).__name__)

parse_file(Settings(packet_parsed_handler=on_parsed), "demo.dem")
```

`demogobbler.messages.read_netmessages(version, data)` decodes one packet
payload on its own. `demogobbler.netwriter.write_netmessages(version, messages)`
encodes a list of messages back into bytes for the given `DemoVersion`.

## Datatables and entity state

`demogobbler.datatables.parse_datatables(version, data)` decodes the
send-table and server-class definitions. `write_datatables(version, tables)`
writes them back out.

`demogobbler.entity_state.EntityState` flattens those tables into per-class
property lists, the order in which entity updates encode properties.
`EntityState.update` then applies entity updates to the entity slots.

## Bit streams

`demogobbler.bitio.BitReader` and `BitWriter` are the little-endian bit
streams that the Source network format uses. They can also be used directly,
for example to read coordinate vectors, var-ints and C strings.