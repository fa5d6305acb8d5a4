from __future__ import annotations

import json
import os
import struct
import tempfile
import unittest
import zlib
from pathlib import Path

from gmapack.constants import GMA_MAGIC, GMA_VERSION
from gmapack.errors import ChecksumMismatch, InvalidType, InvalidValue, MalformedContainer
from gmapack.model import Archive, new_archive
from gmapack.reader import AddonReader, decode
from gmapack.writer import encode


def _sample_archive() -> Archive:
    a = new_archive(
        title="Crate pack",
        description="Wooden crates, ünïcode included",
        addon_type="model",
        tags=["fun", "build"],
    )
    a.add_entry("models/props/crate.mdl", b"IDST" + os.urandom(300))
    a.add_entry("materials/props/crate.vmt", b'"VertexLitGeneric" {}')
    a.add_entry("lua/autorun/crate.lua", b"")
    return a


def _legacy_v1_image(title: str, payload: bytes) -> bytes:
    """Version 1 stream: no dependency list, plain-text description, zero trailer."""
    out = bytearray(GMA_MAGIC)
    out += struct.pack("<BQQ", 1, 42, 1234567890)
    out += title.encode() + b"\x00"
    out += b"plain description\x00"
    out += b"Someone\x00"
    out += struct.pack("<i", 1)
    out += struct.pack("<I", 1) + b"maps/old.bsp\x00" + struct.pack("<qI", len(payload), zlib.crc32(payload))
    out += struct.pack("<I", 0)
    out += payload
    out += struct.pack("<I", 0)
    return bytes(out)


class CodecTests(unittest.TestCase):
    def test_roundtrip(self):
        a = _sample_archive()
        b = decode(encode(a))
        self.assertEqual(a, b)
        self.assertEqual(list(b.entries), list(a.entries))

    def test_empty_archive_roundtrip(self):
        a = new_archive(title="Empty", description="Nothing here", addon_type="tool")
        b = decode(encode(a))
        self.assertEqual(b.entries, {})
        self.assertEqual(b.title, "Empty")
        self.assertEqual(b.description, "Nothing here")
        self.assertEqual(b.type, "tool")
        self.assertEqual(b.tags, [])

    def test_encoding_is_deterministic(self):
        a = _sample_archive()
        first = encode(a)
        self.assertEqual(first, encode(a))
        self.assertEqual(first, encode(decode(first)))

    def test_layout(self):
        a = new_archive(title="T", description="D", addon_type="map", tags=["water"])
        a.add_entry("maps/a.bsp", b"xyz")
        data = encode(a, origin_id=7, timestamp=99)
        self.assertEqual(data[:4], b"GMAD")
        version, origin, ts = struct.unpack_from("<BQQ", data, 4)
        self.assertEqual((version, origin, ts), (GMA_VERSION, 7, 99))
        off = 4 + 17
        self.assertEqual(data[off], 0)  # empty dependency list
        off += 1
        end = data.index(b"\x00", off)
        self.assertEqual(data[off:end], b"T")
        off = end + 1
        end = data.index(b"\x00", off)
        manifest = json.loads(data[off:end].decode())
        self.assertEqual(manifest, {"description": "D", "type": "map", "tags": ["water"]})
        off = end + 1
        end = data.index(b"\x00", off)
        self.assertEqual(data[off:end], b"Author Name")
        off = end + 1 + 4  # addon version
        (index,) = struct.unpack_from("<I", data, off)
        self.assertEqual(index, 1)
        off += 4
        end = data.index(b"\x00", off)
        self.assertEqual(data[off:end], b"maps/a.bsp")
        size, crc = struct.unpack_from("<qI", data, end + 1)
        self.assertEqual((size, crc), (3, zlib.crc32(b"xyz")))
        off = end + 1 + 12
        self.assertEqual(struct.unpack_from("<I", data, off)[0], 0)
        self.assertEqual(data[off + 4 : off + 7], b"xyz")
        (trailer,) = struct.unpack("<I", data[-4:])
        self.assertEqual(trailer, zlib.crc32(data[:-4]))
        self.assertEqual(len(data), off + 4 + 3 + 4)

    def test_identity_fields_preserved(self):
        a = _sample_archive()
        a.origin_id = 76561197960287930
        a.timestamp = 1700000000
        a.required = ["base/content"]
        b = decode(encode(a))
        self.assertEqual(b.origin_id, a.origin_id)
        self.assertEqual(b.timestamp, a.timestamp)
        self.assertEqual(b.required, ["base/content"])

    def test_encode_requires_valid_type(self):
        with self.assertRaises(InvalidType):
            encode(Archive(title="x"))

    def test_encode_rejects_nul_in_strings(self):
        with self.assertRaises(InvalidValue):
            encode(Archive(title="bad\x00title", type="map"))
        a = new_archive(title="T", addon_type="map")
        a.required = ["bad\x00dep"]
        with self.assertRaises(ValueError):
            encode(a)

    def test_bad_magic(self):
        data = bytearray(encode(_sample_archive()))
        data[0:4] = b"ZIP!"
        with self.assertRaises(MalformedContainer):
            decode(bytes(data))
        with self.assertRaises(MalformedContainer):
            decode(b"GM")

    def test_unsupported_version(self):
        data = bytearray(encode(_sample_archive()))
        data[4] = GMA_VERSION + 1
        with self.assertRaises(MalformedContainer):
            decode(bytes(data))

    def test_truncated_file_table(self):
        a = _sample_archive()
        data = encode(a)
        table_start = data.index(b"models/props/crate.mdl") - 4
        with self.assertRaises(MalformedContainer):
            decode(data[: table_start + 10])

    def test_declared_payload_exceeds_stream(self):
        a = new_archive(title="T", addon_type="map")
        a.add_entry("maps/a.bsp", b"x" * 64)
        data = encode(a)
        # keep the table, drop most of the payload
        cut = data.index(b"maps/a.bsp") + len(b"maps/a.bsp") + 1 + 12 + 4
        with self.assertRaises(MalformedContainer) as ctx:
            decode(data[: cut + 10])
        self.assertIn("declares", str(ctx.exception))

    def test_missing_trailer(self):
        data = encode(_sample_archive())
        with self.assertRaises(MalformedContainer):
            decode(data[:-2])

    def test_out_of_sequence_index(self):
        a = new_archive(title="T", addon_type="map")
        a.add_entry("maps/a.bsp", b"x")
        data = bytearray(encode(a))
        idx = data.index(b"maps/a.bsp") - 4
        data[idx : idx + 4] = struct.pack("<I", 5)
        with self.assertRaises(MalformedContainer):
            decode(bytes(data), verify=False)

    def test_entry_checksum_mismatch(self):
        a = new_archive(title="T", addon_type="map")
        a.add_entry("maps/a.bsp", b"abcdef")
        data = bytearray(encode(a))
        pos = data.rindex(b"abcdef")
        data[pos] ^= 0xFF
        with self.assertRaises(ChecksumMismatch):
            decode(bytes(data))
        b = decode(bytes(data), verify=False)
        self.assertNotEqual(b.entries["maps/a.bsp"].payload, b"abcdef")

    def test_archive_checksum_mismatch(self):
        data = bytearray(encode(_sample_archive()))
        data[-1] ^= 0x01
        with self.assertRaises(ChecksumMismatch):
            decode(bytes(data))

    def test_zero_trailer_accepted(self):
        data = encode(_sample_archive())
        b = decode(data[:-4] + b"\x00\x00\x00\x00")
        self.assertEqual(len(b.entries), 3)

    def test_legacy_version_1(self):
        b = decode(_legacy_v1_image("Old map", b"BSP!"))
        self.assertEqual(b.format_version, 1)
        self.assertEqual(b.title, "Old map")
        self.assertEqual(b.description, "plain description")
        self.assertEqual(b.type, "")
        self.assertEqual(b.author, "Someone")
        self.assertEqual(b.origin_id, 42)
        self.assertEqual(b.entries["maps/old.bsp"].payload, b"BSP!")

    def test_reader_extract(self):
        with tempfile.TemporaryDirectory() as tmp:
            tmp_path = Path(tmp)
            archive_path = tmp_path / "pack.gma"
            a = _sample_archive()
            archive_path.write_bytes(encode(a))
            with AddonReader(str(archive_path)) as r:
                self.assertEqual([e.path for e in r.list()], list(a.entries))
                written = r.extract_all(str(tmp_path / "out"))
            self.assertEqual(len(written), 3)
            for path, entry in a.entries.items():
                self.assertEqual((tmp_path / "out" / path).read_bytes(), entry.payload)

    def test_reader_extract_selected(self):
        with tempfile.TemporaryDirectory() as tmp:
            tmp_path = Path(tmp)
            archive_path = tmp_path / "pack.gma"
            archive_path.write_bytes(encode(_sample_archive()))
            with AddonReader(str(archive_path)) as r:
                written = r.extract_all(str(tmp_path / "out"), paths=["lua/autorun/crate.lua"])
            self.assertEqual(len(written), 1)
            self.assertFalse((tmp_path / "out" / "models").exists())


if __name__ == "__main__":
    unittest.main()
