from __future__ import annotations

import json
import struct
import unittest
import warnings

import cbor2
import zstandard

from serumpreset.constants import CONTAINER_MAGIC
from serumpreset.errors import (
    CodecError,
    DocumentError,
    FormatMismatch,
    HeaderTruncated,
    LengthMismatch,
    MetadataDecodeError,
    PayloadDecodeError,
    SerumPresetError,
)
from serumpreset.reader import unpack_bytes
from serumpreset.writer import pack_bytes


SAMPLE_DOC = {
    "metadata": {"name": "Test"},
    "data": {"osc1": 0.5, "notes": ["a", "b"]},
}


def _raw_container(
    meta_text: bytes,
    cbor_buf: bytes,
    *,
    meta_len: int | None = None,
    payload_len: int | None = None,
    reserved: int = 0,
    flags: int = 2,
) -> bytes:
    """Assemble a container by hand so individual fields can be falsified."""
    return b"".join(
        (
            CONTAINER_MAGIC,
            struct.pack("<II", len(meta_text) if meta_len is None else meta_len, reserved),
            meta_text,
            struct.pack("<II", len(cbor_buf) if payload_len is None else payload_len, flags),
            zstandard.ZstdCompressor(level=3).compress(cbor_buf),
        )
    )


def _container_with_stream(meta_text: bytes, declared_len: int, stream: bytes) -> bytes:
    """Container whose compressed section is ``stream`` exactly as given."""
    return b"".join(
        (
            CONTAINER_MAGIC,
            struct.pack("<II", len(meta_text), 0),
            meta_text,
            struct.pack("<II", declared_len, 2),
            stream,
        )
    )


class WriterLayoutTests(unittest.TestCase):
    def test_sample_document_layout(self):
        buf = pack_bytes(SAMPLE_DOC)
        self.assertEqual(buf[:9], CONTAINER_MAGIC)

        meta_len, reserved = struct.unpack_from("<II", buf, 9)
        self.assertEqual(reserved, 0)
        self.assertEqual(buf[0x11:0x11 + meta_len], b'{"name":"Test"}')

        off = 0x11 + meta_len
        payload_len, flags = struct.unpack_from("<II", buf, off)
        self.assertEqual(flags, 2)
        cbor_buf = zstandard.ZstdDecompressor().decompress(buf[off + 8:])
        self.assertEqual(len(cbor_buf), payload_len)
        self.assertEqual(cbor2.loads(cbor_buf), SAMPLE_DOC["data"])

    def test_metadata_keeps_non_ascii_as_utf8(self):
        buf = pack_bytes({"metadata": {"name": "Bässe ♪"}, "data": {}})
        meta_len = struct.unpack_from("<I", buf, 9)[0]
        text = buf[0x11:0x11 + meta_len]
        self.assertEqual(text, '{"name":"Bässe ♪"}'.encode("utf-8"))

    def test_writer_is_deterministic(self):
        doc = {
            "metadata": {"name": "Pad", "tags": ["warm", "slow"]},
            "data": {"osc": [{"level": i / 7.0, "on": bool(i % 2)} for i in range(32)]},
        }
        self.assertEqual(pack_bytes(doc), pack_bytes(doc))

    def test_rejects_incomplete_documents(self):
        with self.assertRaises(DocumentError):
            pack_bytes({"data": {}})
        with self.assertRaises(DocumentError):
            pack_bytes({"metadata": {}})
        with self.assertRaises(DocumentError):
            pack_bytes(["metadata", "data"])  # type: ignore[arg-type]

    def test_rejects_unencodable_values(self):
        with self.assertRaises(DocumentError):
            pack_bytes({"metadata": {"x": float("nan")}, "data": {}})
        with self.assertRaises(CodecError):
            pack_bytes({"metadata": {}, "data": {"x": object()}})


class RoundTripTests(unittest.TestCase):
    def test_end_to_end_scenario(self):
        buf = pack_bytes(SAMPLE_DOC)
        self.assertTrue(buf.startswith(b"XferJson\x00"))
        self.assertEqual(unpack_bytes(buf), SAMPLE_DOC)

    def test_empty_document(self):
        doc = {"metadata": {}, "data": {}}
        self.assertEqual(unpack_bytes(pack_bytes(doc)), doc)

    def test_assorted_values(self):
        docs = [
            {"metadata": None, "data": None},
            {"metadata": [1, 2, 3], "data": "just a string"},
            {"metadata": {"fileType": "SerumPreset", "version": 1.0}, "data": [True, False, None]},
            {
                "metadata": {"name": "Nested", "author": "ünïcødé"},
                "data": {
                    "deep": {"a": {"b": {"c": [1, -1, 2 ** 40, -2 ** 40]}}},
                    "floats": [0.0, -0.25, 1e-9, 123456.789],
                    "wavetable": b"\x00\x01\xfe\xff" * 16,
                },
            },
        ]
        for doc in docs:
            with self.subTest(doc=doc):
                self.assertEqual(unpack_bytes(pack_bytes(doc)), doc)

    def test_large_payload(self):
        doc = {"metadata": {"name": "Big"}, "data": {"curve": [i * 0.001 for i in range(50_000)]}}
        self.assertEqual(unpack_bytes(pack_bytes(doc)), doc)

    def test_repack_normalizes_reserved_and_flags(self):
        meta = json.dumps({"name": "Odd"}).encode("utf-8")
        cbor_buf = cbor2.dumps({"k": 1})
        odd = _raw_container(meta, cbor_buf, reserved=0xDEADBEEF, flags=7)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", RuntimeWarning)
            doc = unpack_bytes(odd)
        repacked = pack_bytes(doc)
        self.assertNotEqual(repacked, odd)
        self.assertEqual(struct.unpack_from("<I", repacked, 13)[0], 0)
        self.assertEqual(unpack_bytes(repacked), doc)

    def test_accepts_bytearray_and_memoryview(self):
        buf = pack_bytes(SAMPLE_DOC)
        self.assertEqual(unpack_bytes(bytearray(buf)), SAMPLE_DOC)
        self.assertEqual(unpack_bytes(memoryview(buf)), SAMPLE_DOC)


class MagicTests(unittest.TestCase):
    def test_rejects_wrong_magic_regardless_of_rest(self):
        good = pack_bytes(SAMPLE_DOC)
        samples = [
            b"",
            b"X",
            b"XferJson",
            b"XferJson\x01",
            b"xferJson\x00" + good[9:],
            b"PK\x03\x04" + good,
            b"\x00" * 64,
        ]
        for sample in samples:
            with self.subTest(sample=sample[:12]):
                with self.assertRaises(FormatMismatch):
                    unpack_bytes(sample)

    def test_each_magic_byte_is_checked(self):
        good = bytearray(pack_bytes(SAMPLE_DOC))
        for i in range(9):
            bad = bytearray(good)
            bad[i] ^= 0x01
            with self.subTest(index=i):
                with self.assertRaises(FormatMismatch) as ctx:
                    unpack_bytes(bytes(bad))
                self.assertNotIsInstance(ctx.exception, HeaderTruncated)

    def test_truncated_after_magic(self):
        good = pack_bytes(SAMPLE_DOC)
        for cut in (9, 12, 16, 0x11 + 3, 0x11 + 15 + 4):
            with self.subTest(cut=cut):
                with self.assertRaises(HeaderTruncated):
                    unpack_bytes(good[:cut])


class MetadataSectionTests(unittest.TestCase):
    def test_invalid_json(self):
        buf = _raw_container(b'{"name":', cbor2.dumps({}))
        with self.assertRaises(MetadataDecodeError):
            unpack_bytes(buf)

    def test_invalid_utf8(self):
        buf = _raw_container(b'{"name":"\xff\xfe"}', cbor2.dumps({}))
        with self.assertRaises(MetadataDecodeError):
            unpack_bytes(buf)

    def test_declared_length_one_short(self):
        meta = b'{"name":"Test"}'
        buf = _raw_container(meta, cbor2.dumps(SAMPLE_DOC["data"]), meta_len=len(meta) - 1)
        for _ in range(2):
            with self.assertRaises(MetadataDecodeError):
                unpack_bytes(buf)

    def test_declared_length_one_long_hits_length_word(self):
        # The extra byte is the low byte of the payload length, a control
        # character here, which is not valid trailing JSON.
        meta = b'{"name":"Test"}'
        cbor_buf = cbor2.dumps(SAMPLE_DOC["data"])
        self.assertLess(len(cbor_buf), 0x20)
        buf = _raw_container(meta, cbor_buf, meta_len=len(meta) + 1)
        for _ in range(2):
            with self.assertRaises(MetadataDecodeError):
                unpack_bytes(buf)

    def test_declared_length_one_long_misreads_boundary(self):
        # A payload of 32 bytes puts a space (0x20) right after the JSON, so
        # the metadata parses and the misaligned payload framing must fail.
        meta = b'{"name":"Test"}'
        cbor_buf = cbor2.dumps({"s": "x" * 27})
        self.assertEqual(len(cbor_buf), 0x20)
        buf = _raw_container(meta, cbor_buf, meta_len=len(meta) + 1)
        for _ in range(2):
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", RuntimeWarning)
                with self.assertRaises((CodecError, LengthMismatch)):
                    unpack_bytes(buf)

    def test_non_json_constants_rejected(self):
        for text in (b'{"x":NaN}', b'{"x":Infinity}', b'[-Infinity]'):
            with self.subTest(text=text):
                buf = _raw_container(text, cbor2.dumps({}))
                with self.assertRaises(MetadataDecodeError):
                    unpack_bytes(buf)

    def test_reserved_word_is_ignored(self):
        meta = b'{"name":"Test"}'
        buf = _raw_container(meta, cbor2.dumps(SAMPLE_DOC["data"]), reserved=12345)
        self.assertEqual(unpack_bytes(buf), SAMPLE_DOC)


class PayloadSectionTests(unittest.TestCase):
    def _payload_len_offset(self, buf: bytes) -> int:
        return 0x11 + struct.unpack_from("<I", buf, 9)[0]

    def test_declared_length_too_large(self):
        buf = bytearray(pack_bytes(SAMPLE_DOC))
        off = self._payload_len_offset(buf)
        declared = struct.unpack_from("<I", buf, off)[0]
        struct.pack_into("<I", buf, off, declared + 1)
        with self.assertRaises(LengthMismatch) as ctx:
            unpack_bytes(bytes(buf))
        self.assertEqual(ctx.exception.declared, declared + 1)
        self.assertEqual(ctx.exception.actual, declared)

    def test_declared_length_too_small(self):
        buf = bytearray(pack_bytes(SAMPLE_DOC))
        off = self._payload_len_offset(buf)
        declared = struct.unpack_from("<I", buf, off)[0]
        struct.pack_into("<I", buf, off, declared - 1)
        with self.assertRaises(LengthMismatch):
            unpack_bytes(bytes(buf))

    def test_payload_that_decompresses_to_other_length(self):
        cbor_buf = cbor2.dumps(SAMPLE_DOC["data"])
        honest = _raw_container(b"{}", cbor_buf)
        # Compressed stream carries one extra byte the header does not declare.
        forged = honest[: 0x11 + 2 + 8] + zstandard.ZstdCompressor(level=3).compress(cbor_buf + b"\x00")
        with self.assertRaises(LengthMismatch):
            unpack_bytes(forged)

    def test_truncated_compressed_stream(self):
        buf = pack_bytes(SAMPLE_DOC)
        with self.assertRaises((LengthMismatch, CodecError)):
            unpack_bytes(buf[:-4])

    def test_missing_compressed_stream(self):
        buf = pack_bytes(SAMPLE_DOC)
        off = self._payload_len_offset(buf) + 8
        with self.assertRaises((LengthMismatch, CodecError)):
            unpack_bytes(buf[:off])

    def test_garbage_compressed_stream(self):
        buf = pack_bytes(SAMPLE_DOC)
        off = self._payload_len_offset(buf) + 8
        with self.assertRaises(CodecError):
            unpack_bytes(buf[:off] + b"not a zstd frame at all")

    def test_undecodable_cbor(self):
        truncated_array = b"\x82\x01"
        buf = _raw_container(b"{}", truncated_array)
        with self.assertRaises(PayloadDecodeError):
            unpack_bytes(buf)

    def test_multi_frame_payload(self):
        value = {"osc": [{"level": i / 4.0, "wt": f"table-{i}"} for i in range(8)]}
        cbor_buf = cbor2.dumps(value)
        half = len(cbor_buf) // 2
        c = zstandard.ZstdCompressor(level=3)
        stream = c.compress(cbor_buf[:half]) + c.compress(cbor_buf[half:])
        buf = _container_with_stream(b"{}", len(cbor_buf), stream)
        self.assertEqual(unpack_bytes(buf), {"metadata": {}, "data": value})

    def test_garbage_after_compressed_frame(self):
        cbor_buf = cbor2.dumps({"k": 1})
        stream = zstandard.ZstdCompressor(level=3).compress(cbor_buf) + b"GARBAGE-TAIL"
        buf = _container_with_stream(b"{}", len(cbor_buf), stream)
        with self.assertRaises(CodecError):
            unpack_bytes(buf)

    def test_second_cbor_item_in_payload(self):
        # Declared length covers both items, so only the decoder can notice.
        cbor_buf = cbor2.dumps({"a": 1}) + cbor2.dumps({"b": 2})
        buf = _raw_container(b"{}", cbor_buf)
        with self.assertRaises(PayloadDecodeError):
            unpack_bytes(buf)

    def test_unknown_flags_still_decompress(self):
        meta = b'{"name":"Test"}'
        buf = _raw_container(meta, cbor2.dumps(SAMPLE_DOC["data"]), flags=0)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            doc = unpack_bytes(buf)
        self.assertEqual(doc, SAMPLE_DOC)
        self.assertTrue(any(issubclass(w.category, RuntimeWarning) for w in caught))

    def test_all_errors_share_base(self):
        for exc in (FormatMismatch, MetadataDecodeError, LengthMismatch, PayloadDecodeError, CodecError, DocumentError):
            self.assertTrue(issubclass(exc, SerumPresetError))


if __name__ == "__main__":
    unittest.main()
