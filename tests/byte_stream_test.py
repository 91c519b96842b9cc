import io
import os
import tempfile
import unittest

from errors import BankError, ErrorKind
from util import ByteSink, ByteSource, parse_filename


class TestByteSource(unittest.TestCase):

    @staticmethod
    def make_source(data: bytes, endian: str = "<") -> ByteSource:
        return ByteSource(io.BytesIO(data), len(data), endian, "memory")

    def test_integers_honor_endianness(self):
        raw = bytes([0x01, 0x02, 0x03, 0x04])
        self.assertEqual(self.make_source(raw, "<").uint32_read(), 0x04030201)
        self.assertEqual(self.make_source(raw, ">").uint32_read(), 0x01020304)

        raw = bytes(range(1, 9))
        self.assertEqual(self.make_source(raw, "<").uint64_read(), 0x0807060504030201)
        self.assertEqual(self.make_source(raw, ">").uint64_read(), 0x0102030405060708)
        self.assertEqual(self.make_source(raw[:2], ">").uint16_read(), 0x0102)

    def test_unknown_endianness_rejected(self):
        with self.assertRaises(ValueError):
            self.make_source(b"abcd", "=")

    def test_tag_and_position(self):
        source = self.make_source(b"BKHD\x00\x01")
        self.assertEqual(source.tag4_read(), "BKHD")
        self.assertEqual(source.tell(), 4)
        self.assertEqual(source.remaining(), 2)

    def test_read_more_than_remaining(self):
        source = self.make_source(b"abc")
        with self.assertRaises(BankError) as ctx:
            source.read(4)
        self.assertEqual(ctx.exception.kind, ErrorKind.INSUFFICIENT_DATA)
        self.assertEqual(ctx.exception.length, 4)
        # nothing consumed
        self.assertEqual(source.tell(), 0)

    def test_read_until_and_skip_until(self):
        source = self.make_source(b"0123456789")
        source.skip_until(2)
        self.assertEqual(source.read_until(5), b"234")
        source.skip_until(5)
        self.assertEqual(source.tell(), 5)
        self.assertEqual(source.read_rest(), b"56789")

    def test_position_never_moves_backward(self):
        source = self.make_source(b"0123456789")
        source.read(6)
        for call in (source.skip_until, source.read_until):
            with self.assertRaises(BankError) as ctx:
                call(3)
            self.assertEqual(ctx.exception.kind, ErrorKind.OUT_OF_RANGE)
        self.assertEqual(source.tell(), 6)

    def test_target_past_end(self):
        source = self.make_source(b"0123")
        with self.assertRaises(BankError) as ctx:
            source.skip_until(5)
        self.assertEqual(ctx.exception.kind, ErrorKind.OUT_OF_RANGE)

    def test_releases_stream_at_end(self):
        stream = io.BytesIO(b"abcd")
        source = ByteSource(stream, 4)
        source.read(3)
        self.assertFalse(stream.closed)
        source.read(1)
        self.assertTrue(stream.closed)
        self.assertTrue(source.closed)
        self.assertEqual(source.read(0), b"")
        self.assertEqual(source.read_rest(), b"")
        with self.assertRaises(BankError) as ctx:
            source.read(1)
        self.assertEqual(ctx.exception.kind, ErrorKind.INSUFFICIENT_DATA)

    def test_empty_input_released_immediately(self):
        stream = io.BytesIO(b"")
        source = ByteSource(stream, 0)
        self.assertTrue(stream.closed)
        self.assertEqual(source.read_rest(), b"")

    def test_read_after_explicit_close(self):
        with self.make_source(b"abcd") as source:
            source.read(1)
        with self.assertRaises(BankError) as ctx:
            source.read(1)
        self.assertEqual(ctx.exception.kind, ErrorKind.IO_FAILURE)

    def test_underlying_stream_shorter_than_declared(self):
        source = ByteSource(io.BytesIO(b"ab"), 4)
        with self.assertRaises(BankError) as ctx:
            source.read(4)
        self.assertEqual(ctx.exception.kind, ErrorKind.IO_FAILURE)
        self.assertTrue(ctx.exception.is_io_failure())

    def test_from_file_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(BankError) as ctx:
                ByteSource.from_file(os.path.join(tmp, "missing.bnk"))
        self.assertEqual(ctx.exception.kind, ErrorKind.IO_FAILURE)
        self.assertIsInstance(ctx.exception.__cause__, OSError)


class TestByteSink(unittest.TestCase):

    def test_writes_in_order_with_endianness(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "out.bin")
            sink = ByteSink.from_file(path, ">")
            sink.tag4_write("DATA")
            sink.uint16_write(0x0102)
            sink.uint32_write(0x01020304)
            sink.uint64_write(1)
            sink.write(b"xyz")
            self.assertEqual(sink.tell(), 4 + 2 + 4 + 8 + 3)
            sink.finish()
            sink.finish()
            with open(path, "rb") as f:
                self.assertEqual(
                    f.read(),
                    b"DATA\x01\x02\x01\x02\x03\x04" + b"\x00" * 7 + b"\x01xyz"
                )

    def test_value_out_of_range(self):
        sink = ByteSink(io.BytesIO(), "<")
        with self.assertRaises(BankError) as ctx:
            sink.uint32_write(1 << 32)
        self.assertEqual(ctx.exception.kind, ErrorKind.CAPACITY_EXCEEDED)
        with self.assertRaises(BankError):
            sink.uint16_write(-1)
        self.assertEqual(sink.tell(), 0)

    def test_tag_must_be_four_bytes(self):
        sink = ByteSink(io.BytesIO())
        with self.assertRaises(ValueError):
            sink.tag4_write("DAT")

    def test_copy_from(self):
        stream = io.BytesIO()
        sink = ByteSink(stream)
        self.assertEqual(sink.copy_from(io.BytesIO(b"a" * 100), 100), 100)
        self.assertEqual(sink.copy_from(io.BytesIO(b"b" * 10), 20), 10)
        self.assertEqual(stream.getvalue(), b"a" * 100 + b"b" * 10)

    def test_write_after_finish(self):
        sink = ByteSink(io.BytesIO())
        sink.finish()
        self.assertTrue(sink.closed)
        with self.assertRaises(BankError) as ctx:
            sink.write(b"x")
        self.assertEqual(ctx.exception.kind, ErrorKind.IO_FAILURE)


class TestParseFilename(unittest.TestCase):

    def test_parse_filename(self):
        self.assertEqual(parse_filename("3_123456.wem"), 123456)
        self.assertEqual(parse_filename("123456.wem"), 123456)
        self.assertEqual(parse_filename("123456_fluff.wem"), 123456)
        self.assertEqual(parse_filename("fluff.wem"), 0)
