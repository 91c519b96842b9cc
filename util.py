import os
import struct

from itertools import takewhile
from typing import BinaryIO

from typing_extensions import Self

from const import BIG_ENDIAN, COPY_CHUNK_SIZE, LITTLE_ENDIAN
from errors import BankError, ErrorKind
from log import logger


def _check_endian(endian: str):
    if endian not in (LITTLE_ENDIAN, BIG_ENDIAN):
        raise ValueError(f"Unknown endianness '{endian}'")


class ByteSource:
    '''
    Sequential reader over a byte stream of known total length.

    The cursor only ever moves forward: there is no seek() and no way to read
    a byte twice. Integers are decoded with an explicit byte order chosen at
    construction. The underlying stream is closed as soon as the last byte
    has been consumed, or when close() is called, whichever comes first.
    '''

    def __init__(
        self,
        stream: BinaryIO,
        length: int,
        endian: str = LITTLE_ENDIAN,
        name: str = ""
    ):
        _check_endian(endian)
        self.stream = stream
        self.length = length
        self.endian = endian
        self.name = name
        self.location = 0
        self._closed = False
        if self.length == 0:
            self.close()

    @classmethod
    def from_file(cls, path: str, endian: str = LITTLE_ENDIAN) -> Self:
        """
        @exception
        - BankError (IO_FAILURE)
        """
        try:
            length = os.path.getsize(path)
            stream = open(path, "rb")
        except OSError as e:
            raise BankError(
                ErrorKind.IO_FAILURE, f"Failed to open {path} for reading",
                path=path
            ) from e
        return cls(stream, length, endian, path)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        if self._closed:
            return
        self._closed = True
        try:
            self.stream.close()
        except OSError as e:
            raise BankError(
                ErrorKind.IO_FAILURE, "Failed to release input",
                path=self.name
            ) from e
        logger.debug(f"Released input {self.name} at position {self.location}")

    def tell(self) -> int:
        return self.location

    def remaining(self) -> int:
        return self.length - self.location

    def _check_target(self, position: int):
        if position < self.location:
            raise BankError(
                ErrorKind.OUT_OF_RANGE,
                f"Position {position} has already been passed "
                f"(current position {self.location})",
                offset=position, path=self.name
            )
        if position > self.length:
            raise BankError(
                ErrorKind.OUT_OF_RANGE,
                f"Position {position} is past the end of input "
                f"(length {self.length})",
                offset=position, path=self.name
            )

    def _check_available(self, length: int):
        if length < 0:
            raise ValueError(f"Negative read length {length}")
        if length > self.remaining():
            raise BankError(
                ErrorKind.INSUFFICIENT_DATA,
                f"Requested {length} bytes but only {self.remaining()} remain",
                offset=self.location, length=length, path=self.name
            )
        if length > 0 and self._closed:
            raise BankError(
                ErrorKind.IO_FAILURE, "Input has already been released",
                offset=self.location, length=length, path=self.name
            )

    def _advance(self, length: int):
        self.location += length
        if self.location == self.length:
            self.close()

    def read(self, length: int) -> bytes:
        """
        @exception
        - BankError (INSUFFICIENT_DATA, IO_FAILURE)
        """
        self._check_available(length)
        if length == 0:
            return b""
        try:
            data = self.stream.read(length)
        except OSError as e:
            raise BankError(
                ErrorKind.IO_FAILURE, "Failed to read from input",
                offset=self.location, length=length, path=self.name
            ) from e
        if len(data) != length:
            raise BankError(
                ErrorKind.IO_FAILURE,
                f"Input ended early, got {len(data)} of {length} bytes",
                offset=self.location, length=length, path=self.name
            )
        self._advance(length)
        return data

    def read_until(self, position: int) -> bytes:
        self._check_target(position)
        return self.read(position - self.location)

    def read_rest(self) -> bytes:
        return self.read(self.remaining())

    def skip_until(self, position: int):
        self._check_target(position)
        amount = position - self.location
        self._check_available(amount)
        if amount == 0:
            return
        try:
            if self.stream.seekable():
                self.stream.seek(amount, os.SEEK_CUR)
            else:
                left = amount
                while left > 0:
                    chunk = self.stream.read(min(left, COPY_CHUNK_SIZE))
                    if not chunk:
                        raise BankError(
                            ErrorKind.IO_FAILURE,
                            "Input ended early while skipping",
                            offset=self.location, length=amount,
                            path=self.name
                        )
                    left -= len(chunk)
        except OSError as e:
            raise BankError(
                ErrorKind.IO_FAILURE, "Failed to skip forward in input",
                offset=self.location, length=amount, path=self.name
            ) from e
        self._advance(amount)

    def read_format(self, format: str, size: int) -> int:
        return struct.unpack(self.endian + format, self.read(size))[0]

    def tag4_read(self) -> str:
        # latin-1 maps every byte to one character, so a garbage tag still
        # decodes and fails the comparison instead of the decoder
        return self.read(4).decode("latin-1")

    def uint16_read(self) -> int:
        return self.read_format("H", 2)

    def uint32_read(self) -> int:
        return self.read_format("I", 4)

    def uint64_read(self) -> int:
        return self.read_format("Q", 8)


class ByteSink:
    '''
    Append-only writer with a fixed byte order. finish() must be called to
    flush and release the destination.
    '''

    def __init__(self, stream: BinaryIO, endian: str = LITTLE_ENDIAN, name: str = ""):
        _check_endian(endian)
        self.stream = stream
        self.endian = endian
        self.name = name
        self.location = 0
        self._closed = False

    @classmethod
    def from_file(cls, path: str, endian: str = LITTLE_ENDIAN) -> Self:
        try:
            stream = open(path, "wb")
        except OSError as e:
            raise BankError(
                ErrorKind.IO_FAILURE, f"Failed to open {path} for writing",
                path=path
            ) from e
        return cls(stream, endian, path)

    @property
    def closed(self) -> bool:
        return self._closed

    def tell(self) -> int:
        return self.location

    def write(self, data: bytes) -> int:
        if self._closed:
            raise BankError(
                ErrorKind.IO_FAILURE, "Output has already been finished",
                offset=self.location, path=self.name
            )
        try:
            self.stream.write(data)
        except OSError as e:
            raise BankError(
                ErrorKind.IO_FAILURE, "Failed to write to output",
                offset=self.location, length=len(data), path=self.name
            ) from e
        self.location += len(data)
        return len(data)

    def write_format(self, format: str, size: int, value: int):
        if value < 0 or value >= 1 << (size * 8):
            raise BankError(
                ErrorKind.CAPACITY_EXCEEDED,
                f"Value {value} does not fit in {size} bytes",
                offset=self.location, length=size, path=self.name
            )
        self.write(struct.pack(self.endian + format, value))

    def tag4_write(self, tag: str):
        raw = tag.encode("latin-1")
        if len(raw) != 4:
            raise ValueError(f"Chunk tag must be 4 bytes, got '{tag}'")
        self.write(raw)

    def uint16_write(self, value: int):
        self.write_format("H", 2, value)

    def uint32_write(self, value: int):
        self.write_format("I", 4, value)

    def uint64_write(self, value: int):
        self.write_format("Q", 8, value)

    def copy_from(self, stream: BinaryIO, length: int) -> int:
        """
        Copy up to `length` bytes from a readable binary stream.

        @return (int): number of bytes actually copied. Less than `length`
        means the stream ended early.
        """
        copied = 0
        while copied < length:
            chunk = stream.read(min(length - copied, COPY_CHUNK_SIZE))
            if not chunk:
                break
            self.write(chunk)
            copied += len(chunk)
        return copied

    def finish(self):
        if self._closed:
            return
        self._closed = True
        try:
            self.stream.flush()
            try:
                fd = self.stream.fileno()
            except (AttributeError, OSError, ValueError):
                fd = None
            if fd is not None:
                os.fsync(fd)
        except OSError as e:
            raise BankError(
                ErrorKind.IO_FAILURE, "Failed to flush output",
                offset=self.location, path=self.name
            ) from e
        finally:
            self.stream.close()


def get_number_prefix(n: str) -> int:
    number = ''.join(takewhile(str.isdigit, n or ""))
    try:
        return int(number)
    except ValueError:
        return 0


def is_integer(n: str) -> bool:
    try:
        _ = int(n)
        return True
    except ValueError:
        return False


def parse_filename(name: str) -> int:
    '''
    Options:
    id_fluff.wem
    seq_id_fluff.wem
    *fluff may or may not be separated by an underscore
    *sequence number will always be separated by an underscore
    '''
    parts = name.split("_")
    if len(parts) > 1 and is_integer(parts[0]) and get_number_prefix(parts[1]) != 0:
        return get_number_prefix(parts[1])
    return get_number_prefix(parts[0])
