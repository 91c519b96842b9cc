import contextlib
import os

from enum import Enum

from typing_extensions import Self

from bank_entity import Entry, ReplacementSource, SoundBank
from const import BKHD, DATA, DEFAULT_ENDIAN, DIDX, DIDX_RECORD_SIZE, \
        MAX_ADDRESSABLE_SIZE
from errors import BankError, ErrorKind
from fileutil import atomic_output, get_file_size, list_entry_files, to_posix
from log import logger
from util import ByteSink, ByteSource, parse_filename


class EditorState(Enum):
    OPEN = "open"
    FAILED = "failed"
    CLOSED = "closed"


class BankEditor:
    '''
    Edits the embedded media of one Wwise SoundBank (BKHD, DIDX, DATA and
    whatever trails them).

    The original file is read exactly once, front to back. Entry bytes are
    pulled from it lazily in offset order and kept in memory the first time
    they are needed, either for export or for writing a new bank.
    Replacements are only recorded until write() is called.

    Not thread safe. Callers must serialize access to one editor.
    '''

    def __init__(self, source: ByteSource, bank: SoundBank, path: str = ""):
        self.source = source
        self.bank = bank
        self.path = to_posix(path) if path else source.name
        self.endian = source.endian
        self.state = EditorState.OPEN
        # the entry whose read last moved the source forward
        self._last_read: Entry | None = None

    @classmethod
    def open(cls, path: str, endian: str = DEFAULT_ENDIAN) -> Self:
        """
        @exception
        - BankError (CAPACITY_EXCEEDED, MALFORMED_HEADER, CORRUPT_SECTION,
          INSUFFICIENT_DATA, IO_FAILURE)
        """
        size = get_file_size(path)
        if size > MAX_ADDRESSABLE_SIZE:
            raise BankError(
                ErrorKind.CAPACITY_EXCEEDED,
                f"File is larger than {MAX_ADDRESSABLE_SIZE} bytes",
                length=size, path=to_posix(path)
            )

        source = ByteSource.from_file(path, endian)
        try:
            bank = cls.parse(source)
        except BankError as e:
            logger.error(f"Failed to open {path}: {e}")
            source.close()
            raise

        logger.info(f"Opened {path}: {len(bank.entries)} entries, data section "
                    f"at {bank.data_section_start} with length "
                    f"{bank.declared_data_length}")
        return cls(source, bank, path)

    @staticmethod
    def parse(source: ByteSource) -> SoundBank:
        bank = SoundBank()

        BankEditor._expect_tag(source, BKHD)
        header_length = source.uint32_read()
        bank.header = source.read(header_length)

        BankEditor._expect_tag(source, DIDX)
        didx_length = source.uint32_read()
        if didx_length % DIDX_RECORD_SIZE != 0:
            raise BankError(
                ErrorKind.CORRUPT_SECTION,
                f"{DIDX} length {didx_length} is not a multiple of "
                f"{DIDX_RECORD_SIZE}",
                offset=source.tell() - 4, length=didx_length
            )

        prev: Entry | None = None
        for index in range(didx_length // DIDX_RECORD_SIZE):
            record_offset = source.tell()
            entry = Entry(
                source.uint32_read(), source.uint32_read(), source.uint32_read()
            )
            if prev != None and entry.original_offset < prev.original_offset:
                raise BankError(
                    ErrorKind.CORRUPT_SECTION,
                    f"Entry {index} starts at {entry.original_offset}, before "
                    f"entry {index - 1} at {prev.original_offset}",
                    offset=record_offset, entry_id=entry.id, index=index
                )
            bank.add_entry(entry)
            prev = entry

        BankEditor._expect_tag(source, DATA)
        bank.declared_data_length = source.uint32_read()
        bank.data_section_start = source.tell()

        total = bank.get_original_data_length()
        if total > bank.declared_data_length:
            raise BankError(
                ErrorKind.CORRUPT_SECTION,
                f"Entries add up to {total} bytes but {DATA} declares "
                f"{bank.declared_data_length}",
                offset=bank.data_section_start - 4,
                length=bank.declared_data_length
            )
        if bank.declared_data_length > source.remaining():
            raise BankError(
                ErrorKind.CORRUPT_SECTION,
                f"{DATA} declares {bank.declared_data_length} bytes but only "
                f"{source.remaining()} remain",
                offset=bank.data_section_start - 4,
                length=bank.declared_data_length
            )
        for index, entry in enumerate(bank.entries):
            if entry.original_offset + entry.original_length > bank.declared_data_length:
                raise BankError(
                    ErrorKind.CORRUPT_SECTION,
                    f"Entry {index} runs past the end of {DATA}",
                    offset=entry.original_offset,
                    length=entry.original_length,
                    entry_id=entry.id, index=index
                )

        return bank

    @staticmethod
    def _expect_tag(source: ByteSource, tag: str):
        position = source.tell()
        if source.remaining() < 4:
            raise BankError(
                ErrorKind.MALFORMED_HEADER, f"Missing {tag} section",
                offset=position, path=source.name
            )
        found = source.tag4_read()
        if found != tag:
            raise BankError(
                ErrorKind.MALFORMED_HEADER,
                f"Expected {tag} section, found {found!r}",
                offset=position, path=source.name
            )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __del__(self):
        source = getattr(self, "source", None)
        if source is not None and not source.closed:
            try:
                source.close()
            except BankError as e:
                logger.warning(f"Failed to release {source.name}: {e}")

    def close(self):
        if self.state == EditorState.CLOSED:
            return
        self.state = EditorState.CLOSED
        self.source.close()
        logger.info(f"Closed {self.path}")

    def _ensure_usable(self):
        if self.state == EditorState.FAILED:
            raise BankError(
                ErrorKind.IO_FAILURE,
                "Editor is unusable after an earlier read failure",
                path=self.path
            )
        if self.state == EditorState.CLOSED:
            raise BankError(
                ErrorKind.IO_FAILURE, "Editor has been closed", path=self.path
            )

    @contextlib.contextmanager
    def _reading_source(self):
        self._ensure_usable()
        try:
            yield
        except BankError as e:
            if e.is_io_failure():
                self.state = EditorState.FAILED
                logger.error(f"Read failure on {self.path}: {e}")
            raise

    def get_ids(self) -> list[int]:
        return self.bank.get_ids()

    def get_entries(self) -> list[Entry]:
        return list(self.bank.entries)

    def get_entry_count(self) -> int:
        return len(self.bank.entries)

    def resolve(self, selector: int, by_id: bool = False) -> int:
        """
        @return (int): position of the selected entry

        @exception
        - BankError (LOOKUP_FAILURE)
        """
        if by_id:
            try:
                return self.bank.id_to_index[selector]
            except KeyError:
                raise BankError(
                    ErrorKind.LOOKUP_FAILURE, f"No entry with id {selector}",
                    entry_id=selector
                )
        if not 0 <= selector < len(self.bank.entries):
            raise BankError(
                ErrorKind.LOOKUP_FAILURE,
                f"Entry position {selector} is out of bounds "
                f"(bank has {len(self.bank.entries)} entries)",
                index=selector
            )
        return selector

    def get_entry(self, selector: int, by_id: bool = False) -> Entry:
        return self.bank.entries[self.resolve(selector, by_id)]

    def _cache_through(self, index: int):
        for position in range(index + 1):
            entry = self.bank.entries[position]
            if not entry.is_cached():
                self._cache_entry(position, entry)

    def _cache_entry(self, position: int, entry: Entry):
        start = self.bank.data_section_start + entry.original_offset
        end = start + entry.original_length
        current = self.source.tell()

        with self._reading_source():
            if start >= current:
                self.source.skip_until(start)
                data = self.source.read(entry.original_length)
                self._last_read = entry
            else:
                # overlaps the previously read entry, which ends at `current`
                last = self._last_read
                if last is None or last.cached_bytes is None:
                    raise BankError(
                        ErrorKind.OUT_OF_RANGE,
                        f"Entry {position} lies behind the read position "
                        f"{current}",
                        offset=start, entry_id=entry.id, index=position
                    )
                last_start = self.bank.data_section_start + last.original_offset
                if end <= current:
                    data = last.cached_bytes[start - last_start:end - last_start]
                else:
                    data = last.cached_bytes[start - last_start:] \
                            + self.source.read(end - current)
                    self._last_read = entry

        entry.set_cached_bytes(data)
        logger.debug(f"Cached entry {position} (id {entry.id}, "
                     f"{entry.original_length} bytes at {start})")

    def get_entry_data(self, selector: int, by_id: bool = False) -> bytes:
        """
        Original content of an entry, regardless of any pending replacement.

        @exception
        - BankError (LOOKUP_FAILURE, IO_FAILURE)
        """
        index = self.resolve(selector, by_id)
        entry = self.bank.entries[index]
        if not entry.is_cached():
            self._cache_through(index)
        return entry.cached_bytes

    def export_entry(self, selector: int, destination: str, by_id: bool = False) -> int:
        data = self.get_entry_data(selector, by_id)
        sink = ByteSink.from_file(destination, self.endian)
        try:
            sink.write(data)
        finally:
            sink.finish()
        logger.info(f"Exported {len(data)} bytes to {destination}")
        return len(data)

    def export_all(self, folder: str) -> list[str]:
        """
        Export every entry as `<position + 1>_<id>.wem` into `folder`
        """
        try:
            os.makedirs(folder, exist_ok=True)
        except OSError as e:
            raise BankError(
                ErrorKind.IO_FAILURE, f"Cannot create folder {folder}",
                path=to_posix(folder)
            ) from e
        paths: list[str] = []
        for index, entry in enumerate(self.bank.entries):
            path = to_posix(os.path.join(folder, f"{index + 1}_{entry.id}.wem"))
            self.export_entry(index, path)
            paths.append(path)
        return paths

    def set_replacement(
        self,
        selector: int,
        source: str | bytes,
        by_id: bool = False
    ):
        """
        Record new content for an entry. A file path is not read until
        write(); only its size is taken now.

        @exception
        - BankError (LOOKUP_FAILURE, CAPACITY_EXCEEDED, IO_FAILURE)
        """
        index = self.resolve(selector, by_id)
        entry = self.bank.entries[index]
        if isinstance(source, (bytes, bytearray, memoryview)):
            replacement = ReplacementSource(data=bytes(source))
        elif not source:
            raise BankError(
                ErrorKind.IO_FAILURE, "Replacement file path is empty",
                entry_id=entry.id, index=index, path=""
            )
        else:
            replacement = ReplacementSource(path=source)
        if replacement.size > MAX_ADDRESSABLE_SIZE:
            raise BankError(
                ErrorKind.CAPACITY_EXCEEDED,
                f"Replacement is larger than {MAX_ADDRESSABLE_SIZE} bytes",
                length=replacement.size, entry_id=entry.id, index=index,
                path=replacement.path or None
            )
        entry.set_replacement(replacement)
        logger.info(f"Entry {index} (id {entry.id}) will be replaced by "
                    f"{replacement.get_identifier()} ({replacement.size} bytes)")

    def clear_replacement(self, selector: int, by_id: bool = False):
        index = self.resolve(selector, by_id)
        entry = self.bank.entries[index]
        if entry.is_replaced():
            logger.info(f"Cancelled replacement of entry {index} (id {entry.id})")
        entry.clear_replacement()

    def clear_all_replacements(self):
        for entry in self.bank.entries:
            entry.clear_replacement()

    def list_pending_replacements(self) -> list[str | None]:
        return [
            entry.replacement.get_identifier() if entry.replacement else None
            for entry in self.bank.entries
        ]

    def has_pending_replacements(self) -> bool:
        return any(entry.is_replaced() for entry in self.bank.entries)

    def replace_from_folder(self, folder: str) -> int:
        """
        Attach every `.wem` in `folder` to the entry whose id its file name
        carries (`<id>...` or `<seq>_<id>...`).

        @return (int): number of replacements set
        """
        count = 0
        for path in list_entry_files(folder):
            entry_id = parse_filename(os.path.basename(path))
            if entry_id not in self.bank.id_to_index:
                logger.warning(f"Skipping {path}: no entry with id {entry_id}")
                continue
            self.set_replacement(entry_id, path, by_id=True)
            count += 1
        return count

    def get_status(self) -> dict[str, int | str]:
        return {
            "path": self.path,
            "state": self.state.value,
            "entries": len(self.bank.entries),
            "replacements": sum(1 for e in self.bank.entries if e.is_replaced()),
            "original_data_length": self.bank.get_original_data_length(),
            "current_data_length": self.bank.get_current_data_length(),
        }

    def write(self, destination: str, endian: str | None = None):
        """
        Write the edited bank to `destination`. The file only appears once
        every byte has been written; on failure `destination` is untouched.

        @exception
        - BankError (STALE_REPLACEMENT_SOURCE, CAPACITY_EXCEEDED, IO_FAILURE)
        """
        self._ensure_usable()
        if endian == None:
            endian = self.endian

        for index, entry in enumerate(self.bank.entries):
            if entry.replacement == None:
                continue
            try:
                entry.replacement.check_available()
            except BankError as e:
                e.entry_id, e.index = entry.id, index
                logger.error(f"Cannot write {destination}: {e}")
                raise

        data_length = self.bank.get_current_data_length()
        if data_length > MAX_ADDRESSABLE_SIZE:
            raise BankError(
                ErrorKind.CAPACITY_EXCEEDED,
                f"New {DATA} section would be {data_length} bytes",
                length=data_length, path=to_posix(destination)
            )

        with atomic_output(destination) as tmp_path:
            sink = ByteSink.from_file(tmp_path, endian)
            try:
                self._write_sections(sink, data_length)
            except BaseException:
                sink.stream.close()
                raise
            sink.finish()

        logger.info(f"Wrote {destination}: {len(self.bank.entries)} entries, "
                    f"{data_length} bytes of data")

    def _write_sections(self, sink: ByteSink, data_length: int):
        bank = self.bank

        sink.tag4_write(BKHD)
        sink.uint32_write(len(bank.header))
        sink.write(bank.header)

        sink.tag4_write(DIDX)
        sink.uint32_write(len(bank.entries) * DIDX_RECORD_SIZE)
        for entry, offset in zip(bank.entries, bank.get_output_offsets()):
            sink.uint32_write(entry.id)
            sink.uint32_write(offset)
            sink.uint32_write(entry.current_length)

        sink.tag4_write(DATA)
        sink.uint32_write(data_length)
        for index, entry in enumerate(bank.entries):
            if entry.replacement != None:
                self._write_replacement(sink, index, entry)
                continue
            if not entry.is_cached():
                self._cache_through(index)
            sink.write(entry.cached_bytes)

        sink.write(self._get_trailing())

    def _write_replacement(self, sink: ByteSink, index: int, entry: Entry):
        replacement = entry.replacement
        if not replacement.is_file():
            sink.write(replacement.data)
            return
        try:
            with open(replacement.path, "rb") as f:
                copied = sink.copy_from(f, replacement.size)
                extra = f.read(1)
        except OSError as e:
            raise BankError(
                ErrorKind.STALE_REPLACEMENT_SOURCE,
                "Failed to read replacement file",
                entry_id=entry.id, index=index, path=replacement.path
            ) from e
        if copied != replacement.size or len(extra) > 0:
            raise BankError(
                ErrorKind.STALE_REPLACEMENT_SOURCE,
                f"Replacement file changed while writing, expected "
                f"{replacement.size} bytes",
                length=copied, entry_id=entry.id, index=index,
                path=replacement.path
            )

    def _get_trailing(self) -> bytes:
        if self.bank.trailing is None:
            # cache everything first, nothing before the data end can be read
            # once the source has moved past it
            self._cache_through(len(self.bank.entries) - 1)
            with self._reading_source():
                if self.source.tell() < self.bank.get_data_section_end():
                    self.source.skip_until(self.bank.get_data_section_end())
                self.bank.trailing = self.source.read_rest()
        return self.bank.trailing
