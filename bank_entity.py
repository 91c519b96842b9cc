import os

from errors import BankError, ErrorKind
from fileutil import get_file_size, to_posix


class ReplacementSource:
    '''
    New content for one entry. Either a file on disk, which is only opened
    when the bank is written, or bytes already in memory.
    '''

    def __init__(self, path: str = "", data: bytes | None = None):
        if (path == "") == (data is None):
            raise ValueError("A replacement needs exactly one of path or data")
        self.path = to_posix(path) if path else ""
        self.data = bytes(data) if data is not None else None
        self.size = len(self.data) if self.data is not None \
                else get_file_size(self.path)

    def is_file(self) -> bool:
        return self.data is None

    def get_identifier(self) -> str:
        if self.is_file():
            return self.path
        return f"<memory:{self.size} bytes>"

    def check_available(self):
        """
        Make sure the source still exists and still has the length recorded
        when it was attached.

        @exception
        - BankError (STALE_REPLACEMENT_SOURCE)
        """
        if not self.is_file():
            return
        try:
            size = os.path.getsize(self.path)
        except OSError as e:
            raise BankError(
                ErrorKind.STALE_REPLACEMENT_SOURCE,
                "Replacement file is no longer accessible",
                path=self.path
            ) from e
        if size != self.size:
            raise BankError(
                ErrorKind.STALE_REPLACEMENT_SOURCE,
                f"Replacement file changed size from {self.size} to {size}",
                length=size, path=self.path
            )

    def __repr__(self):
        return f"ReplacementSource({self.get_identifier()!r})"


class Entry:

    def __init__(self, entry_id: int, original_offset: int, original_length: int):
        self.id = entry_id
        self.original_offset = original_offset
        self.original_length = original_length
        self.current_length = original_length
        self.cached_bytes: bytes | None = None
        self.replacement: ReplacementSource | None = None

    def get_id(self) -> int:
        return self.id

    def is_cached(self) -> bool:
        return self.cached_bytes is not None

    def set_cached_bytes(self, data: bytes):
        if self.cached_bytes is not None:
            raise RuntimeError(f"Entry {self.id} has already been cached")
        if len(data) != self.original_length:
            raise ValueError(
                f"Entry {self.id} expects {self.original_length} bytes, "
                f"got {len(data)}"
            )
        self.cached_bytes = data

    def is_replaced(self) -> bool:
        return self.replacement is not None

    def set_replacement(self, replacement: ReplacementSource):
        self.replacement = replacement
        self.current_length = replacement.size

    def clear_replacement(self):
        self.replacement = None
        self.current_length = self.original_length

    def __repr__(self):
        return (f"Entry(id={self.id}, offset={self.original_offset}, "
                f"length={self.original_length}, "
                f"current_length={self.current_length})")


class SoundBank:

    def __init__(self):
        self.header = b""
        self.entries: list[Entry] = []
        # first occurrence wins when ids repeat
        self.id_to_index: dict[int, int] = {}
        self.data_section_start = 0
        self.declared_data_length = 0
        self.trailing: bytes | None = None

    def add_entry(self, entry: Entry):
        self.id_to_index.setdefault(entry.id, len(self.entries))
        self.entries.append(entry)

    def get_ids(self) -> list[int]:
        return [entry.id for entry in self.entries]

    def get_data_section_end(self) -> int:
        return self.data_section_start + self.declared_data_length

    def get_original_data_length(self) -> int:
        return sum(entry.original_length for entry in self.entries)

    def get_current_data_length(self) -> int:
        return sum(entry.current_length for entry in self.entries)

    def get_output_offsets(self) -> list[int]:
        offsets: list[int] = []
        offset = 0
        for entry in self.entries:
            offsets.append(offset)
            offset += entry.current_length
        return offsets
