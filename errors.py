from enum import Enum


class ErrorKind(Enum):
    MALFORMED_HEADER = "malformed header"
    CORRUPT_SECTION = "corrupt section"
    CAPACITY_EXCEEDED = "capacity exceeded"
    LOOKUP_FAILURE = "lookup failure"
    IO_FAILURE = "io failure"
    STALE_REPLACEMENT_SOURCE = "stale replacement source"
    # raised by the byte source itself
    INSUFFICIENT_DATA = "insufficient data"
    OUT_OF_RANGE = "out of range"


class BankError(Exception):
    '''
    The only exception type raised by the SoundBank editor.

    `kind` tells what went wrong. The remaining keyword fields carry the
    offending values (absolute offset, length, entry id, entry position or
    file path) so callers can report them without parsing the message.
    '''

    def __init__(
        self,
        kind: ErrorKind,
        message: str = "",
        offset: int | None = None,
        length: int | None = None,
        entry_id: int | None = None,
        index: int | None = None,
        path: str | None = None
    ):
        self.kind = kind
        self.message = message
        self.offset = offset
        self.length = length
        self.entry_id = entry_id
        self.index = index
        self.path = path
        super().__init__(str(self))

    def context(self) -> dict[str, int | str]:
        fields = {
            "offset": self.offset,
            "length": self.length,
            "entry_id": self.entry_id,
            "index": self.index,
            "path": self.path,
        }
        return {k: v for k, v in fields.items() if v is not None}

    def is_io_failure(self) -> bool:
        return self.kind in (ErrorKind.IO_FAILURE,
                             ErrorKind.STALE_REPLACEMENT_SOURCE)

    def __str__(self):
        text = f"{self.kind.value}: {self.message}" if self.message \
                else self.kind.value
        ctx = self.context()
        if len(ctx) > 0:
            text += " (" + ", ".join(f"{k}={v}" for k, v in ctx.items()) + ")"
        return text
