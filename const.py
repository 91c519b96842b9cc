# [Chunk Tags]
BKHD = "BKHD"
DIDX = "DIDX"
DATA = "DATA"
# [End]

# [Layout]
# id, offset, length
DIDX_RECORD_SIZE = 12
# offsets and lengths are stored as u32
MAX_ADDRESSABLE_SIZE = 0xFFFFFFFF
# [End]

# [Endianness]
LITTLE_ENDIAN = "<"
BIG_ENDIAN = ">"
DEFAULT_ENDIAN = LITTLE_ENDIAN
# [End]

# [Misc]
COPY_CHUNK_SIZE = 64 * 1024
MAX_RECENT_FILES = 10
# [End]

SUPPORTED_ENTRY_TYPES = [".wem"]

ENDIAN_NAMES = {
    "little": LITTLE_ENDIAN,
    "big": BIG_ENDIAN,
}
