# Block geometry
BLOCK_SIZE = 512
HEADER_SIZE = BLOCK_SIZE
DEFAULT_TAIL_LENGTH = BLOCK_SIZE * 2  # minimum end-of-archive marker

# Fixed header values
USTAR_MAGIC = b"ustar "   # 6 bytes, not NUL terminated
USTAR_VERSION = b" \x00"  # 2 bytes
REGTYPE = b"0"
CHKSUM_BLANK = b" " * 8

# Mode field holds 7 octal digits + NUL
MODE_DIGITS = 7

# FileRecord defaults
DEFAULT_MODE = "644"
DEFAULT_MTIME = 0
DEFAULT_UID = 0
DEFAULT_GID = 0
DEFAULT_UNAME = "root"
DEFAULT_GNAME = "root"

TEXT_ENCODING = "utf-8"
