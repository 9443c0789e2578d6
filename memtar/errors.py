class MemtarError(Exception):
    """Base class for memtar-specific errors."""


# Header encoding
class EncodingError(MemtarError, ValueError):
    """A header field cannot be represented in the ustar layout."""


class FieldOverflow(EncodingError):
    def __init__(self, field: str, value: int, limit: int):
        self.field = field
        self.value = value
        self.limit = limit
        if value < 0:
            msg = f"{field}: negative value {value} cannot be encoded"
        else:
            msg = f"{field}: value {value} exceeds octal field limit {limit} ({limit:o} octal)"
        super().__init__(msg)


class NameTooLong(EncodingError):
    def __init__(self, field: str, length: int, limit: int):
        self.field = field
        self.length = length
        self.limit = limit
        super().__init__(f"{field} too long: {length} bytes (max {limit})")


class InvalidMode(EncodingError):
    pass


# Writer state
class ArchiveFinalized(MemtarError):
    pass
