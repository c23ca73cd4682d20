class SerumPresetError(Exception):
    """Base class for preset container errors."""


# Header/framing
class FormatMismatch(SerumPresetError):
    pass


class HeaderTruncated(FormatMismatch):
    pass


# Sections
class MetadataDecodeError(SerumPresetError):
    pass


class LengthMismatch(SerumPresetError):
    def __init__(self, declared: int, actual: int):
        super().__init__(f"Decompressed length mismatch (declared {declared}, got {actual})")
        self.declared = declared
        self.actual = actual


class PayloadDecodeError(SerumPresetError):
    pass


# Collaborators
class CodecError(SerumPresetError):
    pass


class ContainerIOError(SerumPresetError):
    pass


# Logical document
class DocumentError(SerumPresetError):
    pass
