class HL7Error(Exception):
    """Base class for hl7tree errors."""


class UnparsedMessageError(HL7Error):
    """Raised when an operation needs a message produced by parse()."""

    def __init__(self, operation: str = "") -> None:
        self.operation = operation
        if operation:
            super().__init__(f"{operation}: the message must be parsed")
        else:
            super().__init__("The message must be parsed")


class QueryDepthError(HL7Error):
    def __init__(self, query: str, num_parts: int) -> None:
        self.query = query
        self.num_parts = num_parts
        if num_parts > 0:
            reason = "Too many query parts"
        else:
            reason = "Not enough query parts"
        super().__init__(
            f"{reason} in {query!r}: got {num_parts}, between 1 and 5 parts allowed"
        )


class IllegalOperationError(HL7Error):
    def __init__(self, operation: str, query: str, level: str) -> None:
        self.operation = operation
        self.query = query
        self.level = level
        super().__init__(f"{operation} cannot be run on {level}s: {query!r}")


class MalformedHeaderError(HL7Error):
    def __init__(self, length: int, minimum: int) -> None:
        self.length = length
        super().__init__(
            f"Header too short to hold separators: {length} chars (need at least {minimum})"
        )


class UnknownCommandError(HL7Error):
    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(f"Unknown command: {command!r}")
