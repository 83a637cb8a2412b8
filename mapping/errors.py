class MappingError(Exception):
    """Base class for lead mapping failures."""


class CatalogUnavailable(MappingError):
    """The CRM custom-field catalog could not be fetched (transport, auth or payload)."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class UnsupportedValueShape(MappingError):
    """A submitted value does not have the shape its field spec declares."""

    def __init__(self, semantic_key: str, value_type: str, expected: str):
        super().__init__(f"{semantic_key}: got {value_type}, expected {expected}")
        self.semantic_key = semantic_key
        self.value_type = value_type
        self.expected = expected


class InvalidSubmission(MappingError):
    """The inbound payload cannot be turned into a lead submission."""
