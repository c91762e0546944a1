class FormServiceError(Exception):
    """Base exception for the form service"""


class SchemaFetchError(FormServiceError):
    """Raised when the form schema cannot be downloaded or decoded"""


class SchemaInvalidError(FormServiceError):
    """Raised when a downloaded payload does not describe a form"""


class FieldValueError(FormServiceError):
    """Raised when a submitted value cannot be stored for a field"""

    def __init__(self, field_id: str, message: str):
        super().__init__(f"{field_id}: {message}")
        self.field_id = field_id


class UnknownFieldError(FieldValueError):
    """Raised when an edit names a field the schema does not declare"""

    def __init__(self, field_id: str):
        super().__init__(field_id, "unknown field")


class FormNotReadyError(FormServiceError):
    """Raised when an edit or submission arrives before the schema is loaded"""
