"""
Overlay error taxonomy.

InputError aborts the whole overlay call. FieldError is raised by renderers and
the image pipeline and is absorbed by the dispatcher into a FieldOutcome.
"""


class OverlayError(Exception):
    """Base overlay error."""

    def __init__(self, message: str, code: str = "OVERLAY_ERROR"):
        super().__init__(message)
        self.code = code
        self.message = message


class InputError(OverlayError):
    """Source document cannot be used. Fatal for the call."""

    def __init__(self, message: str, code: str = "INVALID_DOCUMENT"):
        super().__init__(message, code)


class FieldError(OverlayError):
    """A single field cannot be rendered. Recovered by the dispatcher."""

    def __init__(self, message: str, code: str = "INVALID_FIELD"):
        super().__init__(message, code)
