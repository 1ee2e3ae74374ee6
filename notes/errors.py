"""Error taxonomy shared by the store, the note services and the HTTP layer.

Every error carries an HTTP-ish ``status_code`` and a message that can be shown
to the user as-is.
"""


class NoteError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(NoteError):
    status_code = 400


class EmptyText(InvalidInput):
    pass


class NotFound(NoteError):
    status_code = 404


class TranscriptionError(NoteError):
    status_code = 502


class AnalysisError(NoteError):
    status_code = 502


class StoreError(NoteError):
    status_code = 503
