"""Error taxonomy shared by services and the HTTP layer.

Every error carries a stable ``kind`` (returned to clients as ``error``) and a
free-text ``detail``.
"""


class LabTrackError(Exception):
    kind = "ServerError"
    status_code = 500

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.detail}


class Unauthorized(LabTrackError):
    kind = "Unauthorized"
    status_code = 401


class Forbidden(LabTrackError):
    kind = "Forbidden"
    status_code = 403


class NotFound(LabTrackError):
    kind = "NotFound"
    status_code = 404


class ValidationFailure(LabTrackError):
    kind = "ValidationFailure"
    status_code = 422


class ServerError(LabTrackError):
    pass
