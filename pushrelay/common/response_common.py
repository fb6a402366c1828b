from typing import Any, Dict

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


class ResponseCommon:
    """Standard ``{ok: ...}`` JSON envelope used by every endpoint."""

    def __init__(self, ok: bool, code: int = status.HTTP_200_OK, **fields: Any):
        self.ok = ok
        self.code = code
        self.fields = fields

    def to_json(self) -> Dict[str, Any]:
        return jsonable_encoder({"ok": self.ok, **self.fields})

    def to_response(self) -> JSONResponse:
        return JSONResponse(content=self.to_json(), status_code=self.code)

    @classmethod
    def success_response(cls, code: int = status.HTTP_200_OK, **fields: Any) -> "ResponseCommon":
        return cls(ok=True, code=code, **fields)

    @classmethod
    def error_response(cls, message: str, code: int = status.HTTP_400_BAD_REQUEST) -> "ResponseCommon":
        return cls(ok=False, code=code, message=message)
