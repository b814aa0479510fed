from fastapi.responses import JSONResponse

from agap.shared.utils import to_json


def _envelope(status: str, message: str, data, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": status, "message": message, "data": data},
    )


def success_response(data=None, message="Success", status_code=200):
    """`{"status": "success", "message", "data"}` with data made JSON safe"""
    return _envelope("success", message, to_json(data), status_code)


def error_response(message, status_code=400):
    return _envelope("error", message, None, status_code)
