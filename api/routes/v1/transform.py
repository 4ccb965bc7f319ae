"""
api/routes/v1/transform.py -- Password forging endpoint.

Routes:
  POST /api/v1/transform -- forge a password from a phrase (public)

The engine lives on app.state.engine (built once in lifespan from settings).
With the remote backend configured a failing upstream surfaces as
502 transform_unavailable via the ForgeError handler in api/main.py.
"""

from fastapi import APIRouter, Request

from api.models import TransformRequest, TransformResponse
from core.transform import TransformEngine

router = APIRouter()


@router.post("/transform", response_model=TransformResponse)
def transform(request: Request, body: TransformRequest) -> TransformResponse:
    """Substitute, pad, and shuffle body.text into a new password.

    Each call draws fresh randomness, so the same phrase yields a different
    arrangement every time.
    """
    engine: TransformEngine = request.app.state.engine
    password = engine.transform(body.text)
    return TransformResponse(password=password, length=len(password))
