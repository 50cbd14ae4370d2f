"""
Mutation payload validation routes
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from ...schemas import validate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/validate", tags=["Validation"])


@router.post(
    "/{collection}/{operation}",
    summary="Validate a mutation payload",
    description="""
    Run a create or update payload through the entity's schema.

    Returns the normalized value (free text sanitized, disallowed update
    fields dropped) or the list of validation messages.
    """,
)
async def validate_payload(
    collection: str,
    operation: str,
    payload: Dict[str, Any] = Body(...),
) -> JSONResponse:
    outcome = validate(collection, operation, payload)

    if not outcome.ok:
        logger.info(f"Validation failed for {operation} on {collection}: {len(outcome.messages)} messages")

    return JSONResponse(status_code=200 if outcome.ok else 422, content=outcome.to_dict())
