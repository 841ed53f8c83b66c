import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from welcome_code.core.dependencies import get_welcome_code_service, require_proxy_signature
from welcome_code.core.logging_config import mask_email
from welcome_code.schemas.welcome import ApiMessage, WelcomeCodeRequest
from welcome_code.services.welcome_codes import FirstPurchaseOnlyError, WelcomeCodeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/welcome", tags=["welcome"])

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def _read_payload(request: Request) -> dict[str, Any]:
    # The storefront proxy forwards either a JSON body or a plain HTML form post.
    content_type = (request.headers.get("content-type") or "").lower()
    if any(kind in content_type for kind in _FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items()}
    try:
        data = await request.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


@router.post("/subscribe", response_model=ApiMessage, dependencies=[Depends(require_proxy_signature)])
async def subscribe_welcome_code(
    request: Request,
    service: WelcomeCodeService = Depends(get_welcome_code_service),
) -> ApiMessage:
    try:
        payload = WelcomeCodeRequest.model_validate(await _read_payload(request))
    except ValidationError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please enter a valid email.")

    try:
        outcome = await service.issue(payload.email)
    except FirstPurchaseOnlyError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Coupon codes are for first purchase only.")
    except Exception:
        logger.exception("Welcome code issuance failed", extra={"email": mask_email(payload.email)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error. Please try again later."
        )

    if outcome.resent:
        return ApiMessage(ok=True, message="Code already issued; re-sent to your email.")
    return ApiMessage(ok=True, message="Your 10% code has been emailed.")


@router.api_route("/subscribe", methods=["GET", "HEAD", "OPTIONS", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def subscribe_method_not_allowed() -> ApiMessage:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Method not allowed")
