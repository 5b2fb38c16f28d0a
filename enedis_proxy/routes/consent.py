"""Enedis consent callback."""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter
from fastapi.responses import RedirectResponse

from enedis_proxy.config import get_settings

_LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["consent"])


@router.get("/callback")
async def consent_callback(
    code: str | None = None,
    state: str | None = None,
    usage_point_id: str | None = None,
    error: str | None = None,
) -> RedirectResponse:
    """Send the user back to the front end once Enedis consent is given."""
    redirect_url = get_settings().consent_redirect_url

    if error or not usage_point_id:
        _LOGGER.warning(
            "Consent failed for usage point %s (state=%s): %s",
            usage_point_id,
            state,
            error,
        )
        query = urlencode({"error": "consentement_failed"})
    else:
        _LOGGER.info(
            "Consent received for usage point %s (state=%s, code present: %s)",
            usage_point_id,
            state,
            code is not None,
        )
        query = urlencode({"consentement": "ok", "usage_point_id": usage_point_id})

    return RedirectResponse(url=f"{redirect_url}?{query}", status_code=302)
