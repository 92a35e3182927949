"""Refresh-token exchange endpoint.

Mounted at the application root (not under /api/v1) because the ``qid``
cookie is scoped to ``Path=/refresh_token``; the browser attaches it to
this URL and nowhere else.
"""

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from remaster_auth.api.deps import Codec, DbSession
from remaster_auth.core.auth import read_refresh_cookie, set_refresh_cookie
from remaster_auth.core.errors import UnauthorizedError
from remaster_auth.schemas.auth import RefreshTokenError, RefreshTokenResponse, UserOut
from remaster_auth.services.session_refresh import refresh_session

router = APIRouter()


@router.post(
    "/refresh_token",
    response_model=RefreshTokenResponse,
    responses={401: {"model": RefreshTokenError}},
)
async def refresh_token(
    request: Request,
    response: Response,
    db: DbSession,
    codec: Codec,
) -> RefreshTokenResponse | JSONResponse:
    """Exchange the refresh cookie for a new access token.

    Rotates the refresh cookie on success. Every failure returns 401 with
    the same body, whatever the reason.
    """
    try:
        session = await refresh_session(db, codec, read_refresh_cookie(request))
    except UnauthorizedError as exc:
        return JSONResponse(
            status_code=401,
            content=RefreshTokenError(error=exc.message).model_dump(),
        )

    set_refresh_cookie(response, session.pair.refresh)
    return RefreshTokenResponse(
        access_token=session.pair.access.token,
        expires_in=session.pair.access.expires_in,
        user=UserOut.model_validate(session.user),
    )
