import uuid
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from config import get_settings


class SessionMiddleware(BaseHTTPMiddleware):
    """Gives every browser a session id; timelines are keyed by it."""

    async def dispatch(self, request: Request, call_next):
        settings = get_settings()
        session_id = request.cookies.get(settings.session_cookie_name)
        is_new_session = not session_id

        if is_new_session:
            session_id = str(uuid.uuid4())

        # Store session_id in request state for access in routes
        request.state.session_id = session_id

        response: Response = await call_next(request)

        if is_new_session:
            response.set_cookie(
                key=settings.session_cookie_name,
                value=session_id,
                httponly=True,
                secure=settings.session_secure_cookie,
                samesite="lax",
                max_age=60 * 60 * 24 * 30,  # 30 days
            )

        return response


def get_session_id(request: Request) -> str:
    return request.state.session_id
