from .session import SessionMiddleware, get_session_id
