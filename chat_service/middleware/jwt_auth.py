"""JWT authentication middleware for REST endpoints"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from chat_service.core.errors import AuthError

logger = logging.getLogger("chat-service.middleware.jwt_auth")


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """
    Middleware for bearer token validation

    Only paths under ``protected_prefix`` require a token; the WebSocket
    endpoint authenticates in the connection gateway.
    """

    def __init__(self, app, protected_prefix: str = "/api/conversations"):
        super().__init__(app)
        self.protected_prefix = protected_prefix

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.protected_prefix):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return JSONResponse(
                status_code=401,
                content={"error": "Missing or invalid Authorization header"},
            )

        token = auth_header[7:]  # Remove "Bearer " prefix
        verifier = request.app.state.container.verifier

        try:
            identity = verifier.verify(token)
        except AuthError as e:
            return JSONResponse(status_code=401, content={"error": e.message})

        request.state.user_id = identity.user_id
        request.state.email = identity.email
        logger.debug(f"JWT validated: user_id={identity.user_id}")

        return await call_next(request)
