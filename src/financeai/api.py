"""Summary: FastAPI application for FinanceAI.

Importance: Serves the Discord login flow, the auth bridge, and health checks.
Alternatives: Run the OAuth flow from the bot alone with a local redirect listener.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from financeai.app import AppContext, build_context, configure_logging
from financeai.config import AppConfig
from financeai.errors import AppError
from financeai.oauth import AuthRequest, AuthResponse, DiscordAuthHandler


logger = logging.getLogger(__name__)

AUTH_FAILURE = {"error": "Internal authentication error", "code": "AUTH_FAILURE"}

LOGIN_SUCCESS_PAGE = """
<!DOCTYPE html>
<html>
<head>
  <title>Login Realizado</title>
  <meta charset="utf-8">
  <style>
    body { font-family: Arial, sans-serif; text-align: center; padding: 50px; background: #f0f2f5; }
    .container { background: white; padding: 40px; border-radius: 10px; max-width: 500px;
                 margin: 0 auto; box-shadow: 0 4px 6px rgba(0,0,0,0.1); }
    h1 { color: #4CAF50; }
    p { color: #666; font-size: 18px; }
    .discord { color: #5865F2; font-weight: bold; }
  </style>
</head>
<body>
  <div class="container">
    <h1>✅ Login realizado com sucesso!</h1>
    <p>Sua conta Discord foi conectada com sucesso.</p>
    <p>Agora você pode voltar para o <span class="discord">Discord</span> e conversar com o bot!</p>
    <p><strong>Pode fechar esta página.</strong></p>
  </div>
</body>
</html>
""".strip()

LOGOUT_PAGE = """
<!DOCTYPE html>
<html>
<head>
  <title>Logout</title>
  <meta charset="utf-8">
</head>
<body style="font-family: Arial, sans-serif; text-align: center; padding: 50px;">
  <h1>🚪 Logout</h1>
  <p>Para desconectar sua conta, remova o aplicativo em
  <strong>Configurações do Discord → Aplicativos Autorizados</strong>.</p>
  <p>Você pode fazer login novamente a qualquer momento com <code>/login</code>.</p>
</body>
</html>
""".strip()


async def to_auth_request(request: Request) -> AuthRequest:
    """Summary: Convert a FastAPI request into an AuthRequest.

    Importance: Repeated headers are joined with ", " and a JSON body is re-serialized.
    Alternatives: Hand the Starlette request to the handler directly.
    """

    headers = {key: ", ".join(request.headers.getlist(key)) for key in request.headers.keys()}
    raw = await request.body()
    body = None
    if raw:
        try:
            body = json.dumps(json.loads(raw))
        except ValueError:
            body = raw.decode("utf-8", errors="replace")
    return AuthRequest(method=request.method, url=str(request.url), headers=headers, body=body)


def to_response(auth_response: AuthResponse) -> Response:
    """Summary: Mirror an AuthResponse onto a FastAPI response.

    Importance: Headers that cannot be set are logged and skipped.
    Alternatives: Fail the whole response on a bad header.
    """

    content_type = auth_response.headers.get("content-type")
    media_type = None
    if content_type and "application/json" in content_type:
        media_type = "application/json"
    elif content_type:
        media_type = content_type
    response = Response(
        content=auth_response.body or b"",
        status_code=auth_response.status,
        media_type=media_type,
    )
    for key, value in auth_response.headers.items():
        if key.lower() == "content-type":
            continue
        try:
            response.headers[key] = value
        except (UnicodeEncodeError, ValueError):
            logger.warning("Failed to set header %s: %s", key, value)
    return response


def create_app(config: AppConfig, context: AppContext | None = None) -> FastAPI:
    """Summary: Create a FastAPI app wired to FinanceAI services.

    Importance: Ensures the API layer shares the same configuration and storage as the bot.
    Alternatives: Instantiate services globally outside the factory.
    """

    configure_logging(config.log_level)
    context = context or build_context(config)
    handler: DiscordAuthHandler = context.auth_handler
    app = FastAPI(title="FinanceAI Web Server", version="0.1.0")
    app.state.context = context
    app.state.started_at = time.monotonic()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.trusted_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        logger.info("%s %s received.", request.method, request.url.path)
        response = await call_next(request)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "%s %s -> %s in %sms.",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = AppError.validation_error("Invalid request", {"errors": exc.errors()})
        return JSONResponse(status_code=422, content=jsonable_encoder({"error": error.to_dict()}))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s.", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": AppError.internal().to_dict()})

    @app.api_route("/api/auth/{path:path}", methods=["GET", "POST"])
    async def auth_bridge(request: Request) -> Response:
        """Summary: Forward auth requests to the Discord OAuth handler.

        Importance: Any failure becomes a fixed 500 body instead of leaking details.
        Alternatives: Let exceptions reach the global handler.
        """

        try:
            auth_request = await to_auth_request(request)
            auth_response = await handler.handle(auth_request)
            return to_response(auth_response)
        except Exception:
            logger.exception("Authentication error on %s %s.", request.method, request.url.path)
            return JSONResponse(status_code=500, content=AUTH_FAILURE)

    @app.get("/login/discord")
    async def login_discord() -> Response:
        callback_url = f"{config.auth_base_url}/login-success"
        try:
            result = handler.sign_in_social("discord", callback_url)
            payload = json.loads(result.body or "{}")
        except Exception:
            logger.exception("Discord login failed to start.")
            return JSONResponse(status_code=500, content={"error": "Internal login error"})
        if not payload.get("url"):
            return JSONResponse(status_code=400, content={"error": "Failed to initiate Discord login"})
        return RedirectResponse(payload["url"], status_code=302)

    @app.get("/login-success", response_class=HTMLResponse)
    def login_success() -> str:
        return LOGIN_SUCCESS_PAGE

    @app.get("/logout/discord", response_class=HTMLResponse)
    def logout_discord() -> str:
        return LOGOUT_PAGE

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - app.state.started_at, 3),
        }

    @app.get("/")
    def index() -> dict[str, str]:
        return {
            "message": "Finance AI Web Server",
            "status": "ok",
            "auth": "discord oauth enabled",
        }

    return app
