import json
import logging
from contextlib import asynccontextmanager
from importlib.resources import files
from typing import Annotated

from fastapi import Depends, FastAPI, Header, Query, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from wa_admin.ai import ReplyGenerator
from wa_admin.auth import credentials_match, issue_token, validate_bearer
from wa_admin.config import Settings, get_settings
from wa_admin.control import ActionError, dispatch_action
from wa_admin.logging_utils import RequestLoggingMiddleware, log_webhook_data, setup_logging
from wa_admin.metrics import get_metrics, get_metrics_content_type
from wa_admin.pipeline import process_webhook_payload
from wa_admin.schemas import AuthAction, AuthRequest, HealthResponse
from wa_admin.storage import check_db_health, get_db, init_db
from wa_admin.whatsapp import WhatsAppClient


setup_logging(get_settings().LOG_LEVEL)
logger = logging.getLogger(__name__)

VERIFY_MODE = "subscribe"


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="WhatsApp AI Admin",
    description="Webhook ingestion, automatic replies and operator controls for WhatsApp chats",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


def get_whatsapp_client(settings: Settings = Depends(get_settings)) -> WhatsAppClient:
    return WhatsAppClient.from_settings(settings)


def get_reply_generator(settings: Settings = Depends(get_settings)) -> ReplyGenerator:
    return ReplyGenerator.from_settings(settings)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def read_json_object(request: Request):
    """Decoded JSON body, or None when it is not a JSON object."""
    try:
        body = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - 200 only when the database answers and both chat
    tables exist, 503 otherwise.
    """
    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )
    return HealthResponse(status="ready")


# =============================================================================
# Webhook Routes
# =============================================================================

@app.get("/webhook", response_class=PlainTextResponse)
async def webhook_verify(
    mode: Annotated[str | None, Query(alias="hub.mode")] = None,
    token: Annotated[str | None, Query(alias="hub.verify_token")] = None,
    challenge: Annotated[str | None, Query(alias="hub.challenge")] = None,
    settings: Settings = Depends(get_settings),
) -> PlainTextResponse:
    """
    Subscription handshake: echo ``hub.challenge`` when the mode is
    ``subscribe`` and the token matches WEBHOOK_VERIFY_TOKEN.
    """
    expected = settings.WEBHOOK_VERIFY_TOKEN
    if mode == VERIFY_MODE and expected and token == expected:
        logger.info("Webhook verified successfully")
        return PlainTextResponse(challenge or "", status_code=status.HTTP_200_OK)

    logger.warning(f"Webhook verification failed: mode={mode}")
    return PlainTextResponse("Verification failed", status_code=status.HTTP_403_FORBIDDEN)


@app.post("/webhook", response_class=PlainTextResponse)
async def webhook(
    request: Request,
    db: Session = Depends(get_db),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client),
    replies: ReplyGenerator = Depends(get_reply_generator),
) -> PlainTextResponse:
    """
    Ingest a WhatsApp Cloud API notification.

    Always answers 200 "OK" once the body is parsed, even when storing or
    replying to individual messages failed, so the provider does not redeliver
    the batch. Only a body that cannot be parsed or an unexpected error gives 500.
    """
    try:
        body = json.loads(await request.body())
        summary = await run_in_threadpool(process_webhook_payload, db, body, whatsapp, replies)
    except Exception as e:
        logger.error(f"Error processing webhook: {e}")
        log_webhook_data(request, result="error")
        return PlainTextResponse("Internal Server Error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    log_webhook_data(request, summary=summary, result="ok")
    return PlainTextResponse("OK", status_code=status.HTTP_200_OK)


# =============================================================================
# Operator Routes
# =============================================================================

@app.post("/simple-auth")
async def simple_auth(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """
    Operator login and token check.

    Accepts ``{action: "login"|"verify", ...}`` or a bare
    ``{username, password}`` pair, which is treated as a login.
    """
    try:
        body = await read_json_object(request)
        if body is None:
            return error_response(400, "Invalid request format")
        auth = AuthRequest.model_validate(body)

        if auth.action:
            action = auth.action
        elif auth.username and auth.password:
            action = AuthAction.LOGIN.value
        else:
            return error_response(400, "Invalid request format")

        if action == AuthAction.LOGIN.value:
            if not auth.username or not auth.password:
                return error_response(400, "Username and password required")
            if not credentials_match(auth.username, auth.password, settings):
                logger.warning("Login rejected")
                return error_response(401, "Invalid credentials")
            logger.info("Operator logged in")
            return JSONResponse({
                "success": True,
                "token": issue_token(auth.username, settings),
                "message": "Login successful",
                "username": auth.username,
            })

        if action == AuthAction.VERIFY.value:
            check = validate_bearer(authorization, settings)
            if not check.valid:
                return error_response(401, check.error)
            return JSONResponse({"success": True, "username": check.username, "message": "Token valid"})

        return error_response(400, "Invalid action")
    except Exception as e:
        logger.error(f"Error in authentication: {e}")
        return error_response(500, str(e))


@app.post("/manual-override")
async def manual_override(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client),
) -> JSONResponse:
    """
    Operator actions: get_chats, get_messages, toggle_ai, send_message.

    The bearer token is checked before the body is read.
    """
    check = validate_bearer(authorization, settings)
    if not check.valid:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"success": False, "error": "Unauthorized"},
            headers={"WWW-Authenticate": 'Bearer realm="WhatsApp AI Admin"'},
        )

    try:
        body = await read_json_object(request)
        if body is None:
            return error_response(400, "Invalid request format")
        result = await run_in_threadpool(dispatch_action, db, body, whatsapp)
    except ActionError as e:
        return error_response(e.status_code, e.message)
    except Exception as e:
        logger.error(f"Error in manual override: {e}")
        return error_response(500, str(e))

    return JSONResponse(result)


# =============================================================================
# Web App and Metrics Routes
# =============================================================================

@app.get("/", response_class=HTMLResponse)
async def web_app() -> HTMLResponse:
    """Self-contained operator page."""
    html = files("wa_admin").joinpath("templates/index.html").read_text(encoding="utf-8")
    return HTMLResponse(html)


@app.get("/metrics")
async def metrics() -> Response:
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
