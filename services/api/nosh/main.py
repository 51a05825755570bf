# NOSH Recipe Intelligence API entry point
import logging
import sys

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .exceptions import NoshError
from .settings import settings
from .routers.ready import router as ready_router
from .routers.ai import router as ai_router
from .routers.extract import router as extract_router, limiter
from .routers.cards import router as cards_router
from .routers.recipes import router as recipes_router
from .routers.knowledge import router as knowledge_router

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("nosh")

app = FastAPI(title="NOSH Recipe Intelligence API", version="0.1.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(NoshError)
async def nosh_error_handler(request: Request, exc: NoshError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    logger.info(f"{request.method} {request.url.path} rejected: {message}")
    return JSONResponse(status_code=400, content={"error": message})


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ready_router, prefix="/api", tags=["ready"])
app.include_router(ai_router, prefix="/api", tags=["ai"])
app.include_router(extract_router, prefix="/api", tags=["extract"])
app.include_router(cards_router, prefix="/api", tags=["cards"])
app.include_router(recipes_router, prefix="/api", tags=["recipes"])
app.include_router(knowledge_router, prefix="/api", tags=["knowledge"])
