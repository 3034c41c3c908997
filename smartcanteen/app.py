import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from smartcanteen import __version__
from smartcanteen.config import get_settings, validate_settings
from smartcanteen.database import SessionLocal, init_db
from smartcanteen.errors import CanteenError, ConcurrentUpdate, UnsupportedDocumentVersion
from smartcanteen.routes import menu, history, orders, kitchen, forecast, session, notifications
from smartcanteen.seed import seed_if_empty

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Misconfiguration stops the service here instead of degrading silently later
    validate_settings(get_settings())
    init_db()
    # Request handlers that write hold this from load to commit
    app.state.write_lock = asyncio.Lock()
    if get_settings().SEED_DEMO_DATA:
        db = SessionLocal()
        try:
            if seed_if_empty(db):
                logger.info("Seeded empty store with starter menu and audit logs")
        finally:
            db.close()
    logger.info("SmartCanteen %s started (forecast provider: %s)", __version__, get_settings().FORECAST_PROVIDER)
    yield


app = FastAPI(title="SmartCanteen", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(menu.router)
app.include_router(history.router)
app.include_router(orders.router)
app.include_router(kitchen.router)
app.include_router(forecast.router)
app.include_router(session.router)
app.include_router(notifications.router)


@app.exception_handler(UnsupportedDocumentVersion)
async def unsupported_document(request: Request, exc: UnsupportedDocumentVersion):
    logger.error("Refusing to read stored state: %s", exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(ConcurrentUpdate)
async def concurrent_update(request: Request, exc: ConcurrentUpdate):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(CanteenError)
async def canteen_error(request: Request, exc: CanteenError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.get("/health")
def health_check():
    """Health check endpoint for uptime monitors"""
    return {
        "status": "healthy",
        "forecast_provider": get_settings().FORECAST_PROVIDER,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("smartcanteen.app:app", host="0.0.0.0", port=8000, reload=True)
