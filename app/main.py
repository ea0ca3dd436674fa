from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.auth import router as auth_router
from app.api.deps import require_admin, require_user_auth
from app.api.documents import router as documents_router
from app.api.users import router as users_router
from app.config import settings
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware
from app.services.storage import storage


@asynccontextmanager
async def lifespan(app: FastAPI):
    Path(storage.upload_dir).mkdir(parents=True, exist_ok=True)
    yield


configure_logging()

app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(auth_router)
_include_api_router(documents_router, dependencies=[Depends(require_user_auth)])
_include_api_router(users_router, dependencies=[Depends(require_admin)])


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
