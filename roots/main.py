import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from roots.config import settings
from roots.db.session import Database, get_database
from roots.errors import register_exception_handlers
from roots.auth.routes import router as auth_router
from roots.auth.service import seed_roles
from roots.books import routes as books
from roots.gallery import routes as gallery
from roots.trees import routes as trees
from roots.storage.files import get_file_store

logger = logging.getLogger(__name__)

UPLOAD_KINDS = ("books", "gallery", "trees")

def init_storage() -> None:
    get_file_store().ensure_dirs(UPLOAD_KINDS)

def init_db() -> None:
    database = get_database()
    database.init_schema()
    with database.session() as db:
        seed_roles(db)

@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.secret_key:
        raise RuntimeError("SECRET_KEY is not set")
    init_storage()
    init_db()
    logger.info("%s started (%s)", settings.app_name, settings.app_env)
    yield
    get_database().dispose()

def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(auth_router)
    for module in (books, gallery, trees):
        app.include_router(module.public_router)
        app.include_router(module.my_router)
        app.include_router(module.admin_router)

    app.mount("/uploads", StaticFiles(directory=settings.uploads_dir, check_dir=False), name="uploads")

    @app.get("/", tags=["root"])
    def root():
        return {"name": settings.app_name, "env": settings.app_env}

    @app.get("/health", tags=["root"])
    def health(database: Database = Depends(get_database)):
        if database.breaker.is_open:
            return JSONResponse(status_code=503, content={"status": "degraded", "database": "unavailable"})
        return {"status": "ok", "database": "ok"}

    return app

app = create_app()
