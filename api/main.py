from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from categories import router as categories_router
from core import config, db, errors, log
from products import images
from products import router as products_router


@asynccontextmanager
async def lifespan(_: FastAPI):
    log.configure_logging()
    images.ensure_uploads_dir()
    # Initialize the DB pool once per process.
    await db.init_pool()
    try:
        yield
    finally:
        await db.close_pool()


app = FastAPI(title="Catalog API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(log.request_logging_middleware)

errors.register_exception_handlers(app)

# Image URLs stored in product_images are served from here. UPLOAD_DIR and
# UPLOAD_URL_PREFIX are bound once, when this module is imported.
app.mount(images.url_prefix(), StaticFiles(directory=images.uploads_dir(), check_dir=False), name="uploads")

app.include_router(products_router.router, tags=["products"])
app.include_router(categories_router.router, tags=["categories"])


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "catalog api"}
