# storefront/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from storefront.core.config import get_settings
from storefront.core.supabase_client import create_supabase_client
from storefront.database import create_db_and_tables, create_local_engine
from storefront.repositories.product_repo import ProductRepository
from storefront.services.session import create_storefront_session

# Routers
from storefront.routers.cart import router as cart_router
from storefront.routers.notifications import router as notifications_router
from storefront.routers.session import router as session_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Open the device-local store and create its table.
      - Create the async Supabase client.
      - Build the StorefrontSession and load the guest cart.

    Shutdown:
      - Release the realtime channel and flush in-flight remote writes.
    """
    logger.info("🔄 Startup: Opening device store at %s", settings.LOCAL_STORE_URL)
    local_engine = create_local_engine(settings.LOCAL_STORE_URL)
    create_db_and_tables(local_engine)

    try:
        client = await create_supabase_client(settings)
    except Exception as e:
        logger.error(f"❌ Startup: Supabase client FAILED: {e}")
        raise

    storefront = create_storefront_session(client, local_engine, settings)
    await storefront.init()
    app.state.storefront = storefront
    app.state.products = ProductRepository(client, settings.PRODUCTS_TABLE)
    logger.info("✅ Startup: storefront session ready (guest).")

    yield

    await storefront.dispose()
    local_engine.dispose()
    logger.info("Shutdown: storefront session disposed.")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
# The storefront UI runs on the same device.
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(session_router, prefix=settings.API_V1_STR)
app.include_router(cart_router, prefix=settings.API_V1_STR)
app.include_router(notifications_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "storefront-sync"}
