# sellfast/main.py

# 1) Load .env before any module reads its settings
from dotenv import load_dotenv
load_dotenv()

import logging
import os

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# 2) FastAPI & project foundations
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .database import Base, engine
from . import models  # noqa: F401  (registers tables on Base.metadata)
from .errors import install_error_handlers

# 3) Routers
from .admin import router as admin_router
from .auth import router as auth_router
from .bids import router as bids_router
from .catalog import router as catalog_router
from .chats import router as chats_router
from .coins import router as coins_router
from .contact import router as contact_router
from .deals import router as deals_router
from .listings import router as listings_router
from .spec_templates import router as spec_templates_router

log = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Create the app
# -----------------------------------------------------------------------------
app = FastAPI(title="SellFast API", version="1.0.0")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

# Tables are created on boot; init_db.py does the same plus seeding
if bool(int(os.getenv("AUTO_CREATE_TABLES", "1"))):
    Base.metadata.create_all(bind=engine)
    log.info("database tables ensured")

app.include_router(auth_router)
app.include_router(coins_router)
app.include_router(catalog_router)
app.include_router(listings_router)
app.include_router(bids_router)
app.include_router(deals_router)
app.include_router(chats_router)
app.include_router(contact_router)
app.include_router(admin_router)
app.include_router(spec_templates_router)


@app.get("/health")
def health():
    return {"ok": True}
