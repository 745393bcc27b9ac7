from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from routers.signaling import signaling_router
from logging_config import get_logger, setup_logging
import os

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)

app = FastAPI(
    title="Rendezvous Signaling Server",
    description="Long-polling rendezvous and signaling relay for peer-to-peer clients",
    version="1.0.0",
)

# Browsers call every endpoint cross-origin and send X-Peer-Id on /signal and /leave
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["content-type", "x-peer-id"],
    max_age=86400,
)

app.include_router(signaling_router)

logger.info("FastAPI application initialized")
