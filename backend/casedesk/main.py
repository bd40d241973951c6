# FILE: backend/casedesk/main.py
# CASEDESK - ROUTER REGISTRATION

from fastapi import FastAPI, status, APIRouter
from fastapi.middleware.cors import CORSMiddleware
import logging

from .core.config import settings
from .core.lifespan import lifespan

# --- Router Imports ---
from .api.endpoints.auth import router as auth_router
from .api.endpoints.cases import router as cases_router
from .api.endpoints.calendar import router as calendar_router
from .api.endpoints.stream import router as stream_router

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# --- MIDDLEWARE ---
origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    *settings.BACKEND_CORS_ORIGINS,
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- V1 ROUTER ASSEMBLY ---
api_v1_router = APIRouter(prefix=settings.API_V1_STR)

api_v1_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])
api_v1_router.include_router(cases_router, prefix="/cases", tags=["Cases"])
api_v1_router.include_router(calendar_router, prefix="/calendar", tags=["Calendar"])
api_v1_router.include_router(stream_router, prefix="/stream", tags=["Streaming"])

app.include_router(api_v1_router)

@app.get("/health", status_code=status.HTTP_200_OK, tags=["Health Check"])
def health_check():
    return {"status": "ok", "version": "1.0.0"}
