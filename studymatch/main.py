from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from studymatch.core.config import settings
from studymatch.core.firebase_init import initialize_firebase, get_firebase_status
from studymatch.services.firebase_storage_init import get_bucket_info

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="StudyMatch API",
    description="Study-partner matching, partner chat and shared course notes",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Connect to Firebase; the API keeps serving when it is unavailable"""
    logger.info("🚀 FastAPI startup event triggered")
    if not get_firebase_status()['available']:
        if initialize_firebase():
            logger.info("✅ Firebase initialized successfully")
        else:
            logger.warning("⚠️ Firebase initialization failed - app will run without Firebase features")


def safe_include_router(router_module_path: str, router_name: str = "router") -> bool:
    """Include a router, logging instead of failing when its module cannot load"""
    try:
        module = __import__(router_module_path, fromlist=[router_name])
        app.include_router(getattr(module, router_name))
        logger.info(f"✅ Successfully included {router_module_path}")
        return True
    except Exception:
        logger.exception(f"❌ Failed to include {router_module_path}")
        return False


routers_to_load = [
    ("studymatch.routers.auth", "Authentication"),
    ("studymatch.routers.users", "Users"),
    ("studymatch.routers.matches", "Match Requests"),
    ("studymatch.routers.partners", "Partners"),
    ("studymatch.routers.chats", "Chats"),
    ("studymatch.routers.websocket", "WebSocket"),
    ("studymatch.routers.notes", "Notes"),
    ("studymatch.routers.courses", "Courses"),
]

successful_routers = []
failed_routers = []

for router_path, router_description in routers_to_load:
    if safe_include_router(router_path):
        successful_routers.append(router_description)
    else:
        failed_routers.append(router_description)

logger.info(f"Successfully loaded routers: {successful_routers}")
if failed_routers:
    logger.warning(f"Failed to load routers: {failed_routers}")


@app.get("/")
async def root():
    return {
        "message": "Welcome to the StudyMatch API",
        "firebase_status": get_firebase_status(),
        "loaded_routers": successful_routers,
        "failed_routers": failed_routers
    }


@app.get("/health")
async def health_check():
    firebase_status = get_firebase_status()
    storage_info = get_bucket_info() if firebase_status['available'] else {"available": False}
    return {
        "status": "healthy",
        "firebase_available": firebase_status['available'],
        "storage_available": storage_info['available'],
        "loaded_routers": len(successful_routers),
        "failed_routers": len(failed_routers)
    }
