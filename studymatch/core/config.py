# studymatch/core/config.py
import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    FIREBASE_PROJECT_ID: str = os.getenv("FIREBASE_PROJECT_ID", "cs4720-d84f6")
    # Same bucket name format the mobile client's Firebase config uses
    FIREBASE_STORAGE_BUCKET: str = os.getenv("FIREBASE_STORAGE_BUCKET", "cs4720-d84f6.firebasestorage.app")
    FIREBASE_WEB_API_KEY: str | None = os.getenv("FIREBASE_WEB_API_KEY")
    FIREBASE_SERVICE_ACCOUNT_PATH: str = os.getenv(
        "FIREBASE_SERVICE_ACCOUNT_PATH",
        "firebase-service-account.json",
    )

    # University course catalog (paginated JSON)
    COURSE_CATALOG_URL: str = os.getenv(
        "COURSE_CATALOG_URL",
        "https://sisuva.admin.virginia.edu/psc/ihprd/UVSS/SA/s/"
        "WEBLIB_HCX_CM.H_CLASS_SEARCH.FieldFormula.IScript_ClassSearch",
    )
    COURSE_INSTITUTION: str = os.getenv("COURSE_INSTITUTION", "UVA01")
    COURSE_TERM: str = os.getenv("COURSE_TERM", "1258")  # 2025 Fall
    COURSE_CATALOG_TIMEOUT: float = float(os.getenv("COURSE_CATALOG_TIMEOUT", "15"))

    # Matching rules
    MAX_PARTNERS_PER_COURSE: int = int(os.getenv("MAX_PARTNERS_PER_COURSE", "2"))

    # Storage
    MAX_NOTE_FILE_MB: int = int(os.getenv("MAX_NOTE_FILE_MB", "10"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
