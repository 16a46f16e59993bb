from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict

from dotenv import load_dotenv

load_dotenv()  # load .env file

def _split_csv(value: str) -> List[str]:
    return [s.strip() for s in value.split(",") if s.strip()]

class Settings(BaseSettings):
    SUPABASE_URL: str
    SUPABASE_SERVICE_KEY: str
    SUPABASE_ANON_KEY: str = ""

    # Report cards
    REPORT_READY_THRESHOLD: int = 3
    REPORT_FUNCTION_NAME: str = "generate-report-pdf"

    # Comma separated in .env
    TERMS: str = "Term 1,Term 2,Term 3"
    CORS_ORIGINS: str = "*"

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def terms(self) -> List[str]:
        return _split_csv(self.TERMS)

    @property
    def cors_origins(self) -> List[str]:
        return _split_csv(self.CORS_ORIGINS)

settings = Settings()
