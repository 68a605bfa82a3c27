# taskflow/config.py
from pydantic_settings import BaseSettings
from typing import Dict, List, Optional
from pydantic import Field

class Settings(BaseSettings):
    SECRET_KEY: str = Field("change-me-in-production")
    ALGORITHM: str = Field("HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60 * 12)

    DATABASE_URL: str = Field("sqlite+aiosqlite:///./taskflow.db")
    SQLALCHEMY_DATABASE_URL: Optional[str] = None
    SQL_ECHO: bool = False

    LOG_LEVEL: str = "INFO"

    # Derived tags managed by the workflow engine
    COMPLETED_TAG: str = "Completed"
    REDO_TAG: str = "Redo"

    # department name -> other departments whose projects it may see (case-insensitive)
    DEPARTMENT_VISIBILITY: Dict[str, List[str]] = Field(default_factory=lambda: {"digital": ["design"]})

    model_config = {
        "env_file": ".env",
        "extra": "allow",
    }

    @property
    def effective_database_url(self) -> str:
        url = self.SQLALCHEMY_DATABASE_URL or self.DATABASE_URL
        # Ensure asyncpg is used
        if url.startswith("postgresql://") and "+asyncpg" not in url:
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def visibility_table(self) -> Dict[str, set]:
        """Lower-cased visibility policy, each department always sees itself."""
        return {
            dept.lower(): {d.lower() for d in visible}
            for dept, visible in self.DEPARTMENT_VISIBILITY.items()
        }

settings = Settings()
