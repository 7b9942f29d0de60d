from typing import List, Union
from pydantic import AnyHttpUrl, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.domain.inventory.models import IdentityModel, DuplicatePolicy, SalePolicy, StoreBackend


class Settings(BaseSettings):
    PROJECT_NAME: str = "Pharmacy Inventory"
    API_V1_STR: str = "/api/v1"

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Store
    STORE_BACKEND: StoreBackend = StoreBackend.JSON
    INVENTORY_DATA_FILE: str = "./data.json"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./pharmacy.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10

    @model_validator(mode='after')
    def assemble_db_connection(self) -> 'Settings':
        if self.DATABASE_URL.startswith("postgresql://"):
            self.DATABASE_URL = self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif self.DATABASE_URL.startswith("sqlite:///"):
            self.DATABASE_URL = self.DATABASE_URL.replace("sqlite:///", "sqlite+aiosqlite:///", 1)

        # Clean parameters for asyncpg
        self.DATABASE_URL = self.DATABASE_URL.replace("sslmode=require", "ssl=require")
        return self

    # Inventory rules
    IDENTITY_MODEL: IdentityModel = IdentityModel.NAME_STRENGTH_EXPIRY
    DUPLICATE_POLICY: DuplicatePolicy = DuplicatePolicy.MERGE
    IDENTITY_CASE_SENSITIVE: bool = True
    SALE_POLICY: SalePolicy = SalePolicy.FIFO

    # Expiry windows in days
    EXPIRY_SOON_DAYS: int = 30
    EXPIRY_NEAR_DAYS: int = 90

    @model_validator(mode='after')
    def check_expiry_windows(self) -> 'Settings':
        if not 0 <= self.EXPIRY_SOON_DAYS < self.EXPIRY_NEAR_DAYS:
            raise ValueError("EXPIRY_SOON_DAYS must be >= 0 and smaller than EXPIRY_NEAR_DAYS")
        return self

    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra='ignore')


settings = Settings()
