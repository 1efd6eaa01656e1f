import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


# -------------------
# Config (env-driven)
# -------------------
class Settings(BaseModel):
    admin_pin: str = os.getenv("ADMIN_PIN", "1234").strip()
    owner_phone: str = os.getenv("OWNER_PHONE", "917972506748").strip()
    local_store_path: str = os.getenv("LOCAL_STORE_PATH", ".bricxo_store.json")

    orders_poll_seconds: int = _int_env("ORDERS_POLL_SECONDS", 5)
    catalog_poll_seconds: int = _int_env("CATALOG_POLL_SECONDS", 10)

    port: int = _int_env("PORT", 8000)


settings = Settings()
