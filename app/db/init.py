import certifi
from beanie import init_beanie
from pymongo import AsyncMongoClient

from app.core.config import Settings, get_settings
from app.store.documents import DOCUMENT_MODELS


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


async def init_db(settings: Settings | None = None) -> AsyncMongoClient:
    settings = settings or get_settings()
    # Expiry comparisons need aware datetimes back from the driver
    kwargs = {"tz_aware": True}
    if _use_tls(settings.mongodb_uri):
        kwargs["tlsCAFile"] = certifi.where()
    client = AsyncMongoClient(settings.mongodb_uri, **kwargs)
    database = client[settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    return client
