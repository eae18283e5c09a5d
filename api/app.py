"""Application assembly: infrastructure clients, services and the FastAPI app."""

import asyncio
import logging
import os
from dataclasses import dataclass

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from api.base import success_response
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router, create_users_router
from auth.config import AuthConfig, SigningKeys
from auth.database import AccountDatabase
from auth.passwords import PasswordHasher
from auth.profile_cache import ProfileCache
from auth.profile_service import ProfileService
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AccountService
from auth.session import SessionManager
from auth.tokens import TokenIssuer
from auth.verification import ConsumedTokenStore
from auth.worker_pool import WorkerPool
from clients.kafka_client import KafkaEventPublisher
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    get_database_url,
    get_kafka_bootstrap_servers,
    get_signing_keys,
    get_valkey_url,
)
from core.event_bus import EventDispatcher

logger = logging.getLogger(__name__)


@dataclass
class AccountServices:
    """Wired services plus the resources they hold open."""

    account_service: AccountService
    profile_service: ProfileService
    postgres: PostgresClient
    valkey: ValkeyClient
    publisher: KafkaEventPublisher
    pool: WorkerPool

    async def close(self) -> None:
        await self.publisher.close()
        await self.valkey.close()
        self.pool.shutdown()
        self.postgres.close()


async def build_services(config: AuthConfig | None = None) -> AccountServices:
    """Connect to Postgres, Valkey and Kafka (addresses from Vault) and wire services.

    Fails fast if any backend is unreachable.
    """
    config = config or AuthConfig()

    postgres = PostgresClient(get_database_url())
    valkey = await ValkeyClient.connect(get_valkey_url())
    publisher = await KafkaEventPublisher.connect(get_kafka_bootstrap_servers())
    pool = WorkerPool(config.worker_pool_size, config.crypto_timeout_seconds)

    repository = AccountDatabase(postgres)
    security_logger = SecurityLogger(postgres)
    profile_cache = ProfileCache(valkey, config)

    account_service = AccountService(
        config=config,
        repository=repository,
        hasher=PasswordHasher(pool, config),
        token_issuer=TokenIssuer(SigningKeys(**get_signing_keys()), config, pool),
        session_manager=SessionManager(valkey, config),
        profile_cache=profile_cache,
        consumed_tokens=ConsumedTokenStore(valkey, config),
        dispatcher=EventDispatcher(publisher, config),
        security_logger=security_logger,
    )
    profile_service = ProfileService(config, repository, profile_cache, security_logger)

    logger.info("Account services wired")
    return AccountServices(
        account_service=account_service,
        profile_service=profile_service,
        postgres=postgres,
        valkey=valkey,
        publisher=publisher,
        pool=pool,
    )


def create_app(account_service: AccountService, profile_service: ProfileService) -> FastAPI:
    """Create the HTTP app around already-wired services."""
    app = FastAPI(title="Account Service")

    register_error_handlers(app)
    app.add_middleware(AuthMiddleware, account_service=account_service)
    # Added last so it wraps everything, including auth rejections
    app.add_middleware(RequestIDMiddleware)

    app.include_router(create_auth_router(account_service), prefix="/auth")
    app.include_router(create_users_router(profile_service), prefix="/users")

    @app.get("/health")
    async def health():
        return success_response({"status": "ok"})

    return app


async def serve(host: str, port: int) -> None:
    """Build services, serve until shutdown, then release resources."""
    services = await build_services()
    app = create_app(services.account_service, services.profile_service)
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port))
    try:
        await server.serve()
    finally:
        await services.close()


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(serve(os.getenv("HOST", "0.0.0.0"), int(os.getenv("PORT", "8000"))))


if __name__ == "__main__":
    main()
