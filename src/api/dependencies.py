"""
FastAPI dependency injection.

Dependencies provide instances of services, stores, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be swapped for testing
- Resource lifecycle (connections) is managed properly

The local store lives on app.state, created once by the application
factory. Snowflake connections are opened per request.
"""

import logging
from typing import Annotated, Generator

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.ledger.ledger import BalanceLedger, LedgerStore
from ..core.ledger.service import SubstitutionService
from ..infrastructure.snowflake.client import get_snowflake_connection
from ..infrastructure.snowflake.repositories.ledger import (
    SnowflakeConfig,
    SnowflakeLedgerStore,
)

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Store and Service Dependencies
# ---------------------------------------------------------------------------

def snowflake_config_from_settings(settings: Settings) -> SnowflakeConfig:
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )


def get_ledger_store(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[LedgerStore, None, None]:
    """
    Provide the LedgerStore for this request.

    In mock mode this is the application's LocalLedgerStore, shared by
    every request so that state persists for the life of the process.
    Otherwise a Snowflake connection is opened for the request and
    closed afterwards.
    """
    if settings.snowflake_mock_mode:
        logger.debug("Using application local store")
        yield request.app.state.local_store
    else:
        with get_snowflake_connection(snowflake_config_from_settings(settings)) as conn:
            logger.debug("Created SnowflakeLedgerStore with Snowflake connection")
            yield SnowflakeLedgerStore(conn)


def get_substitution_service(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[LedgerStore, Depends(get_ledger_store)],
) -> SubstitutionService:
    """
    Provide a SubstitutionService bound to this request's store.

    Cheap to build: it holds no state beyond the store reference.
    """
    ledger = BalanceLedger(
        store,
        retry_attempts=settings.ledger_retry_attempts,
        retry_max_wait_seconds=settings.ledger_retry_max_wait_seconds,
    )
    return SubstitutionService(ledger)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
LedgerStoreDep = Annotated[LedgerStore, Depends(get_ledger_store)]
SubstitutionServiceDep = Annotated[SubstitutionService, Depends(get_substitution_service)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
