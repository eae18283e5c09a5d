"""
Secrets for the account service, read from HashiCorp Vault (KV v2).

The service logs in with AppRole credentials from the environment. Every read
is confined to the 'accounts/' mount path, and each secret is fetched at most
once per process.

Secret layout:
    accounts/database   url
    accounts/valkey     url
    accounts/kafka      bootstrap_servers
    accounts/jwt        access_signing_key, access_verification_key,
                        refresh_signing_key, refresh_verification_key
"""

import logging
import os
from typing import Dict

import hvac
from hvac.exceptions import Forbidden, InvalidPath, Unauthorized

logger = logging.getLogger(__name__)

_SECRET_PREFIX = "accounts"

SIGNING_KEY_FIELDS = (
    "access_signing_key",
    "access_verification_key",
    "refresh_signing_key",
    "refresh_verification_key",
)

_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, Dict[str, str]] = {}


class VaultClient:
    """AppRole-authenticated reader for the accounts secret tree."""

    def __init__(self, vault_addr: str | None = None, vault_namespace: str | None = None):
        """Log in immediately. Raises ValueError on missing env, PermissionError on bad credentials."""
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        role_id = os.getenv("VAULT_ROLE_ID")
        secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")
        if not role_id or not secret_id:
            raise ValueError(
                "VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required"
            )

        if namespace:
            self.client = hvac.Client(url=self.vault_addr, namespace=namespace)
        else:
            self.client = hvac.Client(url=self.vault_addr)

        self._login(role_id, secret_id)
        logger.info("Vault client ready: %s", self.vault_addr)

    def _login(self, role_id: str, secret_id: str) -> None:
        try:
            response = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except Exception as e:
            logger.error("AppRole login failed: %s", e)
            raise PermissionError(f"AppRole authentication failed: {e}") from e

        self.client.token = response["auth"]["client_token"]
        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

    def read_secret(self, path: str) -> Dict[str, str]:
        """
        Read every field of accounts/<path>.

        Raises:
            PermissionError: Path missing or not readable with this role.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath as e:
            logger.error("Secret path not found: %s", full_path)
            raise PermissionError(f"Secret path '{full_path}' not found in Vault") from e
        except (Unauthorized, Forbidden) as e:
            logger.error("Access denied to secret %s", full_path)
            raise PermissionError(f"Access denied to secret '{full_path}': {e}") from e
        return response["data"]["data"]

    def get_secret(self, path: str, field: str) -> str:
        """
        Read one field of accounts/<path>.

        Raises:
            PermissionError: Path missing or not readable.
            KeyError: Secret exists but has no such field.
        """
        return _pick(self.read_secret(path), path, field)


def _pick(secret: Dict[str, str], path: str, field: str) -> str:
    if field not in secret:
        raise KeyError(
            f"Field '{field}' not found in secret '{_SECRET_PREFIX}/{path}'. "
            f"Available: {', '.join(secret)}"
        )
    return secret[field]


def _cached_secret(path: str) -> Dict[str, str]:
    """Fetch accounts/<path> on first use, then serve it from memory."""
    global _vault_client_instance
    if path not in _secret_cache:
        if _vault_client_instance is None:
            _vault_client_instance = VaultClient()
        _secret_cache[path] = _vault_client_instance.read_secret(path)
    return _secret_cache[path]


def get_database_url() -> str:
    return _pick(_cached_secret("database"), "database", "url")


def get_valkey_url() -> str:
    return _pick(_cached_secret("valkey"), "valkey", "url")


def get_kafka_bootstrap_servers() -> str:
    """Comma-separated host:port list."""
    return _pick(_cached_secret("kafka"), "kafka", "bootstrap_servers")


def get_signing_keys() -> Dict[str, str]:
    """PEM key material for access and refresh tokens, keyed by SIGNING_KEY_FIELDS."""
    secret = _cached_secret("jwt")
    return {field: _pick(secret, "jwt", field) for field in SIGNING_KEY_FIELDS}
