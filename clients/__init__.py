"""Infrastructure clients: Vault secrets, PostgreSQL, Valkey and Kafka."""

from clients.kafka_client import KafkaEventPublisher
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    VaultClient,
    get_database_url,
    get_kafka_bootstrap_servers,
    get_signing_keys,
    get_valkey_url,
)
