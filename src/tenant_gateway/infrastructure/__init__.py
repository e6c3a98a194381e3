"""
Infrastructure layer for external integrations.

This module contains clients for the control-plane database, tenant
databases, the container IP stores, and credential encryption.
"""

from .database_client import DatabaseClient
from .tenant_connection import TenantConnectionFactory
from .container_registry import ContainerRegistry
from .redis_client import RedisIPStore
from .secret_cipher import SecretCipher

__all__ = [
    "DatabaseClient",
    "TenantConnectionFactory",
    "ContainerRegistry",
    "RedisIPStore",
    "SecretCipher",
]
