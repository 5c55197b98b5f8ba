"""
Configuration management for paywatch.

Handles loading configuration from environment variables and validation.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any

from paywatch.core.types import Cluster, is_solana_address


def _get_env_var(name: str, default: str | None = None, required: bool = False) -> str | None:
    """Get environment variable with optional default."""
    value = os.environ.get(name, default)
    if required and not value:
        raise ValueError(f"Required environment variable {name} is not set")
    return value


def _get_env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    """Reconciliation engine configuration."""

    treasury_address: str
    cluster: Cluster = Cluster.DEVNET
    rpc_url: str | None = None  # None means the cluster's public endpoint
    indexer_url: str = "https://public-api.solscan.io"
    indexer_api_key: str | None = None

    # Matching
    amount_tolerance: int = 1000  # lamports
    candidate_limit: int = 10

    # Lifecycle (seconds)
    intent_ttl: int = 30 * 60
    retention: int = 24 * 60 * 60
    sweep_interval: float = 60 * 60
    expire_pending_on_sweep: bool = True

    # Sources
    source_timeout: float = 10.0
    http_retries: int = 3
    use_indexer: bool = True
    circuit_breaker_enabled: bool = True

    storage_backend: str = "memory"
    redis_url: str | None = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.treasury_address:
            raise ValueError("treasury_address is required")
        if not is_solana_address(self.treasury_address):
            raise ValueError(f"Invalid treasury address: {self.treasury_address}")
        if self.amount_tolerance < 0:
            raise ValueError("amount_tolerance must not be negative")
        if self.candidate_limit <= 0:
            raise ValueError("candidate_limit must be positive")
        if self.intent_ttl <= 0:
            raise ValueError("intent_ttl must be positive")
        if self.retention <= 0:
            raise ValueError("retention must be positive")
        if self.sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")
        if self.source_timeout <= 0:
            raise ValueError("source_timeout must be positive")
        if self.http_retries < 1:
            raise ValueError("http_retries must be at least 1")

    @property
    def resolved_rpc_url(self) -> str:
        return self.rpc_url or self.cluster.rpc_url

    @classmethod
    def from_env(cls, **overrides: Any) -> Config:
        """Load configuration from environment variables."""
        treasury_address = overrides.get("treasury_address") or _get_env_var(
            "PAYWATCH_TREASURY_ADDRESS", required=True
        )

        cluster_str = overrides.get("cluster") or _get_env_var(
            "PAYWATCH_CLUSTER", default=Cluster.DEVNET.value
        )
        cluster = Cluster.from_string(cluster_str) if isinstance(cluster_str, str) else cluster_str

        def env_int(name: str, key: str) -> int:
            if key in overrides:
                return overrides[key]
            raw = _get_env_var(name)
            return int(raw) if raw else getattr(cls, key)

        def env_float(name: str, key: str) -> float:
            if key in overrides:
                return overrides[key]
            raw = _get_env_var(name)
            return float(raw) if raw else getattr(cls, key)

        def env_bool(name: str, key: str) -> bool:
            if key in overrides:
                return overrides[key]
            return _get_env_bool(name, getattr(cls, key))

        return cls(
            treasury_address=treasury_address,  # type: ignore
            cluster=cluster,
            rpc_url=overrides.get("rpc_url") or _get_env_var("PAYWATCH_RPC_URL"),
            indexer_url=overrides.get("indexer_url")
            or _get_env_var("PAYWATCH_INDEXER_URL", default=cls.indexer_url),  # type: ignore
            indexer_api_key=overrides.get("indexer_api_key") or _get_env_var("SOLSCAN_API_KEY"),
            amount_tolerance=env_int("PAYWATCH_AMOUNT_TOLERANCE", "amount_tolerance"),
            candidate_limit=env_int("PAYWATCH_CANDIDATE_LIMIT", "candidate_limit"),
            intent_ttl=env_int("PAYWATCH_INTENT_TTL", "intent_ttl"),
            retention=env_int("PAYWATCH_RETENTION", "retention"),
            sweep_interval=env_float("PAYWATCH_SWEEP_INTERVAL", "sweep_interval"),
            expire_pending_on_sweep=env_bool("PAYWATCH_EXPIRE_ON_SWEEP", "expire_pending_on_sweep"),
            source_timeout=env_float("PAYWATCH_SOURCE_TIMEOUT", "source_timeout"),
            http_retries=env_int("PAYWATCH_HTTP_RETRIES", "http_retries"),
            use_indexer=env_bool("PAYWATCH_USE_INDEXER", "use_indexer"),
            circuit_breaker_enabled=env_bool("PAYWATCH_CIRCUIT_BREAKER", "circuit_breaker_enabled"),
            storage_backend=overrides.get("storage_backend")
            or _get_env_var("PAYWATCH_STORAGE_BACKEND", default="memory"),  # type: ignore
            redis_url=overrides.get("redis_url") or _get_env_var("PAYWATCH_REDIS_URL"),
            log_level=overrides.get("log_level")
            or _get_env_var("PAYWATCH_LOG_LEVEL", default="INFO"),  # type: ignore
        )

    def with_updates(self, **updates: Any) -> Config:
        """Create a new Config with updated values."""
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        current.update(updates)
        return Config(**current)

    def masked_api_key(self) -> str:
        """Return indexer API key with most characters masked for safe logging."""
        if not self.indexer_api_key:
            return ""
        if len(self.indexer_api_key) <= 8:
            return "****"
        return self.indexer_api_key[:4] + "..." + self.indexer_api_key[-4:]
