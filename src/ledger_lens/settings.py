"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    CHAIN_ID,
    COINGECKO_API_URL,
    DEFAULT_MAINNET_RPC_URL,
    ETHERSCAN_API_V2_URL,
    INDEXER_MAX_PAGE_SIZE,
    TRACKED_ASSETS,
)
from .domain import AssetDescriptor

load_dotenv()

SECRET_FIELDS = ("etherscan_api_key", "coingecko_api_key")


class LensSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with LEDGER_LENS_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- endpoints ---
    rpc_url: str = DEFAULT_MAINNET_RPC_URL
    etherscan_api_url: str = ETHERSCAN_API_V2_URL
    price_feed_url: str = COINGECKO_API_URL
    chain_id: int = CHAIN_ID

    # --- credentials ---
    etherscan_api_key: SecretStr | None = None
    coingecko_api_key: SecretStr | None = None

    # --- fetch client ---
    request_timeout: float = Field(default=15.0, gt=0)

    # --- aggregation ---
    page_size: int = Field(default=INDEXER_MAX_PAGE_SIZE, ge=1, le=INDEXER_MAX_PAGE_SIZE)
    page_delay: float = Field(
        default=0.25,
        ge=0,
        description="Seconds to wait between indexer pages (rate limit spacing).",
    )
    max_records: int = Field(default=10_000, ge=1)
    max_pages: int = Field(default=10, ge=1)

    # --- pricing ---
    price_cache_ttl: float = Field(default=300.0, ge=0)
    tracked_assets: list[str] = Field(default_factory=lambda: list(TRACKED_ASSETS))

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_LENS_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator(*SECRET_FIELDS, mode="before")
    @classmethod
    def wrap_secrets(cls, v: Any) -> SecretStr | None:
        """Wrap string secrets in SecretStr."""
        if v is None or isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    @field_validator("tracked_assets", mode="after")
    @classmethod
    def validate_tracked_assets(cls, v: list[str]) -> list[str]:
        symbols = [symbol.upper() for symbol in v]
        unknown = [symbol for symbol in symbols if symbol not in TRACKED_ASSETS]
        if unknown:
            raise ValueError(
                f"Unknown tracked asset(s): {', '.join(unknown)}. "
                f"Available: {', '.join(TRACKED_ASSETS)}"
            )
        return list(dict.fromkeys(symbols))

    @field_validator("log_level", mode="after")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get("LEDGER_LENS_CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    local_config = Path("ledger-lens.toml")
                    user_config = Path.home() / ".config" / "ledger-lens" / "config.toml"
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [ledger_lens]
                body = data.get("ledger_lens", data)
                if not isinstance(body, dict):
                    return {}

                for key in SECRET_FIELDS:
                    if key in body:
                        raise ValueError(
                            f"Security violation: '{key}' found in TOML config file. "
                            f"Secrets must only be provided via environment variables or CLI flags."
                        )

                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a dict with secrets redacted."""
        data = self.model_dump()
        for key in SECRET_FIELDS:
            if getattr(self, key):
                data[key] = "***redacted***"
        return data

    @property
    def etherscan_api_key_required(self) -> str:
        """Get the Etherscan API key, raising ValueError if not set."""
        if self.etherscan_api_key is None:
            raise ValueError("etherscan_api_key must be configured")
        return self.etherscan_api_key.get_secret_value()

    @property
    def assets(self) -> list[AssetDescriptor]:
        """Tracked ERC-20 descriptors, in configured order."""
        return [TRACKED_ASSETS[symbol] for symbol in self.tracked_assets]
