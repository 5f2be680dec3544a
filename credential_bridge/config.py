"""
Environment-based configuration.

    XRPL_ENDPOINT            JSON-RPC URL of a rippled node (required)
    XUMM_API_KEY             signing-service API key
    XUMM_API_SECRET          signing-service API secret
    XUMM_BASE_URL            signing-service platform API root
    CREDENTIAL_BACKEND_URL   issuer backend API root
    CREDENTIAL_LOG_LEVEL     logging level name (default INFO)
    HTTP_TIMEOUT             HTTP timeout in seconds (default 30)

Only the application context reads Settings; components take plain
constructor arguments.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from credential_bridge.backend import DEFAULT_BACKEND_URL
from credential_bridge.broker.xumm import DEFAULT_BASE_URL

DEFAULT_TIMEOUT_S = 30.0
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class Settings:
    xrpl_endpoint: str
    xumm_api_key: str = ""
    xumm_api_secret: str = ""
    xumm_base_url: str = DEFAULT_BASE_URL
    backend_url: str = DEFAULT_BACKEND_URL
    log_level: str = "INFO"
    http_timeout: float = DEFAULT_TIMEOUT_S

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Load settings from the environment.

        Raises:
            ValueError: If XRPL_ENDPOINT is missing or HTTP_TIMEOUT is not
                a positive number.
        """
        env = os.environ if environ is None else environ

        endpoint = env.get("XRPL_ENDPOINT", "").strip()
        if not endpoint:
            raise ValueError("XRPL_ENDPOINT environment variable is not set")

        raw_timeout = env.get("HTTP_TIMEOUT")
        timeout = DEFAULT_TIMEOUT_S
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError as exc:
                raise ValueError(f"HTTP_TIMEOUT must be a number, got: {raw_timeout!r}") from exc
            if timeout <= 0:
                raise ValueError(f"HTTP_TIMEOUT must be positive, got: {raw_timeout!r}")

        return cls(
            xrpl_endpoint=endpoint,
            xumm_api_key=env.get("XUMM_API_KEY", ""),
            xumm_api_secret=env.get("XUMM_API_SECRET", ""),
            xumm_base_url=env.get("XUMM_BASE_URL") or DEFAULT_BASE_URL,
            backend_url=env.get("CREDENTIAL_BACKEND_URL") or DEFAULT_BACKEND_URL,
            log_level=(env.get("CREDENTIAL_LOG_LEVEL") or "INFO").upper(),
            http_timeout=timeout,
        )

    @property
    def has_broker_credentials(self) -> bool:
        return bool(self.xumm_api_key and self.xumm_api_secret)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
