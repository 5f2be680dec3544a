"""
Application context: owns configuration and long-lived clients.

The signing-service client is process-wide: created here, opened by
``open()`` and closed by ``close()`` (or ``logout()``). Ledger
connections stay per call. Everything else is built on demand from
these two.

    async with AppContext(Settings.from_env()) as ctx:
        wallet = await ctx.connect_wallet(on_payload=show_qr)
        result = await ctx.orchestrator().accept(wallet.account, credential_type)
"""

from __future__ import annotations

import logging
from typing import Callable

from credential_bridge.api import CredentialApi
from credential_bridge.backend import HttpIssuerBackend, IssuerBackend
from credential_bridge.broker.client import PayloadReference
from credential_bridge.broker.xumm import XummBroker
from credential_bridge.config import Settings
from credential_bridge.issuance import CredentialIssuer
from credential_bridge.ledger.client import LedgerClient
from credential_bridge.ledger.jsonrpc_client import JsonRpcClient
from credential_bridge.ledger.signer import LedgerSigner
from credential_bridge.ledger.transport import HttpxTransport
from credential_bridge.orchestrator import CredentialOrchestrator
from credential_bridge.query import CredentialQuery
from credential_bridge.waiter import ConfirmationWaiter
from credential_bridge.wallet import WalletConnection, connect_wallet

logger = logging.getLogger(__name__)


class AppContext:
    """Wires components from Settings.

    Args:
        settings: Loaded configuration.
        broker: Override for the signing-service client.
        ledger_client: Override for the ledger client.
        backend: Override for the issuer backend.
        signer: Issuer key holder. Without one, this process cannot
            issue credentials itself.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        broker: XummBroker | None = None,
        ledger_client: LedgerClient | None = None,
        backend: IssuerBackend | None = None,
        signer: LedgerSigner | None = None,
    ) -> None:
        self.settings = settings
        self.broker = broker or XummBroker(
            settings.xumm_api_key,
            settings.xumm_api_secret,
            base_url=settings.xumm_base_url,
            timeout=settings.http_timeout,
        )
        self.ledger_client = ledger_client or JsonRpcClient(
            settings.xrpl_endpoint,
            transport=HttpxTransport(timeout=settings.http_timeout),
        )
        self.backend = backend or HttpIssuerBackend(
            settings.backend_url,
            timeout_s=settings.http_timeout,
        )
        self.signer = signer
        self.query = CredentialQuery(self.ledger_client)
        self.waiter = ConfirmationWaiter(self.broker)

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------

    async def open(self) -> None:
        if not self.settings.has_broker_credentials:
            logger.warning("signing-service credentials are not configured")
        await self.broker.open()

    async def close(self) -> None:
        await self.broker.close()

    async def logout(self) -> None:
        """Drop the signing-service session."""
        logger.info("logout: closing signing-service client")
        await self.close()

    async def __aenter__(self) -> AppContext:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -----------------------------------------------------------------
    # Components
    # -----------------------------------------------------------------

    def issuer(self) -> CredentialIssuer | None:
        if self.signer is None:
            return None
        return CredentialIssuer(self.ledger_client, self.signer)

    def orchestrator(self, *, verify_visibility: bool = True) -> CredentialOrchestrator:
        return CredentialOrchestrator(
            self.backend,
            self.broker,
            waiter=self.waiter,
            ledger=self.query if verify_visibility else None,
        )

    def api(self) -> CredentialApi:
        return CredentialApi(self.query, self.broker, issuer=self.issuer())

    async def connect_wallet(
        self,
        on_payload: Callable[[PayloadReference], None] | None = None,
    ) -> WalletConnection:
        """Identify the user's wallet with a SignIn payload."""
        return await connect_wallet(self.broker, waiter=self.waiter, on_payload=on_payload)
