"""
LedgerMirror - Chain Client
============================
Client JSON-RPC verso i nodi remoti (seed).

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

Features:
- Seed intercambiabili selezionati per indice
- getblockcount / getblock verbose
- Classificazione errori: timeout -> TransientRemoteError,
  tutto il resto -> RemoteProtocolError
- Validazione payload (pydantic) al confine
"""

from typing import Any, List, Optional, Sequence
import itertools

import httpx
from pydantic import ValidationError

# Internal imports
from ledger_mirror.constants import (
    JSONRPC_VERSION,
    RPC_TIMEOUT_SECONDS,
    GETBLOCK_VERBOSE,
    RpcMethod,
)
from ledger_mirror.config import MirrorSettings, resolve_seed
from ledger_mirror.domain.payloads import BlockPayload
from ledger_mirror.errors import (
    RemoteProtocolError,
    TransientRemoteError,
)
from ledger_mirror.logging_setup import get_logger
from ledger_mirror.version import get_user_agent


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("network.rpc")


# ============================================================================
# CHAIN CLIENT
# ============================================================================

class ChainClient:
    """
    Accesso remoto alla chain tramite uno dei seed configurati.

    Attributes:
        seeds: URL dei nodi, indicizzati dal selettore `seed`
        timeout: Timeout per chiamata (secondi)

    Examples:
        >>> async with ChainClient(["http://127.0.0.1:10332"]) as client:
        ...     height = await client.current_height(0)
        ...     block = await client.get_block_by_height(0, height)
    """

    def __init__(
        self,
        seeds: Sequence[str],
        timeout: float = RPC_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.seeds: List[str] = list(seeds)
        self.timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None
        self._ids = itertools.count(1)

    @classmethod
    def from_settings(
        cls,
        config: MirrorSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "ChainClient":
        return cls(config.seeds, timeout=config.rpc_timeout_seconds, transport=transport)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json", "User-Agent": get_user_agent()},
            )
        return self._http

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> "ChainClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ========================================================================
    # RPC
    # ========================================================================

    def seed_url(self, seed: int) -> str:
        return resolve_seed(self.seeds, seed)

    async def _call(self, seed: int, method: RpcMethod, params: list) -> Any:
        """
        Esegue una chiamata JSON-RPC e restituisce `result`.

        Raises:
            TransientRemoteError: Timeout (connect/read/write/pool)
            RemoteProtocolError: Qualsiasi altro errore
        """
        url = self.seed_url(seed)
        request = {
            "jsonrpc": JSONRPC_VERSION,
            "method": method.value,
            "params": params,
            "id": next(self._ids),
        }
        context = {"seed": seed, "url": url, "method": method.value}

        try:
            response = await self._client().post(url, json=request)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            logger.warning("RPC timeout", extra_data=context)
            raise TransientRemoteError(
                f"Timeout calling {method.value} on seed {seed}",
                code="RPC_TIMEOUT",
                details=context
            ) from e
        except httpx.HTTPStatusError as e:
            raise RemoteProtocolError(
                f"HTTP {e.response.status_code} from {url}",
                code="RPC_HTTP_STATUS",
                details={**context, "status": e.response.status_code}
            ) from e
        except httpx.HTTPError as e:
            raise RemoteProtocolError(
                f"Transport error calling {url}: {e}",
                code="RPC_TRANSPORT",
                details=context
            ) from e
        except ValueError as e:
            raise RemoteProtocolError(
                f"Malformed JSON from {url}",
                code="RPC_BAD_JSON",
                details=context
            ) from e

        if not isinstance(body, dict):
            raise RemoteProtocolError("Response is not a JSON object", code="RPC_BAD_RESPONSE", details=context)

        if body.get("error") is not None:
            raise RemoteProtocolError(
                f"RPC error from {method.value}: {body['error']}",
                code="RPC_ERROR",
                details={**context, "error": body["error"]}
            )

        if "result" not in body:
            raise RemoteProtocolError("Response has no result", code="RPC_BAD_RESPONSE", details=context)

        return body["result"]

    async def current_height(self, seed: int) -> int:
        """
        Height corrente del nodo (valore di getblockcount).

        Returns:
            int: Height remota
        """
        result = await self._call(seed, RpcMethod.GET_BLOCK_COUNT, [])

        if isinstance(result, bool) or not isinstance(result, int) or result < 0:
            raise RemoteProtocolError(
                f"Invalid block count: {result!r}",
                code="RPC_BAD_HEIGHT",
                details={"seed": seed, "result": result}
            )

        return result

    async def get_block_by_height(self, seed: int, height: int) -> BlockPayload:
        """
        Scarica e valida il blocco ad altezza `height`.

        Returns:
            BlockPayload: Payload tipizzato

        Raises:
            RemoteProtocolError: Payload malformato o height non corrispondente
        """
        result = await self._call(seed, RpcMethod.GET_BLOCK, [height, GETBLOCK_VERBOSE])

        try:
            block = BlockPayload.model_validate(result)
        except ValidationError as e:
            raise RemoteProtocolError(
                f"Malformed block payload at height {height}",
                code="RPC_BAD_BLOCK",
                details={"seed": seed, "height": height, "errors": e.errors(include_url=False)}
            ) from e

        if block.height != height:
            raise RemoteProtocolError(
                f"Requested block {height}, got {block.height}",
                code="RPC_HEIGHT_MISMATCH",
                details={"seed": seed, "height": height, "received": block.height}
            )

        logger.debug(
            "Block fetched",
            extra_data={"seed": seed, "height": height, "tx_count": block.tx_count}
        )
        return block


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "ChainClient",
]
