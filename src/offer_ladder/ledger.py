import asyncio
import logging

from xrpl.asyncio.clients import AsyncJsonRpcClient
from xrpl.models.requests import AccountInfo, AccountLines, GatewayBalances, ServerState

import offer_ladder.constants as C
from offer_ladder.builder import normalize_currency_code

log = logging.getLogger("offer_ladder.ledger")


class LedgerError(RuntimeError):
    pass


class LedgerClient:
    """Read-only ledger lookups the ladder needs before signing.

    `next_sequence` and `validated_ledger_index` plug straight into `builder.build`;
    `balance_of` feeds DistributionRequest.available_balance.
    """

    def __init__(self, client: AsyncJsonRpcClient | str, *, timeout: float = C.RPC_TIMEOUT):
        self.client = AsyncJsonRpcClient(client) if isinstance(client, str) else client
        self.timeout = timeout

    async def _rpc(self, req) -> dict:
        resp = await asyncio.wait_for(self.client.request(req), timeout=self.timeout)
        if not resp.is_successful():
            raise LedgerError(f"{req.method.value} failed: {resp.result}")
        return resp.result

    async def next_sequence(self, account: str) -> int:
        result = await self._rpc(AccountInfo(account=account, ledger_index="current", strict=True))
        seq = result["account_data"]["Sequence"]
        log.debug("Next sequence for %s: %s", account, seq)
        return seq

    async def validated_ledger_index(self) -> int:
        result = await self._rpc(ServerState())
        return result["state"]["validated_ledger"]["seq"]

    async def balance_of(self, account: str, currency_code: str, issuer: str) -> float:
        """Trust line balance of `account` for (currency, issuer); 0.0 when there is no line."""
        currency = normalize_currency_code(currency_code)
        result = await self._rpc(AccountLines(account=account, peer=issuer, ledger_index="validated"))
        for line in result.get("lines", []):
            if line.get("currency") in (currency, currency_code) and line.get("account") == issuer:
                return float(line["balance"])
        return 0.0

    async def token_supply(self, currency_code: str, issuer: str) -> float:
        """Outstanding supply from the issuer's obligations; 0.0 when nothing is issued."""
        currency = normalize_currency_code(currency_code)
        result = await self._rpc(GatewayBalances(account=issuer, ledger_index="validated"))
        obligations = result.get("obligations") or {}
        value = obligations.get(currency, obligations.get(currency_code))
        return float(value) if value is not None else 0.0
