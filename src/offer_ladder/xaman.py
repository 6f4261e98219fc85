"""Xaman (formerly XUMM) payload signing.

Every transaction becomes a Xaman "payload": the wallet app scans its QR code
or opens its deep link, the user approves or rejects, and we poll the payload
until it resolves. XamanClient talks to the platform API with credentials;
ProxyClient talks to our own proxy (see app.py) so credentials stay server side.
"""

import asyncio
import logging
from typing import Any

import httpx

import offer_ladder.constants as C
from offer_ladder.models import Failed, Rejected, Signed, SigningOutcome, TransactionDescriptor
from offer_ladder.signing import LoggingListener, SigningListener

log = logging.getLogger("offer_ladder.xaman")


class XamanError(RuntimeError):
    def __init__(self, status_code: int, detail: Any):
        super().__init__(f"Xaman API error {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class XamanClient:
    create_route = "/payload"
    status_route = "/payload/{uuid}"
    cancel_route = "/payload/{uuid}"

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        api_secret: str | None = None,
        http: httpx.AsyncClient | None = None,
        timeout: float = C.RPC_TIMEOUT,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key and api_secret:
            headers["X-API-Key"] = api_key
            headers["X-API-Secret"] = api_secret
        self.has_credentials = bool(api_key and api_secret)
        self.http = http or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)
        self.http.headers.update(headers)

    async def __aenter__(self) -> "XamanClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def _call(self, method: str, url: str, **kwargs) -> dict:
        r = await self.http.request(method, url, **kwargs)
        try:
            data = r.json()
        except ValueError:
            data = {"message": r.text}
        if r.is_error:
            raise XamanError(r.status_code, data)
        return data

    async def create_payload(self, txjson: dict, options: dict | None = None) -> dict:
        data = await self._call("POST", self.create_route, json={"txjson": txjson, "options": options or {}})
        log.debug("Payload created: %s", data.get("uuid"))
        return data

    async def get_payload(self, uuid: str) -> dict:
        return await self._call("GET", self.status_route.format(uuid=uuid))

    async def cancel_payload(self, uuid: str) -> dict:
        data = await self._call("DELETE", self.cancel_route.format(uuid=uuid))
        log.debug("Payload %s cancel: %s", uuid, data.get("result"))
        return data


class ProxyClient(XamanClient):
    create_route = "/create-payload"
    status_route = "/payload-status/{uuid}"
    cancel_route = "/payload/{uuid}"


def qr_url(payload: dict) -> str | None:
    refs = payload.get("refs") or {}
    return refs.get("qr_png") or (payload.get("next") or {}).get("always")


class XamanSigner:
    """Signer backed by Xaman payloads. One payload per descriptor, polled until resolved."""

    def __init__(
        self,
        client: XamanClient,
        *,
        listener: SigningListener | None = None,
        poll_interval: float = C.POLL_INTERVAL,
        max_polls: int = int(C.SIGN_TIMEOUT // C.POLL_INTERVAL),
        expire_minutes: int = C.PAYLOAD_EXPIRE_MINUTES,
        submit: bool = True,
    ):
        self.client = client
        self.listener = listener or LoggingListener()
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.expire_minutes = expire_minutes
        self.submit = submit
        self._pending: dict[TransactionDescriptor, str] = {}
        # Cancelled while the payload was still being created
        self._cancelled: set[TransactionDescriptor] = set()

    async def sign(self, descriptor: TransactionDescriptor) -> SigningOutcome:
        self._cancelled.discard(descriptor)
        payload = await self.client.create_payload(
            descriptor.to_xrpl(),
            {"submit": self.submit, "expire": self.expire_minutes},
        )
        uuid = payload.get("uuid")
        if not uuid:
            return Failed("Xaman did not return a payload uuid")
        if descriptor in self._cancelled:
            self._cancelled.discard(descriptor)
            log.info("Payload %s created after cancel", uuid)
            await self._release(uuid)
            return Rejected()

        # Stays registered if we get cancelled mid-poll, so `cancel` can still find it
        self._pending[descriptor] = uuid
        if url := qr_url(payload):
            self.listener.on_qr_ready(url)
        outcome = await self._wait(uuid)
        self._pending.pop(descriptor, None)
        return outcome

    async def _wait(self, uuid: str) -> SigningOutcome:
        for attempt in range(1, self.max_polls + 1):
            try:
                status = await self.client.get_payload(uuid)
            except (httpx.HTTPError, XamanError) as e:
                # Keep polling through transient errors; the attempt budget bounds us
                log.warning("Poll %s/%s for %s failed: %s", attempt, self.max_polls, uuid, e)
            else:
                meta = status.get("meta") or {}
                if meta.get("resolved"):
                    if meta.get("signed"):
                        return Signed(tx_hash=(status.get("response") or {}).get("txid"))
                    return Rejected()
                if meta.get("expired"):
                    return Failed("expired")
                if meta.get("cancelled"):
                    return Rejected()
                log.debug("Poll %s/%s for %s: still waiting", attempt, self.max_polls, uuid)
            await asyncio.sleep(self.poll_interval)
        await self._release(uuid)
        return Failed("timeout")

    async def _release(self, uuid: str) -> None:
        try:
            await self.client.cancel_payload(uuid)
        except (httpx.HTTPError, XamanError) as e:
            log.warning("Could not cancel payload %s: %s", uuid, e)

    async def cancel(self, descriptor: TransactionDescriptor) -> None:
        uuid = self._pending.pop(descriptor, None)
        if uuid is None:
            self._cancelled.add(descriptor)
            return
        log.info("Cancelling payload %s", uuid)
        await self.client.cancel_payload(uuid)
