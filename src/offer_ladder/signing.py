"""Sequential signing of a ladder of offers.

A wallet session can only work through one transaction at a time, so the
coordinator hands descriptors to the signer strictly one after another:

    IDLE -> RUNNING -> COMPLETED   every descriptor was handed to the signer
                    -> ABORTED     the caller declined to continue, or cancelled

Rejections and failures don't stop the run by themselves. When one happens and
descriptors remain, the caller's `on_failure_continue(index, outcome)` decides.
"""

import asyncio
import contextlib
import hashlib
import inspect
import json
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import offer_ladder.constants as C
from offer_ladder.constants import RunState
from offer_ladder.models import BatchResult, Failed, Rejected, Signed, SigningOutcome, TransactionDescriptor

log = logging.getLogger("offer_ladder.signing")

ContinueFn = Callable[[int, SigningOutcome], bool | Awaitable[bool]]


@runtime_checkable
class Signer(Protocol):
    async def sign(self, descriptor: TransactionDescriptor) -> SigningOutcome: ...


@runtime_checkable
class CancellableSigner(Signer, Protocol):
    async def cancel(self, descriptor: TransactionDescriptor) -> None: ...


class SigningListener(Protocol):
    def on_qr_ready(self, url: str) -> None: ...
    def on_status_change(self, message: str) -> None: ...
    def on_progress(self, current: int, total: int) -> None: ...


class LoggingListener:
    """Default listener: everything goes to the log."""

    def on_qr_ready(self, url: str) -> None:
        log.info("Scan to sign: %s", url)

    def on_status_change(self, message: str) -> None:
        log.info(message)

    def on_progress(self, current: int, total: int) -> None:
        log.debug("Progress %s/%s", current, total)


@dataclass(slots=True)
class SigningSession:
    """Presentation state for one run, owned by the coordinator."""

    total: int
    listener: SigningListener
    current: int = 0  # 1-based position of the descriptor being signed, 0 before the first
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None

    def advance(self, index: int) -> None:
        self.current = index + 1
        self.listener.on_progress(self.current, self.total)
        self.status(f"Transaction {self.current} of {self.total}: waiting for signature")

    def status(self, message: str) -> None:
        self.listener.on_status_change(message)

    def finish(self) -> None:
        self.finished_at = time.time()

    @property
    def elapsed(self) -> float:
        return (self.finished_at or time.time()) - self.started_at


class SigningCoordinator:
    def __init__(
        self,
        signer: Signer,
        on_failure_continue: ContinueFn | None = None,
        *,
        timeout: float | None = C.SIGN_TIMEOUT,
        inter_sign_delay: float = C.INTER_SIGN_DELAY,
        listener: SigningListener | None = None,
    ):
        self.signer = signer
        self.on_failure_continue = on_failure_continue
        self.timeout = timeout
        self.inter_sign_delay = inter_sign_delay
        self.listener = listener or LoggingListener()

        self.state = RunState.IDLE
        self.current_index: int | None = None
        self.session: SigningSession | None = None
        self._cancel = asyncio.Event()
        self._released = False  # cancel hook already called for the current attempt

    def cancel(self) -> None:
        """Stop after the in-flight signature (if any) resolves. Safe to call at any time."""
        if self.state == RunState.RUNNING:
            log.info("Cancel requested at index %s", self.current_index)
        self._cancel.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    async def start(self, descriptors: Sequence[TransactionDescriptor]) -> BatchResult:
        """Run the signer over `descriptors` and return the aggregated result."""
        if self.state == RunState.RUNNING:
            raise RuntimeError("A signing run is already in progress")

        self.state = RunState.RUNNING
        self._cancel = asyncio.Event()
        self.session = SigningSession(total=len(descriptors), listener=self.listener)
        outcomes: list[SigningOutcome] = []
        aborted = False
        last = len(descriptors) - 1
        log.info("Signing %s transactions", len(descriptors))

        try:
            for i, descriptor in enumerate(descriptors):
                if self._cancel.is_set():
                    aborted = True
                    break

                self.current_index = i
                self.session.advance(i)
                outcome = await self._sign_one(descriptor)
                outcomes.append(outcome)
                self._report(i, outcome)

                if self._cancel.is_set():
                    aborted = True
                    break
                if i == last:
                    break
                if outcome.signed:
                    await self._pause()
                    continue
                if not await self._should_continue(i, outcome):
                    log.info("Stopping after %s at index %s", outcome.kind, i)
                    aborted = True
                    break
        except BaseException:
            self.state = RunState.ABORTED
            raise
        finally:
            self.session.finish()
            self.current_index = None

        self.state = RunState.ABORTED if aborted else RunState.COMPLETED
        result = BatchResult.from_outcomes(len(descriptors), outcomes, aborted=aborted)
        self.session.status(
            f"{result.signed_count} of {result.requested} signed"
            + (" (stopped early)" if aborted else "")
        )
        log.info("Signing run %s after %.1fs: %s", self.state, self.session.elapsed, result.snapshot())
        return result

    def _report(self, index: int, outcome: SigningOutcome) -> None:
        if isinstance(outcome, Signed):
            log.info("Transaction %s signed: %s", index + 1, outcome.tx_hash)
        elif isinstance(outcome, Failed):
            log.warning("Transaction %s failed: %s", index + 1, outcome.reason)
        else:
            log.warning("Transaction %s %s", index + 1, outcome.kind.lower())

    async def _attempt(self, descriptor: TransactionDescriptor) -> SigningOutcome:
        try:
            async with asyncio.timeout(self.timeout):
                outcome = await self.signer.sign(descriptor)
        except TimeoutError:
            log.warning("No signature within %ss", self.timeout)
            await self._release(descriptor)
            return Failed("timeout")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("Signer error: %s", e)
            return Failed(str(e) or e.__class__.__name__)

        if not isinstance(outcome, SigningOutcome):
            return Failed(f"signer returned {outcome!r}")
        return outcome

    async def _release(self, descriptor: TransactionDescriptor) -> None:
        if self._released or not isinstance(self.signer, CancellableSigner):
            return
        self._released = True
        try:
            await self.signer.cancel(descriptor)
        except Exception as e:
            log.warning("Signer cancel hook failed: %s", e)

    async def _sign_one(self, descriptor: TransactionDescriptor) -> SigningOutcome:
        self._released = False
        sign_task = asyncio.create_task(self._attempt(descriptor))
        halt_task = asyncio.create_task(self._cancel.wait())
        try:
            done, _ = await asyncio.wait({sign_task, halt_task}, return_when=asyncio.FIRST_COMPLETED)
            if sign_task not in done:
                # Never leave a QR session dangling: release it, then wait for the signer to settle
                self.session.status("Cancelling: waiting for the wallet to release the request")
                await self._release(descriptor)
            return await sign_task
        except asyncio.CancelledError:
            sign_task.cancel()
            await self._release(descriptor)
            with contextlib.suppress(asyncio.CancelledError):
                await sign_task
            raise
        finally:
            halt_task.cancel()

    async def _pause(self) -> None:
        if self.inter_sign_delay <= 0:
            return
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._cancel.wait(), timeout=self.inter_sign_delay)

    async def _should_continue(self, index: int, outcome: SigningOutcome) -> bool:
        if self.on_failure_continue is None:
            return False
        answer = self.on_failure_continue(index, outcome)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)


async def run_signing_batch(
    descriptors: Sequence[TransactionDescriptor],
    signer: Signer,
    on_failure_continue: ContinueFn,
    *,
    timeout: float | None = C.SIGN_TIMEOUT,
    inter_sign_delay: float = C.INTER_SIGN_DELAY,
    listener: SigningListener | None = None,
) -> BatchResult:
    coordinator = SigningCoordinator(
        signer,
        on_failure_continue,
        timeout=timeout,
        inter_sign_delay=inter_sign_delay,
        listener=listener,
    )
    return await coordinator.start(descriptors)


def always_continue(index: int, outcome: SigningOutcome) -> bool:
    return True


def never_continue(index: int, outcome: SigningOutcome) -> bool:
    return False


def _fake_hash(descriptor: TransactionDescriptor) -> str:
    blob = json.dumps(descriptor.to_xrpl(), sort_keys=True).encode()
    return hashlib.sha512(blob).digest()[:32].hex().upper()


class FakeSigner:
    """Offline signer that replays a script of outcomes.

    Script items may be SigningOutcome instances or exceptions (raised from
    `sign`). Once the script runs out every call returns `default`. With
    `hold=True` each call blocks until `cancel` is called, then resolves as
    Rejected, which is how a wallet reports a withdrawn request.
    """

    def __init__(
        self,
        script: Iterable[SigningOutcome | Exception] = (),
        *,
        default: SigningOutcome | None = None,
        delay: float = 0.0,
        hold: bool = False,
    ):
        self._script: deque[SigningOutcome | Exception] = deque(script)
        self.default = default or Signed()
        self.delay = delay
        self.hold = hold
        self.requests: list[TransactionDescriptor] = []
        self.cancelled: list[TransactionDescriptor] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._released = asyncio.Event()

    async def sign(self, descriptor: TransactionDescriptor) -> SigningOutcome:
        self.requests.append(descriptor)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.hold:
                await self._released.wait()
                self._released.clear()
                return Rejected()

            item = self._script.popleft() if self._script else self.default
            if isinstance(item, Exception):
                raise item
            if isinstance(item, Signed) and item.tx_hash is None:
                return Signed(tx_hash=_fake_hash(descriptor))
            return item
        finally:
            self.in_flight -= 1

    async def cancel(self, descriptor: TransactionDescriptor) -> None:
        self.cancelled.append(descriptor)
        self._released.set()
