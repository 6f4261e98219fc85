import argparse
import asyncio
import logging
import sys

import httpx
import uvicorn

from offer_ladder.builder import BuildError, build
from offer_ladder.config import cfg, order_bounds
from offer_ladder.constants import Spread
from offer_ladder.distribution import calculate, summarize
from offer_ladder.ledger import LedgerClient, LedgerError
from offer_ladder.logging_config import setup_logging
from offer_ladder.models import BatchResult, DistributionRequest, OrderSpec, SigningOutcome
from offer_ladder.signing import FakeSigner, run_signing_batch
from offer_ladder.validation import ValidationError
from offer_ladder.xaman import ProxyClient, XamanClient, XamanError, XamanSigner

log = logging.getLogger("offer_ladder.cli")


class ConsoleListener:
    def on_qr_ready(self, url: str) -> None:
        print(f"\n  Scan with Xaman: {url}")

    def on_status_change(self, message: str) -> None:
        print(f"  {message}")

    def on_progress(self, current: int, total: int) -> None:
        pass


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="offer_ladder")
    sub = parser.add_subparsers(dest="command", required=True)

    def ladder_args(p, supply_required=True):
        p.add_argument("--bottom", type=float, required=True, help="Bottom market cap (XRP).")
        p.add_argument("--top", type=float, required=True, help="Top market cap (XRP).")
        p.add_argument("-n", "--orders", type=int, required=True, help="Number of sell orders.")
        p.add_argument("--tokens", type=float, required=True, help="Total tokens to sell.")
        p.add_argument("--supply", type=float, required=supply_required,
                       help="Token supply used to turn caps into prices."
                       + ("" if supply_required else " Read from the issuer's obligations when omitted."))
        p.add_argument("--spread", type=Spread, choices=list(Spread), default=Spread.LINEAR)

    p_preview = sub.add_parser("preview", help="Print the ladder without touching the ledger.")
    ladder_args(p_preview)

    p_sign = sub.add_parser("sign", help="Build the offers and sign them one by one in Xaman.")
    ladder_args(p_sign, supply_required=False)
    p_sign.add_argument("--account", required=True, help="Address selling the token.")
    p_sign.add_argument("--currency", required=True, help="Token currency code.")
    p_sign.add_argument("--issuer", required=True, help="Token issuer address.")
    p_sign.add_argument("--rpc-url", default=cfg["rippled"]["rpc_url"])
    p_sign.add_argument("--backend-url", default=cfg["xaman"]["backend_url"],
                        help="Payload proxy. Ignored when XAMAN_API_KEY/SECRET are set.")
    p_sign.add_argument("--yes", action="store_true", help="Continue past rejected or failed offers without asking.")
    p_sign.add_argument("--dry-run", action="store_true", help="Sign with a fake wallet that approves everything.")

    p_serve = sub.add_parser("serve", help="Run the payload proxy and ladder API.")
    p_serve.add_argument("--host", default=cfg["server"]["host"])
    p_serve.add_argument("--port", type=int, default=cfg["server"]["port"])
    return parser.parse_args(argv)


def to_request(a, available_balance: float | None = None, token_supply: float | None = None) -> DistributionRequest:
    return DistributionRequest(
        bottom_market_cap=a.bottom,
        top_market_cap=a.top,
        order_count=a.orders,
        total_tokens=a.tokens,
        token_supply=a.supply if token_supply is None else token_supply,
        spread=a.spread,
        available_balance=available_balance,
    )


def print_ladder(orders: list[OrderSpec]) -> None:
    print("{:>5} {:>16} {:>18} {:>18} {:>16}".format("#", "Price (XRP)", "Amount", "Market cap", "Total XRP"))
    for o in orders:
        print("{:>5} {:>16.8f} {:>18,.6f} {:>18,.2f} {:>16.6f}".format(
            o.index, o.price, o.amount, o.market_cap, o.total_xrp))
    s = summarize(orders, cfg["fees"]["base_fee_drops"])
    print("{:<25} = {:>6}".format("Orders:", s.order_count))
    print("{:<25} = {:>6,.6f}".format("Total XRP expected:", s.total_xrp))
    print("{:<25} = {:>6.8f}".format("Average price:", s.average_price))
    print("{:<25} = {:>6} drops".format("Total fees:", s.total_fee_drops))
    print("{:<25} = {:>6} XRP".format("Reserve needed:", s.required_reserve_xrp))


def print_result(result: BatchResult) -> None:
    print(f"\n{result.signed_count}/{result.requested} offers signed" + (" (stopped early)" if result.aborted else ""))
    for i, o in enumerate(result.outcomes, start=1):
        print(f"  {i:>3} {o.kind:<9} {getattr(o, 'tx_hash', None) or getattr(o, 'reason', '')}")


async def ask_continue(index: int, outcome: SigningOutcome) -> bool:
    answer = await asyncio.to_thread(input, f"Transaction {index + 1} {outcome.kind.lower()}. Continue? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


async def sign(a) -> BatchResult:
    ledger = LedgerClient(a.rpc_url)
    balance = await ledger.balance_of(a.account, a.currency, a.issuer)
    supply = a.supply
    if supply is None:
        supply = await ledger.token_supply(a.currency, a.issuer)
        print("{:<25} = {:>6,.6f}".format("Token supply (ledger):", supply))
    orders = calculate(to_request(a, available_balance=balance, token_supply=supply))
    print_ladder(orders)

    sc = cfg["signing"]
    descriptors = await build(
        orders,
        a.account,
        a.currency,
        a.issuer,
        next_sequence=ledger.next_sequence,
        validated_ledger_index=ledger.validated_ledger_index,
        horizon=sc["horizon"],
        fee_drops=cfg["fees"]["base_fee_drops"],
    )
    listener = ConsoleListener()
    on_failure = (lambda i, o: True) if a.yes else ask_continue

    if a.dry_run:
        return await run_signing_batch(descriptors, FakeSigner(), on_failure, inter_sign_delay=0, listener=listener)

    xm = cfg["xaman"]
    if xm["api_key"] and xm["api_secret"]:
        client = XamanClient(xm["api_url"], api_key=xm["api_key"], api_secret=xm["api_secret"])
    else:
        client = ProxyClient(a.backend_url)
    async with client:
        signer = XamanSigner(
            client,
            listener=listener,
            poll_interval=sc["poll_interval"],
            max_polls=int(sc["timeout"] // sc["poll_interval"]),
            expire_minutes=sc["payload_expire_minutes"],
        )
        return await run_signing_batch(
            descriptors,
            signer,
            on_failure,
            timeout=sc["timeout"],
            inter_sign_delay=sc["inter_sign_delay"],
            listener=listener,
        )


def main(argv=None):
    setup_logging()
    a = parse_args(argv)

    if a.command == "serve":
        uvicorn.run("offer_ladder.app:app", host=a.host, port=a.port, lifespan="on")
        return

    try:
        if a.command == "preview":
            lo, hi = order_bounds()
            print_ladder(calculate(to_request(a), min_orders=lo, max_orders=hi))
        elif a.command == "sign":
            result = asyncio.run(sign(a))
            print_result(result)
            sys.exit(0 if result.signed_count == result.requested else 1)
    except (ValidationError, BuildError, ValueError, LedgerError, XamanError, httpx.HTTPError) as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
