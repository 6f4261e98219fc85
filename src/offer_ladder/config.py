import os
import tomllib
from pathlib import Path

import offer_ladder.constants as C

pkg_root = Path(__file__).parent
config_file = pkg_root / "config.toml"

cfg = tomllib.loads(Path(os.getenv("OFFER_LADDER_CONFIG", config_file)).read_text())

cfg["rippled"]["rpc_url"] = os.getenv("RPC_URL", cfg["rippled"]["rpc_url"])
xm = cfg["xaman"]
xm["api_url"] = os.getenv("XAMAN_API_URL", xm["api_url"])
xm["backend_url"] = os.getenv("XAMAN_BACKEND_URL", xm["backend_url"])
# Credentials never live in the config file
xm["api_key"] = os.getenv("XAMAN_API_KEY")
xm["api_secret"] = os.getenv("XAMAN_API_SECRET")


def order_bounds(config: dict | None = None) -> tuple[int, int | None]:
    """Return (min_orders, max_orders) for the configured signing mode.

    Sequential signing has no ceiling; batch mode is capped by the ledger's
    Batch transaction limit.
    """
    ladder = (config or cfg)["ladder"]
    if ladder.get("batch_mode"):
        return ladder["min_orders"], ladder.get("batch_max_orders", C.MAX_BATCH_SIZE)
    return ladder["min_orders"], ladder.get("max_orders") or None
