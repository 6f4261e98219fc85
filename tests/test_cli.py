from __future__ import annotations

import pytest

import offer_ladder.__main__ as cli
from offer_ladder.ledger import LedgerError

LADDER = ["--bottom", "100000", "--top", "1000000", "-n", "5", "--tokens", "500000", "--supply", "10000000"]


class FakeLedger:
    def __init__(self, balance: float = 1_000_000, supply: float = 10_000_000, fail: bool = False):
        self.balance = balance
        self.supply = supply
        self.fail = fail
        self.supply_calls = 0

    async def balance_of(self, account, currency_code, issuer):
        if self.fail:
            raise LedgerError("account_lines failed: actNotFound")
        return self.balance

    async def token_supply(self, currency_code, issuer):
        self.supply_calls += 1
        return self.supply

    async def next_sequence(self, account):
        return 7

    async def validated_ledger_index(self):
        return 100


def test_preview(capsys) -> None:
    cli.main(["preview", *LADDER])
    out = capsys.readouterr().out

    assert "Orders:" in out
    assert "27,500.000000" in out
    assert "Reserve needed:" in out


def test_preview_invalid(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["preview", *LADDER[:-2], "--supply", "0"])
    assert exc.value.code == 2
    assert "token_supply" in capsys.readouterr().err


def test_dry_run_sign(monkeypatch, capsys, account: str, issuer: str) -> None:
    monkeypatch.setattr(cli, "LedgerClient", lambda url: FakeLedger())
    with pytest.raises(SystemExit) as exc:
        cli.main(["sign", *LADDER, "--account", account, "--currency", "USD", "--issuer", issuer, "--dry-run", "--yes"])

    assert exc.value.code == 0
    assert "5/5 offers signed" in capsys.readouterr().out


def test_sign_insufficient_balance(monkeypatch, account: str, issuer: str) -> None:
    monkeypatch.setattr(cli, "LedgerClient", lambda url: FakeLedger(balance=10))
    with pytest.raises(SystemExit) as exc:
        cli.main(["sign", *LADDER, "--account", account, "--currency", "USD", "--issuer", issuer, "--dry-run"])
    assert exc.value.code == 2


def test_preview_degenerate_range(capsys) -> None:
    args = ["--bottom", "1", "--top", "1.000000000000001", "-n", "50", "--tokens", "500000", "--supply", "1"]
    with pytest.raises(SystemExit) as exc:
        cli.main(["preview", *args])
    assert exc.value.code == 2
    assert "too small" in capsys.readouterr().err


def test_sign_reads_supply_from_ledger(monkeypatch, capsys, account: str, issuer: str) -> None:
    ledger = FakeLedger()
    monkeypatch.setattr(cli, "LedgerClient", lambda url: ledger)
    with pytest.raises(SystemExit) as exc:
        cli.main(["sign", *LADDER[:-2], "--account", account, "--currency", "USD", "--issuer", issuer,
                  "--dry-run", "--yes"])

    assert exc.value.code == 0
    assert ledger.supply_calls == 1
    out = capsys.readouterr().out
    assert "Token supply (ledger):" in out
    assert "27,500.000000" in out


def test_sign_ledger_error(monkeypatch, capsys, account: str, issuer: str) -> None:
    monkeypatch.setattr(cli, "LedgerClient", lambda url: FakeLedger(fail=True))
    with pytest.raises(SystemExit) as exc:
        cli.main(["sign", *LADDER, "--account", account, "--currency", "USD", "--issuer", issuer, "--dry-run"])

    assert exc.value.code == 2
    assert "actNotFound" in capsys.readouterr().err
