"""In-memory token balances and allowances.

One TokenBank holds every fungible asset in a simulated world, keyed by
asset address. Amounts are ints in the asset's smallest unit.
"""

from copy import deepcopy
from typing import Any

from basketlever.libraries.precise_math import check_uint256
from basketlever.system import LoggerFactory

logger = LoggerFactory.get_logger()


class TokenError(Exception):
    """Base exception for token operations."""


class UnknownAssetError(TokenError):
    pass


class InsufficientBalanceError(TokenError):
    pass


class InsufficientAllowanceError(TokenError):
    pass


class TokenBank:
    """Balances, allowances and total supply per asset.

    Example:
        >>> bank = TokenBank()
        >>> bank.register_asset("0xusdc", decimals=6, symbol="USDC")
        >>> bank.mint("0xusdc", "0xalice", 1_000_000)
        >>> bank.balance_of("0xusdc", "0xalice")
        1000000
    """

    def __init__(self) -> None:
        self._decimals: dict[str, int] = {}
        self._symbols: dict[str, str] = {}
        self._balances: dict[str, dict[str, int]] = {}
        self._allowances: dict[tuple[str, str, str], int] = {}
        self._total_supply: dict[str, int] = {}

    def register_asset(self, asset: str, decimals: int, symbol: str | None = None) -> None:
        if asset in self._decimals:
            raise TokenError(f"Asset already registered: {asset}")
        if decimals < 0 or decimals > 36:
            raise TokenError(f"Invalid decimals for {asset}: {decimals}")
        self._decimals[asset] = decimals
        self._symbols[asset] = symbol or asset
        self._balances[asset] = {}
        self._total_supply[asset] = 0

    def _require_asset(self, asset: str) -> dict[str, int]:
        try:
            return self._balances[asset]
        except KeyError:
            raise UnknownAssetError(f"Unknown asset: {asset}") from None

    def decimals(self, asset: str) -> int:
        self._require_asset(asset)
        return self._decimals[asset]

    def symbol(self, asset: str) -> str:
        self._require_asset(asset)
        return self._symbols[asset]

    def is_registered(self, asset: str) -> bool:
        return asset in self._balances

    def balance_of(self, asset: str, holder: str) -> int:
        return self._require_asset(asset).get(holder, 0)

    def total_supply(self, asset: str) -> int:
        self._require_asset(asset)
        return self._total_supply[asset]

    def allowance(self, asset: str, owner: str, spender: str) -> int:
        self._require_asset(asset)
        return self._allowances.get((asset, owner, spender), 0)

    def mint(self, asset: str, to: str, amount: int) -> None:
        balances = self._require_asset(asset)
        check_uint256(amount)
        balances[to] = balances.get(to, 0) + amount
        self._total_supply[asset] = check_uint256(self._total_supply[asset] + amount)

    def burn(self, asset: str, holder: str, amount: int) -> None:
        balances = self._require_asset(asset)
        check_uint256(amount)
        current = balances.get(holder, 0)
        if current < amount:
            raise InsufficientBalanceError(
                f"Burn exceeds balance: asset={asset} holder={holder} balance={current} amount={amount}"
            )
        balances[holder] = current - amount
        self._total_supply[asset] -= amount

    def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        balances = self._require_asset(asset)
        check_uint256(amount)
        current = balances.get(sender, 0)
        if current < amount:
            logger.debug(
                "token.transfer.insufficient_balance",
                asset=asset,
                sender=sender,
                balance=current,
                amount=amount,
            )
            raise InsufficientBalanceError(
                f"Transfer exceeds balance: asset={asset} sender={sender} balance={current} amount={amount}"
            )
        balances[sender] = current - amount
        balances[recipient] = balances.get(recipient, 0) + amount

    def approve(self, asset: str, owner: str, spender: str, amount: int) -> None:
        self._require_asset(asset)
        self._allowances[(asset, owner, spender)] = check_uint256(amount)

    def transfer_from(self, asset: str, spender: str, owner: str, recipient: str, amount: int) -> None:
        """Move owner's tokens on behalf of spender, consuming allowance."""
        allowed = self.allowance(asset, owner, spender)
        if allowed < amount:
            raise InsufficientAllowanceError(
                f"Allowance too low: asset={asset} owner={owner} spender={spender} "
                f"allowance={allowed} amount={amount}"
            )
        self.transfer(asset, owner, recipient, amount)
        self._allowances[(asset, owner, spender)] = allowed - amount

    def snapshot(self) -> dict[str, Any]:
        return {
            "balances": deepcopy(self._balances),
            "allowances": dict(self._allowances),
            "total_supply": dict(self._total_supply),
        }

    def restore(self, state: dict[str, Any]) -> None:
        self._balances = deepcopy(state["balances"])
        self._allowances = dict(state["allowances"])
        self._total_supply = dict(state["total_supply"])
