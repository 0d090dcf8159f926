"""Per-network raffle configuration.

Built-in networks can be extended or overridden from a TOML file::

    [networks.sepolia]
    subscription_id = 1234
    vrf_rpc_url = "https://vrf.example.org"
    entrance_fee = "0.02 ether"

Environment variables (``.env`` is honoured) take precedence over both.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv
from eth_utils import decode_hex, to_wei

from .env import normalize_address
from .errors import ConfigError

DEFAULT_CONFIG_FILE = "raffle.toml"
DEFAULT_NETWORK = "hardhat"
DEVELOPMENT_CHAINS = (31337,)

GAS_LANE = "0x474e34a077df58807dbe9c96d3c009b23b3c6d0cce433e59bbf5b34f823bc56c"

NETWORKS: Dict[str, Dict[str, Any]] = {
    "sepolia": {
        "chain_id": 11155111,
        "vrf_coordinator": "0x8103B0A8A00be2DDC778e6e7eaa21791Cd364625",
        "entrance_fee": "0.01 ether",
        "gas_lane": GAS_LANE,
        "subscription_id": 0,
        "callback_gas_limit": 500000,
        "interval": 30,
    },
    "hardhat": {
        "chain_id": 31337,
        "entrance_fee": "0.01 ether",
        "gas_lane": GAS_LANE,
        "callback_gas_limit": 500000,
        "interval": 30,
    },
}


@dataclass(frozen=True)
class NetworkConfig:
    name: str
    chain_id: int
    entrance_fee: int
    gas_lane: bytes
    callback_gas_limit: int
    interval: int
    vrf_coordinator: Optional[str] = None
    vrf_rpc_url: Optional[str] = None
    subscription_id: Optional[int] = None

    @property
    def is_development(self) -> bool:
        return self.chain_id in DEVELOPMENT_CHAINS


def parse_amount(value: Any) -> int:
    """Parse an amount in wei: an int, or a string such as ``"0.01 ether"``."""
    if isinstance(value, bool):
        raise ConfigError(f"Invalid amount: {value!r}")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str):
        parts = value.split()
        unit = parts[1] if len(parts) == 2 else "wei"
        if len(parts) not in (1, 2):
            raise ConfigError(f"Invalid amount: {value!r}")
        try:
            amount = to_wei(Decimal(parts[0]), unit)
        except (InvalidOperation, ValueError) as e:
            raise ConfigError(f"Invalid amount {value!r}: {e}") from e
    else:
        raise ConfigError(f"Invalid amount: {value!r}")
    if amount < 0:
        raise ConfigError(f"Amount cannot be negative: {value!r}")
    return amount


def _build(name: str, raw: Mapping[str, Any]) -> NetworkConfig:
    try:
        chain_id = int(raw["chain_id"])
        gas_lane = decode_hex(raw["gas_lane"])
        callback_gas_limit = int(raw["callback_gas_limit"])
        interval = int(raw["interval"])
        entrance_fee = parse_amount(raw["entrance_fee"])
    except KeyError as e:
        raise ConfigError(f"Network {name!r} is missing {e.args[0]!r}") from e
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Network {name!r} is invalid: {e}") from e

    if len(gas_lane) != 32:
        raise ConfigError(f"Network {name!r}: gas_lane must be 32 bytes")
    if interval < 0:
        raise ConfigError(f"Network {name!r}: interval cannot be negative")

    vrf_coordinator = raw.get("vrf_coordinator")
    if vrf_coordinator:
        try:
            vrf_coordinator = normalize_address(vrf_coordinator)
        except ValueError as e:
            raise ConfigError(f"Network {name!r}: {e}") from e

    subscription_id = raw.get("subscription_id")
    return NetworkConfig(
        name=name,
        chain_id=chain_id,
        entrance_fee=entrance_fee,
        gas_lane=gas_lane,
        callback_gas_limit=callback_gas_limit,
        interval=interval,
        vrf_coordinator=vrf_coordinator or None,
        vrf_rpc_url=raw.get("vrf_rpc_url") or None,
        subscription_id=int(subscription_id) if subscription_id is not None else None,
    )


def load_networks(path: Optional[str] = None) -> Dict[str, NetworkConfig]:
    """Return every known network, with the TOML file merged over the built-ins.

    ``path`` defaults to ``$RAFFLE_CONFIG``, then ``raffle.toml`` in the
    working directory; a missing default file is not an error.
    """
    load_dotenv()

    explicit = path or os.getenv("RAFFLE_CONFIG")
    path = explicit or DEFAULT_CONFIG_FILE

    raw_networks: Dict[str, Dict[str, Any]] = {k: dict(v) for k, v in NETWORKS.items()}
    if os.path.exists(path):
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"{path}: {e}") from e
        tables = data.get("networks", {})
        if not isinstance(tables, dict):
            raise ConfigError(f"{path}: networks must be a table")
        for name, values in tables.items():
            if not isinstance(values, dict):
                raise ConfigError(f"{path}: [networks.{name}] must be a table")
            raw_networks.setdefault(name, {}).update(values)
    elif explicit:
        raise ConfigError(f"Config file not found: {path}")

    return {name: _build(name, raw) for name, raw in raw_networks.items()}


def get_network(name: Optional[str] = None, path: Optional[str] = None) -> NetworkConfig:
    networks = load_networks(path)
    name = name or os.getenv("RAFFLE_NETWORK", "").strip() or DEFAULT_NETWORK
    network = networks.get(name)
    if network is None:
        raise ConfigError(
            f"Unknown network {name!r}; known networks: {', '.join(sorted(networks))}"
        )

    sub_id = os.getenv("VRF_SUBSCRIPTION_ID", "").strip()
    if sub_id:
        try:
            network = replace(network, subscription_id=int(sub_id))
        except ValueError as e:
            raise ConfigError(f"VRF_SUBSCRIPTION_ID is not an integer: {sub_id!r}") from e
    rpc_url = os.getenv("VRF_RPC_URL", "").strip()
    if rpc_url:
        network = replace(network, vrf_rpc_url=rpc_url)
    return network
