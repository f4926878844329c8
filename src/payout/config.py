import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

from payout.constants import Network
from payout.errors import ConfigurationError

pkg_root = Path(__file__).parent
config_file = pkg_root / "config.toml"

cfg = tomllib.loads(config_file.read_text())


@dataclass(frozen=True)
class NetworkConfig:
    """Endpoint and monetary constants for one cluster. All amounts in lamports."""

    name: str
    rpc_url: str
    fee_buffer: int
    account_creation_cost: int
    explorer_cluster: str
    rpc_timeout: float


def network_config(name: str | Network, *, cfg: dict = cfg) -> NetworkConfig:
    """Resolve a network name against the static table.

    The endpoint can be swapped for a private RPC node with SOLANA_RPC_URL.
    Per-network tables may override the global [fees] values.
    """
    networks = cfg["networks"]
    key = str(name)
    if key not in networks:
        raise ConfigurationError(
            f"Invalid network specified. Must be one of: {', '.join(networks)}"
        )
    net = networks[key]
    fees = cfg["fees"]
    return NetworkConfig(
        name=key,
        rpc_url=os.getenv("SOLANA_RPC_URL", net["rpc_url"]),
        fee_buffer=int(net.get("transaction_fee_buffer", fees["transaction_fee_buffer"])),
        account_creation_cost=int(net.get("account_creation_cost", fees["account_creation_cost"])),
        explorer_cluster=net.get("explorer_cluster", key),
        rpc_timeout=float(cfg["timeout"]["rpc"]),
    )
