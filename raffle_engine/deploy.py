from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from eth_utils import to_wei

from .config import NetworkConfig
from .env import Env
from .errors import ConfigError
from .raffle import Raffle
from .rpc import RpcVRFCoordinator
from .vrf import BASE_FEE, MockVRFCoordinator, VRFCoordinator

logger = logging.getLogger(__name__)

VRF_SUB_FUND_AMOUNT = to_wei(2, "ether")


@dataclass(frozen=True)
class Deployment:
    network: NetworkConfig
    raffle: Raffle
    coordinator: VRFCoordinator
    subscription_id: int


def deploy_mock(env: Env, base_fee: int = BASE_FEE) -> MockVRFCoordinator:
    mock = MockVRFCoordinator(env, base_fee=base_fee)
    logger.info("Mock VRF Coordinator at: %s", mock.address)
    return mock


def deploy_raffle(
    network: NetworkConfig,
    env: Env,
    coordinator: Optional[VRFCoordinator] = None,
) -> Deployment:
    """Provision a raffle for ``network``.

    Development chains get a mock coordinator with a freshly created and
    funded subscription, and the raffle is registered as its consumer. Live
    networks use the configured coordinator address and subscription.
    """
    if network.is_development:
        mock = coordinator if coordinator is not None else deploy_mock(env)
        if not isinstance(mock, MockVRFCoordinator):
            raise ConfigError("Development networks need a MockVRFCoordinator")
        subscription_id = mock.create_subscription()
        mock.fund_subscription(subscription_id, VRF_SUB_FUND_AMOUNT)
        coordinator = mock
    else:
        if coordinator is None:
            if not network.vrf_coordinator or not network.vrf_rpc_url:
                raise ConfigError(
                    f"Network {network.name!r} needs vrf_coordinator and vrf_rpc_url"
                )
            coordinator = RpcVRFCoordinator(network.vrf_rpc_url, network.vrf_coordinator)
        if network.subscription_id is None:
            raise ConfigError(f"Network {network.name!r} has no subscription_id")
        subscription_id = network.subscription_id

    raffle = Raffle(
        network.entrance_fee,
        network.interval,
        coordinator,
        network.gas_lane,
        subscription_id,
        network.callback_gas_limit,
        env=env,
    )

    if isinstance(coordinator, MockVRFCoordinator):
        coordinator.add_consumer(subscription_id, raffle.address)

    logger.info(
        "Raffle deployed at %s on %s (entrance_fee=%d interval=%d subscription=%d)",
        raffle.address,
        network.name,
        network.entrance_fee,
        network.interval,
        subscription_id,
    )
    return Deployment(
        network=network,
        raffle=raffle,
        coordinator=coordinator,
        subscription_id=subscription_id,
    )
