import dataclasses

import pytest

from raffle_engine import Env, MockVRFCoordinator, RaffleState
from raffle_engine.config import load_networks
from raffle_engine.deploy import VRF_SUB_FUND_AMOUNT, deploy_mock, deploy_raffle
from raffle_engine.errors import ConfigError
from raffle_engine.rpc import RpcVRFCoordinator


@pytest.fixture
def networks(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("RAFFLE_CONFIG", raising=False)
    return load_networks()


def test_deploy_mock(env):
    mock = deploy_mock(env)
    assert isinstance(mock, MockVRFCoordinator)
    assert env.alias_of(mock.address) == "vrf_coordinator"


def test_deploy_on_development_chain(env, networks):
    """The raffle is initialized from the network config and wired to a funded subscription"""
    network = networks["hardhat"]
    deployment = deploy_raffle(network, env)
    raffle = deployment.raffle
    mock = deployment.coordinator

    assert isinstance(mock, MockVRFCoordinator)
    assert raffle.get_raffle_state() == RaffleState.OPEN
    assert raffle.get_entrance_fee() == network.entrance_fee
    assert raffle.get_interval() == network.interval
    assert raffle.get_gas_lane() == network.gas_lane
    assert raffle.get_callback_gas_limit() == network.callback_gas_limit
    assert raffle.get_subscription_id() == deployment.subscription_id == 1
    assert raffle.get_vrf_coordinator() is mock
    sub = mock.get_subscription(deployment.subscription_id)
    assert sub.balance == VRF_SUB_FUND_AMOUNT
    assert sub.consumers == [raffle.address]


def test_deploy_reuses_given_mock(env, networks, mock_vrf):
    deployment = deploy_raffle(networks["hardhat"], env, coordinator=mock_vrf)
    assert deployment.coordinator is mock_vrf


def test_full_round_after_deploy(env, networks):
    network = networks["hardhat"]
    deployment = deploy_raffle(network, env)
    raffle, mock = deployment.raffle, deployment.coordinator
    player = env.generate_address()
    env.set_balance(player, network.entrance_fee)

    raffle.enter_raffle(value=network.entrance_fee, sender=player)
    env.time_travel(seconds=network.interval + 1)
    request_id = raffle.perform_upkeep()
    mock.fulfill_random_words(request_id, raffle)

    assert raffle.get_recent_winner() == player
    assert env.get_balance(player) == network.entrance_fee


def test_deploy_on_live_network(env, networks):
    network = dataclasses.replace(networks["sepolia"], vrf_rpc_url="https://vrf.example.org")
    deployment = deploy_raffle(network, env)

    assert isinstance(deployment.coordinator, RpcVRFCoordinator)
    assert deployment.coordinator.address == network.vrf_coordinator
    assert deployment.subscription_id == network.subscription_id
    deployment.coordinator.close()


def test_live_network_needs_rpc_url(env, networks):
    with pytest.raises(ConfigError, match="vrf_rpc_url"):
        deploy_raffle(networks["sepolia"], env)


def test_live_network_needs_subscription(env, networks):
    network = dataclasses.replace(
        networks["sepolia"], vrf_rpc_url="https://vrf.example.org", subscription_id=None
    )
    with pytest.raises(ConfigError, match="subscription_id"):
        deploy_raffle(network, env)


def test_development_chain_needs_mock(env, networks):
    coordinator = RpcVRFCoordinator("https://vrf.example.org", Env().eoa)
    with pytest.raises(ConfigError):
        deploy_raffle(networks["hardhat"], env, coordinator=coordinator)
    coordinator.close()
