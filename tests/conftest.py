import pytest
from eth_utils import to_wei

from raffle_engine import Env, MockVRFCoordinator, Raffle
from raffle_engine.deploy import VRF_SUB_FUND_AMOUNT

ENTRANCE_FEE = to_wei("0.01", "ether")
INTERVAL = 60
GAS_LANE = b"\x00" * 32
CALLBACK_GAS_LIMIT = 100000
START_TIME = 1_700_000_000


@pytest.fixture
def env():
    """Simulated chain with a frozen clock"""
    return Env(clock=lambda: START_TIME)


@pytest.fixture
def account(env):
    """Default caller, funded with 1 ETH"""
    env.set_balance(env.eoa, to_wei(1, "ether"))
    return env.eoa


@pytest.fixture
def mock_vrf(env):
    """Deploy the mock VRF coordinator"""
    return MockVRFCoordinator(env)


@pytest.fixture
def subscription_id(mock_vrf):
    sub_id = mock_vrf.create_subscription()
    mock_vrf.fund_subscription(sub_id, VRF_SUB_FUND_AMOUNT)
    return sub_id


@pytest.fixture
def raffle_contract(env, mock_vrf, subscription_id):
    """Deploy the raffle and register it with the coordinator"""
    raffle_instance = Raffle(
        ENTRANCE_FEE,
        INTERVAL,
        mock_vrf,
        GAS_LANE,
        subscription_id,
        CALLBACK_GAS_LIMIT,
        env=env,
    )
    mock_vrf.add_consumer(subscription_id, raffle_instance.address)
    return raffle_instance


@pytest.fixture
def funded_players(env):
    def make(count, balance=to_wei(1, "ether")):
        players = [env.generate_address() for _ in range(count)]
        for addr in players:
            env.set_balance(addr, balance)
        return players

    return make
