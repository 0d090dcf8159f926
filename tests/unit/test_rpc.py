import json

import httpx
import pytest

from raffle_engine import Raffle, RaffleState
from raffle_engine.errors import RpcError
from raffle_engine.rpc import RpcVRFCoordinator

from conftest import ENTRANCE_FEE, INTERVAL

RPC_URL = "https://vrf.example.org/rpc"


class FakeVRFService:
    """Answers vrf_* JSON-RPC calls the way a remote randomness service would."""

    def __init__(self):
        self.requests = []
        self.words = {}
        self.next_id = 7

    def __call__(self, request):
        body = json.loads(request.content)
        method, params = body["method"], body["params"]
        if method == "vrf_requestRandomWords":
            self.requests.append(params[0])
            result = hex(self.next_id)
            self.next_id += 1
        elif method == "vrf_getRandomWords":
            result = self.words.get(params[0])
        else:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601}})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


@pytest.fixture
def service():
    return FakeVRFService()


@pytest.fixture
def coordinator(env, service):
    c = RpcVRFCoordinator(RPC_URL, env.generate_address(), transport=httpx.MockTransport(service))
    yield c
    c.close()


@pytest.fixture
def remote_raffle(env, coordinator):
    return Raffle(ENTRANCE_FEE, INTERVAL, coordinator, b"\x01" * 32, 99, 500000, env=env)


def test_request_random_words(remote_raffle, coordinator, service, env, account):
    with env.prank(account):
        remote_raffle.enter_raffle(value=ENTRANCE_FEE)
    env.time_travel(seconds=INTERVAL + 1)

    request_id = remote_raffle.request_winner()

    assert request_id == 7
    assert remote_raffle.get_pending_request_id() == 7
    assert service.requests == [
        {
            "keyHash": "0x" + "01" * 32,
            "subId": 99,
            "requestConfirmations": 3,
            "callbackGasLimit": 500000,
            "numWords": 1,
            "consumer": remote_raffle.address,
        }
    ]


def test_deliver_when_words_arrive(remote_raffle, coordinator, service, env, account):
    with env.prank(account):
        remote_raffle.enter_raffle(value=ENTRANCE_FEE)
    env.time_travel(seconds=INTERVAL + 1)
    request_id = remote_raffle.request_winner()

    assert coordinator.deliver(remote_raffle, request_id) is False
    assert remote_raffle.get_raffle_state() == RaffleState.CALCULATING

    service.words[request_id] = [hex(2**255 + 1)]
    assert coordinator.get_random_words(request_id) == [2**255 + 1]
    assert coordinator.deliver(remote_raffle, request_id) is True
    assert remote_raffle.get_recent_winner() == account
    assert remote_raffle.get_raffle_state() == RaffleState.OPEN


def test_rpc_error_is_raised(coordinator):
    with pytest.raises(RpcError, match="RPC error"):
        coordinator._post("vrf_unknown", [])


def test_http_error_is_raised(env):
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    c = RpcVRFCoordinator(RPC_URL, env.generate_address(), transport=transport)
    with pytest.raises(RpcError, match="vrf_getRandomWords failed"):
        c.get_random_words(1)
    c.close()


def test_invalid_json_is_raised(env):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"not json"))
    c = RpcVRFCoordinator(RPC_URL, env.generate_address(), transport=transport)
    with pytest.raises(RpcError, match="invalid JSON"):
        c.get_random_words(1)
    c.close()


def test_failed_request_keeps_raffle_open(env, account):
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": None})
    )
    c = RpcVRFCoordinator(RPC_URL, env.generate_address(), transport=transport)
    raffle = Raffle(ENTRANCE_FEE, INTERVAL, c, b"\x01" * 32, 99, 500000, env=env)
    with env.prank(account):
        raffle.enter_raffle(value=ENTRANCE_FEE)
    env.time_travel(seconds=INTERVAL + 1)

    with pytest.raises(RpcError, match="no request id"):
        raffle.request_winner()
    assert raffle.get_raffle_state() == RaffleState.OPEN
    c.close()
