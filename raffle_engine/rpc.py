from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .env import normalize_address
from .errors import RpcError
from .vrf import VRFCoordinator

logger = logging.getLogger(__name__)


class RpcVRFCoordinator(VRFCoordinator):
    """Randomness service reached over JSON-RPC.

    The service does not call back; ``deliver`` polls for the words and hands
    them to the consumer as the coordinator address.
    """

    def __init__(
        self,
        rpc_url: str,
        address: str,
        timeout_s: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.address = normalize_address(address)
        self.client = httpx.Client(timeout=timeout_s, transport=transport)
        self._next_id = 1

    def close(self) -> None:
        self.client.close()

    def _post(self, method: str, params: List[Any]) -> Dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id,
            "method": method,
            "params": params,
        }
        self._next_id += 1
        try:
            resp = self.client.post(self.rpc_url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise RpcError(f"{method} failed: {e}") from e
        except ValueError as e:
            raise RpcError(f"{method} returned invalid JSON: {e}") from e
        if "error" in data:
            raise RpcError(f"RPC error: {data['error']}")
        return data

    def request_random_words(
        self,
        key_hash: bytes,
        sub_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
        consumer: Any,
    ) -> int:
        data = self._post(
            "vrf_requestRandomWords",
            [
                {
                    "keyHash": "0x" + bytes(key_hash).hex(),
                    "subId": sub_id,
                    "requestConfirmations": request_confirmations,
                    "callbackGasLimit": callback_gas_limit,
                    "numWords": num_words,
                    "consumer": normalize_address(consumer.address),
                }
            ],
        )
        result = data.get("result")
        if result is None:
            raise RpcError("vrf_requestRandomWords returned no request id")
        request_id = int(result, 0) if isinstance(result, str) else int(result)
        logger.info("Remote random words requested: request_id=%d", request_id)
        return request_id

    def get_random_words(self, request_id: int) -> Optional[List[int]]:
        """Returns the words for ``request_id``, or None while still pending."""
        data = self._post("vrf_getRandomWords", [request_id])
        result = data.get("result")
        if result is None:
            return None
        return [int(w, 0) if isinstance(w, str) else int(w) for w in result]

    def deliver(self, consumer: Any, request_id: int) -> bool:
        words = self.get_random_words(request_id)
        if words is None:
            logger.debug("Request %d not fulfilled yet", request_id)
            return False
        consumer.fulfill_random_words(request_id, words, sender=self.address)
        return True
