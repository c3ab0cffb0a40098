import base64
import json

import pytest

from bncdex.events import RPCError
from bncdex.results import ResultBroadcastTxCommit, ResultTx
from bncdex.rpc import AbciQueryError, RPCClient
from bncdex.validate import ValidationError


class FakeTransport:
    def __init__(self, responses, handlers, errors, calls):
        self.responses = responses
        self.handlers = handlers
        self.errors = errors
        self.calls = calls
        self.running = False

    def start(self):
        self.running = True

    def stop(self):
        was = self.running
        self.running = False
        return was

    def is_running(self):
        return self.running

    def is_active(self):
        return self.running

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        def method(request_id, *args, timeout=None):
            self.calls.append((name, args))
            if name in self.errors:
                self.responses.put({"jsonrpc": "2.0", "id": request_id, "error": self.errors[name]})
                return
            handler = self.handlers.get(name, lambda *a: {})
            self.responses.put(
                {"jsonrpc": "2.0", "id": request_id, "result": handler(*args)}
            )

        return method


@pytest.fixture
def setup():
    handlers = {}
    errors = {}
    calls = []

    def factory(remote, endpoint, responses, on_dial_success):
        return FakeTransport(responses, handlers, errors, calls)

    client = RPCClient("tcp://127.0.0.1:27147", client_factory=factory, timeout=3.0)
    yield client, handlers, errors, calls
    client.close()


def _abci(value=b"", code=0, log=""):
    return {
        "response": {
            "code": code,
            "log": log,
            "value": base64.b64encode(value).decode() if value else None,
        }
    }


def test_status_returns_node_result(setup):
    client, handlers, _, calls = setup
    handlers["status"] = lambda: {"node_info": {"network": "Binance-Chain-Tigris"}}
    assert client.status() == {"node_info": {"network": "Binance-Chain-Tigris"}}
    assert calls == [("status", ())]


def test_abci_query_uses_default_options(setup):
    client, handlers, _, calls = setup
    handlers["abci_query"] = lambda *a: _abci(b"x")
    client.abci_query("custom/x", b"\x01")
    assert calls == [("abci_query", ("custom/x", b"\x01", 0, False))]


def test_query_with_data_returns_value(setup):
    client, handlers, _, _ = setup
    handlers["abci_query"] = lambda *a: _abci(b"hello")
    assert client.query_with_data("some/path", None) == b"hello"


def test_query_with_data_not_ok_raises(setup):
    client, handlers, _, _ = setup
    handlers["abci_query"] = lambda *a: _abci(code=7, log="bad query")
    with pytest.raises(AbciQueryError) as info:
        client.query_with_data("some/path", None)
    assert str(info.value) == "bad query"
    assert info.value.code == 7


def test_query_store_path(setup):
    client, handlers, _, calls = setup
    handlers["abci_query"] = lambda *a: _abci(b"stored")
    assert client.query_store(b"account:abc", "acc") == b"stored"
    assert calls[0][1][:2] == ("/store/acc/key", b"account:abc")


@pytest.mark.parametrize(
    "call",
    [
        lambda c: c.block(-1),
        lambda c: c.commit(-5),
        lambda c: c.tx(b"short"),
        lambda c: c.unconfirmed_txs(101),
        lambda c: c.unconfirmed_txs(-1),
        lambda c: c.blockchain_info(5, 1),
        lambda c: c.abci_query("p" * 1025),
        lambda c: c.broadcast_tx_sync(b"\x00" * (1024 * 1024 + 1)),
        lambda c: c.tx_search("q" * 1025),
    ],
)
def test_invalid_arguments_are_rejected_before_sending(setup, call):
    client, _, _, calls = setup
    with pytest.raises(ValidationError):
        call(client)
    assert calls == []


def test_broadcast_routes(setup):
    client, handlers, _, calls = setup
    handlers["broadcast_tx"] = lambda route, tx: {"code": 0, "route": route}
    assert client.broadcast_tx_async(b"\x01\x02")["route"] == "broadcast_tx_async"
    assert client.broadcast_tx_sync(b"\x01\x02")["route"] == "broadcast_tx_sync"
    assert [c[1][0] for c in calls] == ["broadcast_tx_async", "broadcast_tx_sync"]


def test_broadcast_tx_commit_complements_tags(setup):
    client, handlers, _, _ = setup
    key = base64.b64encode(b"action").decode()
    value = base64.b64encode(b"send").decode()
    handlers["broadcast_tx_commit"] = lambda tx: {
        "check_tx": {"code": 0, "tags": [{"key": key, "value": value}]},
        "deliver_tx": {"code": 3, "log": "failed"},
        "hash": "ABCD",
        "height": "10",
    }
    result = client.broadcast_tx_commit(b"\x01")
    assert isinstance(result, ResultBroadcastTxCommit)
    assert result.hash == bytes.fromhex("ABCD")
    assert result.check_tx.events[0].attributes == [(b"action", b"send")]
    assert result.deliver_tx.is_err()


def test_tx_returns_result_tx(setup):
    client, handlers, _, calls = setup
    handlers["tx"] = lambda hash_, prove: {"hash": hash_.hex(), "height": "12"}
    digest = b"\x11" * 32
    result = client.tx(digest)
    assert isinstance(result, ResultTx)
    assert result.hash == digest
    assert result.height == 12
    assert calls == [("tx", (digest, False))]


def test_rpc_error_is_raised(setup):
    client, _, errors, _ = setup
    errors["health"] = {"code": -32603, "message": "Internal error", "data": "boom"}
    with pytest.raises(RPCError) as info:
        client.health()
    assert info.value.code == -32603
    assert info.value.data == "boom"


def test_get_stake_validators_decodes_json(setup):
    client, handlers, _, calls = setup
    validators = [{"operator_address": "bva1example", "jailed": False}]
    handlers["abci_query"] = lambda *a: _abci(json.dumps(validators).encode())
    assert client.get_stake_validators() == validators
    assert calls[0][1][0] == "custom/stake/validators"


def test_get_delegator_unbonding_delegations_sends_address(setup):
    client, handlers, _, calls = setup
    handlers["abci_query"] = lambda *a: _abci(b"[]")
    assert client.get_delegator_unbonding_delegations("bnb1example") == []
    path, data = calls[0][1][:2]
    assert path == "custom/stake/delegatorUnbondingDelegations"
    assert json.loads(data) == {"DelegatorAddr": "bnb1example"}


def test_close_stops_connection(setup):
    client, _, _, _ = setup
    assert client.is_active() is True
    assert client.close() is True
    assert client.is_active() is False
    assert client.close() is False