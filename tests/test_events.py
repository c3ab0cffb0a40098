import queue
import time

import pytest

from bncdex.events import ResponseRouter, RPCError, WSEvents


def default_handler(method, request_id, args):
    return [{"id": request_id, "result": {"method": method}}]


class FakeClient:
    def __init__(self, responses, handler):
        self.responses = responses
        self.handler = handler
        self.calls = []
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

        def rpc(request_id, *args, timeout=None):
            self.calls.append((name, request_id, args))
            for response in self.handler(name, request_id, args) or []:
                self.responses.put({"jsonrpc": "2.0", **response})

        return rpc


@pytest.fixture
def make_events():
    made = []

    def factory(handler=default_handler, timeout=2.0, check_period=1.0):
        clients = []

        def client_factory(remote, endpoint, responses, on_dial_success):
            client = FakeClient(responses, handler)
            clients.append(client)
            return client

        events = WSEvents(
            "tcp://localhost:26657",
            "/websocket",
            timeout=timeout,
            client_factory=client_factory,
            check_period=check_period,
        )
        events.start()
        made.append(events)
        return events, clients

    yield factory
    for events in made:
        events.stop()


def test_router_delivers_to_registered_sink():
    router = ResponseRouter()
    sink = queue.Queue()
    router.register("abc", sink)
    assert router.pending() == 1
    assert router.dispatch({"id": "abc", "result": {"x": 1}}) is True
    assert sink.get_nowait() == {"id": "abc", "result": {"x": 1}}
    router.unregister("abc")
    assert router.pending() == 0
    assert router.dispatch({"id": "abc", "result": {}}) is False


def test_router_ignores_ack_and_routes_event_suffix():
    router = ResponseRouter()
    sink = queue.Queue()
    router.register("sub", sink)
    router.mark_subscription("sub")
    assert router.dispatch({"id": "sub", "result": {}}) is False
    assert router.dispatch({"id": "sub#event", "result": {"e": 1}}) is True
    assert sink.get_nowait()["result"] == {"e": 1}
    router.unmark_subscription("sub")
    assert router.dispatch({"id": "sub", "result": {}}) is True


def test_router_rejects_non_string_id():
    router = ResponseRouter()
    router.register("1", queue.Queue())
    assert router.dispatch({"id": 1, "result": {}}) is False


def test_router_full_sink_drops_response():
    router = ResponseRouter()
    sink = queue.Queue(maxsize=1)
    sink.put("occupied")
    router.register("r", sink)
    assert router.dispatch({"id": "r", "result": {}}) is False
    assert sink.qsize() == 1


def test_status_returns_result_and_clears_pending(make_events):
    events, clients = make_events()
    assert events.status() == {"method": "status"}
    assert events.pending_requests() == 0
    assert clients[0].calls[0][0] == "status"


def test_call_arguments_are_forwarded(make_events):
    events, clients = make_events()
    events.blockchain_info(1, 5)
    events.unconfirmed_txs(7)
    calls = {name: args for name, _, args in clients[0].calls}
    assert calls["blockchain_info"] == (1, 5)
    assert calls["unconfirmed_txs"] == (7,)


def test_error_response_raises_rpc_error(make_events):
    def handler(method, request_id, args):
        return [{"id": request_id, "error": {"code": -32603, "message": "Internal error"}}]

    events, _ = make_events(handler)
    with pytest.raises(RPCError) as info:
        events.health()
    assert info.value.code == -32603
    assert info.value.message == "Internal error"


def test_timeout_raises_and_triggers_reconnect(make_events):
    events, clients = make_events(lambda m, r, a: [], timeout=0.2, check_period=0.05)
    with pytest.raises(TimeoutError):
        events.genesis()
    assert events.pending_requests() == 0
    deadline = time.monotonic() + 3
    while len(clients) < 2 and time.monotonic() < deadline:
        time.sleep(0.02)
    assert len(clients) >= 2
    assert clients[0].running is False


def test_broadcast_tx_commit_complements_tags(make_events):
    def handler(method, request_id, args):
        result = {
            "check_tx": {"tags": [{"key": "a2V5", "value": "dmFsdWU="}]},
            "deliver_tx": {},
            "hash": "",
            "height": "4",
        }
        return [{"id": request_id, "result": result}]

    events, _ = make_events(handler)
    result = events.broadcast_tx_commit(b"\x01\x02")
    assert result.check_tx.events[0].attributes == [(b"key", b"value")]
    assert result.height == 4
    assert result.deliver_tx.events == []


def test_tx_search_builds_result(make_events):
    def handler(method, request_id, args):
        return [{"id": request_id, "result": {"txs": [], "total_count": "3"}}]

    events, _ = make_events(handler)
    result = events.tx_search("tx.height=5")
    assert result.total_count == 3
    assert result.txs == []


def test_subscribe_delivers_events_and_rejects_duplicates(make_events):
    def handler(method, request_id, args):
        if method == "subscribe":
            return [
                {"id": request_id, "result": {}},
                {"id": request_id + "#event", "result": {"data": args[0]}},
            ]
        return []

    events, clients = make_events(handler)
    out = events.subscribe("tm.event='NewBlock'")
    assert out.get(timeout=2) == {"data": "tm.event='NewBlock'"}
    with pytest.raises(ValueError):
        events.subscribe("tm.event='NewBlock'")
    assert events.pending_requests() == 1


def test_unsubscribe_allows_resubscribe(make_events):
    events, clients = make_events(lambda m, r, a: [])
    events.subscribe("q1")
    events.unsubscribe("q1")
    assert events.pending_requests() == 0
    names = [(name, rid) for name, rid, _ in clients[0].calls]
    assert ("unsubscribe", "") in names
    events.subscribe("q1")
    assert events.pending_requests() == 1


def test_unsubscribe_all_clears_everything(make_events):
    events, clients = make_events(lambda m, r, a: [])
    events.subscribe("q1")
    events.subscribe("q2")
    assert events.pending_requests() == 2
    events.unsubscribe_all()
    assert events.pending_requests() == 0
    assert clients[0].calls[-1][0] == "unsubscribe_all"


def test_start_twice_raises_and_stop_reports(make_events):
    events, clients = make_events()
    assert events.is_active() is True
    with pytest.raises(RuntimeError):
        events.start()
    assert events.stop() is True
    assert events.stop() is False
    assert events.is_active() is False