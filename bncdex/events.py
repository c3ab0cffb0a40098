"""Request/response routing and event subscriptions over a node websocket."""

import logging
import queue
import threading
import time

from bncdex.results import (
    ResultBlockResults,
    ResultBroadcastTxCommit,
    ResultTx,
    ResultTxSearch,
)
from bncdex.wsrpc import WSClient, new_request_id

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
ALIVE_CHECK_PERIOD = 1.0
EMPTY_REQUEST = ""

_POLL = 0.1


class RPCError(Exception):
    """An error object returned by the node in a JSON-RPC response."""

    def __init__(self, code=0, message="", data=""):
        self.code = code
        self.message = message
        self.data = data
        text = f"RPC error {code} - {message}"
        if data:
            text += f": {data}"
        super().__init__(text)

    @classmethod
    def from_response(cls, error):
        if isinstance(error, dict):
            return cls(error.get("code", 0), error.get("message", ""), error.get("data", ""))
        return cls(message=str(error))


class ResponseRouter:
    """Delivers responses to the sink registered for their request id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sinks = {}
        self._subscriptions = set()

    def register(self, request_id, sink):
        with self._lock:
            self._sinks[request_id] = sink

    def unregister(self, request_id):
        with self._lock:
            self._sinks.pop(request_id, None)

    def mark_subscription(self, request_id):
        with self._lock:
            self._subscriptions.add(request_id)

    def unmark_subscription(self, request_id):
        with self._lock:
            self._subscriptions.discard(request_id)

    def dispatch(self, response):
        """Route one response; return True if it was handed to a sink."""
        request_id = response.get("id") if isinstance(response, dict) else None
        if not isinstance(request_id, str):
            logger.error("unexpected request id type")
            return False
        with self._lock:
            if request_id in self._subscriptions:
                # subscription acknowledgement
                return False
            sink = self._sinks.get(request_id.split("#")[0])
        if sink is None:
            return False
        try:
            sink.put_nowait(response)
        except queue.Full:
            logger.error(
                "wanted to publish response, but out channel is full: %s",
                response.get("result"),
            )
            return False
        return True

    def pending(self):
        with self._lock:
            return len(self._sinks)


def _default_client_factory(remote, endpoint, responses, on_dial_success):
    return WSClient(remote, endpoint, responses, on_dial_success=on_dial_success)


class WSEvents:
    """Synchronous RPC calls and event subscriptions over a reconnecting websocket."""

    def __init__(
        self,
        remote,
        endpoint="/websocket",
        *,
        timeout=DEFAULT_TIMEOUT,
        client_factory=None,
        check_period=ALIVE_CHECK_PERIOD,
    ):
        self.remote = remote
        self.endpoint = endpoint
        self.timeout = timeout
        self._client_factory = client_factory or _default_client_factory
        self._check_period = check_period
        self._responses = queue.Queue()
        self._reconnect = queue.Queue()
        self._router = ResponseRouter()
        self._lock = threading.Lock()
        self._client = None
        self._started = False
        self._quit = threading.Event()
        self._sub_quit = {}
        self._sub_ids = {}

    # lifecycle

    def start(self):
        with self._lock:
            if self._started:
                raise RuntimeError("WSEvents already started")
            self._started = True
        client = self._new_client()
        self._set_client(client)
        client.start()
        threading.Thread(target=self._event_listener, daemon=True).start()
        threading.Thread(target=self._reconnect_routine, daemon=True).start()

    def stop(self):
        """Stop the listener threads and the connection; False if not running."""
        with self._lock:
            if not self._started or self._quit.is_set():
                return False
            self._quit.set()
        client = self._get_client()
        if client is not None:
            client.stop()
        return True

    def is_active(self):
        client = self._get_client()
        return client is not None and client.is_active()

    def pending_requests(self):
        return self._router.pending()

    def set_timeout(self, timeout):
        self.timeout = timeout

    # internals

    def _new_client(self):
        return self._client_factory(
            self.remote, self.endpoint, self._responses, self._redo_subscriptions
        )

    def _set_client(self, client):
        with self._lock:
            self._client = client

    def _get_client(self):
        with self._lock:
            return self._client

    def _redo_subscriptions(self):
        client = self._get_client()
        with self._lock:
            subscriptions = list(self._sub_ids.items())
        for query, request_id in subscriptions:
            try:
                client.subscribe(request_id, query, timeout=self.timeout)
            except Exception as exc:
                logger.error("Failed to resubscribe: %s", exc)

    def _event_listener(self):
        while not self._quit.is_set():
            try:
                response = self._responses.get(timeout=_POLL)
            except queue.Empty:
                continue
            self._router.dispatch(response)

    def _reconnect_routine(self):
        next_check = time.monotonic() + self._check_period
        while not self._quit.is_set():
            wait = max(0.0, min(_POLL, next_check - time.monotonic()))
            try:
                stale = self._reconnect.get(timeout=wait)
            except queue.Empty:
                stale = None
            if self._quit.is_set():
                return
            if stale is not None and stale.is_running():
                logger.error("stopping websocket client after a request timed out: %s", stale)
                stale.stop()
            if time.monotonic() < next_check:
                continue
            next_check = time.monotonic() + self._check_period
            if not self._get_client().is_running():
                logger.info("ws client has been stopped, starting a new one")
                client = self._new_client()
                self._set_client(client)
                try:
                    client.start()
                except Exception as exc:
                    logger.error("wsClient start failed: %s", exc)
                    continue
                logger.info("ws client reconnect success")

    def _pump_events(self, request_id, inbox, outbox, quit_event):
        while not quit_event.is_set():
            try:
                response = inbox.get(timeout=_POLL)
            except queue.Empty:
                continue
            if response.get("error") is not None:
                logger.error("receive error from event stream: %s", response["error"])
                continue
            result = response.get("result")
            while not quit_event.is_set():
                try:
                    outbox.put(result, timeout=_POLL)
                    break
                except queue.Full:
                    continue
        logger.debug("event stream for %s finished", request_id)

    # calls

    def simple_call(self, do_rpc):
        """Send one request via do_rpc(client, request_id, timeout) and wait for its result."""
        client = self._get_client()
        request_id = new_request_id()
        inbox = queue.Queue(maxsize=1)
        self._router.register(request_id, inbox)
        deadline = time.monotonic() + self.timeout
        try:
            do_rpc(client, request_id, self.timeout)
            remaining = max(0.0, deadline - time.monotonic())
            try:
                response = inbox.get(timeout=remaining)
            except queue.Empty:
                self._reconnect.put(client)
                raise TimeoutError("context deadline exceeded") from None
        finally:
            self._router.unregister(request_id)
        if response.get("error") is not None:
            raise RPCError.from_response(response["error"])
        return response.get("result")

    def subscribe(self, query, out_capacity=1):
        """Subscribe to a query; return a queue that receives each event's result."""
        with self._lock:
            if query in self._sub_ids:
                raise ValueError("already subscribe")
        request_id = new_request_id()
        events = queue.Queue(maxsize=out_capacity)
        inbox = queue.Queue(maxsize=out_capacity)
        self._router.register(request_id, inbox)
        self._router.mark_subscription(request_id)
        try:
            self._get_client().subscribe(request_id, query, timeout=self.timeout)
        except Exception:
            self._router.unmark_subscription(request_id)
            self._router.unregister(request_id)
            raise
        quit_event = threading.Event()
        with self._lock:
            self._sub_quit[query] = quit_event
            self._sub_ids[query] = request_id
        threading.Thread(
            target=self._pump_events,
            args=(request_id, inbox, events, quit_event),
            daemon=True,
        ).start()
        return events

    def unsubscribe(self, query):
        self._get_client().unsubscribe(EMPTY_REQUEST, query, timeout=self.timeout)
        with self._lock:
            request_id = self._sub_ids.pop(query, None)
            quit_event = self._sub_quit.pop(query, None)
        if request_id is not None:
            self._router.unmark_subscription(request_id)
            self._router.unregister(request_id)
        if quit_event is not None:
            quit_event.set()

    def unsubscribe_all(self):
        self._get_client().unsubscribe_all(EMPTY_REQUEST, timeout=self.timeout)
        with self._lock:
            ids = list(self._sub_ids.values())
            quits = list(self._sub_quit.values())
            self._sub_ids = {}
            self._sub_quit = {}
        for request_id in ids:
            self._router.unmark_subscription(request_id)
            self._router.unregister(request_id)
        for quit_event in quits:
            quit_event.set()

    def status(self):
        return self.simple_call(lambda c, i, t: c.status(i, timeout=t))

    def abci_info(self):
        return self.simple_call(lambda c, i, t: c.abci_info(i, timeout=t))

    def abci_query_with_options(self, path, data=None, height=0, prove=False):
        return self.simple_call(
            lambda c, i, t: c.abci_query(i, path, data, height, prove, timeout=t)
        )

    def broadcast_tx_commit(self, tx):
        raw = self.simple_call(lambda c, i, t: c.broadcast_tx_commit(i, tx, timeout=t))
        result = ResultBroadcastTxCommit.from_dict(raw)
        result.complement()
        return result

    def broadcast_tx(self, route, tx):
        return self.simple_call(lambda c, i, t: c.broadcast_tx(i, route, tx, timeout=t))

    def unconfirmed_txs(self, limit):
        return self.simple_call(lambda c, i, t: c.unconfirmed_txs(i, limit, timeout=t))

    def num_unconfirmed_txs(self):
        return self.simple_call(lambda c, i, t: c.num_unconfirmed_txs(i, timeout=t))

    def net_info(self):
        return self.simple_call(lambda c, i, t: c.net_info(i, timeout=t))

    def dump_consensus_state(self):
        return self.simple_call(lambda c, i, t: c.dump_consensus_state(i, timeout=t))

    def consensus_state(self):
        return self.simple_call(lambda c, i, t: c.consensus_state(i, timeout=t))

    def health(self):
        return self.simple_call(lambda c, i, t: c.health(i, timeout=t))

    def blockchain_info(self, min_height, max_height):
        return self.simple_call(
            lambda c, i, t: c.blockchain_info(i, min_height, max_height, timeout=t)
        )

    def genesis(self):
        return self.simple_call(lambda c, i, t: c.genesis(i, timeout=t))

    def block(self, height=None):
        return self.simple_call(lambda c, i, t: c.block(i, height, timeout=t))

    def block_results(self, height=None):
        raw = self.simple_call(lambda c, i, t: c.block_results(i, height, timeout=t))
        result = ResultBlockResults.from_dict(raw)
        result.complement()
        return result

    def commit(self, height=None):
        return self.simple_call(lambda c, i, t: c.commit(i, height, timeout=t))

    def tx(self, hash_, prove=False):
        raw = self.simple_call(lambda c, i, t: c.tx(i, hash_, prove, timeout=t))
        result = ResultTx.from_dict(raw)
        result.complement()
        return result

    def tx_search(self, query, prove=False, page=1, per_page=30):
        raw = self.simple_call(
            lambda c, i, t: c.tx_search(i, query, prove, page, per_page, timeout=t)
        )
        result = ResultTxSearch.from_dict(raw)
        result.complement()
        return result

    def validators(self, height=None):
        return self.simple_call(lambda c, i, t: c.validators(i, height, timeout=t))