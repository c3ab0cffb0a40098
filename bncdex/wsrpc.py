"""JSON-RPC websocket connection to a node, with reconnect-on-dial and ping support."""

import base64
import json
import logging
import queue
import threading
import time
import uuid
from dataclasses import dataclass

import websocket

logger = logging.getLogger(__name__)

DEFAULT_WRITE_WAIT = 0.5
DEFAULT_READ_WAIT = 0.0
DEFAULT_PING_PERIOD = 0.0
DEFAULT_DIAL_PERIOD = 1.0
DEFAULT_DIAL_TIMEOUT = 5.0

PROTO_HTTP = "http"
PROTO_HTTPS = "https"
PROTO_WS = "ws"
PROTO_WSS = "wss"
PROTO_TCP = "tcp"

_POLL = 0.1


@dataclass(frozen=True)
class RemoteAddress:
    """A node address split into the client protocol and the dial target."""

    protocol: str
    address: str
    dial_protocol: str
    dial_address: str


def parse_remote(remote_addr):
    """Split an address such as tcp://host:port into its protocol parts."""
    client_protocol = PROTO_HTTP
    parts = remote_addr.split("://", 1)
    if len(parts) == 1:
        protocol, address = PROTO_TCP, remote_addr
    else:
        protocol, address = parts
    if protocol in (PROTO_HTTP, PROTO_HTTPS):
        client_protocol = protocol
        protocol = PROTO_TCP
    elif protocol in (PROTO_WS, PROTO_WSS):
        client_protocol = protocol
    return RemoteAddress(
        protocol=client_protocol,
        address=address.replace("/", "."),
        dial_protocol=protocol,
        dial_address=address,
    )


def _param_value(value):
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return value


def build_request(method, request_id, params):
    """Build a JSON-RPC 2.0 request; integers go as strings, bytes as base64."""
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": method,
        "params": {key: _param_value(value) for key, value in (params or {}).items()},
    }


def new_request_id():
    return str(uuid.uuid4())


class WSClient:
    """A websocket JSON-RPC client; received responses are put on `responses`."""

    def __init__(
        self,
        remote_addr,
        endpoint,
        responses=None,
        *,
        on_dial_success=None,
        connect=websocket.create_connection,
        write_wait=DEFAULT_WRITE_WAIT,
        read_wait=DEFAULT_READ_WAIT,
        ping_period=DEFAULT_PING_PERIOD,
        dial_period=DEFAULT_DIAL_PERIOD,
        dial_timeout=DEFAULT_DIAL_TIMEOUT,
    ):
        remote = parse_remote(remote_addr)
        self.remote = remote
        self.protocol = PROTO_WSS if remote.protocol == PROTO_WSS else PROTO_WS
        self.address = remote.address
        self.endpoint = endpoint
        self.responses = responses if responses is not None else queue.Queue()
        self.on_dial_success = on_dial_success
        self.write_wait = write_wait
        self.read_wait = read_wait
        self.ping_period = ping_period
        self.dial_period = dial_period
        self.dial_timeout = dial_timeout
        self._connect = connect
        self._conn = None
        self._send_queue = queue.Queue(maxsize=1)
        self._lock = threading.Lock()
        self._started = False
        self._quit = threading.Event()
        self._ready = threading.Event()
        self._dialing = True

    def __str__(self):
        conn = self._conn
        sock = getattr(conn, "sock", None)
        if sock is not None:
            try:
                return f"{self.address}, local: {sock.getsockname()}, remote: {sock.getpeername()}"
            except OSError:
                pass
        return f"{self.address} ({self.endpoint})"

    @property
    def url(self):
        return f"{self.protocol}://{self.address}{self.endpoint}"

    # lifecycle

    def start(self):
        """Dial the node (retrying in the background on failure) and start I/O threads."""
        with self._lock:
            if self._started:
                raise RuntimeError("WSClient already started")
            self._started = True
        try:
            self._dial()
        except Exception as exc:
            logger.debug("dial failed, retrying: %s", exc)
            self._dialing = True
            threading.Thread(target=self._dial_routine, daemon=True).start()
        else:
            self._dialing = False
            self._ready.set()
        threading.Thread(target=self._read_routine, daemon=True).start()
        threading.Thread(target=self._write_routine, daemon=True).start()

    def stop(self):
        """Stop the client; return False if it was not running."""
        with self._lock:
            if not self._started or self._quit.is_set():
                return False
            self._quit.set()
        conn = self._conn
        if conn is not None:
            try:
                conn.close()
            except Exception as exc:
                logger.debug("error closing connection: %s", exc)
        return True

    def is_running(self):
        return self._started and not self._quit.is_set()

    def is_dialing(self):
        return self._dialing

    def is_active(self):
        return self.is_running() and not self.is_dialing()

    # sending

    def send(self, request, timeout=None):
        """Hand a request to the writer; raise TimeoutError if it is not taken in time."""
        try:
            self._send_queue.put(request, timeout=timeout)
        except queue.Full:
            raise TimeoutError("timed out sending request") from None
        logger.debug("sent a request: %s", request)

    def call(self, method, request_id, params=None, timeout=None):
        if not self.is_active():
            raise ConnectionError(
                "websocket client is dialing or stopped, can't send any request"
            )
        self.send(build_request(method, request_id, params or {}), timeout)

    # internals

    def _dial(self):
        conn = self._connect(self.url, timeout=self.dial_timeout)
        conn.settimeout(self.write_wait or None)
        self._conn = conn
        if self.on_dial_success is not None:
            threading.Thread(target=self.on_dial_success, daemon=True).start()

    def _dial_routine(self):
        self._dialing = True
        try:
            while not self._quit.wait(self.dial_period):
                try:
                    self._dial()
                except Exception as exc:
                    logger.debug("dial failed, retrying: %s", exc)
                    continue
                if self._quit.is_set():
                    self._conn.close()
                return
        finally:
            self._dialing = False
            self._ready.set()

    def _read_routine(self):
        self._ready.wait()
        conn = self._conn
        if conn is None or self._quit.is_set():
            return
        deadline = time.monotonic() + self.read_wait
        while True:
            try:
                data = conn.recv()
            except websocket.WebSocketTimeoutException:
                if self._quit.is_set():
                    return
                if self.read_wait > 0 and time.monotonic() > deadline:
                    logger.error("failed to read response: read timed out")
                    self.stop()
                    return
                continue
            except Exception as exc:
                if not self._quit.is_set():
                    logger.error("failed to read response: %s", exc)
                    self.stop()
                return
            deadline = time.monotonic() + self.read_wait
            if self._quit.is_set():
                return
            try:
                response = json.loads(data)
            except ValueError as exc:
                logger.error("failed to parse response %r: %s", data, exc)
                continue
            self.responses.put(response)

    def _write_routine(self):
        self._ready.wait()
        conn = self._conn
        if conn is None or self._quit.is_set():
            return
        next_ping = time.monotonic() + self.ping_period if self.ping_period > 0 else None
        while not self._quit.is_set():
            wait = _POLL
            if next_ping is not None:
                wait = min(_POLL, max(0.0, next_ping - time.monotonic()))
            try:
                request = self._send_queue.get(timeout=wait)
            except queue.Empty:
                request = None
            if self._quit.is_set():
                return
            if request is not None:
                try:
                    conn.send(json.dumps(request))
                except Exception as exc:
                    logger.error("failed to send request: %s", exc)
                    self.stop()
                    return
            if next_ping is not None and time.monotonic() >= next_ping:
                try:
                    conn.ping()
                except Exception as exc:
                    logger.error("failed to write ping: %s", exc)
                    self.stop()
                    return
                logger.debug("sent ping")
                next_ping = time.monotonic() + self.ping_period

    # predefined methods

    def subscribe(self, request_id, query, timeout=None):
        self.call("subscribe", request_id, {"query": query}, timeout)

    def unsubscribe(self, request_id, query, timeout=None):
        self.call("unsubscribe", request_id, {"query": query}, timeout)

    def unsubscribe_all(self, request_id, timeout=None):
        self.call("unsubscribe_all", request_id, {}, timeout)

    def status(self, request_id, timeout=None):
        self.call("status", request_id, {}, timeout)

    def abci_info(self, request_id, timeout=None):
        self.call("abci_info", request_id, {}, timeout)

    def abci_query(self, request_id, path, data=None, height=0, prove=False, timeout=None):
        params = {
            "path": path,
            "data": bytes(data or b"").hex().upper(),
            "height": height,
            "prove": prove,
        }
        self.call("abci_query", request_id, params, timeout)

    def broadcast_tx_commit(self, request_id, tx, timeout=None):
        self.call("broadcast_tx_commit", request_id, {"tx": bytes(tx)}, timeout)

    def broadcast_tx(self, request_id, route, tx, timeout=None):
        self.call(route, request_id, {"tx": bytes(tx)}, timeout)

    def unconfirmed_txs(self, request_id, limit, timeout=None):
        self.call("unconfirmed_txs", request_id, {"limit": limit}, timeout)

    def num_unconfirmed_txs(self, request_id, timeout=None):
        self.call("num_unconfirmed_txs", request_id, {}, timeout)

    def net_info(self, request_id, timeout=None):
        self.call("net_info", request_id, {}, timeout)

    def dump_consensus_state(self, request_id, timeout=None):
        self.call("dump_consensus_state", request_id, {}, timeout)

    def consensus_state(self, request_id, timeout=None):
        self.call("consensus_state", request_id, {}, timeout)

    def health(self, request_id, timeout=None):
        self.call("health", request_id, {}, timeout)

    def blockchain_info(self, request_id, min_height, max_height, timeout=None):
        params = {"minHeight": min_height, "maxHeight": max_height}
        self.call("blockchain", request_id, params, timeout)

    def genesis(self, request_id, timeout=None):
        self.call("genesis", request_id, {}, timeout)

    def block(self, request_id, height=None, timeout=None):
        self.call("block", request_id, {"height": height}, timeout)

    def block_results(self, request_id, height=None, timeout=None):
        self.call("block_results", request_id, {"height": height}, timeout)

    def commit(self, request_id, height=None, timeout=None):
        self.call("commit", request_id, {"height": height}, timeout)

    def tx(self, request_id, hash_, prove=False, timeout=None):
        self.call("tx", request_id, {"hash": bytes(hash_), "prove": prove}, timeout)

    def tx_search(self, request_id, query, prove=False, page=1, per_page=30, timeout=None):
        params = {"query": query, "prove": prove, "page": page, "per_page": per_page}
        self.call("tx_search", request_id, params, timeout)

    def validators(self, request_id, height=None, timeout=None):
        self.call("validators", request_id, {"height": height}, timeout)