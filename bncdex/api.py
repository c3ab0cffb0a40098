"""HTTP and websocket access to the DEX REST API."""

import json
import threading
import time

import requests
import websocket

MAX_READ_WAIT = 30.0
PING_INTERVAL = 10.0
KEEP_ALIVE_INTERVAL = 30 * 60.0
POLL_INTERVAL = 1.0
MAX_REDIRECTS = 10


class ApiError(Exception):
    """A non-success HTTP response from the API."""

    def __init__(self, status_code, body):
        self.status_code = status_code
        self.body = body
        text = body.decode("utf-8", "replace") if isinstance(body, bytes) else str(body)
        super().__init__(f"bad response, status code {status_code}, response: {text}")


def _field(obj, name):
    if not isinstance(obj, dict):
        return None
    for key, value in obj.items():
        if key.lower() == name:
            return value
    return None


class ApiClient:
    """Raw GET/POST and streaming access to one API host."""

    def __init__(
        self,
        base_url,
        api_key="",
        *,
        session=None,
        api_scheme="https",
        api_prefix="/api/v1",
        ws_scheme="wss",
        ws_prefix="/api/ws",
        ws_connect=websocket.create_connection,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.api_url = f"{api_scheme}://{base_url}{api_prefix}"
        self.ws_scheme = ws_scheme
        self.ws_prefix = ws_prefix
        self._ws_connect = ws_connect
        self._session = session or requests.Session()
        self._session.max_redirects = MAX_REDIRECTS

    def _headers(self, extra=None):
        headers = dict(extra or {})
        if self.api_key:
            headers["apikey"] = self.api_key
        return headers

    def get(self, path, params=None):
        """Return the response body; raise ApiError on a non-2xx status."""
        resp = self._session.get(
            self.api_url + path, params=params or {}, headers=self._headers()
        )
        if not 200 <= resp.status_code < 300:
            raise ApiError(resp.status_code, resp.content)
        return resp.content

    def post(self, path, body, params=None):
        """Post a plain-text body and return the response body."""
        resp = self._session.post(
            self.api_url + path,
            data=body,
            params=params or {},
            headers=self._headers({"Content-Type": "text/plain"}),
        )
        if resp.status_code >= 300:
            raise ApiError(resp.status_code, resp.content)
        return resp.content

    def get_tx(self, tx_hash):
        if not tx_hash:
            raise ValueError(f"Invalid tx hash {tx_hash} ")
        return json.loads(self.get("/tx/" + tx_hash, {}))

    def post_tx(self, hex_tx, params=None):
        """Broadcast a hex-encoded signed transaction; return the commit results."""
        if not hex_tx:
            raise ValueError(f"Invalid tx  {hex_tx!r}")
        return list(json.loads(self.post("/broadcast", hex_tx, params)))

    def ws_get(self, path, construct_msg, close_event=None):
        """Open a stream and return an iterator of messages built by construct_msg.

        construct_msg receives the JSON bytes of each frame's data; a None result
        is skipped. Setting close_event ends the stream.
        """
        url = f"{self.ws_scheme}://{self.base_url}{self.ws_prefix}/{path}"
        conn = self._ws_connect(url)
        return self._stream(conn, construct_msg, close_event or threading.Event())

    def _stream(self, conn, construct_msg, closed):
        try:
            conn.settimeout(POLL_INTERVAL)
            now = time.monotonic()
            next_ping = now + PING_INTERVAL
            next_keep_alive = now + KEEP_ALIVE_INTERVAL
            read_deadline = None
            while not closed.is_set():
                now = time.monotonic()
                if now >= next_keep_alive:
                    conn.send(json.dumps({"Method": "keepAlive"}))
                    next_keep_alive = now + KEEP_ALIVE_INTERVAL
                if now >= next_ping:
                    conn.ping()
                    next_ping = now + PING_INTERVAL
                if read_deadline is not None and now > read_deadline:
                    raise TimeoutError("websocket read timed out")
                try:
                    opcode, payload = conn.recv_data(control_frame=True)
                except websocket.WebSocketTimeoutException:
                    continue
                if opcode == websocket.ABNF.OPCODE_PONG:
                    read_deadline = time.monotonic() + MAX_READ_WAIT
                    continue
                if opcode == websocket.ABNF.OPCODE_CLOSE:
                    raise websocket.WebSocketConnectionClosedException(
                        "connection closed by server"
                    )
                if opcode not in (websocket.ABNF.OPCODE_TEXT, websocket.ABNF.OPCODE_BINARY):
                    continue
                data = _field(json.loads(payload), "data")
                msg = construct_msg(json.dumps(data, separators=(",", ":")).encode())
                if msg is None:
                    continue
                if closed.is_set():
                    return
                yield msg
        finally:
            conn.close()