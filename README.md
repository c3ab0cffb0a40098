# bncdex

A Python client for a DEX chain's HTTP API and for a node's websocket JSON-RPC interface.

## Modules

- `bncdex.api`: `ApiClient`, an HTTP client for the REST API. `get` and `post` return the
  raw response body and send an `apikey` header when an API key is set. `get_tx` fetches a
  transaction, and `post_tx` posts a hex-encoded signed transaction to `/broadcast` and
  returns the decoded list of commit results. `ws_get` opens a stream and returns an
  iterator of messages built by your `construct_msg` callback. While the stream is open it
  sends pings and keep-alives, and it stops when the optional `threading.Event` is set.
  A failed request raises `ApiError`, which carries `status_code` and `body`.
- `bncdex.query`: `QueryClient` wraps an `ApiClient` and returns decoded JSON for accounts,
  markets, depth, klines, orders (open, closed, by id), trades, 24h tickers, tokens, node
  info and server time. Each query also has a mini-token variant (`get_mini_*`). Query
  arguments are passed as a mapping. `None` values are dropped, and booleans are sent as
  `true`/`false`. `get_account` returns `{}` for an unknown address (HTTP 404).
  `parse_klines` turns the API's positional kline rows into dicts keyed by field name.
- `bncdex.validate`: argument checks that raise `ValidationError` (a `ValueError`).
- `bncdex.results`: dataclasses for node results (`TxResponse`, `ResultTx`,
  `ResultTxSearch`, `ResultBroadcastTxCommit`, `ResultBlockResults`, and others), built with
  `from_dict`.
- `bncdex.wsrpc`: `WSClient`, a websocket JSON-RPC connection. If the first dial fails,
  it keeps retrying in the background, and it can send pings at a set period.
  `parse_remote`, `build_request` and `new_request_id` are helpers.
- `bncdex.events`: `WSEvents` matches responses to requests with `ResponseRouter`,
  manages event subscriptions (`subscribe`, `unsubscribe`, `unsubscribe_all`), and
  reconnects when the connection stops.
- `bncdex.rpc`: `RPCClient`, a node client on top of `WSEvents` that checks its arguments
  before it sends a call.

## REST queries

```python
from bncdex.api import ApiClient
from bncdex.query import QueryClient

api = ApiClient("dex.example.com", api_key="placeholder")
queries = QueryClient(api)

print(queries.get_time())
for kline in queries.get_klines({"symbol": "BNB_BTC.B-918", "interval": "1h", "limit": 5}):
    print(kline["openTime"], kline["close"])
```

By default the API is reached at `https://<host>/api/v1` and streams at
`wss://<host>/api/ws/<path>`. The schemes and prefixes are keyword arguments of
`ApiClient`.

## Node RPC

```python
from bncdex.rpc import RPCClient

with RPCClient("tcp://127.0.0.1:27147") as node:
    print(node.status())
    value = node.query_store(b"some-key", "acc")   # raw bytes of the stored value
```

The connection starts when the client is constructed, and `close()` (or leaving the `with`
block) stops it. Calls wait up to `timeout` seconds (default 5). If a call times out, the
connection is dropped and a new one is opened.

`RPCClient` methods and their checks:

- `block`, `block_results`, `commit` and `validators` reject negative heights.
- `blockchain_info` requires `0 <= min_height <= max_height`.
- `tx` requires a 32-byte hash.
- `unconfirmed_txs` accepts limits in `[0, 100]`.
- `broadcast_tx_async`, `broadcast_tx_sync` and `broadcast_tx_commit` reject transactions
  longer than 1 MiB.
- `abci_query` and `abci_query_with_options` limit the path to 1024 characters and the
  data to 1 MiB.
- `tx_search` limits the query string to 1024 characters.

`broadcast_tx_commit`, `block_results`, `tx` and `tx_search` return the dataclasses from
`bncdex.results`, with `events` and `tags` filled in from each other. The other calls return
the decoded JSON `result`. `query_with_data` and `query_store` raise `AbciQueryError` when
the response code is not 0. `get_stake_validators` and
`get_delegator_unbonding_delegations` return decoded JSON.

Event subscriptions are made through `WSEvents` (for example `node.events.subscribe(query)`).
Each subscription returns a `queue.Queue` that receives the `result` of every event.

## Validation

```python
from bncdex.validate import ValidationError, validate_pair

validate_pair("BNB_BTC.B-918")      # passes
try:
    validate_pair("BNBBTC")
except ValidationError as exc:
    print(exc)                      # the pair should in format 'symbol1_symbol2'
```

## Errors

| Exception         | Raised when                                                    |
|-------------------|----------------------------------------------------------------|
| `ValidationError` | an argument is out of range or badly formatted                 |
| `ApiError`        | the HTTP API answers with an error status                      |
| `RPCError`        | the node answers a JSON-RPC call with an error object          |
| `AbciQueryError`  | an ABCI store or data query comes back with a non-zero code    |
| `TimeoutError`    | a node call gets no response within the timeout                |

## What it does not do

The package does not hold keys, sign transactions or build chain messages. Broadcasting
takes transactions that are already signed and encoded. Store queries return the raw
stored bytes without decoding them. There is no command-line tool.

## Tests

```
pip install "bncdex[test]"
pytest
```