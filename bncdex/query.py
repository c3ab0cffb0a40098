"""Read-only market and account queries against the DEX REST API."""

import json
from collections.abc import Mapping

from bncdex.api import ApiClient, ApiError

KLINE_FIELDS = (
    "openTime",
    "open",
    "high",
    "low",
    "close",
    "volume",
    "closeTime",
    "quoteAssetVolume",
    "NumberOfTrades",
)

_NOT_FOUND = 404


def _query_params(params):
    """Turn a mapping of query arguments into string query parameters."""
    if params is None:
        return {}
    if not isinstance(params, Mapping):
        raise TypeError("query parameters must be a mapping")
    result = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            result[key] = "true" if value else "false"
        else:
            result[key] = str(value)
    return result


def parse_klines(rows):
    """Turn the API's positional kline rows into dicts keyed by field name."""
    klines = []
    for row in rows:
        if len(row) < len(KLINE_FIELDS):
            raise ValueError("Receive kline scheme is unexpected ")
        klines.append(dict(zip(KLINE_FIELDS, row)))
    return klines


class QueryClient:
    """Queries for tokens, markets, orders, trades and accounts."""

    def __init__(self, api_client):
        if not isinstance(api_client, ApiClient):
            raise TypeError("api_client must be an ApiClient")
        self.api = api_client

    def _get_json(self, path, params=None):
        return json.loads(self.api.get(path, _query_params(params)))

    def get_account(self, address):
        """Return the account; an unknown address yields an empty account."""
        if not address:
            raise ValueError("address is missing")
        try:
            return self._get_json("/account/" + address)
        except ApiError as exc:
            if exc.status_code == _NOT_FOUND:
                return {}
            raise

    def get_closed_orders(self, params):
        return self._get_json("/orders/closed", params)

    def get_depth(self, params):
        return self._get_json("/depth", params)

    def get_klines(self, params):
        return parse_klines(self._get_json("/klines", params))

    def get_markets(self, params):
        return self._get_json("/markets", params)

    def get_order(self, order_id):
        if not order_id:
            raise ValueError("order id is missing")
        return self._get_json("/orders/" + order_id)

    def get_open_orders(self, params):
        return self._get_json("/orders/open", params)

    def get_ticker24h(self, params):
        return self._get_json("/ticker/24hr", params)

    def get_trades(self, params):
        return self._get_json("/trades", params)

    def get_time(self):
        return self._get_json("/time")

    def get_tokens(self, params):
        return self._get_json("/tokens", params)

    def get_node_info(self):
        return self._get_json("/node-info")

    def get_mini_tokens(self, params):
        return self._get_json("/mini/tokens", params)

    def get_mini_markets(self, params):
        return self._get_json("/mini/markets", params)

    def get_mini_open_orders(self, params):
        return self._get_json("/mini/orders/open", params)

    def get_mini_closed_orders(self, params):
        return self._get_json("/mini/orders/closed", params)

    def get_mini_order(self, order_id):
        if not order_id:
            raise ValueError("order id is missing")
        return self._get_json("/mini/orders/" + order_id)

    def get_mini_klines(self, params):
        return parse_klines(self._get_json("/mini/klines", params))

    def get_mini_ticker24h(self, params):
        return self._get_json("/mini/ticker/24hr", params)

    def get_mini_trades(self, params):
        return self._get_json("/mini/trades", params)