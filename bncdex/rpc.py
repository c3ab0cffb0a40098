"""Node RPC client: validated calls and store queries over a websocket connection."""

import base64
import json

from bncdex.events import DEFAULT_TIMEOUT, WSEvents
from bncdex.validate import (
    validate_abci_data,
    validate_abci_path,
    validate_abci_query_str,
    validate_hash,
    validate_height,
    validate_height_range,
    validate_tx,
    validate_unconfirmed_txs_limit,
)

OK_CODE = 0


class AbciQueryError(Exception):
    """An ABCI query answered with a non-zero code."""

    def __init__(self, code, log):
        self.code = code
        self.log = log
        super().__init__(log)


def _response(result):
    """Return (code, log, value) of an ABCI query result."""
    response = (result or {}).get("response") or {}
    code = response.get("code") or 0
    value = response.get("value")
    return int(code), response.get("log", ""), base64.b64decode(value) if value else b""


class RPCClient:
    """A node client whose calls are checked before they are sent."""

    def __init__(
        self,
        remote,
        ws_endpoint="/websocket",
        *,
        timeout=DEFAULT_TIMEOUT,
        client_factory=None,
    ):
        self.events = WSEvents(
            remote, ws_endpoint, timeout=timeout, client_factory=client_factory
        )
        self.events.start()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Stop the connection; return False if it was already stopped."""
        return self.events.stop()

    def is_active(self):
        return self.events.is_active()

    def status(self):
        return self.events.status()

    def abci_info(self):
        return self.events.abci_info()

    def abci_query(self, path, data=None):
        return self.abci_query_with_options(path, data, 0, False)

    def abci_query_with_options(self, path, data=None, height=0, prove=False):
        validate_abci_path(path)
        validate_abci_data(data)
        return self.events.abci_query_with_options(path, data, height, prove)

    def broadcast_tx_commit(self, tx):
        validate_tx(tx)
        return self.events.broadcast_tx_commit(tx)

    def broadcast_tx_async(self, tx):
        validate_tx(tx)
        return self.events.broadcast_tx("broadcast_tx_async", tx)

    def broadcast_tx_sync(self, tx):
        validate_tx(tx)
        return self.events.broadcast_tx("broadcast_tx_sync", tx)

    def unconfirmed_txs(self, limit):
        validate_unconfirmed_txs_limit(limit)
        return self.events.unconfirmed_txs(limit)

    def num_unconfirmed_txs(self):
        return self.events.num_unconfirmed_txs()

    def net_info(self):
        return self.events.net_info()

    def dump_consensus_state(self):
        return self.events.dump_consensus_state()

    def consensus_state(self):
        return self.events.consensus_state()

    def health(self):
        return self.events.health()

    def blockchain_info(self, min_height, max_height):
        validate_height_range(min_height, max_height)
        return self.events.blockchain_info(min_height, max_height)

    def genesis(self):
        return self.events.genesis()

    def block(self, height=None):
        validate_height(height)
        return self.events.block(height)

    def block_results(self, height=None):
        validate_height(height)
        return self.events.block_results(height)

    def commit(self, height=None):
        validate_height(height)
        return self.events.commit(height)

    def tx(self, hash_, prove=False):
        validate_hash(hash_)
        return self.events.tx(hash_, prove)

    def tx_search(self, query, prove=False, page=1, per_page=30):
        validate_abci_query_str(query)
        return self.events.tx_search(query, prove, page, per_page)

    def validators(self, height=None):
        validate_height(height)
        return self.events.validators(height)

    def query_with_data(self, path, data=None):
        """Run an ABCI query and return its value; raise AbciQueryError if not OK."""
        code, log, value = _response(self.abci_query(path, data))
        if code != OK_CODE:
            raise AbciQueryError(code, log)
        return value

    def query_store(self, key, store_name):
        """Read one key from a named store."""
        return self.query_with_data(f"/store/{store_name}/key", key)

    def get_stake_validators(self):
        _, _, value = _response(self.abci_query("custom/stake/validators", None))
        return json.loads(value)

    def get_delegator_unbonding_delegations(self, delegator_addr):
        data = json.dumps({"DelegatorAddr": str(delegator_addr)}).encode()
        _, _, value = _response(
            self.abci_query("custom/stake/delegatorUnbondingDelegations", data)
        )
        return json.loads(value)