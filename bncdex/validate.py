"""Argument checks applied before node RPC calls are sent."""

import hashlib

MAX_ABCI_PATH_LENGTH = 1024
MAX_ABCI_DATA_LENGTH = 1024 * 1024
MAX_TX_LENGTH = 1024 * 1024
MAX_ABCI_QUERY_STR_LENGTH = 1024
MAX_TX_SEARCH_STR_LENGTH = 1024
MAX_UNCONFIRMED_TXS = 100
MAX_DEPTH_LEVEL = 1000

TOKEN_SYMBOL_MAX_LEN = 14
TOKEN_SYMBOL_MIN_LEN = 3

HASH_LENGTH = hashlib.sha256().digest_size


class ValidationError(ValueError):
    """Raised when an argument is outside the range the node accepts."""


def validate_abci_path(path):
    if len(path) > MAX_ABCI_PATH_LENGTH:
        raise ValidationError(f"the abci path exceed max length {MAX_ABCI_PATH_LENGTH} ")


def validate_abci_data(data):
    # The node reports oversized data with the path-length message.
    if data is not None and len(data) > MAX_ABCI_DATA_LENGTH:
        raise ValidationError(f"the abci path exceed max length {MAX_ABCI_PATH_LENGTH} ")


def validate_tx(tx):
    if len(tx) > MAX_TX_LENGTH:
        raise ValidationError(f"the tx data exceed max length {MAX_TX_LENGTH} ")


def validate_unconfirmed_txs_limit(limit):
    if limit < 0:
        raise ValidationError("the limit can't be negative")
    if limit > MAX_UNCONFIRMED_TXS:
        raise ValidationError(
            f"the limit of unConfirmed tx exceed max limit {MAX_UNCONFIRMED_TXS} "
        )


def validate_height_range(from_height, to_height):
    if from_height < 0 or to_height < 0:
        raise ValidationError("the height can't be negative")
    if from_height > to_height:
        raise ValidationError("the min height can't be larger than max height")


def validate_height(height):
    if height is not None and height < 0:
        raise ValidationError("the height can't be negative")


def validate_hash(hash_):
    if len(hash_) != HASH_LENGTH:
        raise ValidationError("the length of hash is not 32")


def validate_abci_query_str(query):
    if len(query) > MAX_ABCI_QUERY_STR_LENGTH:
        raise ValidationError(f"the query string exceed max length {MAX_ABCI_PATH_LENGTH} ")


def validate_tx_search_query_str(query):
    if len(query) > MAX_TX_SEARCH_STR_LENGTH:
        raise ValidationError(f"the query string exceed max length {MAX_TX_SEARCH_STR_LENGTH} ")


def validate_offset(offset):
    if offset < 0:
        raise ValidationError("offset can't be less than 0")


def validate_limit(limit):
    if limit < 0:
        raise ValidationError("the limit can't be negative")


def validate_symbol(symbol):
    if not TOKEN_SYMBOL_MIN_LEN <= len(symbol) <= TOKEN_SYMBOL_MAX_LEN:
        raise ValidationError(
            f"length of symbol should be in range [{TOKEN_SYMBOL_MIN_LEN},{TOKEN_SYMBOL_MAX_LEN}]"
        )


def validate_pair(pair):
    symbols = pair.split("_")
    if len(symbols) != 2:
        raise ValidationError("the pair should in format 'symbol1_symbol2'")
    for symbol in symbols:
        validate_symbol(symbol)


def validate_depth_level(level):
    if level < 0 or level > MAX_DEPTH_LEVEL:
        raise ValidationError(f"the level is out of range [0, {MAX_DEPTH_LEVEL}]")