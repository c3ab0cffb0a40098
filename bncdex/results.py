"""Node RPC result records with the events/tags reconciliation."""

import base64
from dataclasses import dataclass, field
from typing import Optional

OK_CODE = 0


def _b64(value):
    return base64.b64decode(value) if value else b""


def _hex(value):
    return bytes.fromhex(value) if value else b""


def _int(value):
    return int(value) if value not in (None, "") else 0


def _tags(items):
    return [(_b64(item.get("key")), _b64(item.get("value"))) for item in items or []]


def _events(items):
    return [Event.from_dict(item) for item in items or []]


def _complement(obj):
    """Fill events from tags, or tags from the first event, whichever is missing."""
    if obj.tags:
        obj.events = [Event(attributes=list(obj.tags))]
    elif obj.events:
        obj.tags = list(obj.events[0].attributes)


@dataclass
class Event:
    type: str = ""
    attributes: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(type=data.get("type", ""), attributes=_tags(data.get("attributes")))


@dataclass
class TxResponse:
    """Outcome of a check-tx or deliver-tx step."""

    code: int = 0
    data: bytes = b""
    log: str = ""
    info: str = ""
    gas_wanted: int = 0
    gas_used: int = 0
    events: list = field(default_factory=list)
    tags: list = field(default_factory=list)
    codespace: str = ""

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            code=_int(data.get("code")),
            data=_b64(data.get("data")),
            log=data.get("log", ""),
            info=data.get("info", ""),
            gas_wanted=_int(data.get("gas_wanted")),
            gas_used=_int(data.get("gas_used")),
            events=_events(data.get("events")),
            tags=_tags(data.get("tags")),
            codespace=data.get("codespace", ""),
        )

    def is_err(self):
        return self.code != OK_CODE

    def complement(self):
        _complement(self)


@dataclass
class ResponseEndBlock:
    validator_updates: list = field(default_factory=list)
    consensus_param_updates: Optional[dict] = None
    events: list = field(default_factory=list)
    tags: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            validator_updates=list(data.get("validator_updates") or []),
            consensus_param_updates=data.get("consensus_param_updates"),
            events=_events(data.get("events")),
            tags=_tags(data.get("tags")),
        )

    def complement(self):
        _complement(self)


@dataclass
class ResponseBeginBlock:
    events: list = field(default_factory=list)
    tags: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(events=_events(data.get("events")), tags=_tags(data.get("tags")))

    def complement(self):
        _complement(self)


@dataclass
class ABCIResponses:
    deliver_tx: list = field(default_factory=list)
    end_block: Optional[ResponseEndBlock] = None
    begin_block: Optional[ResponseBeginBlock] = None

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        end = data.get("EndBlock")
        begin = data.get("BeginBlock")
        return cls(
            deliver_tx=[TxResponse.from_dict(d) for d in data.get("DeliverTx") or []],
            end_block=ResponseEndBlock.from_dict(end) if end is not None else None,
            begin_block=ResponseBeginBlock.from_dict(begin) if begin is not None else None,
        )

    def complement(self):
        for response in self.deliver_tx:
            response.complement()
        if self.end_block is not None:
            self.end_block.complement()
        if self.begin_block is not None:
            self.begin_block.complement()


@dataclass
class ResultBlockResults:
    height: int = 0
    results: Optional[ABCIResponses] = None

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        results = data.get("results")
        return cls(
            height=_int(data.get("height")),
            results=ABCIResponses.from_dict(results) if results is not None else None,
        )

    def complement(self):
        if self.results is not None:
            self.results.complement()


@dataclass
class ResultBroadcastTxCommit:
    check_tx: TxResponse = field(default_factory=TxResponse)
    deliver_tx: TxResponse = field(default_factory=TxResponse)
    hash: bytes = b""
    height: int = 0

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            check_tx=TxResponse.from_dict(data.get("check_tx")),
            deliver_tx=TxResponse.from_dict(data.get("deliver_tx")),
            hash=_hex(data.get("hash")),
            height=_int(data.get("height")),
        )

    def complement(self):
        self.check_tx.complement()
        self.deliver_tx.complement()


@dataclass
class ResultTx:
    hash: bytes = b""
    height: int = 0
    index: int = 0
    tx_result: TxResponse = field(default_factory=TxResponse)
    tx: bytes = b""
    proof: Optional[dict] = None

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            hash=_hex(data.get("hash")),
            height=_int(data.get("height")),
            index=_int(data.get("index")),
            tx_result=TxResponse.from_dict(data.get("tx_result")),
            tx=_b64(data.get("tx")),
            proof=data.get("proof"),
        )

    def complement(self):
        self.tx_result.complement()


@dataclass
class ResultTxSearch:
    txs: list = field(default_factory=list)
    total_count: int = 0

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            txs=[ResultTx.from_dict(t) for t in data.get("txs") or []],
            total_count=_int(data.get("total_count")),
        )

    def complement(self):
        for result in self.txs:
            result.tx_result.complement()