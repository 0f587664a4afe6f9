"""
Ledger network client
=====================

Async boundary the pipeline uses to talk to the ledger: account creation,
account queries and consensus topic messages. ``hedera.py`` holds the
network-backed implementation; ``InMemoryLedgerClient`` serves local runs
and tests.
"""

import secrets
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from .errors import LedgerError
from .key_manager import KeyPair

SUCCESS = "SUCCESS"


@dataclass
class AccountInfo:
    """Current state of a ledger account"""
    account_id: str
    public_key: str  # DER hex
    balance: str = ""


@dataclass
class LedgerReceipt:
    """Receipt of a confirmed ledger transaction"""
    status: str
    topic_id: str = ""
    sequence_number: Optional[int] = None
    transaction_id: str = ""

    @property
    def is_success(self) -> bool:
        return self.status == SUCCESS


class LedgerClient(Protocol):
    """What the pipeline needs from a ledger network"""

    network: str

    async def create_account(self, keypair: KeyPair, initial_balance_hbar: int) -> str: ...

    async def get_account_info(self, account_id: str) -> AccountInfo: ...

    async def get_account_balance(self, account_id: str) -> str: ...

    async def submit_topic_message(self, topic_id: str, message: bytes) -> LedgerReceipt: ...

    async def close(self) -> None: ...

class InMemoryLedgerClient:
    """
    Local stand-in for a ledger network

    Accounts and topic messages live in dicts. Setting ``fail_with_status``
    makes topic submissions confirm with that (non-success) status.
    """

    def __init__(self, network: str = "local", shard_realm: str = "0.0"):
        self.network = network
        self._shard_realm = shard_realm
        self._next_num = 1001
        self.accounts: Dict[str, AccountInfo] = {}
        self.topics: Dict[str, List[bytes]] = {}
        self.fail_with_status: Optional[str] = None
        self.calls: List[str] = []

    def add_account(self, public_key: str, balance: str = "10 ℏ", account_id: Optional[str] = None) -> str:
        if account_id is None:
            account_id = f"{self._shard_realm}.{self._next_num}"
            self._next_num += 1
        self.accounts[account_id] = AccountInfo(account_id, public_key, balance)
        return account_id

    async def create_account(self, keypair: KeyPair, initial_balance_hbar: int) -> str:
        self.calls.append("create_account")
        return self.add_account(keypair.public_key, f"{initial_balance_hbar} ℏ")

    async def get_account_info(self, account_id: str) -> AccountInfo:
        self.calls.append("get_account_info")
        info = self.accounts.get(account_id)
        if info is None:
            raise LedgerError("Account info query failed", {"cause": "INVALID_ACCOUNT_ID"})
        return AccountInfo(info.account_id, info.public_key)

    async def get_account_balance(self, account_id: str) -> str:
        self.calls.append("get_account_balance")
        info = self.accounts.get(account_id)
        if info is None:
            raise LedgerError("Account balance query failed", {"cause": "INVALID_ACCOUNT_ID"})
        return info.balance

    async def submit_topic_message(self, topic_id: str, message: bytes) -> LedgerReceipt:
        self.calls.append("submit_topic_message")
        if self.fail_with_status:
            return LedgerReceipt(status=self.fail_with_status, topic_id=topic_id)
        messages = self.topics.setdefault(topic_id, [])
        messages.append(message)
        return LedgerReceipt(
            status=SUCCESS,
            topic_id=topic_id,
            sequence_number=len(messages),
            transaction_id=f"{self._shard_realm}.2@{secrets.randbelow(10**9)}"
        )

    async def close(self) -> None:
        pass
