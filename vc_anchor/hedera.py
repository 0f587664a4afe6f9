"""
Hedera ledger client
====================

LedgerClient backed by the Hiero (Hedera) Python SDK. The SDK is blocking,
so every call is pushed to a worker thread and awaited.
"""

import asyncio
import logging

from hiero_sdk_python import (
    AccountCreateTransaction,
    AccountId,
    AccountInfoQuery,
    Client,
    CryptoGetAccountBalanceQuery,
    Hbar,
    Network,
    PrivateKey,
    ResponseCode,
    TopicId,
    TopicMessageSubmitTransaction,
)

from .errors import LedgerError
from .key_manager import KeyPair
from .ledger import SUCCESS, AccountInfo, LedgerReceipt

logger = logging.getLogger(__name__)


def load_operator_key(encoded: str) -> PrivateKey:
    """
    Parse an operator key string

    A raw 32-byte hex key is read as ECDSA secp256k1, matching
    ``KeyManager.load_private_key``; anything longer is DER hex.
    """
    hex_key = encoded[2:] if encoded.startswith("0x") else encoded
    if len(hex_key) == 64:
        return PrivateKey.from_string_ecdsa(hex_key)
    return PrivateKey.from_string_der(hex_key)


class HederaLedgerClient:
    """
    One instance per process; the SDK client keeps its own channels.

    Args:
        network: Hedera network name (testnet, previewnet, mainnet)
        operator_id: Account paying for transactions
        operator_key: Operator private key, DER hex or raw ECDSA hex
    """

    def __init__(self, network: str, operator_id: str, operator_key: str):
        self.network = network
        self._operator_key = load_operator_key(operator_key)
        self._client = Client(network=Network(network))
        self._client.set_operator(AccountId.from_string(operator_id), self._operator_key)
        logger.info("Hedera client ready (network=%s, operator=%s)", network, operator_id)

    # ==================== ACCOUNTS ====================

    async def create_account(self, keypair: KeyPair, initial_balance_hbar: int) -> str:
        return await asyncio.to_thread(self._create_account, keypair, initial_balance_hbar)

    def _create_account(self, keypair: KeyPair, initial_balance_hbar: int) -> str:
        try:
            public_key = PrivateKey.from_der(bytes.fromhex(keypair.private_key)).public_key()
            transaction = (
                AccountCreateTransaction()
                .set_key(public_key)
                .set_initial_balance(Hbar(initial_balance_hbar))
                .freeze_with(self._client)
            )
            transaction.sign(self._operator_key)
            receipt = transaction.execute(self._client)
        except Exception as exc:
            raise LedgerError("Account creation failed", {"cause": str(exc)}) from exc

        status = ResponseCode(receipt.status).name
        if status != SUCCESS or receipt.account_id is None:
            raise LedgerError("Account creation was not confirmed", {"status": status})
        return str(receipt.account_id)

    async def get_account_info(self, account_id: str) -> AccountInfo:
        return await asyncio.to_thread(self._get_account_info, account_id)

    def _get_account_info(self, account_id: str) -> AccountInfo:
        try:
            info = (
                AccountInfoQuery()
                .set_account_id(AccountId.from_string(account_id))
                .execute(self._client)
            )
        except Exception as exc:
            raise LedgerError("Account info query failed", {"cause": str(exc)}) from exc
        return AccountInfo(account_id=account_id, public_key=info.key.to_bytes_der().hex())

    async def get_account_balance(self, account_id: str) -> str:
        return await asyncio.to_thread(self._get_account_balance, account_id)

    def _get_account_balance(self, account_id: str) -> str:
        try:
            balance = (
                CryptoGetAccountBalanceQuery()
                .set_account_id(AccountId.from_string(account_id))
                .execute(self._client)
            )
        except Exception as exc:
            raise LedgerError("Account balance query failed", {"cause": str(exc)}) from exc
        return str(balance.hbars)

    # ==================== CONSENSUS TOPICS ====================

    async def submit_topic_message(self, topic_id: str, message: bytes) -> LedgerReceipt:
        return await asyncio.to_thread(self._submit_topic_message, topic_id, message)

    def _submit_topic_message(self, topic_id: str, message: bytes) -> LedgerReceipt:
        try:
            transaction = (
                TopicMessageSubmitTransaction(
                    topic_id=TopicId.from_string(topic_id),
                    message=message.decode("utf-8"),
                )
                .freeze_with(self._client)
                .sign(self._operator_key)
            )
            receipt = transaction.execute(self._client)
        except Exception as exc:
            raise LedgerError("Topic message submission failed", {"cause": str(exc)}) from exc

        return LedgerReceipt(
            status=ResponseCode(receipt.status).name,
            topic_id=topic_id,
            sequence_number=getattr(receipt, "topic_sequence_number", None),
            transaction_id=str(getattr(receipt, "transaction_id", "") or "")
        )

    async def close(self) -> None:
        self._client.close()
