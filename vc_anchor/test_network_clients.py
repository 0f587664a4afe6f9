"""
Network Client Tests
====================

IPFSContentStore against mocked Kubo RPC responses (aioresponses) and
HederaLedgerClient against a mocked Hiero SDK.
"""

import asyncio
import re
from unittest.mock import MagicMock, patch

import aiohttp
import pytest
from aioresponses import aioresponses

from vc_anchor import content_store
from vc_anchor.canonical import canonicalize
from vc_anchor.content_store import IPFSContentStore
from vc_anchor.errors import LedgerError, NotFound, StorageFailure
from vc_anchor.hedera import HederaLedgerClient, ResponseCode, load_operator_key
from vc_anchor.key_manager import KeyManager, KeyType

IPFS_URL = "http://ipfs.test:5001"
ADD_URL = re.compile(r"^http://ipfs\.test:5001/api/v0/add.*$")
CAT_URL = re.compile(r"^http://ipfs\.test:5001/api/v0/cat.*$")

RAW_ECDSA_KEY = "a1" * 32


def run(coro):
    return asyncio.run(coro)


def public_numbers(public_key_hex):
    return KeyManager().load_public_key(public_key_hex).public_numbers()


class TestIPFSContentStore:
    """Test IPFSContentStore over the Kubo RPC API"""

    def setup_method(self):
        self.store = IPFSContentStore(IPFS_URL, api_key="secret")

    def call(self, method, *args):
        async def scenario():
            await self.store.ensure_connected()
            try:
                return await getattr(self.store, method)(*args)
            finally:
                await self.store.close()
        return run(scenario())

    # ==================== STORE ====================

    def test_store_returns_cid(self):
        with aioresponses() as mocked:
            mocked.post(ADD_URL, payload={"Name": "document.json", "Hash": "bafkreiflu", "Size": "21"})
            cid = self.call("store", {"diagnosis": "Flu"})
            (method, url), _ = next(iter(mocked.requests.items()))

        assert cid == "bafkreiflu"
        assert method == "POST"
        assert url.query["pin"] == "true"
        assert url.query["cid-version"] == "1"
        print(f"✅ Stored on IPFS: {cid}")

    def test_store_error_status(self):
        with aioresponses() as mocked:
            mocked.post(ADD_URL, status=500, body="repo is locked")

            with pytest.raises(StorageFailure) as excinfo:
                self.call("store", {"diagnosis": "Flu"})

        assert excinfo.value.extra["status"] == 500
        assert not isinstance(excinfo.value, NotFound)

    def test_store_without_hash(self):
        with aioresponses() as mocked:
            mocked.post(ADD_URL, payload={"Name": "document.json"})

            with pytest.raises(StorageFailure):
                self.call("store", {"diagnosis": "Flu"})

    def test_store_connection_error(self):
        with aioresponses() as mocked:
            mocked.post(ADD_URL, exception=aiohttp.ClientConnectionError("connection refused"))

            with pytest.raises(StorageFailure):
                self.call("store", {"diagnosis": "Flu"})

    # ==================== RETRIEVE ====================

    def test_retrieve_joins_chunks_before_decoding(self, monkeypatch):
        document = {"diagnosis": "Flu", "name": "Nguyễn"}
        monkeypatch.setattr(content_store, "CHUNK_SIZE", 3)

        with aioresponses() as mocked:
            mocked.post(CAT_URL, body=canonicalize(document))
            retrieved = self.call("retrieve", "bafkreiflu")

        assert retrieved == document

    @pytest.mark.parametrize("status, body", [
        (404, "404 page not found"),
        (500, '{"Message":"invalid path \\"bafkreiflu\\"","Code":0,"Type":"error"}'),
        (500, '{"Message":"block was not found locally (offline)","Code":0,"Type":"error"}'),
    ])
    def test_retrieve_not_found(self, status, body):
        with aioresponses() as mocked:
            mocked.post(CAT_URL, status=status, body=body)

            with pytest.raises(NotFound):
                self.call("retrieve", "bafkreiflu")

    def test_retrieve_error_status(self):
        with aioresponses() as mocked:
            mocked.post(CAT_URL, status=502, body="bad gateway")

            with pytest.raises(StorageFailure) as excinfo:
                self.call("retrieve", "bafkreiflu")

        assert not isinstance(excinfo.value, NotFound)

    def test_retrieve_non_json_content(self):
        with aioresponses() as mocked:
            mocked.post(CAT_URL, body=b"\x89PNG\r\n")

            with pytest.raises(StorageFailure):
                self.call("retrieve", "bafkreiflu")

    def test_retrieve_timeout(self):
        with aioresponses() as mocked:
            mocked.post(CAT_URL, exception=asyncio.TimeoutError())

            with pytest.raises(StorageFailure):
                self.call("retrieve", "bafkreiflu")


class TestOperatorKey:
    """Operator keys must be read like KeyManager reads them"""

    def test_raw_hex_is_ecdsa(self):
        sdk_key = load_operator_key(RAW_ECDSA_KEY)
        ours = KeyManager().load_private_key(RAW_ECDSA_KEY)

        assert not sdk_key.is_ed25519()
        assert public_numbers(sdk_key.public_key().to_bytes_der().hex()) == public_numbers(ours.public_key)

    def test_prefixed_raw_hex(self):
        sdk_key = load_operator_key("0x" + RAW_ECDSA_KEY)

        assert not sdk_key.is_ed25519()

    @pytest.mark.parametrize("key_type", [KeyType.ECDSA_SECP256K1, KeyType.ED25519])
    def test_der_hex(self, key_type):
        keypair = KeyManager().generate(key_type)
        sdk_key = load_operator_key(keypair.private_key)

        assert sdk_key.is_ed25519() == (key_type is KeyType.ED25519)
        sdk_public = sdk_key.public_key().to_bytes_der().hex()
        if key_type is KeyType.ECDSA_SECP256K1:
            assert public_numbers(sdk_public) == public_numbers(keypair.public_key)
        else:
            assert sdk_public == keypair.public_key


class TestHederaLedgerClient:
    """Test HederaLedgerClient with the SDK transport mocked out"""

    def setup_method(self):
        self.client_cls = patch("vc_anchor.hedera.Client").start()
        patch("vc_anchor.hedera.Network").start()
        self.ledger = HederaLedgerClient("testnet", "0.0.2", RAW_ECDSA_KEY)

    def teardown_method(self):
        patch.stopall()

    def test_operator_is_ecdsa(self):
        account_id, operator_key = self.client_cls.return_value.set_operator.call_args[0]

        assert str(account_id) == "0.0.2"
        assert not operator_key.is_ed25519()

    @patch("vc_anchor.hedera.AccountCreateTransaction")
    def test_create_account(self, transaction_cls):
        transaction = transaction_cls.return_value
        transaction.set_key.return_value = transaction
        transaction.set_initial_balance.return_value = transaction
        transaction.freeze_with.return_value = transaction
        transaction.execute.return_value = MagicMock(status=ResponseCode.SUCCESS, account_id="0.0.4321")
        keypair = KeyManager().generate()

        account_id = run(self.ledger.create_account(keypair, 10))

        assert account_id == "0.0.4321"
        transaction.sign.assert_called_once_with(self.ledger._operator_key)
        account_key = transaction.set_key.call_args[0][0]
        assert public_numbers(account_key.to_bytes_der().hex()) == public_numbers(keypair.public_key)

    @patch("vc_anchor.hedera.AccountCreateTransaction")
    def test_create_account_rejected(self, transaction_cls):
        transaction = transaction_cls.return_value
        transaction.set_key.return_value = transaction
        transaction.set_initial_balance.return_value = transaction
        transaction.freeze_with.return_value = transaction
        transaction.execute.return_value = MagicMock(status=ResponseCode.INVALID_SIGNATURE, account_id=None)

        with pytest.raises(LedgerError) as excinfo:
            run(self.ledger.create_account(KeyManager().generate(), 10))
        assert excinfo.value.extra["status"] == "INVALID_SIGNATURE"

    @patch("vc_anchor.hedera.AccountInfoQuery")
    def test_get_account_info(self, query_cls):
        keypair = KeyManager().generate()
        sdk_public = load_operator_key(keypair.private_key).public_key()
        query_cls.return_value.set_account_id.return_value.execute.return_value = MagicMock(key=sdk_public)

        info = run(self.ledger.get_account_info("0.0.4321"))

        assert info.account_id == "0.0.4321"
        assert public_numbers(info.public_key) == public_numbers(keypair.public_key)

    @patch("vc_anchor.hedera.AccountInfoQuery")
    def test_get_account_info_failure(self, query_cls):
        query_cls.return_value.set_account_id.return_value.execute.side_effect = \
            RuntimeError("INVALID_ACCOUNT_ID")

        with pytest.raises(LedgerError):
            run(self.ledger.get_account_info("0.0.4321"))

    @patch("vc_anchor.hedera.CryptoGetAccountBalanceQuery")
    def test_get_account_balance(self, query_cls):
        query_cls.return_value.set_account_id.return_value.execute.return_value = \
            MagicMock(hbars="10.00000000 ℏ")

        assert run(self.ledger.get_account_balance("0.0.4321")) == "10.00000000 ℏ"

    @patch("vc_anchor.hedera.TopicMessageSubmitTransaction")
    def test_submit_topic_message(self, transaction_cls):
        transaction = transaction_cls.return_value.freeze_with.return_value.sign.return_value
        transaction.execute.return_value = MagicMock(
            status=ResponseCode.SUCCESS, topic_sequence_number=7, transaction_id="0.0.2@1700000000.1"
        )

        receipt = run(self.ledger.submit_topic_message("0.0.5005", b'{"recordType":"document-anchor"}'))

        assert receipt.is_success
        assert receipt.sequence_number == 7
        assert receipt.topic_id == "0.0.5005"
        assert transaction_cls.call_args.kwargs["message"] == '{"recordType":"document-anchor"}'

    @patch("vc_anchor.hedera.TopicMessageSubmitTransaction")
    def test_submit_topic_message_status(self, transaction_cls):
        transaction = transaction_cls.return_value.freeze_with.return_value.sign.return_value
        transaction.execute.return_value = MagicMock(status=ResponseCode.INVALID_SIGNATURE)

        receipt = run(self.ledger.submit_topic_message("0.0.5005", b"{}"))

        assert not receipt.is_success
        assert receipt.status == "INVALID_SIGNATURE"

    @patch("vc_anchor.hedera.TopicMessageSubmitTransaction")
    def test_submit_topic_message_transport_error(self, transaction_cls):
        transaction = transaction_cls.return_value.freeze_with.return_value.sign.return_value
        transaction.execute.side_effect = RuntimeError("PLATFORM_NOT_ACTIVE")

        with pytest.raises(LedgerError):
            run(self.ledger.submit_topic_message("0.0.5005", b"{}"))
