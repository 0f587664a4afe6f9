"""
API Tests
=========

Route-level tests for the DID & VC API. The app is driven through
FastAPI's TestClient with an in-memory ledger and content store installed
as the service.
"""

import pytest
from fastapi.testclient import TestClient

from backend.api import ISSUE_MESSAGE, app
from vc_anchor import DIDService, InMemoryContentStore, InMemoryLedgerClient, IssuerContext, KeyManager
from vc_anchor.errors import LedgerError

ISSUER_DID = "did:hedera:0.0.99"
TOPIC_ID = "0.0.5005"


class TestAPI:
    """Test the HTTP surface"""

    def setup_method(self):
        key_manager = KeyManager()
        self.ledger = InMemoryLedgerClient()
        self.store = InMemoryContentStore()

        issuer_key = key_manager.generate()
        self.ledger.add_account(issuer_key.public_key, account_id="0.0.99")
        issuer = IssuerContext(did=ISSUER_DID, keypair=key_manager.bind(issuer_key, ISSUER_DID))

        app.state.did_service = DIDService(self.ledger, self.store, TOPIC_ID, issuer=issuer)

    def teardown_method(self):
        app.state.did_service = None

    def issue(self, client, document=None):
        response = client.post("/issue-medical-vc", json={
            "patientDID": "did:hedera:0.0.1",
            "document": document or {"diagnosis": "Flu", "medication": "Tamiflu"}
        })
        assert response.status_code == 200
        return response.json()["data"]

    def verify(self, client, body):
        return client.request("GET", "/verify-vc", json=body)

    # ==================== DID ====================

    def test_create_did(self):
        with TestClient(app) as client:
            response = client.post("/create-did")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["did"] == f"did:hedera:{data['accountId']}"
        assert data["privateKey"]
        assert data["publicKey"]
        print(f"✅ Created DID: {data['did']}")

    def test_create_did_ledger_failure(self):
        async def reject(keypair, initial_balance_hbar):
            raise LedgerError("Account creation failed")

        self.ledger.create_account = reject

        with TestClient(app) as client:
            response = client.post("/create-did")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Internal Server Error"}

    def test_resolve_did(self):
        with TestClient(app) as client:
            response = client.get(f"/resolve-did/{ISSUER_DID}")

        assert response.status_code == 200
        document = response.json()["data"]["didDocument"]
        assert document["id"] == ISSUER_DID
        assert document["verificationMethod"][0]["id"] == f"{ISSUER_DID}#key-1"

    @pytest.mark.parametrize("did", ["did:x:1", "did:hedera:abc"])
    def test_resolve_invalid_did(self, did):
        with TestClient(app) as client:
            response = client.get(f"/resolve-did/{did}")

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid DID format"}

    def test_resolve_unknown_did(self):
        with TestClient(app) as client:
            response = client.get("/resolve-did/did:hedera:0.0.424242")

        assert response.status_code == 400
        assert response.json()["success"] == False

    # ==================== CREDENTIALS ====================

    def test_issue_medical_vc(self):
        with TestClient(app) as client:
            data = self.issue(client)

        assert data["message"] == ISSUE_MESSAGE
        assert data["patientDID"] == "did:hedera:0.0.1"
        assert data["cid"] == data["signedVC"]["credentialSubject"]["payload"]["contentReference"]
        assert data["signedVC"]["proof"]["verificationMethod"] == f"{ISSUER_DID}#key-1"
        assert len(self.ledger.topics[TOPIC_ID]) == 1

    @pytest.mark.parametrize("body", [
        {},
        {"patientDID": "did:hedera:0.0.1"},
        {"document": {"diagnosis": "Flu"}},
    ])
    def test_issue_missing_fields(self, body):
        with TestClient(app) as client:
            response = client.post("/issue-medical-vc", json=body)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Missing patientDID or document in request body"
        }
        assert self.store.calls == []
        assert self.ledger.calls == []

    @pytest.mark.parametrize("raw", [b'{"patientDID":"\xff"}', b"not json", b"[1, 2]"])
    def test_issue_unreadable_body(self, raw):
        with TestClient(app) as client:
            response = client.post(
                "/issue-medical-vc", content=raw, headers={"Content-Type": "application/json"}
            )

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Missing patientDID or document in request body"
        }
        assert self.ledger.calls == []

    def test_issue_anchor_failure(self):
        self.ledger.fail_with_status = "INVALID_TOPIC_ID"

        with TestClient(app) as client:
            response = client.post("/issue-medical-vc", json={
                "patientDID": "did:hedera:0.0.1", "document": {"diagnosis": "Flu"}
            })

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Failed to anchor data on HCS"}

    def test_verify_vc(self):
        with TestClient(app) as client:
            signed_vc = self.issue(client)["signedVC"]
            response = self.verify(client, {"signedVC": signed_vc, "issuerDID": ISSUER_DID})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["verified"] == True
        assert data["vc"] == signed_vc
        assert data["document"] == {"diagnosis": "Flu", "medication": "Tamiflu"}
        assert data["contentStatus"] == "available"
        print("✅ Credential verified over HTTP")

    def test_verify_tampered_vc(self):
        with TestClient(app) as client:
            signed_vc = self.issue(client)["signedVC"]
            signed_vc["credentialSubject"]["payload"]["diagnosis"] = "Cold"
            response = self.verify(client, {"signedVC": signed_vc, "issuerDID": ISSUER_DID})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "VC signature verification failed"}

    def test_verify_missing_proof(self):
        with TestClient(app) as client:
            signed_vc = self.issue(client)["signedVC"]
            del signed_vc["proof"]
            response = self.verify(client, {"signedVC": signed_vc, "issuerDID": ISSUER_DID})

        assert response.status_code == 400
        assert response.json()["message"] == "Missing proof in VC"

    def test_verify_missing_fields(self):
        with TestClient(app) as client:
            response = self.verify(client, {"issuerDID": ISSUER_DID})

        assert response.status_code == 400
        assert response.json()["message"] == "Missing signedVC or issuerDID in request body"

    def test_verify_content_unavailable(self):
        with TestClient(app) as client:
            signed_vc = self.issue(client)["signedVC"]
            self.store.objects.clear()
            response = self.verify(client, {"signedVC": signed_vc, "issuerDID": ISSUER_DID})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["verified"] == True
        assert data["document"] is None
        assert data["contentStatus"] == "unavailable"

    def test_health(self):
        with TestClient(app) as client:
            response = client.get("/health")

        assert response.json()["data"] == {
            "issuerDID": ISSUER_DID, "topicId": TOPIC_ID, "network": "local"
        }
