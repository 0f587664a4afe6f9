"""
Hedera DID & VC API

Creates DIDs, issues and verifies anchored verifiable credentials.
Documents are stored on IPFS and their fingerprints anchored on a Hedera
consensus topic. OpenAPI docs are served at /docs.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vc_anchor import (
    CredentialPipelineError,
    DIDService,
    IPFSContentStore,
    IssuerContext,
)
from vc_anchor.config import Settings, get_settings

settings = get_settings()

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger("vc_anchor.api")

ISSUE_MESSAGE = "Medical VC issued, anchored on HCS and document stored on IPFS"


def build_service(settings: Settings) -> DIDService:
    """Construct the pipeline context from configuration"""
    from vc_anchor.hedera import HederaLedgerClient

    settings.require("HEDERA_ACCOUNT_ID", "HEDERA_PRIVATE_KEY", "HEDERA_TOPIC_ID", "ISSUER_DID")

    ledger = HederaLedgerClient(
        settings.HEDERA_NETWORK, settings.HEDERA_ACCOUNT_ID, settings.HEDERA_PRIVATE_KEY
    )
    content_store = IPFSContentStore(
        settings.IPFS_API_URL, settings.IPFS_API_KEY, settings.IPFS_TIMEOUT_SECONDS
    )
    issuer = IssuerContext.from_private_key(settings.ISSUER_DID, settings.issuer_private_key)

    return DIDService(
        ledger=ledger,
        content_store=content_store,
        topic_id=settings.HEDERA_TOPIC_ID,
        issuer=issuer,
        initial_balance_hbar=settings.INITIAL_BALANCE_HBAR
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    print("Starting Hedera DID & VC API...")

    # Tests (or embedding apps) may install their own service
    service = getattr(app.state, "did_service", None)
    if service is None:
        service = build_service(settings)
        app.state.did_service = service

    await service.start()
    logger.info("DID Service ready (issuer=%s, topic=%s)",
                service.issuer.did if service.issuer else None, service.topic_id)

    yield

    print("Shutting down...")
    await service.close()


app = FastAPI(
    title="Hedera DID & VC API",
    version="1.0.0",
    description="API for creating DIDs, issuing and verifying verifiable credentials, "
                "and IPFS/Hedera anchoring.",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _service(request: Request) -> DIDService:
    return request.app.state.did_service


def _fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


async def _read_json(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


# ============================================================
# DID ENDPOINTS
# ============================================================

@app.post("/create-did", tags=["DID"])
async def create_did(request: Request):
    """Create a new Hedera account (10 HBAR initial balance) and its DID"""
    try:
        identity = await _service(request).create_identity()
        return {"success": True, "data": identity.to_dict()}
    except CredentialPipelineError as e:
        logger.error("Error creating DID: %s %s", e.message, e.extra)
        return _fail(500, "Internal Server Error")
    except Exception:
        logger.exception("Error creating DID")
        return _fail(500, "Internal Server Error")


@app.get("/resolve-did/{did}", tags=["DID"])
async def resolve_did(did: str, request: Request):
    """
    Resolve a Hedera DID

    Args:
        did: The DID to resolve (e.g., did:hedera:0.0.1234)
    """
    try:
        record = await _service(request).resolve_did(did)
        return {"success": True, "data": record.to_dict()}
    except CredentialPipelineError as e:
        logger.error("Error resolving DID: %s %s", e.message, e.extra)
        return _fail(400, e.message)
    except Exception:
        logger.exception("Error resolving DID")
        return _fail(500, "Internal Server Error")


# ============================================================
# CREDENTIAL ENDPOINTS
# ============================================================

@app.post("/issue-medical-vc", tags=["Verifiable Credentials"])
async def issue_medical_vc(request: Request):
    """
    Issue a signed medical Verifiable Credential

    Body:
        patientDID: DID of the patient, e.g. did:hedera:0.0.1234
        document: e.g. {"diagnosis": "Flu", "medication": "Tamiflu"}
    """
    body = await _read_json(request)
    patient_did = body.get("patientDID")

    try:
        credential = await _service(request).issue(patient_did, body.get("document"))
        return {
            "success": True,
            "data": {
                "signedVC": credential.to_dict(),
                "cid": credential.content_reference,
                "patientDID": patient_did,
                "message": ISSUE_MESSAGE
            }
        }
    except CredentialPipelineError as e:
        logger.error("Error issuing VC: %s %s", e.message, e.extra)
        return _fail(e.status_code, e.message)
    except Exception:
        logger.exception("Error issuing VC")
        return _fail(500, "Internal Server Error")


@app.get("/verify-vc", tags=["Verifiable Credentials"])
async def verify_vc(request: Request):
    """
    Verify a signed Verifiable Credential

    Body (JSON, carried on GET):
        signedVC: The signed credential
        issuerDID: The DID expected to have issued it
    """
    body = await _read_json(request)

    try:
        result = await _service(request).verify(body.get("signedVC"), body.get("issuerDID"))
    except CredentialPipelineError as e:
        logger.error("Error verifying VC: %s %s", e.message, e.extra)
        return _fail(e.status_code, e.message)
    except Exception:
        logger.exception("Error verifying VC")
        return _fail(500, "Internal Server Error")

    if not result.verified:
        return _fail(400, "VC signature verification failed")

    return {
        "success": True,
        "data": {
            "verified": True,
            "vc": result.credential,
            "document": result.document,
            "contentStatus": result.content_status.value,
            "contentError": result.content_error
        }
    }


@app.get("/health")
async def health(request: Request):
    """Service configuration summary"""
    return {"success": True, "data": _service(request).get_info()}


if __name__ == "__main__":
    uvicorn.run("backend.api:app", host="0.0.0.0", port=settings.PORT)
