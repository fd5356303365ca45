from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
import json
import os
import uuid

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

app = FastAPI(title="Mock Remittance Collaborators", version="1.0.0")
# Support both local development and Docker
DATA_FILE = (
    Path("/reference_data.json")
    if os.path.exists("/reference_data.json")
    else Path(__file__).resolve().parents[2] / "remit_gateway" / "data" / "reference_data.json"
)
UNITS_PER_USD = {
    c["code"]: Decimal(str(c["reference_rate"]))
    for c in json.loads(DATA_FILE.read_text())["currencies"]
}

# Partner-side transfer store: (partner_id, transfer_id) -> record
TRANSFERS = {}


class ScreeningRequest(BaseModel):
    transfer_id: str
    sender_id: str
    recipient_name: str
    origin_country: str
    destination_country: str
    send_amount: str
    currency: str
    compliance_level: str
    purpose: str | None = None
    source_of_funds: str | None = None


class VerifyRequest(BaseModel):
    transfer_id: str
    tracking_number: str
    amount: str
    currency: str
    payment_method: str
    proof: dict = {}


class DispatchRequest(BaseModel):
    transfer_id: str
    tracking_number: str
    destination_country: str
    currency: str
    amount: str
    delivery_method: str
    recipient: dict


@app.get("/health")
def health(): return {"status": "ok"}


@app.get("/rates")
def rates(from_currency: str = Query(..., alias="from"), to_currency: str = Query(..., alias="to")):
    if from_currency not in UNITS_PER_USD or to_currency not in UNITS_PER_USD:
        raise HTTPException(status_code=404, detail="unknown currency")
    rate = UNITS_PER_USD[to_currency] / UNITS_PER_USD[from_currency]
    return {
        "rate": str(rate),
        "inverse_rate": str(1 / rate),
        "source": "mock",
        "spread": "0.01",
        "is_live": True,
    }


@app.post("/screening/{check_type}")
def screen(check_type: str, body: ScreeningRequest):
    # Recipient names drive the scenario: "blocked" trips sanctions, "politician" trips PEP
    name = body.recipient_name.lower()
    if check_type == "sanctions" and "blocked" in name:
        return {"status": "failed", "risk_score": 95, "flags": ["sanctions_match"]}
    if check_type == "pep" and "politician" in name:
        return {"status": "manual_review", "risk_score": 75, "flags": ["pep_match"]}
    if check_type == "tax_reporting":
        return {"status": "manual_review", "risk_score": 60, "flags": ["large_amount"]}
    return {"status": "passed", "risk_score": 10, "flags": []}


@app.post("/payments/verify")
def verify_payment(body: VerifyRequest):
    return {"verified": body.proof.get("reference") != "declined"}


@app.post("/partners/{partner_id}/transfers")
def dispatch(partner_id: str, body: DispatchRequest):
    if "reject" in str(body.recipient.get("name", "")).lower():
        raise HTTPException(status_code=422, detail="recipient rejected")

    key = (partner_id, body.transfer_id)
    # Transfer id is the idempotency key; a resend returns the original reference
    if key not in TRANSFERS:
        TRANSFERS[key] = {"partner_reference": f"{partner_id.upper()}-{uuid.uuid4().hex[:10]}", "polls": 0}
    return {"success": True, "partner_reference": TRANSFERS[key]["partner_reference"], "message": "accepted"}


@app.get("/partners/{partner_id}/transfers/{transfer_id}")
def poll(partner_id: str, transfer_id: str):
    record = TRANSFERS.get((partner_id, transfer_id))
    if record is None:
        raise HTTPException(status_code=404, detail="transfer not found")

    # Delivered on the second poll
    record["polls"] += 1
    if record["polls"] < 2:
        return {"status": "pending", "partner_reference": record["partner_reference"]}
    return {
        "status": "completed",
        "partner_reference": record["partner_reference"],
        "delivered_at": datetime.now(timezone.utc).isoformat(),
    }
