from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
import os

app = FastAPI(title="Mock Notification Server", version="1.0.0")
# Set MOCK_NOTIFICATIONS_FAIL=1 to exercise the gateway's best-effort path
FAIL = os.getenv("MOCK_NOTIFICATIONS_FAIL") == "1"

SENT: List[Dict[str, Any]] = []


class NotificationIn(BaseModel):
    recipient_id: str
    type: str
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None


@app.get("/health")
def health(): return {"status": "ok"}

@app.post("/notifications", status_code=201)
def create_notification(body: NotificationIn):
    if FAIL:
        raise HTTPException(status_code=503, detail="notifications unavailable")
    SENT.append(body.model_dump())
    return {"id": len(SENT)}

@app.get("/notifications")
def list_notifications(recipient_id: Optional[str] = None):
    return [n for n in SENT if recipient_id is None or n["recipient_id"] == recipient_id]
