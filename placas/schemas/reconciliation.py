"""
schemas/reconciliation.py
-------------------------
Response body for a manually triggered reconciliation run.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class JobOutcomeRead(BaseModel):
    name: str
    ok: bool
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    model_config = {"from_attributes": True}


class ReconciliationReportRead(BaseModel):
    run_id: str
    now: datetime
    tenant_id: Optional[str] = None
    ok: bool
    jobs: list[JobOutcomeRead]

    model_config = {"from_attributes": True}
