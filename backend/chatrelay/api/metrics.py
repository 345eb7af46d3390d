"""In-process metrics snapshot."""

from typing import Any

from fastapi import APIRouter

from chatrelay.core.metrics import metrics

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def get_metrics() -> dict[str, Any]:
    return metrics.snapshot()
