"""System API — health check and equity tracker status."""

from fastapi import APIRouter, Depends, HTTPException, Request

from risk_manager.api.deps import verify_api_key

router = APIRouter(tags=["system"])


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.get("/api/v1/tracker", dependencies=[Depends(verify_api_key)])
def tracker_status(request: Request):
    """Current equity tracker state and its per-broker schedule."""
    tracker = getattr(request.app.state, "tracker", None)
    if tracker is None:
        raise HTTPException(status_code=503, detail="Equity tracker not running")
    return tracker.status()
