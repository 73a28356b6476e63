from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from worklane.db import db_ping, get_db

router = APIRouter(tags=["health"])

@router.get("/health")
def health() -> dict:
    return {"status": "ok"}

# readiness probe
@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    ok = db_ping(db)
    body = {"status": "ok" if ok else "unready", "checks": {"db": ok}}

    # 503 until the database answers
    return JSONResponse(status_code=200 if ok else 503, content=body)
