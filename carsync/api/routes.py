# carsync/api/routes.py
from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
from .. import crud, schemas
from ..config import cron_secret
from ..db import SessionLocal, get_db
from ..exceptions import ConfigurationError, FatalCrawlError, NotFoundError
from ..services import ingest_listings, run_crawl
from ..storage import DatabaseStore
from ..utils import logger

router = APIRouter()

def get_store() -> DatabaseStore:
    return DatabaseStore(SessionLocal)

@router.get("/health")
def health():
    return {"status": "ok"}

@router.get("/listings", response_model=schemas.ListingPage)
def listings(
    skip: int = 0,
    limit: int = 50,
    source: Optional[str] = Query(None),
    status: Optional[schemas.Status] = Query(None),
    approved: Optional[bool] = Query(None),
    min_price: Optional[int] = Query(None),
    max_price: Optional[int] = Query(None),
    location: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    filters = {
        "source": source,
        "status": status.value if status else None,
        "approved": approved,
        "min_price": min_price,
        "max_price": max_price,
        "location": location,
    }
    return crud.list_listings(db, skip=skip, limit=limit, filters=filters)


@router.get("/listings/{identity}", response_model=schemas.ListingOut)
def get_listing(identity: str, db: Session = Depends(get_db)):
    obj = crud.get_listing(db, identity)
    if not obj:
        raise HTTPException(status_code=404, detail="Listing not found")
    return obj


def _operator_action(action, db, identity):
    try:
        return action(db, identity)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Listing not found")


@router.post("/listings/{identity}/approve", response_model=schemas.ListingOut)
def approve_listing(identity: str, db: Session = Depends(get_db)):
    return _operator_action(crud.mark_approved, db, identity)


@router.post("/listings/{identity}/messaged", response_model=schemas.ListingOut)
def listing_messaged(identity: str, db: Session = Depends(get_db)):
    return _operator_action(crud.record_message, db, identity)


@router.post("/listings/{identity}/replied", response_model=schemas.ListingOut)
def listing_replied(identity: str, db: Session = Depends(get_db)):
    return _operator_action(crud.record_reply, db, identity)


@router.post("/listings/upload", response_model=schemas.UploadResult)
def upload_listings(payload: List[Dict[str, Any]] = Body(...), store: DatabaseStore = Depends(get_store)):
    if not payload:
        raise HTTPException(status_code=400, detail="Invalid input: expected array of listings")
    try:
        result = ingest_listings(store, payload)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"count": len(payload), "added": result.added, "updated": result.updated}


@router.post("/crawl/{site}", response_model=schemas.CrawlReportOut)
def trigger_crawl(site: str, authorization: Optional[str] = Header(None),
                  store: DatabaseStore = Depends(get_store)):
    secret = cron_secret()
    if not secret or authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        report = run_crawl(site, store=store)
    except ConfigurationError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except FatalCrawlError as e:
        logger.exception("Crawl failed: %s", e)
        detail = e.report.as_dict() if e.report else {"error": str(e)}
        raise HTTPException(status_code=500, detail=detail)
    return report.as_dict()
