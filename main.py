import os
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Body, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from database import db, create_document, get_documents, DatabaseError, DuplicateIdError

logger = logging.getLogger(__name__)

app = FastAPI(title="Storefront Data API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Query parameters that are not equality filters
RESERVED_PARAMS = {"q"}


@app.exception_handler(DatabaseError)
def database_error_handler(request: Request, exc: DatabaseError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": str(exc) or "database error"})


# -------------------- Helpers --------------------

def check_collection(name: str) -> str:
    if name not in db.collections:
        raise HTTPException(status_code=404, detail="Collection not found")
    return name


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def query_filters(request: Request) -> Dict[str, str]:
    return {
        k: v for k, v in request.query_params.items()
        if k not in RESERVED_PARAMS and not k.startswith("_")
    }


# -------------------- Health & Test --------------------

@app.get("/")
def read_root():
    return {"message": "Storefront Data API is running"}


@app.get("/api")
def api_status():
    return {"status": "ok", "message": "Backend is running"}


@app.get("/api/db")
def full_database():
    return db.snapshot()


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_path": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        response["database_path"] = "✅ Set" if os.getenv("DATABASE_PATH") else "⚠️ Default"
        response["database_name"] = db.name
        response["collections"] = db.list_collection_names()[:10]
        response["connection_status"] = "Connected"
        response["database"] = "✅ Connected & Working" if os.path.exists(db.path) else "✅ Empty (created on first write)"
    except DatabaseError as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


# -------------------- Collections --------------------

@app.get("/{collection}", response_model=List[dict])
def list_records(collection: str, request: Request, q: Optional[str] = Query(None)):
    check_collection(collection)
    return get_documents(collection, query_filters(request), q=q)


@app.get("/{collection}/{item_id}", response_model=dict)
def get_record(collection: str, item_id: str):
    check_collection(collection)
    doc = db.find_one(collection, item_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Not found")
    return doc


@app.post("/{collection}", response_model=dict, status_code=201)
def create_record(collection: str, payload: Dict[str, Any] = Body(...)):
    check_collection(collection)
    try:
        doc = create_document(collection, payload)
    except DuplicateIdError:
        raise HTTPException(status_code=409, detail="Duplicate id")
    logger.info("Created %s/%s", collection, doc["id"])
    return doc


@app.put("/{collection}/{item_id}", response_model=dict)
def replace_record(collection: str, item_id: str, payload: Dict[str, Any] = Body(...)):
    check_collection(collection)
    doc = {**payload, "updatedAt": now_iso()}
    new_doc = db.replace_one(collection, item_id, doc)
    if not new_doc:
        raise HTTPException(status_code=404, detail="Not found")
    logger.info("Replaced %s/%s", collection, item_id)
    return new_doc


@app.patch("/{collection}/{item_id}", response_model=dict)
def update_record(collection: str, item_id: str, payload: Dict[str, Any] = Body(...)):
    check_collection(collection)
    update = {k: v for k, v in payload.items() if k != "id"}
    update["updatedAt"] = now_iso()
    new_doc = db.update_one(collection, item_id, update)
    if not new_doc:
        raise HTTPException(status_code=404, detail="Not found")
    logger.debug("Patched %s/%s fields=%s", collection, item_id, sorted(update))
    return new_doc


@app.delete("/{collection}/{item_id}", response_model=dict)
def delete_record(collection: str, item_id: str):
    check_collection(collection)
    if not db.delete_one(collection, item_id):
        raise HTTPException(status_code=404, detail="Not found")
    logger.info("Deleted %s/%s", collection, item_id)
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    port = int(os.getenv("PORT", 3000))
    uvicorn.run(app, host="0.0.0.0", port=port)
