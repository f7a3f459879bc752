#!/usr/bin/env python3
"""
Indian Pharmacy Data API
Built from Tata 1mg medicine pages and Apollo Pharmacy SKU lookups
"""

from fastapi import FastAPI, Query, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional

from scrapers.batch import is_failure
from scrapers.storage import DATA_DIR, MedicineStore, load_json

# Load data
MEDICINE_STORE_FILE = DATA_DIR / "1mg" / "medicine_store.json"
SKU_RESULTS_FILE = DATA_DIR / "apollo" / "products.json"

STORE = MedicineStore(MEDICINE_STORE_FILE, key="url")
SKU_RECORDS = load_json(SKU_RESULTS_FILE, default=[]) or []


def sku_index() -> dict:
    # Later records win, so a retried SKU shows its newest result
    return {r['sku']: r for r in SKU_RECORDS if r.get('sku')}


app = FastAPI(
    title="Indian Pharmacy Data API",
    description="Medicine catalog and live SKU pricing from Indian pharmacy platforms (Tata 1mg, Apollo)",
    version="0.1.0",
    docs_url="/",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/stats")
def get_stats():
    """Get catalog statistics"""
    medicines = STORE.all()
    skus = sku_index()
    return {
        "total_medicines": len(medicines),
        "medicines_with_errors": sum(1 for m in medicines if is_failure(m)),
        "medicines_with_substitutes": sum(1 for m in medicines if m.get('substitutes')),
        "total_skus": len(skus),
        "skus_with_errors": sum(1 for r in skus.values() if is_failure(r)),
        "sources": ["1mg.com", "apollopharmacy.in"],
    }


@app.get("/medicines")
def list_medicines(
    q: Optional[str] = Query(None, description="Search name or formula"),
    letter: Optional[str] = Query(None, description="Index letter"),
    prescription: Optional[bool] = Query(None, description="Prescription required"),
    include_errors: bool = Query(False, description="Include pages that failed to parse"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """List/search medicines"""
    results = STORE.all()

    if not include_errors:
        results = [m for m in results if not is_failure(m)]

    if q:
        q_lower = q.lower()
        results = [m for m in results
                   if q_lower in (m.get('name') or '').lower() or q_lower in (m.get('formula') or '').lower()]

    if letter:
        results = [m for m in results if (m.get('letter') or '').upper() == letter.upper()]

    if prescription is not None:
        results = [m for m in results if (m.get('prescription_required') in (True, 'Yes')) == prescription]

    total = len(results)
    results = results[offset:offset + limit]

    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "results": results,
    }


@app.get("/medicines/lookup")
def get_medicine(url: str = Query(..., description="Medicine page URL")):
    """Get medicine by its page URL"""
    medicine = STORE.get(url)
    if not medicine:
        raise HTTPException(status_code=404, detail="Medicine not found")
    return medicine


@app.post("/medicines/ingest")
def ingest_medicines(data: dict):
    """
    Upsert medicine records by URL.

    Expected format:
    {
        "medicines": [
            {"url": "https://www.1mg.com/drugs/...", "name": "...", ...}
        ]
    }
    """
    medicines = data.get('medicines', [])
    missing = [i for i, m in enumerate(medicines) if not m.get('url')]
    if missing:
        raise HTTPException(status_code=422, detail=f"Records without url at positions {missing}")

    counts = STORE.upsert_many(medicines)
    return {
        'status': 'success',
        'created': counts['created'],
        'updated': counts['updated'],
        'total_tracked': len(STORE),
    }


@app.get("/skus")
def list_skus(
    failed: Optional[bool] = Query(None, description="Only failed (true) or successful (false) lookups"),
    limit: int = Query(50, ge=1, le=500),
):
    """List SKU lookup results"""
    results = list(sku_index().values())
    if failed is not None:
        results = [r for r in results if is_failure(r) == failed]
    return {
        'total': len(results),
        'results': results[:limit],
    }


@app.get("/skus/{sku}")
def get_sku(sku: str):
    """Get the latest lookup result for a SKU"""
    record = sku_index().get(sku.upper()) or sku_index().get(sku)
    if not record:
        raise HTTPException(status_code=404, detail="SKU not tracked")
    return record


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8002)
