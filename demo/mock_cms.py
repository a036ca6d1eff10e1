#!/usr/bin/env python3
"""Mock CMS upload API for local PdfGate testing.

Runs on port 1337 and answers ``POST /api/upload`` the way a Strapi-style
upload endpoint does: a JSON array describing the stored file.

Usage:
    python3 demo/mock_cms.py
    CMS_URL=http://127.0.0.1:1337 pdfgate
"""

import time

import uvicorn
from fastapi import FastAPI, File, Header, UploadFile
from fastapi.responses import JSONResponse

app = FastAPI(title="Mock CMS (PdfGate Demo)")

_next_id = 1


@app.post("/api/upload")
async def upload(
    files: UploadFile = File(...),
    authorization: str | None = Header(default=None),
    x_pdfgate_scan_id: str | None = Header(default=None),
) -> JSONResponse:
    global _next_id
    content = await files.read()
    record = {
        "id": _next_id,
        "name": files.filename,
        "mime": files.content_type,
        "size": round(len(content) / 1024, 2),
        "url": f"/uploads/{_next_id}_{files.filename}",
        "createdAt": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
    }
    _next_id += 1
    print(f"stored {files.filename} ({len(content)} bytes) scan_id={x_pdfgate_scan_id} auth={bool(authorization)}")
    return JSONResponse(status_code=201, content=[record])


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=1337)
