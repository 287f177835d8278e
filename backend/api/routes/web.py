# backend/api/routes/web.py

import os

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse


def build_router(dist_dir: str) -> APIRouter:
    """
    Serve the built client bundle from ``dist_dir``.

    Existing files are returned as-is; every other GET path gets the client
    entry document so the client-side router can take over.
    """
    router = APIRouter()
    root = os.path.realpath(dist_dir)
    index = os.path.join(root, "index.html")

    @router.get("/{path:path}", include_in_schema=False)
    async def client(path: str):
        candidate = os.path.realpath(os.path.join(root, path))
        if path and candidate.startswith(root + os.sep) and os.path.isfile(candidate):
            return FileResponse(candidate)
        if not os.path.isfile(index):
            raise HTTPException(status_code=404, detail="Client bundle not found")
        return FileResponse(index)

    return router
