# app/api/v1/routes_files.py

from fastapi import APIRouter, HTTPException, status

from app.schemas.recommendation import LocatorRequest
from app.schemas.validation import FileReference, InvalidFileReference

router = APIRouter(tags=["files"])


@router.post("/inspect", response_model=FileReference, summary="Parse a dataset URL")
def inspect_file(req: LocatorRequest):
    """
    Turn a submitted S3 / HTTP(S) / CMR concept URL into a file reference.

    Returns 400 for an empty URL or an unsupported scheme.
    """
    try:
        return FileReference.from_locator(req.locator)
    except InvalidFileReference as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
