from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from uploader.models.outcome import ErrorResponse, UploadResponse

router = APIRouter(tags=["upload"])

@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def upload(request: Request):
    outcome = await request.app.state.pipeline.process(request)
    return JSONResponse(outcome.body(), status_code=outcome.status_code)
