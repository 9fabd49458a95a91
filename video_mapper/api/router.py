from fastapi import APIRouter, Request, Response
from .schemas import HealthResult

router = APIRouter()

NO_CACHE = {"Cache-Control": "no-cache, no-store, must-revalidate"}


@router.get("/__health", response_model=HealthResult, response_model_exclude_none=True)
async def health(request: Request, response: Response):
    response.headers.update(NO_CACHE)
    return await request.app.state.health_check.health()


@router.get("/__gtg")
def gtg(request: Request):
    # Sync on purpose: FastAPI runs it in the threadpool, off the event loop
    if request.app.state.health_check.gtg():
        return Response(status_code=200, headers=NO_CACHE)
    return Response(status_code=503, headers=NO_CACHE)
