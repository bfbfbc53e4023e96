"""Router para controle da mineração."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from minerador.api.deps import get_controller
from minerador.schemas.mining import (
    MiningCriteria,
    MiningStartResponse,
    MiningStatus,
)
from minerador.services.mining_service import MiningController

router = APIRouter(prefix="/mining", tags=["Mineração"])


@router.post("/start", response_model=MiningStartResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_mining(
    criteria: MiningCriteria = MiningCriteria(),
    target: int | None = Query(None, ge=1, le=500, description="Quantidade de empresas desejada"),
    controller: MiningController = Depends(get_controller),
):
    """Inicia uma mineração em background."""
    if not controller.start(criteria, target):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Já existe uma mineração em andamento.",
        )
    return MiningStartResponse(
        started=True,
        state=controller.state,
        target=controller.progress.target,
    )


@router.post("/stop", response_model=MiningStatus)
async def stop_mining(controller: MiningController = Depends(get_controller)):
    """Solicita a parada da mineração em andamento."""
    controller.stop()
    return controller.status()


@router.get("/status", response_model=MiningStatus)
async def get_status(controller: MiningController = Depends(get_controller)):
    """Estado, progresso e empresas encontradas até agora."""
    return controller.status()


@router.delete("/results", response_model=MiningStatus)
async def clear_results(controller: MiningController = Depends(get_controller)):
    """Descarta os resultados da última mineração."""
    if not controller.clear_results():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Pare a mineração antes de limpar os resultados.",
        )
    return controller.status()
