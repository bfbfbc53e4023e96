"""
Minerador CNPJ - Aplicação Principal FastAPI
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

from minerador.core.config import settings
from minerador.api.routes import mining_router, cnpj_router, cache_router
from minerador.services.container import build_services

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

logger.info("="*80)
logger.info("Minerador CNPJ - Inicializando aplicação")
logger.info(f"Ambiente: {settings.ENVIRONMENT}")
logger.info(f"Debug: {settings.DEBUG}")
logger.info(f"Provedor de registro: {settings.REGISTRY_PROVIDER}")
logger.info(f"CORS Origins: {settings.allowed_origins_list}")
logger.info("="*80)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Gerenciamento do ciclo de vida da aplicação"""
    # Startup
    logger.info("="*80)
    logger.info("[STARTUP] Iniciando Minerador CNPJ...")
    logger.info(f"[STARTUP] Versão: {settings.APP_VERSION}")

    try:
        services = await build_services(settings)
        app.state.services = services
        stats = await services.cache.initialize()
        logger.info(f"[STARTUP] ✓ Cache pronto: {stats.available} CNPJs disponíveis")
    except Exception as e:
        logger.error(f"[STARTUP] ✗ Erro ao inicializar serviços: {e}", exc_info=True)
        raise

    logger.info("[STARTUP] ✓ Aplicação iniciada com sucesso")
    logger.info("="*80)
    yield

    # Shutdown
    logger.info("="*80)
    logger.info("[SHUTDOWN] Encerrando aplicação...")
    await services.close()
    logger.info("[SHUTDOWN] ✓ Aplicação encerrada")
    logger.info("="*80)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## Minerador CNPJ

    Busca empresas ativas consultando APIs públicas de CNPJ em ritmo controlado.

    ### Funcionalidades:
    - ⛏️ Mineração em background com filtros (capital, UF, porte)
    - 🗃️ Cache whitelist / blacklist / usados, com espelho remoto opcional
    - 🔎 Consulta e validação avulsa de CNPJ
    - ⭐ Trust score de cada empresa encontrada
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Handlers de erro
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handler para erros de validação"""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Erro de validação",
            "errors": errors
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handler geral de exceções"""
    logger.error(f"Erro não tratado: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Erro interno do servidor",
            "message": str(exc) if settings.DEBUG else "Ocorreu um erro inesperado"
        }
    )


app.include_router(mining_router, prefix="/api/v1")
app.include_router(cnpj_router, prefix="/api/v1")
app.include_router(cache_router, prefix="/api/v1")


@app.get("/", tags=["Health"])
async def root():
    """Rota raiz"""
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Verificação de saúde da aplicação"""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT
    }
