# API Routes module
from minerador.api.routes.mining import router as mining_router
from minerador.api.routes.cnpj import router as cnpj_router
from minerador.api.routes.cache import router as cache_router
