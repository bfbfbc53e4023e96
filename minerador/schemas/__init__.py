# Schemas module
from minerador.schemas.cnpj import (
    Company,
    CnpjValidation,
    SocioInfo,
    TrustScoreBreakdown,
)
from minerador.schemas.cache import (
    BlacklistEntry,
    BlacklistReason,
    CacheKind,
    CacheStats,
    ClaimRequest,
    UsageResponse,
    UsedEntry,
    WhitelistEntry,
)
from minerador.schemas.mining import (
    MiningCriteria,
    MiningProgress,
    MiningStartResponse,
    MiningState,
    MiningStatus,
    SizeTier,
)
