from fastapi import APIRouter

from .memo import router as memo_router
from .memo_log import router as memo_log_router


router = APIRouter()

# 分割ルーター
router.include_router(memo_router)
router.include_router(memo_log_router)
