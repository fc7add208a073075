from fastapi import APIRouter

from pagebrief.api.page.routes import router as page_router

router = APIRouter()
router.include_router(page_router)
