from fastapi import APIRouter

from helpdesk.api.admin.reports import router as reports_router
from helpdesk.api.admin.tickets import router as tickets_router
from helpdesk.api.admin.users import router as users_router

router = APIRouter()
router.include_router(tickets_router)
router.include_router(users_router)
router.include_router(reports_router)
