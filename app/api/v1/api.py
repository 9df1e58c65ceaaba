from fastapi import APIRouter
from app.api.v1.endpoints.salary import salaries

api_router = APIRouter()

# Salary routes
api_router.include_router(salaries.router, prefix="/salaries", tags=["Salary"])
