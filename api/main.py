from fastapi import APIRouter
from api.routes import health, chat

app_router = APIRouter()

# Health stays at the root for load balancers; the widget talks to /api/chat
app_router.include_router(health.router)
app_router.include_router(chat.router, prefix="/api/chat", tags=["chat"])
