import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.service import InventoryService
from db.database import create_db_and_tables, get_session_maker
from db.repository import SqlRepository
from routers.inventory import router as inventory_router
from routers.orders import router as orders_router
from routers.transfers import router as transfers_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables()
    app.state.service = InventoryService(SqlRepository(get_session_maker()))
    yield


app = FastAPI(
    title="Stock Ledger API",
    description="API for inventory stock, transfers between storage locations and sales orders",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(inventory_router, prefix="/inventory", tags=["inventory"])
app.include_router(transfers_router, prefix="/transfers", tags=["transfers"])
app.include_router(orders_router, prefix="/orders", tags=["orders"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
