import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from torquetrack.config import settings
from torquetrack.db import engine, init_db
from torquetrack.error_handlers import install_error_handlers
from torquetrack.routers import directory, inventory, orders, purchasing

logging.basicConfig(level=settings.log_level.upper(), format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db(engine)
    if settings.seed_demo_data:
        from torquetrack.seed_example import seed

        seed()
    logger.info('%s ready (tax %s%%, currency %s)', settings.shop_name, settings.default_tax_rate, settings.currency_symbol)
    yield


app = FastAPI(title='TorqueTrack Core', lifespan=lifespan)

install_error_handlers(app)

app.include_router(inventory.router)
app.include_router(purchasing.router)
app.include_router(orders.router)
app.include_router(directory.router)


@app.get('/health')
def health() -> dict:
    return {'status': 'ok', 'shop_name': settings.shop_name, 'currency_symbol': settings.currency_symbol}
