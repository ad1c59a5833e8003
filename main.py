from fastapi import FastAPI

from shared.config.database import engine, Base
from shared.observability import setup_observability

# IMPORTANT: import models so they register with Base
from services.auth_service import models as auth_models  # noqa: F401
from services.catalog_service import models as catalog_models  # noqa: F401
from services.fee_service import models as fee_models  # noqa: F401
from services.order_service import models as order_models  # noqa: F401
from services.delivery_service import models as delivery_models  # noqa: F401
from services.payment_service import models as payment_models  # noqa: F401

from services.auth_service.main import auth_app
from services.fee_service.main import fee_app
from services.order_service.main import order_app
from services.delivery_service.main import delivery_app
from services.payment_service.main import payment_app

app = FastAPI(title="FoodHub Cluster")

# Once, on the root app: mounted sub-apps share one metrics registry.
setup_observability(app, "foodhub")

@app.on_event("startup")
async def startup_event():
    # Sub-app startup hooks never run when mounted, so tables are created here.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

app.mount("/auth", auth_app)
app.mount("/fees", fee_app)
app.mount("/orders", order_app)
app.mount("/deliveries", delivery_app)
app.mount("/payments", payment_app)
