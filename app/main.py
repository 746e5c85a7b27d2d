from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import availability, bookings, payments
from app.core.config import RESERVATION_SWEEP_SECONDS
from app.core.errors import register_error_handlers
from app.jobs.reservation_sweep import run_reservation_sweep_job

# ⭐ Import logging system
from app.core.logging_config import get_logger

logger = get_logger()

_scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    _scheduler.add_job(
        run_reservation_sweep_job,
        "interval",
        seconds=RESERVATION_SWEEP_SECONDS,
        id="reservation_sweep",
        max_instances=1,
        coalesce=True,
    )
    _scheduler.start()
    app.state.scheduler = _scheduler
    logger.info(f"Reservation sweep scheduled every {RESERVATION_SWEEP_SECONDS}s")
    yield
    _scheduler.shutdown(wait=False)


def create_app(start_scheduler: bool = True) -> FastAPI:
    app = FastAPI(
        title="Studio Booking API",
        version="1.0.0",
        description="Slot scheduling, reservation holds and payment reconciliation for studio bookings",
        lifespan=lifespan if start_scheduler else None,
    )

    # ⭐ Request Logging Middleware
    @app.middleware("http")
    async def log_requests(request, call_next):
        logger.info(f"REQUEST: {request.method} {request.url}")

        try:
            response = await call_next(request)
            logger.info(f"RESPONSE: {response.status_code} {request.url}")
            return response

        except Exception as e:
            logger.error(f"ERROR: {request.url} -> {str(e)}")
            raise e

    # ⭐ CORS (important for frontend)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(availability.router)
    app.include_router(bookings.router)
    app.include_router(payments.router)

    @app.get("/", tags=["Root"])
    def root():
        return {"message": "Backend running successfully"}

    return app


app = create_app()
