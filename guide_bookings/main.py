from fastapi import FastAPI
from tortoise.contrib.fastapi import register_tortoise

from guide_bookings import settings
from guide_bookings.errors import register_error_handlers
from guide_bookings.routers.booking import router as booking_router


def create_app() -> FastAPI:
    app = FastAPI(title="guide-bookings-ms")
    app.include_router(booking_router)
    register_error_handlers(app)
    register_tortoise(
        app,
        db_url=settings.db_url,
        modules=settings.TORTOISE_MODULES,
        generate_schemas=True,
        add_exception_handlers=True,
    )
    return app


app = create_app()
