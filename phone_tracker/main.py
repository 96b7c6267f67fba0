from fastapi import FastAPI
from phone_tracker.api.routes import router as api_router
from phone_tracker.context import create_context
from phone_tracker.utils import logger


def create_app(context=None):
    # create FastAPI instance
    app = FastAPI(title="Phone Tracker")
    app.state.context = context
    app.include_router(api_router)

    @app.on_event("startup")
    def on_startup():
        # tables are created while building the context
        if app.state.context is None:
            app.state.context = create_context()
        ctx = app.state.context
        ctx.job_manager.initialize_jobs()
        ctx.job_manager.start()
        logger.info("Phone tracker started")

    @app.on_event("shutdown")
    def on_shutdown():
        if app.state.context is not None:
            app.state.context.close()

    return app


app = create_app()
