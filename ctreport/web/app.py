"""FastAPI application factory."""

from fastapi import FastAPI

app = FastAPI(title="CT Report", docs_url=None, redoc_url=None)

from ctreport.web.routes import api  # noqa: E402

app.include_router(api.router)
