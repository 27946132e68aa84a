from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from expertscope.config import settings
from expertscope.utils.logging import configure_logging
from expertscope.utils.audit import JsonlAuditor
from expertscope.routers.analyze import analyze_validation_error, router as analyze_router
from expertscope.services.analysis_service import build_analysis_service, build_cost_accountant


configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
	# One outbound client per process; providers share it
	http = httpx.AsyncClient()
	accountant = build_cost_accountant(settings)
	app.state.cost_accountant = accountant
	app.state.analysis_service = build_analysis_service(settings, http, accountant)
	app.state.auditor = JsonlAuditor(settings.analytics_path)
	try:
		yield
	finally:
		await http.aclose()


app = FastAPI(title="Expert Analysis Backend", version="0.1.0", lifespan=lifespan)

# CORS
app.add_middleware(
	CORSMiddleware,
	allow_origins=settings.cors_allow_origins,
	# Wildcard origins cannot be combined with credentials
	allow_credentials=False if settings.cors_allow_origins == ["*"] else True,
	allow_methods=["POST", "GET", "OPTIONS"],
	allow_headers=["*"],
	max_age=3600,
)


@app.get("/health")
async def health(request: Request) -> JSONResponse:
	service = request.app.state.analysis_service
	return JSONResponse({
		"status": "ok",
		"version": app.version,
		"providers": service.provider_status(),
		"parser": service.parser.stats.as_dict(),
	})


# Routers
app.include_router(analyze_router, prefix="/api", tags=["analysis"])
app.add_exception_handler(RequestValidationError, analyze_validation_error)
