from __future__ import annotations

import logging
from typing import Optional

import anyio
from fastapi import APIRouter, Depends, Request, Response
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from expertscope.schemas import AnalyzeRequest, AnalyzeResponse, MonthlyUsageOut, UsageRecordOut, UsageSummary
from expertscope.services.analysis_service import AnalysisOutcome, AnalysisService
from expertscope.services.cost_accountant import CostAccountant
from expertscope.utils.audit import JsonlAuditor


logger = logging.getLogger(__name__)

router = APIRouter()

SUCCESS_MESSAGE = "AI 분석이 완료되었습니다."
DEGRADED_MESSAGE = "AI 서비스 일시 장애로 기본 분석을 제공합니다."

ANALYZE_PATHS = ("/api/ai-analyze", "/api/ai/analyze")


def get_analysis_service(request: Request) -> AnalysisService:
	return request.app.state.analysis_service


def get_cost_accountant(request: Request) -> CostAccountant:
	return request.app.state.cost_accountant


def get_auditor(request: Request) -> JsonlAuditor:
	return request.app.state.auditor


def _input_error(message: str) -> JSONResponse:
	return JSONResponse(status_code=400, content={"success": False, "error": message})


async def analyze_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
	"""Body errors on the analysis routes use the 400 envelope instead of FastAPI's 422."""
	if request.url.path not in ANALYZE_PATHS:
		return await request_validation_exception_handler(request, exc)
	errors = exc.errors()
	logger.info("Rejected analysis request: %s", errors[:3])
	if any(e.get("type") == "json_invalid" for e in errors):
		return _input_error("Invalid JSON body")
	return _input_error("Interview data must be an object of answers")


@router.options("/ai-analyze")
@router.options("/ai/analyze")
async def analyze_cors_options() -> Response:
	headers = {
		"Access-Control-Allow-Origin": "*",
		"Access-Control-Allow-Headers": "Content-Type",
		"Access-Control-Allow-Methods": "POST, OPTIONS",
		"Access-Control-Max-Age": "3600",
	}
	return Response(status_code=204, headers=headers)


@router.post("/ai-analyze", response_model=AnalyzeResponse)
@router.post("/ai/analyze", response_model=AnalyzeResponse)
async def analyze(
	payload: Optional[AnalyzeRequest] = None,
	service: AnalysisService = Depends(get_analysis_service),
	auditor: JsonlAuditor = Depends(get_auditor),
):
	answers = payload.resolve_answers() if payload is not None else None
	if answers is None:
		return _input_error("No interview data provided")

	logger.info("Analysis requested for answer keys: %s", sorted(answers))
	try:
		outcome = await service.run(answers)
	except Exception:
		# run() absorbs provider and parse errors; anything here is a bug
		logger.exception("Analysis pipeline crashed; serving synthetic analysis")
		outcome = AnalysisOutcome(service.fallback.generate(answers), None, degraded=True)

	await auditor.log({
		"type": "analysis",
		"provider": outcome.provider,
		"degraded": outcome.degraded,
		"answer_keys": sorted(answers),
		"expertise_score": outcome.result.expertise_score,
	})

	message = DEGRADED_MESSAGE if outcome.degraded else SUCCESS_MESSAGE
	return AnalyzeResponse(success=True, data=outcome.result, message=message)


@router.get("/usage", response_model=UsageSummary)
async def usage_summary(accountant: CostAccountant = Depends(get_cost_accountant)):
	# File-backed stores read from disk
	return await anyio.to_thread.run_sync(_build_usage_summary, accountant)


def _build_usage_summary(accountant: CostAccountant) -> UsageSummary:
	today = accountant.today_usage()
	today_out = None
	if today is not None:
		today_out = UsageRecordOut(
			date=accountant.today_key(),
			total_requests=today.total_requests,
			total_tokens=today.total_tokens,
			estimated_cost=round(today.estimated_cost, 6),
			model=today.model,
		)
	month = accountant.monthly_usage()
	return UsageSummary(
		today=today_out,
		month=MonthlyUsageOut(cost=round(month["cost"], 6), requests=month["requests"], tokens=month["tokens"]),
		daily_budget=accountant.daily_budget,
		monthly_budget=accountant.monthly_budget,
		recommendations=accountant.saving_recommendations(),
	)
