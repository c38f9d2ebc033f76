"""FastAPI application exposing each pipeline function as a POST route.

Endpoints:
- GET /health - Health check with provider configuration state
- POST /functions/<name> - One route per pipeline function

Every route returns the service's JSON response. Rejected requests come
back as ``{"error": message}`` with the status carried by the raised
``PipelineError``.

Example:
    uvicorn lead_pipeline.api.app:app --host 0.0.0.0 --port 8080
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..analytics import ScraperAnalytics
from ..automation import AutoNurture, LeadWebhookTrigger
from ..config import config
from ..enrichment import (
    ContactPageExtractor,
    CsvEnricher,
    DataWaterfallEnricher,
    LeadDeduplicator,
    LeadEnricher,
    LeadValidator,
    StaleLeadReEnricher,
    TechnographicsEnricher,
)
from ..errors import PipelineError, ValidationFailed
from ..integrations.registry import ProviderClients
from ..models import close_database
from ..orchestrator import LeadPipeline, PipelineOptions, PipelineStep
from ..repository import LeadRepository
from ..scoring import CompositeLeadScorer, IntentSignalDetector, LeadScorer
from ..scoring.composite import ScoringCriteria
from .auth import Caller, require_admin, require_cron_or_user, require_user
from .dependencies import get_clients, get_repository
from .schemas import (
    AnalyticsRequest,
    AutoNurtureRequest,
    CompositeScoringRequest,
    CsvEnrichRequest,
    DedupeRequest,
    LeadIdsRequest,
    LeadSelection,
    PipelineRunRequest,
    ReEnrichStaleRequest,
    ScoreLeadRequest,
    TriggerWebhookRequest,
    ValidateLeadRequest,
    WaterfallRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions")


@router.post("/csv-enrich")
async def csv_enrich(
    body: CsvEnrichRequest,
    caller: Caller = Depends(require_user),
    clients: ProviderClients = Depends(get_clients),
) -> dict[str, Any]:
    rows = [row.model_dump() for row in body.rows] if body.rows else None
    enricher = CsvEnricher(clients.apollo, clients.hunter, clients.llm)
    return await enricher.run(rows, body.row_index)


@router.post("/technographics-enrichment")
async def technographics_enrichment(
    body: LeadIdsRequest,
    caller: Caller = Depends(require_user),
    repository: LeadRepository = Depends(get_repository),
    clients: ProviderClients = Depends(get_clients),
) -> dict[str, Any]:
    return await TechnographicsEnricher(repository, clients.firecrawl).run(body.lead_ids)


@router.post("/contact-page-extractor")
async def contact_page_extractor(
    body: LeadIdsRequest,
    caller: Caller = Depends(require_user),
    repository: LeadRepository = Depends(get_repository),
    clients: ProviderClients = Depends(get_clients),
) -> dict[str, Any]:
    return await ContactPageExtractor(repository, clients.firecrawl).run(body.lead_ids)


@router.post("/validate-lead")
async def validate_lead(
    body: ValidateLeadRequest,
    caller: Caller = Depends(require_admin),
    repository: LeadRepository = Depends(get_repository),
    clients: ProviderClients = Depends(get_clients),
) -> dict[str, Any]:
    validator = LeadValidator(repository, clients.dns, clients.zerobounce, clients.twilio)
    return await validator.run(
        body.lead_id, body.lead_ids, body.validate_email, body.validate_phone
    )


@router.post("/detect-intent-signals")
async def detect_intent_signals(
    body: LeadSelection,
    caller: Caller = Depends(require_user),
    repository: LeadRepository = Depends(get_repository),
) -> dict[str, Any]:
    return await IntentSignalDetector(repository).run(body.lead_id, body.lead_ids)


@router.post("/score-lead")
async def score_lead(
    body: ScoreLeadRequest,
    caller: Caller = Depends(require_user),
    repository: LeadRepository = Depends(get_repository),
    clients: ProviderClients = Depends(get_clients),
) -> dict[str, Any]:
    scorer = LeadScorer(repository, clients.llm)
    return await scorer.run(body.lead_id, caller.user_id, caller.is_admin)


@router.post("/scraper-analytics")
async def scraper_analytics(
    body: AnalyticsRequest,
    caller: Caller = Depends(require_user),
    repository: LeadRepository = Depends(get_repository),
) -> dict[str, Any]:
    return await ScraperAnalytics(repository).run(body.start_date, body.end_date, body.source_type)


@router.post("/auto-nurture-alerts")
async def auto_nurture_alerts(
    body: AutoNurtureRequest,
    caller: Caller = Depends(require_cron_or_user),
    repository: LeadRepository = Depends(get_repository),
    clients: ProviderClients = Depends(get_clients),
) -> dict[str, Any]:
    return await AutoNurture(repository, clients.webhooks).run(body.mode)


@router.post("/trigger-lead-webhook")
async def trigger_lead_webhook(
    body: TriggerWebhookRequest,
    caller: Caller = Depends(require_user),
    repository: LeadRepository = Depends(get_repository),
    clients: ProviderClients = Depends(get_clients),
) -> dict[str, Any]:
    trigger = LeadWebhookTrigger(repository, clients.webhooks)
    return await trigger.run(
        body.lead_id,
        body.lead_ids,
        event_type=body.event_type,
        trigger_reason=body.trigger_reason,
        webhook_url=body.webhook_url,
    )


@router.post("/data-waterfall-enrich")
async def data_waterfall_enrich(
    body: WaterfallRequest,
    caller: Caller = Depends(require_user),
    clients: ProviderClients = Depends(get_clients),
) -> dict[str, Any]:
    waterfall = DataWaterfallEnricher(
        clients.apollo,
        clients.hunter,
        clients.pdl,
        clients.clearbit,
        clients.zerobounce,
        clients.twilio,
    )
    return await waterfall.run(body.domain, body.name, body.company_name, body.target_titles)


@router.post("/enrich-lead")
async def enrich_lead(
    body: LeadSelection,
    caller: Caller = Depends(require_user),
    repository: LeadRepository = Depends(get_repository),
    clients: ProviderClients = Depends(get_clients),
) -> dict[str, Any]:
    enricher = LeadEnricher(repository, clients.apollo, clients.hunter, clients.clearbit)
    return await enricher.run(body.lead_id, body.lead_ids)


@router.post("/re-enrich-stale")
async def re_enrich_stale(
    body: ReEnrichStaleRequest,
    caller: Caller = Depends(require_cron_or_user),
    repository: LeadRepository = Depends(get_repository),
    clients: ProviderClients = Depends(get_clients),
) -> dict[str, Any]:
    enricher = LeadEnricher(repository, clients.apollo, clients.hunter, clients.clearbit)
    technographics = (
        TechnographicsEnricher(repository, clients.firecrawl) if clients.firecrawl else None
    )
    service = StaleLeadReEnricher(repository, enricher, technographics)
    return await service.run(body.threshold_days, body.max_leads, body.lead_ids)


@router.post("/dedupe-leads")
async def dedupe_leads(
    body: DedupeRequest,
    caller: Caller = Depends(require_admin),
    repository: LeadRepository = Depends(get_repository),
) -> dict[str, Any]:
    return await LeadDeduplicator(repository).run(body.job_id, body.lead_ids, body.auto_merge)


@router.post("/composite-lead-scoring")
async def composite_lead_scoring(
    body: CompositeScoringRequest,
    caller: Caller = Depends(require_user),
    repository: LeadRepository = Depends(get_repository),
) -> dict[str, Any]:
    criteria = body.criteria.model_dump() if body.criteria else None
    return await CompositeLeadScorer(repository).run(body.lead_ids, criteria)


@router.post("/run-pipeline")
async def run_pipeline(
    body: PipelineRunRequest,
    caller: Caller = Depends(require_cron_or_user),
    repository: LeadRepository = Depends(get_repository),
    clients: ProviderClients = Depends(get_clients),
) -> dict[str, Any]:
    if not body.lead_ids:
        raise ValidationFailed("lead_ids required")
    try:
        skip = {PipelineStep(step) for step in body.skip_steps}
    except ValueError as e:
        raise ValidationFailed(str(e)) from e

    options = PipelineOptions.from_config(
        skip_steps=skip,
        criteria=ScoringCriteria.from_dict(body.criteria.model_dump()) if body.criteria else None,
    )
    run = await LeadPipeline(repository, clients, options).run(body.lead_ids)
    return run.to_dict()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    logger.info("Lead pipeline API starting (env=%s)", config.APP_ENV)
    if not config.JWT_SECRET:
        logger.warning("JWT_SECRET not set - user authentication will fail")
    if not config.enrichment_providers():
        logger.warning("No enrichment providers configured")

    if getattr(app.state, "clients", None) is None:
        app.state.clients = ProviderClients.from_config(config)
    logger.info("Lead pipeline API ready")
    yield

    logger.info("Lead pipeline API shutting down...")
    app.state.clients.close()
    await close_database()
    logger.info("Lead pipeline API shutdown complete")


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request body") if errors else "Invalid request body"
    return JSONResponse(status_code=400, content={"error": message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Lead Pipeline",
        description="Lead enrichment, validation and scoring functions",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(PipelineError, pipeline_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        """Health check with the configured providers."""
        return {
            "status": "healthy",
            "service": "lead-pipeline",
            "version": __version__,
            "providers": config.enrichment_providers(),
            "firecrawl_configured": config.has_firecrawl,
            "llm_configured": config.has_llm,
        }

    app.include_router(router)
    return app


app = create_app()
