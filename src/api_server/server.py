import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from fastapi import FastAPI, Depends, Query, Path, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api_server import models
from api_server.persistence import SqlAlchemyLoanRepository
from cache import CachingLoanRepository, CacheMetrics, get_cache_metrics, get_redis_client
from config import get_app_config, get_cache_config
from loans import (
    CreateLoanCommand,
    InvalidDomainData,
    InvalidStateTransition,
    LoanApplicationService,
    ResourceNotFound,
)
from logging_config import configure_logging, new_correlation_id, reset_correlation_id, set_correlation_id

app_config = get_app_config()
configure_logging(app_config.log_level, app_config.json_logs)
logger = logging.getLogger(__name__)

# Create FastAPI instance with metadata
app = FastAPI(
    title="Loan Application API",
    description="Lifecycle management of personal loan applications",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in app_config.cors_origins.split(",") if o.strip()] or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    correlation_id = request.headers.get("x-correlation-id") or new_correlation_id()
    token = set_correlation_id(correlation_id)
    try:
        response = await call_next(request)
    except Exception:
        # Logged here while the correlation id is still bound
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        raise
    finally:
        reset_correlation_id(token)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


# =============================================================================
# WIRING
# =============================================================================

_loan_service = None


def build_loan_service() -> LoanApplicationService:
    """Store adapter, wrapped by the Redis cache unless caching is disabled."""
    db = models.Database()
    db.create_all()
    repository = SqlAlchemyLoanRepository(db)
    cache_config = get_cache_config()
    if cache_config.enabled:
        repository = CachingLoanRepository(repository, get_redis_client(), ttl=cache_config.loan_ttl)
    return LoanApplicationService(repository)


def get_loan_service() -> LoanApplicationService:
    global _loan_service
    if _loan_service is None:
        _loan_service = build_loan_service()
    return _loan_service


def get_cache_client():
    return get_redis_client()


def get_metrics() -> CacheMetrics:
    return get_cache_metrics()


# =============================================================================
# ERROR HANDLING
# =============================================================================

def _error_response(status_code: int, title: str, detail: str, validation_errors: Optional[dict] = None) -> JSONResponse:
    body = models.ApiErrorResponse(
        title=title,
        status=status_code,
        detail=detail,
        timestamp=datetime.now(tz=timezone.utc),
        validation_errors=validation_errors,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(InvalidDomainData)
@app.exception_handler(InvalidStateTransition)
async def business_rule_handler(request: Request, exc: Exception):
    return _error_response(status.HTTP_400_BAD_REQUEST, "Business Rule Violation", str(exc))


@app.exception_handler(ResourceNotFound)
async def not_found_handler(request: Request, exc: ResourceNotFound):
    return _error_response(status.HTTP_404_NOT_FOUND, "Resource Not Found", str(exc))


@app.exception_handler(RequestValidationError)
async def validation_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        errors[field or "request"] = err.get("msg", "invalid")
    return _error_response(status.HTTP_400_BAD_REQUEST, "Validation Failed", "The provided data is invalid", errors)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error", "An unexpected error occurred")


# =============================================================================
# CORE/HEALTH ENDPOINTS
# =============================================================================

@app.get("/health", response_model=models.HealthResponse)
def health_check(cache=Depends(get_cache_client)):
    """
    Health check endpoint. The cache is reported but never makes the service unhealthy.
    """
    return models.HealthResponse(
        status="healthy",
        service="loan-application-api",
        cache="up" if cache.ping() else "unavailable",
    )


@app.get("/cache/metrics", response_model=models.CacheMetricsResponse)
def get_cache_metrics_endpoint(metrics: CacheMetrics = Depends(get_metrics)):
    """Get cache hit/miss/error counters since process start"""
    return metrics.get_current_stats()


# =============================================================================
# LOAN APPLICATION ENDPOINTS
# =============================================================================

@app.post("/api/v1/loans", response_model=models.LoanResponse, status_code=201)
def create_loan(request: models.CreateLoanRequest, service: LoanApplicationService = Depends(get_loan_service)):
    """Submit a new loan application; it starts in PENDING"""
    loan = service.create_loan(CreateLoanCommand(
        applicant_name=request.applicant_name,
        amount=request.amount,
        currency=request.currency,
        applicant_identity=request.identity_document,
    ))
    return models.LoanResponse.from_domain(loan)


@app.get("/api/v1/loans", response_model=List[models.LoanResponse])
def list_loans(service: LoanApplicationService = Depends(get_loan_service)):
    """List every loan application"""
    return [models.LoanResponse.from_domain(loan) for loan in service.list_loans()]


@app.get("/api/v1/loans/search/criteria", response_model=List[models.LoanResponse])
def search_loans(
    applicant_identity: Optional[str] = Query(None, description="DNI/NIE, exact match"),
    start_date: Optional[datetime] = Query(None, description="Minimum creation date, e.g. 2026-02-07T17:51:37Z"),
    end_date: Optional[datetime] = Query(None, description="Maximum creation date, inclusive to the second"),
    service: LoanApplicationService = Depends(get_loan_service),
):
    """Filter loans by applicant identity and/or creation date range"""
    loans = service.search_loans(applicant_identity, start_date, end_date)
    return [models.LoanResponse.from_domain(loan) for loan in loans]


@app.get("/api/v1/loans/search/{applicant_identity}", response_model=List[models.LoanResponse])
def search_by_identity(
    applicant_identity: str = Path(..., description="Spanish National Identity Document (DNI or NIE)"),
    service: LoanApplicationService = Depends(get_loan_service),
):
    """All loan applications of one applicant"""
    loans = service.get_loans_by_identity(applicant_identity)
    return [models.LoanResponse.from_domain(loan) for loan in loans]


@app.get("/api/v1/loans/{loan_id}", response_model=models.LoanResponse)
def get_loan(loan_id: UUID, service: LoanApplicationService = Depends(get_loan_service)):
    """Current state of a loan application"""
    return models.LoanResponse.from_domain(service.get_loan(loan_id))


@app.get("/api/v1/loans/{loan_id}/history", response_model=List[models.LoanResponse])
def get_loan_history(loan_id: UUID, service: LoanApplicationService = Depends(get_loan_service)):
    """Chronological list of every stored revision of a loan application"""
    return [models.LoanResponse.from_domain(loan) for loan in service.get_loan_history(loan_id)]


@app.patch("/api/v1/loans/{loan_id}/status", status_code=204)
def update_loan_status(
    loan_id: UUID,
    request: models.StatusUpdateRequest,
    service: LoanApplicationService = Depends(get_loan_service),
):
    """Permitted flows: PENDING -> APPROVED/REJECTED, APPROVED -> CANCELLED"""
    service.update_status(loan_id, request.status)
    return Response(status_code=204)


@app.delete("/api/v1/loans/{loan_id}", status_code=204)
def delete_loan(loan_id: UUID, service: LoanApplicationService = Depends(get_loan_service)):
    """Hard-delete a loan application; its history is kept"""
    service.delete_loan(loan_id)
    return Response(status_code=204)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
