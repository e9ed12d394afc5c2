"""API route definitions.

Defines FastAPI routes for the model router API.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from model_router import __version__
from model_router.api.schemas import (
    BatchGenerateRequestSchema,
    BatchGenerateResponseSchema,
    BatchItemSchema,
    CharacterInteractRequestSchema,
    CharacterInteractResponseSchema,
    GenerateRequestSchema,
    GenerateResponseSchema,
    HealthResponse,
    ModelInfoSchema,
    ModelListResponse,
    ProviderHealthSchema,
)
from model_router.errors import (
    AllProvidersExhaustedError,
    BatchTooLargeError,
    CharacterNotFoundError,
    NotFoundError,
    RouterError,
)
from model_router.providers.models import parse_selection
from model_router.router import ModelRouter
from shared.logging import get_logger
from shared.models import ErrorDetail, ErrorResponse

logger = get_logger(__name__)

router = APIRouter()

API_KEY_HEADER = "X-API-Key"

ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Provider or character not found"},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    503: {"model": ErrorResponse, "description": "All providers failed"},
}


def _detail(error: str, message: str, **context) -> dict:
    return ErrorDetail(error=error, message=message, **context).model_dump()


def get_model_router(request: Request) -> ModelRouter:
    """Dependency to get the model router from app state."""
    return request.app.state.model_router


def caller_identity(request: Request) -> str:
    """Rate limit key: the API key if sent, else the client address."""
    api_key = request.headers.get(API_KEY_HEADER)
    if api_key:
        return api_key
    if request.client:
        return request.client.host
    return "anonymous"


async def enforce_rate_limit(
    request: Request,
    model_router: ModelRouter = Depends(get_model_router),
) -> str:
    """Dependency admitting the caller or rejecting with 429.

    Returns:
        The caller identity.
    """
    caller_id = caller_identity(request)
    rejection = await model_router.admit(caller_id)
    if rejection is not None:
        raise HTTPException(
            status_code=429,
            detail=_detail(
                "rate_limit_exceeded",
                f"Rate limit exceeded: {rejection.limit} requests per window",
                **rejection.to_detail(),
            ),
            headers={"Retry-After": str(max(1, round(rejection.retry_after)))},
        )
    return caller_id


def error_to_http(e: RouterError) -> HTTPException:
    """Map a router error to an HTTP error response."""
    if isinstance(e, AllProvidersExhaustedError):
        return HTTPException(
            status_code=503,
            detail=_detail("all_providers_failed", str(e), **e.to_detail()),
        )
    if isinstance(e, CharacterNotFoundError):
        return HTTPException(
            status_code=404,
            detail=_detail("character_not_found", str(e)),
        )
    if isinstance(e, NotFoundError):
        return HTTPException(
            status_code=404,
            detail=_detail("provider_not_found", str(e)),
        )
    if isinstance(e, BatchTooLargeError):
        return HTTPException(
            status_code=400,
            detail=_detail("batch_too_large", str(e), size=e.size, limit=e.limit),
        )
    logger.error(f"Unmapped router error: {e}")
    return HTTPException(
        status_code=500,
        detail=_detail("internal_error", "An unexpected error occurred"),
    )


def _error_detail(e: RouterError) -> dict:
    return error_to_http(e).detail


@router.get("/", summary="Service information")
async def root(model_router: ModelRouter = Depends(get_model_router)) -> dict:
    """Service name, version and endpoint listing."""
    return {
        "service": model_router.settings.app_name,
        "version": __version__,
        "providers": len(model_router.registry),
        "endpoints": {
            "generate": "POST /generate",
            "batch": "POST /batch/generate",
            "character": "POST /character/interact",
            "health": "GET /health",
            "models": "GET /models",
        },
    }


@router.post(
    "/generate",
    response_model=GenerateResponseSchema,
    responses=ERROR_RESPONSES,
    summary="Generate content",
    description="Generate content with the best available provider.",
)
async def generate(
    body: GenerateRequestSchema,
    caller_id: str = Depends(enforce_rate_limit),
    model_router: ModelRouter = Depends(get_model_router),
) -> GenerateResponseSchema:
    try:
        result = await model_router.generate(body.to_request(caller_id))
        return GenerateResponseSchema.from_result(result)

    except RouterError as e:
        raise error_to_http(e)


@router.post(
    "/character/interact",
    response_model=CharacterInteractResponseSchema,
    responses=ERROR_RESPONSES,
    summary="Talk to a character",
)
async def character_interact(
    body: CharacterInteractRequestSchema,
    caller_id: str = Depends(enforce_rate_limit),
    model_router: ModelRouter = Depends(get_model_router),
) -> CharacterInteractResponseSchema:
    """Generate a character's reply to a message."""
    try:
        profile, result = await model_router.interact(
            body.character,
            body.message,
            body.context,
            selection=parse_selection(body.model),
            caller_id=caller_id,
            **body.options.to_request_fields(),
        )
    except RouterError as e:
        raise error_to_http(e)

    return CharacterInteractResponseSchema(
        character=profile.speaker,
        response=result.content,
        model=result.model,
        provider=result.provider,
        usage=result.usage,
        response_time_ms=result.latency_ms,
        cached=result.cached,
        timestamp=result.timestamp,
    )


@router.post(
    "/batch/generate",
    response_model=BatchGenerateResponseSchema,
    responses={400: {"model": ErrorResponse, "description": "Batch too large"}, **ERROR_RESPONSES},
    summary="Generate content for several prompts",
)
async def batch_generate(
    body: BatchGenerateRequestSchema,
    caller_id: str = Depends(enforce_rate_limit),
    model_router: ModelRouter = Depends(get_model_router),
) -> BatchGenerateResponseSchema:
    """Run a batch of prompts; failures are reported per item."""
    try:
        outcomes = await model_router.batch_generate(body.to_requests(caller_id))
    except BatchTooLargeError as e:
        raise error_to_http(e)

    items = []
    for index, outcome in enumerate(outcomes):
        if isinstance(outcome, RouterError):
            items.append(
                BatchItemSchema(index=index, success=False, error=_error_detail(outcome))
            )
        else:
            items.append(
                BatchItemSchema(
                    index=index,
                    success=True,
                    result=GenerateResponseSchema.from_result(outcome),
                )
            )

    succeeded = sum(1 for item in items if item.success)
    return BatchGenerateResponseSchema(
        results=items,
        succeeded=succeeded,
        failed=len(items) - succeeded,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health_check(
    model_router: ModelRouter = Depends(get_model_router),
) -> HealthResponse:
    """Per-provider health as last observed by the health monitor."""
    status, states = model_router.get_health()
    return HealthResponse(
        status=status,
        version=__version__,
        models={
            name: ProviderHealthSchema(**state.model_dump())
            for name, state in states.items()
        },
    )


@router.get(
    "/models",
    response_model=ModelListResponse,
    summary="List providers",
)
async def list_models(
    model_router: ModelRouter = Depends(get_model_router),
) -> ModelListResponse:
    return ModelListResponse(
        models=[ModelInfoSchema.from_descriptor(d) for d in model_router.list_models()]
    )
