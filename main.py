from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from datetime import datetime

from config.settings import get_settings
from models.request_models import GenerationRequest, StoryValidationRequest
from services.errors import FeatureGateDeniedError, QuotaExceededError
from services.story_service import StoryService

settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

for warning in settings.validate_settings():
    logger.warning("Settings: %s", warning)

app = FastAPI(
    title="Story Generation Server",
    description="Interactive story generation with validation, repair and tiered quotas",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

story_service = StoryService(settings=settings)


def require_internal_key(http_request: Request) -> None:
    api_key = http_request.headers.get("X-Internal-API-Key")
    if api_key != settings.INTERNAL_API_KEY:
        raise HTTPException(status_code=403, detail="Unauthorized internal API access")


@app.get("/")
async def root():
    return {
        "message": "Story Generation Server",
        "status": "healthy",
        "provider": story_service.provider.get_provider_name(),
        "timestamp": datetime.now().isoformat(),
        "version": "1.0.0",
        "endpoints": ["generate-story", "validate-story", "rate-limit/status", "health", "providers"]
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "current_provider": story_service.provider.get_provider_name(),
        "available_providers": settings.get_available_providers(),
        "storage_backend": story_service.storage.get_backend_name(),
        "total_requests": story_service.rate_limiter.get_total_requests(),
        "generation_stats": story_service.get_stats(),
        "timestamp": datetime.now().isoformat()
    }


@app.get("/providers")
async def get_providers_status():
    return {
        "current": story_service.provider.get_provider_name(),
        "available": settings.get_available_providers(),
        "settings": settings.get_current_provider_info()
    }


@app.get("/config")
async def get_config():
    return {
        "ai_provider": settings.AI_PROVIDER,
        "openai_configured": bool(settings.OPENAI_API_KEY),
        "gemini_configured": bool(settings.GEMINI_API_KEY),
        "daily_limits": settings.get_daily_limits(),
        "global_hourly_limit": settings.GLOBAL_HOURLY_LIMIT,
        "retry": {
            "max_retries": settings.MAX_RETRIES,
            "retry_delay_ms": settings.RETRY_DELAY_MS
        },
        "storage_backend": settings.STORAGE_BACKEND
    }


@app.post("/generate-story")
async def generate_story(request: GenerationRequest):
    try:
        outcome = await story_service.generate(request)
    except FeatureGateDeniedError as e:
        return JSONResponse(status_code=403, content={
            "error": "Premium feature required",
            "reason": e.reason,
            "upgrade_required": True
        })
    except QuotaExceededError as e:
        return JSONResponse(status_code=429, content={
            "error": str(e),
            "reset_time": e.reset_time.isoformat() if e.reset_time else None,
            "remaining_requests": e.remaining_requests
        })

    return JSONResponse(
        content=outcome.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers={
            "X-Tokens-Used": str(outcome.tokens_used),
            "X-Rate-Limit-Remaining": str(outcome.remaining_requests)
        }
    )


@app.post("/validate-story")
async def validate_story(validation_request: StoryValidationRequest, http_request: Request):
    require_internal_key(http_request)
    report = story_service.validate_story_payload(validation_request.story_data, validation_request.repair)
    return report.model_dump()


@app.get("/rate-limit/status")
async def get_rate_limit_status(identifier: str = Query(..., min_length=1, max_length=64),
                                is_guest: bool = Query(True)):
    result = await story_service.rate_limiter.get_rate_limit_status(identifier, is_guest)
    return result.model_dump(mode="json")


@app.get("/subscription/{user_id}")
async def get_subscription_status(user_id: str):
    status = await story_service.subscriptions.get_subscription_status(user_id)
    return status.model_dump(mode="json")


@app.get("/usage/stats")
async def get_usage_stats(http_request: Request,
                          timeframe: str = Query("day", pattern="^(hour|day|week)$")):
    require_internal_key(http_request)
    stats = await story_service.usage_tracker.get_usage_stats(timeframe)
    return stats.model_dump(mode="json")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={
        "error": exc.detail,
        "status_code": exc.status_code,
        "timestamp": datetime.now().isoformat()
    })


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={
        "error": "Internal server error",
        "status_code": 500,
        "timestamp": datetime.now().isoformat()
    })


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
