import logging
from typing import Dict

import uvicorn
from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .curriculum.payloads import describe_validation_errors
from .curriculum_routes import router as curriculum_router
from .errors import CurriculumValidationError
from .logging_config import configure_logging


configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title="Roll Model Curriculum Backend", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

settings_snapshot = get_settings()
logger.info("Backend starting with max recommendations: %d", settings_snapshot.max_recommendations)
logger.info("Debug endpoints enabled: %s", settings_snapshot.debug_endpoints)


@app.exception_handler(RequestValidationError)
async def invalid_request_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = CurriculumValidationError(describe_validation_errors(exc.errors()))
    logger.info("Rejected %s %s: %s", request.method, request.url.path, error.message)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": error.detail()})


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"status": "ok", "mode": "curriculum-engine"}


app.include_router(curriculum_router)


def run() -> None:
    settings = get_settings()
    logger.info("Starting curriculum backend on %s:%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
