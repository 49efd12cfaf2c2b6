import logging
import os
from functools import lru_cache

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from breastcheck.application.errors import InvalidImageError, ServerError
from breastcheck.application.use_cases import DiagnosisAssessmentUseCase
from breastcheck.domain.models import DiagnosisRequest
from breastcheck.infrastructure.llm.mistral_client import MistralLLMAdapter


logger = logging.getLogger(__name__)
router = APIRouter()

GENERIC_FAILURE = "An error occurred while processing your request. Please try again."


@lru_cache(maxsize=1)
def get_use_case() -> DiagnosisAssessmentUseCase:
    return DiagnosisAssessmentUseCase(llm=MistralLLMAdapter())


@router.post("/api/diagnosis")
def diagnosis_endpoint(
    payload: DiagnosisRequest,
    usecase: DiagnosisAssessmentUseCase = Depends(get_use_case),
):
    logger.info(
        "Assessment requested (age=%s, image=%s)",
        payload.patient.age,
        payload.medical_image is not None,
    )
    try:
        result = usecase.assess(payload)
    except InvalidImageError as e:
        return JSONResponse(
            status_code=400,
            content={
                "error": "INVALID_IMAGE",
                "message": e.message,
                "imageType": e.detected_type,
                "suggestions": e.suggestions,
            },
        )
    except ServerError as e:
        status = e.status if e.status in (401, 429) else 500
        return JSONResponse(status_code=status, content={"message": e.message if status != 500 else GENERIC_FAILURE})
    except Exception as e:
        logger.exception("Assessment failed: %s", e)
        return JSONResponse(status_code=500, content={"message": GENERIC_FAILURE})

    return JSONResponse(status_code=200, content=result.to_wire())


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ())[1:])
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    logger.info("Rejected malformed assessment request: %s", problems)
    return JSONResponse(
        status_code=400,
        content={"message": "Missing or invalid patient or symptoms data", "errors": problems},
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    message = "Method not allowed" if exc.status_code == 405 else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=exc.headers)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Breast Health Assessment API",
        description="Symptom and image intake forwarded to a language model for an educational risk assessment",
        version="1.0.0",
    )
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    uvicorn.run(app, host=os.environ.get("HOST", "0.0.0.0"), port=int(os.environ.get("PORT", "8000")))
