#!/usr/bin/env python3

import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from folio.routes import api
from folio.configs import OPTIONS, LOG_LEVEL
from folio.core.exceptions import FolioError
from folio.core.ratelimit import TokenBucketRateLimiter
from folio import __version__ as VERSION

logging.basicConfig(level=LOG_LEVEL.upper())
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Folio API",
    description="Folio: circulation for small libraries",
    version=VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.rate_limiter = TokenBucketRateLimiter()

@app.exception_handler(FolioError)
async def folio_error_handler(request: Request, exc: FolioError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = ", ".join(".".join(str(p) for p in err["loc"][1:]) or err["msg"]
                       for err in exc.errors())
    return JSONResponse(status_code=400, content={
        "success": False,
        "error": "validation",
        "message": f"Missing or invalid fields: {fields}",
    })

app.include_router(api.router, prefix="/v1/api")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("folio.app:app", **OPTIONS)
