from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from skilltracker.api.routes import router
from skilltracker.core.config import get_settings
from skilltracker.core.logging import configure_logging
from skilltracker.services.errors import SkillTrackerError

configure_logging()

app = FastAPI(title="GITADORA Skill Tracker API")

# the upload bookmarklet posts from the game site with credentials
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=get_settings().cors_allow_origin_regex,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(SkillTrackerError)
async def skilltracker_error_handler(request: Request, exc: SkillTrackerError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


app.include_router(router)
