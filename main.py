import logging
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from rich.logging import RichHandler

from api.router import api_router
from core.errors import NotFoundError, SubmissionError
import core.globals
from config import BACKEND_URL, FASTAPI_PORT, HOST, PUBLIC_DIR, UPLOAD_DIR

# Basic logging setup
FORMAT = "%(message)s"
logging.basicConfig(
    level="INFO", format=FORMAT, datefmt="[%X]", handlers=[RichHandler()]
)
logger = logging.getLogger(__name__)


app = FastAPI(title="TranscribeRelay API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(SubmissionError)
async def submission_error_handler(request: Request, exc: SubmissionError):
    return JSONResponse(status_code=400, content={"error": str(exc)})

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


# Static client, if one is shipped next to the server
if PUBLIC_DIR.is_dir():
    app.mount("/", StaticFiles(directory=PUBLIC_DIR, html=True), name="public")

@app.on_event("startup")
async def startup_event():
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    await core.globals.init_globals().start()
    logger.info(f"Forwarding to inference backend at {BACKEND_URL}")

@app.on_event("shutdown")
async def shutdown_event():
    if core.globals.job_manager:
        await core.globals.job_manager.stop()


def run_server():
    logger.info(f"Relay server running on http://{HOST}:{FASTAPI_PORT}")
    uvicorn.run(app, host=HOST, port=FASTAPI_PORT, log_level="warning")

if __name__ == "__main__":
    run_server()
