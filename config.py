import platformdirs
from pathlib import Path

APP_NAME   = "TranscribeRelay"
APP_AUTHOR = "TranscribeRelay"

BASE_DIR    = Path(platformdirs.user_data_dir(APP_NAME, APP_AUTHOR))
UPLOAD_DIR  = BASE_DIR / "uploads"                        # Temp audio, deleted per job
PUBLIC_DIR  = Path(__file__).resolve().parent / "public"  # Optional static client

HOST         = "0.0.0.0"
FASTAPI_PORT = 3000

# Whisper-style inference server the relay forwards uploads to
BACKEND_URL      = "http://127.0.0.1:8080/inference"
DEFAULT_LANGUAGE = "auto"

# Client liveness: a job is abandoned once its status hasn't been polled for
# longer than the threshold. The monitor checks every interval while processing.
LIVENESS_THRESHOLD_SECONDS = 20.0
HEARTBEAT_INTERVAL_SECONDS = 5.0
