# FILE: main.py
"""
SiteSmith Backend - FastAPI Application
Version: 0.3.0

Features:
- Project lock: one generate/edit operation per project at a time
- Append-only build versions and conversation history per project
- Time-bounded generation/editing pipeline (OpenAI by default)
- Deterministic zip downloads of any build version

Run:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""
import logging
import os

from dotenv import load_dotenv

# Load .env FIRST before settings are read
load_dotenv()

from sitesmith.app import create_app
from sitesmith.config import load_settings

logging.basicConfig(
    level=os.getenv("SITESMITH_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

settings = load_settings()

if settings.database_url.startswith("sqlite:///./"):
    os.makedirs("data", exist_ok=True)

app = create_app(settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
