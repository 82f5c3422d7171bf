import os
import tempfile
from dotenv import load_dotenv

load_dotenv()

# Storage
DATA_DIR = os.getenv("DATA_DIR", os.path.join(os.getcwd(), "data"))
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(DATA_DIR, 'viewer.db')}")
SQL_ECHO = os.getenv("SQL_ECHO", "False") == "True"
SCREENSHOTS_DIR = os.getenv("SCREENSHOTS_DIR", os.path.join(DATA_DIR, "screenshots"))

# agent-browser CLI
AGENT_BROWSER_BIN = os.getenv("AGENT_BROWSER_BIN", "agent-browser")
COMMAND_TIMEOUT = float(os.getenv("COMMAND_TIMEOUT", "30"))
MAX_OUTPUT_BYTES = int(os.getenv("MAX_OUTPUT_BYTES", str(50 * 1024 * 1024)))
DIRECT_MAX_OUTPUT_BYTES = int(os.getenv("DIRECT_MAX_OUTPUT_BYTES", str(10 * 1024 * 1024)))
SCREENSHOT_TMP_DIR = os.getenv("SCREENSHOT_TMP_DIR", tempfile.gettempdir())

# Live state
ACTION_BUFFER_LIMIT = int(os.getenv("ACTION_BUFFER_LIMIT", "200"))
CLICK_SETTLE_DELAY = float(os.getenv("CLICK_SETTLE_DELAY", "0.5"))

# Natural language -> command translation (Anthropic-style messages endpoint)
NLP_API_URL = os.getenv("NLP_API_URL", "http://localhost:8080/v1/messages")
NLP_MODEL = os.getenv("NLP_MODEL", "gemini-2.5-flash")
NLP_TIMEOUT = float(os.getenv("NLP_TIMEOUT", "30"))

# Server
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3458"))
