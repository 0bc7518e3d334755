import os
from pathlib import Path

def _load_env_files() -> None:
    """
    Load environment variables from .env (and .env.local if present).
    - .env is the primary runtime file (checked in .gitignore)
    - .env.local is a template/example; also read if present to ease local dev
    Values already present in the process environment are not overridden.
    Supported format: KEY=VALUE with optional quotes; lines starting with '#' are ignored.
    """
    for fname in (".env", ".env.local"):
        p = Path(fname)
        if not p.exists():
            continue
        for raw in p.read_text(encoding="utf-8").splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[7:].strip()
            if "=" not in line:
                continue
            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = val


# Load .env/.env.local before reading configuration values
_load_env_files()

# Keystone credentials (standard OpenStack RC variable names; no secrets in source)
OS_AUTH_URL = os.getenv("OS_AUTH_URL", "http://localhost:5000/v3")
OS_USERNAME = os.getenv("OS_USERNAME", "admin")
OS_PASSWORD = os.getenv("OS_PASSWORD", "")
OS_USER_DOMAIN_NAME = os.getenv("OS_USER_DOMAIN_NAME", "Default")
OS_PROJECT_NAME = os.getenv("OS_PROJECT_NAME", "admin")
OS_PROJECT_DOMAIN_NAME = os.getenv("OS_PROJECT_DOMAIN_NAME", "Default")
OS_INTERFACE = os.getenv("OS_INTERFACE", "public")
# os-services enable/disable with a host/binary body was removed in 2.53
OS_COMPUTE_API_VERSION = os.getenv("OS_COMPUTE_API_VERSION", "2.1")

# Node identity; empty means socket.gethostname()
NODE_HOSTNAME = os.getenv("NODE_HOSTNAME", "")
NOVA_COMPUTE_BINARY = os.getenv("NOVA_COMPUTE_BINARY", "nova-compute")

# Retry budgets and timing
RETRY_NUM = int(os.getenv("RETRY_NUM", "3"))
BACKOFF_STEP_SEC = float(os.getenv("BACKOFF_STEP_SEC", "10"))
DRAIN_TIMEOUT_MIN = float(os.getenv("DRAIN_TIMEOUT_MIN", "30"))
HTTP_TIMEOUT_SEC = float(os.getenv("HTTP_TIMEOUT_SEC", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = Path(os.getenv("LOG_FILE", "nova_drain.log"))
