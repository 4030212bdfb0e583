import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep developer credentials and overrides out of the tests."""
    for key in [
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "OPENAI_MODEL",
        "CONCIERGE_CHAT_MAX_TOKENS",
        "CONCIERGE_TOPICS_MAX_TOKENS",
        "CONCIERGE_TEMPERATURE",
        "CONCIERGE_CONNECT_TIMEOUT",
        "CONCIERGE_READ_TIMEOUT",
        "CONCIERGE_SILENT_UPSTREAM_ERRORS",
        "CONCIERGE_PERSONALITY",
        "CONCIERGE_CORS_ORIGINS",
        "CONCIERGE_LOG_LEVEL",
        "CONCIERGE_LLM_LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)
