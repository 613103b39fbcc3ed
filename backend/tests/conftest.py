import pytest

SUPABASE_ENV = (
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_SERVICE_KEY",
    "SUPABASE_ANON_KEY",
    "SUPABASE_SCHEMA",
    "SUPABASE_SESSIONS_TABLE",
    "SUPABASE_DOPE_CARDS_TABLE",
    "SUPABASE_DOPE_RANGES_TABLE",
)


@pytest.fixture(autouse=True)
def reset_env(monkeypatch: pytest.MonkeyPatch):
    for name in SUPABASE_ENV:
        monkeypatch.delenv(name, raising=False)
    yield
