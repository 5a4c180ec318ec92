from officeshare.core.config import Settings, _extensions_env, settings


def test_extensions_default_when_unset(monkeypatch):
    monkeypatch.delenv("SHARE_EXTS", raising=False)
    assert _extensions_env("SHARE_EXTS", {".pdf"}) == {".pdf"}


def test_extensions_from_environment(monkeypatch):
    monkeypatch.setenv("SHARE_EXTS", "PDF, .docx,,png ")
    assert _extensions_env("SHARE_EXTS", {".zip"}) == {".pdf", ".docx", ".png"}


def test_link_limits_are_consistent():
    assert 1 <= Settings.DEFAULT_EXPIRES_HOURS <= settings.MAX_EXPIRES_HOURS
    assert 1 <= Settings.DEFAULT_MAX_VIEWS <= settings.MAX_MAX_VIEWS
    assert ".pdf" in settings.ALLOWED_EXTENSIONS
