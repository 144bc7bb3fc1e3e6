import pytest

from outline_worker.config import Settings
from outline_worker.services import refine as svc


def _settings(**overrides) -> Settings:
    base = dict(deepseek_api_key="", provider="auto", ollama_base="http://ollama.local:11434/")
    base.update(overrides)
    return Settings(**base)


def test_auto_provider_prefers_deepseek_when_key_is_set():
    assert svc.selected_provider(_settings(deepseek_api_key="sk-x")) == "deepseek"
    assert svc.selected_provider(_settings()) == "ollama"
    assert svc.selected_provider(_settings(deepseek_api_key="sk-x", provider="Ollama")) == "ollama"


def test_deepseek_request_shape(monkeypatch):
    calls = []

    def fake_post(url, headers, data, timeout=120):
        calls.append((url, headers, data, timeout))
        return {"choices": [{"message": {"content": '  {"items": ["a"]}  '}}]}

    monkeypatch.setattr(svc, "_http_post", fake_post)
    settings = _settings(deepseek_api_key="sk-x", deepseek_base="https://api.example.com/", upstream_timeout=9)

    text = svc.generate_outline_text(settings, "my notes")

    assert text == '{"items": ["a"]}'
    url, headers, data, timeout = calls[0]
    assert url == "https://api.example.com/v1/chat/completions"
    assert headers["Authorization"] == "Bearer sk-x"
    assert data["model"] == "deepseek-chat"
    assert data["max_tokens"] == 1024
    assert data["messages"][0] == {"role": "system", "content": svc.SYSTEM_PROMPT}
    assert data["messages"][1]["content"].endswith("my notes")
    assert timeout == 9


def test_ollama_request_shape(monkeypatch):
    calls = []

    def fake_post(url, headers, data, timeout=120):
        calls.append((url, data))
        return {"response": "【开场白】hi\n"}

    monkeypatch.setattr(svc, "_http_post", fake_post)

    text = svc.generate_outline_text(_settings(), "notes")

    assert text == "【开场白】hi"
    url, data = calls[0]
    assert url == "http://ollama.local:11434/api/generate"
    assert data["stream"] is False
    assert data["options"] == {"num_predict": 1024}
    assert data["prompt"].startswith(svc.SYSTEM_PROMPT + "\n\n---\n\n")
    assert data["prompt"].endswith("notes")


@pytest.mark.parametrize(
    "reply",
    [{"choices": [{"message": {"content": "   "}}]}, {"choices": []}, {}],
)
def test_deepseek_empty_completion_raises(monkeypatch, reply):
    monkeypatch.setattr(svc, "_http_post", lambda *a, **k: reply)
    with pytest.raises(svc.UpstreamError, match="DeepSeek returned an empty completion"):
        svc.refine_with_deepseek(_settings(deepseek_api_key="sk-x"), "notes")


def test_ollama_empty_completion_raises(monkeypatch):
    monkeypatch.setattr(svc, "_http_post", lambda *a, **k: {"response": ""})
    with pytest.raises(svc.UpstreamError, match="Ollama returned an empty completion"):
        svc.refine_with_ollama(_settings(), "notes")


def test_http_failure_is_labelled_with_provider(monkeypatch):
    def fail(*args, **kwargs):
        raise svc.UpstreamError("HTTP 401: bad key")

    monkeypatch.setattr(svc, "_http_post", fail)
    with pytest.raises(svc.UpstreamError, match=r"DeepSeek request failed \(HTTP 401: bad key\)"):
        svc.refine_with_deepseek(_settings(deepseek_api_key="sk-x"), "notes")


def test_provider_diagnostics(monkeypatch):
    monkeypatch.setattr(svc, "_http_ok", lambda url, timeout=3: False)
    info = svc.provider_diagnostics(_settings(port=4000))
    assert info == {
        "ok": True,
        "hasDeepSeekKey": False,
        "ollamaAvailable": False,
        "provider": "none",
        "port": 4000,
    }

    monkeypatch.setattr(svc, "_http_ok", lambda url, timeout=3: url.endswith("/api/tags"))
    assert svc.provider_diagnostics(_settings())["provider"] == "ollama"
    assert svc.provider_diagnostics(_settings(deepseek_api_key="sk-x"))["provider"] == "deepseek"


@pytest.mark.parametrize(
    "reply",
    [
        [],
        "text",
        {"choices": "x"},
        {"choices": ["x"]},
        {"choices": [{"message": "x"}]},
        {"choices": [{"message": {"content": ["x"]}}]},
    ],
)
def test_deepseek_malformed_body_raises_upstream_error(monkeypatch, reply):
    monkeypatch.setattr(svc, "_http_post", lambda *a, **k: reply)
    with pytest.raises(svc.UpstreamError, match="DeepSeek returned an empty completion"):
        svc.refine_with_deepseek(_settings(deepseek_api_key="sk-x"), "notes")


@pytest.mark.parametrize("reply", [[], "text", {"response": None}])
def test_ollama_malformed_body_raises_upstream_error(monkeypatch, reply):
    monkeypatch.setattr(svc, "_http_post", lambda *a, **k: reply)
    with pytest.raises(svc.UpstreamError, match="Ollama returned an empty completion"):
        svc.refine_with_ollama(_settings(), "notes")
