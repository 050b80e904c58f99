# samurai_core/llm_bridge.py
from __future__ import annotations
import os, json, pathlib
from dataclasses import dataclass
from openai import AzureOpenAI

_KEYS = {
    "endpoint": "AZURE_OPENAI_ENDPOINT",
    "api_key": "AZURE_OPENAI_API_KEY",
    "api_version": "AZURE_OPENAI_API_VERSION",
    "deployment": "AZURE_OPENAI_DEPLOYMENT",
}


@dataclass(frozen=True)
class AzureSettings:
    endpoint: str
    api_key: str
    deployment: str
    api_version: str


def backend_in_use() -> str:
    b = (os.getenv("LLM_BACKEND") or "").lower()
    return b if b == "azure" else "none"


def _from_json(path: str = ".azure_config.json") -> dict[str, str]:
    p = pathlib.Path(path)
    if not p.exists(): return {}
    try:
        j = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return {k: str(j.get(k, "")) for k in _KEYS}


def azure_settings() -> AzureSettings:
    cfg = {k: os.getenv(env, "") for k, env in _KEYS.items()}
    if not all(cfg.values()):
        for k, v in _from_json().items():
            if not cfg.get(k): cfg[k] = v
    missing = [_KEYS[k] for k, v in cfg.items() if not v]
    if missing:
        raise RuntimeError(f"Azure OpenAI not configured. Missing: {', '.join(missing)}")
    return AzureSettings(**cfg)


def client() -> AzureOpenAI:
    s = azure_settings()
    return AzureOpenAI(azure_endpoint=s.endpoint, api_key=s.api_key, api_version=s.api_version)


def complete(system: str, user: str, max_tokens: int = 600) -> str:
    s = azure_settings(); cli = client()
    resp = cli.chat.completions.create(
        model=s.deployment,
        messages=[{"role": "system", "content": system}, {"role": "user", "content": user}],
        temperature=0.2, top_p=0.9, max_tokens=max_tokens,
    )
    return (resp.choices[0].message.content if resp.choices else None) or ""
