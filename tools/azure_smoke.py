# tools/azure_smoke.py
from __future__ import annotations
import json
from openai import NotFoundError
from samurai_core import llm_bridge
from samurai_core.comments import generate_comments

SAMPLE = {"delegation": 2.1, "org_drag": 1.0, "comm_gap": 1.4, "update_power": 2.6, "gen_gap": 0.0,
          "harassment_awareness": 1.7}

def main():
    s = llm_bridge.azure_settings()
    print("Endpoint :", s.endpoint)
    print("Deploy   :", s.deployment, "(deployment name passed as model=)")
    print("API ver  :", s.api_version)
    try:
        print("Reply    :", llm_bridge.complete("Answer tersely.", "Say 'pong' only.", max_tokens=5))
    except NotFoundError:
        print("ERROR 404: Azure cannot find this deployment for this API version.")
        print("→ Verify the deployment name EXACTLY as in the portal.")
        raise
    if llm_bridge.backend_in_use() != "azure":
        print("LLM_BACKEND is not 'azure'; comment rewrite skipped.")
        return
    out = generate_comments("sanada", SAMPLE, {"COMMENTS_LLM_ENABLED": True})
    print(json.dumps(out, ensure_ascii=False, indent=2))

if __name__ == "__main__":
    main()
