"""Sanity-check the configured LLM provider/model and pipeline settings without leaking secrets.

Usage:
  python -m scripts.check_llm_config
  python -m scripts.check_llm_config --ping
"""

from __future__ import annotations

import argparse
import asyncio
import os

from core.config import get_config_value, get_default_model, get_timeout_seconds
from core.llm_factory import available_providers, get_async_llm_client
from core.obs import NullLogger
from core.settings import get_pipeline_settings

_KEY_NAMES = {
    "openai": "OPENAI_API_KEY",
    "claude": "ANTHROPIC_API_KEY",
    "gemini": "GOOGLE_API_KEY",
}


def key_name_for_provider(provider: str) -> str | None:
    return _KEY_NAMES.get(provider.strip().lower())


async def _ping(provider: str, model: str) -> str:
    llm = get_async_llm_client(logger=NullLogger(), provider=provider)
    return await llm.chat(
        messages=[
            {"role": "system", "content": "Reply with a single word."},
            {"role": "user", "content": "ping"},
        ],
        model=model,
        temperature=1.0,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--ping",
        action="store_true",
        help="Make a live LLM call (requires network + valid API key).",
    )
    args = parser.parse_args(argv)

    provider = (get_config_value("LLM_PROVIDER", "openai") or "openai").lower()
    if provider not in available_providers():
        print(f"LLM_PROVIDER={provider} is not one of {available_providers()}")
        return 2
    model = get_default_model()

    print(f"LLM_PROVIDER={provider}")
    print(f"LLM_MODEL={model}")
    print(f"LLM_TIMEOUT_SECONDS={get_timeout_seconds()}")

    key_name = key_name_for_provider(provider)
    if key_name:
        print(
            f"{key_name}: configured={bool(get_config_value(key_name))} "
            f"env_set={bool(os.getenv(key_name))}"
        )

    settings = get_pipeline_settings()
    print(f"DEFAULT_STRATEGY={settings.default_strategy}")
    print(f"CONTENT_SELECTION={settings.content_selection}")
    print(f"SKIP_REWRITE_BULLETS={settings.skip_rewrite_bullets}")
    constraints = settings.selection_constraints()
    print(
        "selection: max_per_parent={} similarity={} target={}..{}".format(
            constraints.max_bullets_per_parent,
            constraints.similarity_threshold,
            constraints.target_count.min,
            constraints.target_count.max,
        )
    )

    if args.ping:
        resp = asyncio.run(_ping(provider, model))
        print("Ping response preview:", (resp or "").strip()[:100])

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
