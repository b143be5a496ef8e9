from __future__ import annotations

from langchain_openai import ChatOpenAI

from social_kpi_agent.config import AgentConfig
from social_kpi_agent.errors import CollaboratorFailure


def build_llm(config: AgentConfig) -> ChatOpenAI:
    if not config.llm_enabled:
        raise CollaboratorFailure(
            "LLM config missing. Required: LLM_BASE_URL, LLM_MODEL and an API key in "
            f"the {config.llm_api_key_env} environment variable."
        )

    return ChatOpenAI(
        base_url=config.llm_base_url,
        api_key=config.llm_api_key,
        model=config.llm_model,
        temperature=config.llm_temperature,
        max_tokens=max(50, int(config.llm_max_tokens)),
        timeout=max(1, int(config.llm_timeout_sec)),
        max_retries=max(0, int(config.llm_max_retries)),
    )
