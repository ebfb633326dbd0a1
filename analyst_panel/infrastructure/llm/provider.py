from langchain_openai import ChatOpenAI

from ...config.llm_config import (
    GEMINI_API_KEY,
    GEMINI_BASE_URL,
    GITHUB_MODELS_BASE_URL,
    GITHUB_TOKEN,
    GROQ_API_KEY,
    GROQ_BASE_URL,
    LLM_MAX_RETRIES,
    LLM_TIMEOUT,
    SYNTHESIS_MODEL,
)

# host -> (OpenAI-compatible base URL, credential)
_HOSTS = {
    "gemini": (GEMINI_BASE_URL, GEMINI_API_KEY),
    "groq": (GROQ_BASE_URL, GROQ_API_KEY),
    "github": (GITHUB_MODELS_BASE_URL, GITHUB_TOKEN),
}


def is_host_configured(host: str) -> bool:
    endpoint = _HOSTS.get(host)
    return bool(endpoint and endpoint[1])


def get_llm(
    model: str,
    *,
    base_url: str,
    api_key: str,
    temperature: float = 0,
    timeout: float = LLM_TIMEOUT,
):
    """
    Standardize LLM configuration across all analysts.
    Every host is reached through its OpenAI-compatible endpoint.
    """
    return ChatOpenAI(
        model=model,
        temperature=temperature,
        base_url=base_url,
        api_key=api_key,
        timeout=timeout,
        max_retries=LLM_MAX_RETRIES,
    )


def get_llm_for_host(
    host: str, model: str, temperature: float = 0, timeout: float = LLM_TIMEOUT
):
    if host not in _HOSTS:
        raise ValueError(f"unknown LLM host: {host}")
    base_url, api_key = _HOSTS[host]
    if not api_key:
        raise ValueError(f"no credential configured for LLM host: {host}")
    return get_llm(
        model,
        base_url=base_url,
        api_key=api_key,
        temperature=temperature,
        timeout=timeout,
    )


def get_synthesis_llm(model: str = SYNTHESIS_MODEL, timeout: float = LLM_TIMEOUT):
    """The decision stage always runs on the Gemini host."""
    return get_llm_for_host("gemini", model, temperature=0, timeout=timeout)
