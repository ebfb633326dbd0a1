"""
Analyst panel catalogue.

Declaration order here is the panel's display and progress order. Hosts map to
an OpenAI-compatible endpoint and credential in ``llm_config``.
"""

from .llm_config import DEFAULT_GEMINI_MODEL, DEFAULT_GROQ_MODEL

PROVIDER_CONFIGS = [
    {
        "id": "gemini",
        "name": "Gemini (Pro)",
        "host": "gemini",
        "role": "pro",
        "model": DEFAULT_GEMINI_MODEL,
        "baseline": True,
    },
    {
        "id": "groq",
        "name": "Groq (Con)",
        "host": "groq",
        "role": "con",
        "model": DEFAULT_GROQ_MODEL,
    },
    {
        "id": "openai/gpt-4o-mini",
        "name": "gpt-4o-mini (Neutral)",
        "host": "github",
        "role": "neutral",
    },
    {
        "id": "xai/grok-3-mini",
        "name": "grok-3-mini (Neutral)",
        "host": "github",
        "role": "neutral",
    },
    {
        "id": "deepseek/deepseek-v3-0324",
        "name": "deepseek-v3-0324 (Neutral)",
        "host": "github",
        "role": "neutral",
    },
    {
        "id": "cohere/cohere-command-r-plus-08-2024",
        "name": "cohere-command-r-plus (Neutral)",
        "host": "github",
        "role": "neutral",
    },
    {
        "id": "meta/llama-3.3-70b-instruct",
        "name": "llama-3.3-70b-instruct (Neutral)",
        "host": "github",
        "role": "neutral",
    },
    {
        "id": "microsoft/phi-4",
        "name": "phi-4 (Neutral)",
        "host": "github",
        "role": "neutral",
    },
    {
        "id": "ai21-labs/ai21-jamba-1.5-large",
        "name": "ai21-jamba-1.5-large (Neutral)",
        "host": "github",
        "role": "neutral",
    },
]

# Approximate GitHub Models quotas; unlisted providers are unlimited.
DEFAULT_RATE_LIMITS = {
    "openai/gpt-4o-mini": {"per_minute": 15, "per_day": 150},
    "xai/grok-3-mini": {"per_minute": 2, "per_day": 30},
    "deepseek/deepseek-v3-0324": {"per_minute": 1, "per_day": 8},
}
