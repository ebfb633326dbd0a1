import pytest
from pydantic import ValidationError

from analyst_panel.agents.collaborative.application.registry import (
    ProviderDeclaration,
    ProviderRegistry,
)
from analyst_panel.agents.collaborative.domain.models import AnalystRole, Category
from analyst_panel.agents.collaborative.domain.policies import (
    QuorumPolicy,
    category_for_model,
)
from analyst_panel.agents.collaborative.interface.contracts import (
    AnalysisSettings,
    ProviderToggle,
)
from analyst_panel.config.providers import PROVIDER_CONFIGS


def _registry(configured_hosts=("gemini", "groq", "github")) -> ProviderRegistry:
    return ProviderRegistry(
        [ProviderDeclaration.from_config(raw) for raw in PROVIDER_CONFIGS],
        is_host_configured=lambda host: host in configured_hosts,
        analyst_factory=lambda descriptor, host: object(),
    )


def _enable(*provider_ids: str, **overrides) -> AnalysisSettings:
    return AnalysisSettings(
        providers={pid: ProviderToggle(enabled=True) for pid in provider_ids},
        **overrides,
    )


def test_resolve_keeps_declaration_order_not_settings_order():
    registry = _registry()
    settings = _enable("microsoft/phi-4", "groq", "gemini")

    resolved = registry.resolve(settings)

    assert [item.id for item in resolved] == ["gemini", "groq", "microsoft/phi-4"]


def test_resolve_drops_disabled_and_unconfigured_providers():
    registry = _registry(configured_hosts=("gemini",))
    settings = AnalysisSettings(
        providers={
            "gemini": ProviderToggle(enabled=True),
            "groq": ProviderToggle(enabled=True),
            "openai/gpt-4o-mini": ProviderToggle(enabled=False),
        }
    )

    assert [item.id for item in registry.resolve(settings)] == ["gemini"]


def test_unknown_ids_in_settings_are_ignored():
    registry = _registry()

    assert registry.resolve(_enable("not-a-provider")) == []


def test_categories_are_derived_once_from_model_ids():
    registry = _registry()
    by_id = {item.id: item for item in registry.describe_all()}

    assert by_id["gemini"].category is Category.GEMINI
    assert by_id["groq"].category is Category.GROQ
    assert by_id["openai/gpt-4o-mini"].category is Category.OPENAI
    assert by_id["xai/grok-3-mini"].category is Category.XAI
    assert by_id["meta/llama-3.3-70b-instruct"].category is Category.META
    assert by_id["ai21-labs/ai21-jamba-1.5-large"].category is Category.AI21
    assert by_id["gemini"].role is AnalystRole.PRO
    assert by_id["groq"].role is AnalystRole.CON


def test_variant_overrides_the_model():
    registry = _registry()
    settings = AnalysisSettings(
        providers={"gemini": ProviderToggle(enabled=True, variant="gemini-2.5-pro")}
    )

    (descriptor,) = registry.resolve(settings)

    assert descriptor.model == "gemini-2.5-pro"


@pytest.mark.parametrize(
    ("model_id", "expected"),
    [
        ("openai/gpt-4o", "openai"),
        ("microsoft/phi-4", "microsoft"),
        ("some/llama-3", "meta"),
        ("cohere/command-r", "cohere"),
        ("grok-beta", "xai"),
        ("deepseek/deepseek-r1", "deepseek"),
        ("mistral-ai/ministral", "github"),
    ],
)
def test_category_for_model(model_id, expected):
    assert category_for_model(model_id) == expected


def test_bind_applies_timeouts_and_mandatory_flags():
    registry = _registry()
    settings = AnalysisSettings(
        providers={
            "gemini": ProviderToggle(enabled=True),
            "groq": ProviderToggle(enabled=True, timeout_seconds=5),
        },
        quorum_policy=QuorumPolicy.COUNT_PLUS_MANDATORY,
        mandatory_provider_ids=["gemini"],
        provider_timeout_seconds=40,
    )

    members = registry.bind(registry.resolve(settings), settings)

    assert [(m.provider_id, m.mandatory, m.timeout_seconds) for m in members] == [
        ("gemini", True, 40),
        ("groq", False, 5),
    ]


def test_duplicate_ids_are_rejected():
    declaration = ProviderDeclaration(id="x", name="X", host="github")

    with pytest.raises(ValueError):
        ProviderRegistry(
            [declaration, declaration],
            is_host_configured=lambda host: True,
            analyst_factory=lambda descriptor, host: object(),
        )


def test_settings_defaults_and_validation():
    settings = AnalysisSettings()

    assert settings.quorum == 2
    assert settings.quorum_policy is QuorumPolicy.COUNT
    assert settings.rate_limit_map()["xai/grok-3-mini"].per_minute == 2
    assert ProviderToggle(enabled=True, variant="  ").variant is None
    with pytest.raises(ValidationError):
        AnalysisSettings(quorum=0)
    assert (
        AnalysisSettings(
            quorum_policy=QuorumPolicy.COUNT_PLUS_MANDATORY
        ).mandatory_provider_ids
        == []
    )
