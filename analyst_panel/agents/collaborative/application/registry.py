from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

from analyst_panel.agents.collaborative.application.ports import AnalystProvider
from analyst_panel.agents.collaborative.domain.models import (
    AnalystRole,
    Category,
    ProviderDescriptor,
)
from analyst_panel.agents.collaborative.domain.policies import category_for_model
from analyst_panel.agents.collaborative.interface.contracts import AnalysisSettings

_HOST_CATEGORIES = {
    "gemini": Category.GEMINI,
    "groq": Category.GROQ,
}


@dataclass(frozen=True)
class ProviderDeclaration:
    id: str
    name: str
    host: str
    role: AnalystRole = AnalystRole.NEUTRAL
    model: str | None = None
    baseline: bool = False

    @classmethod
    def from_config(cls, raw: Mapping[str, object]) -> ProviderDeclaration:
        model = raw.get("model")
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or raw["id"]),
            host=str(raw["host"]),
            role=AnalystRole(str(raw.get("role", AnalystRole.NEUTRAL.value))),
            model=str(model) if model else None,
            baseline=bool(raw.get("baseline", False)),
        )


@dataclass(frozen=True)
class PanelMember:
    """A resolved provider bound to a live handle for one run."""

    descriptor: ProviderDescriptor
    provider: AnalystProvider
    mandatory: bool = False
    timeout_seconds: float = 60.0

    @property
    def provider_id(self) -> str:
        return self.descriptor.id


AnalystFactory = Callable[[ProviderDescriptor, str], AnalystProvider]


class ProviderRegistry:
    """
    Turns caller settings into the ordered analyst panel.

    Resolution is a pure function of the declarations, credential availability
    and settings; it never touches the network.
    """

    def __init__(
        self,
        declarations: Iterable[ProviderDeclaration],
        *,
        is_host_configured: Callable[[str], bool],
        analyst_factory: AnalystFactory,
    ) -> None:
        self._declarations = list(declarations)
        ids = [declaration.id for declaration in self._declarations]
        if len(ids) != len(set(ids)):
            raise ValueError("provider ids must be unique")
        self._by_id = {decl.id: decl for decl in self._declarations}
        self._is_host_configured = is_host_configured
        self._analyst_factory = analyst_factory

    @property
    def declarations(self) -> list[ProviderDeclaration]:
        return list(self._declarations)

    def baseline_ids(self) -> list[str]:
        return [item.id for item in self._declarations if item.baseline]

    def _describe(
        self, declaration: ProviderDeclaration, variant: str | None
    ) -> ProviderDescriptor:
        model = variant or declaration.model or declaration.id
        category = _HOST_CATEGORIES.get(declaration.host) or Category(
            category_for_model(model)
        )
        return ProviderDescriptor(
            id=declaration.id,
            display_name=declaration.name,
            category=category,
            is_configured=self._is_host_configured(declaration.host),
            role=declaration.role,
            model=model,
        )

    def describe_all(self) -> list[ProviderDescriptor]:
        return [self._describe(item, None) for item in self._declarations]

    def resolve(self, settings: AnalysisSettings) -> list[ProviderDescriptor]:
        resolved: list[ProviderDescriptor] = []
        for declaration in self._declarations:
            toggle = settings.providers.get(declaration.id)
            if toggle is None or not toggle.enabled:
                continue
            descriptor = self._describe(declaration, toggle.variant)
            if descriptor.is_configured:
                resolved.append(descriptor)
        return resolved

    def bind(
        self, descriptors: Iterable[ProviderDescriptor], settings: AnalysisSettings
    ) -> list[PanelMember]:
        mandatory = set(settings.mandatory_provider_ids)
        members: list[PanelMember] = []
        for descriptor in descriptors:
            declaration = self._by_id[descriptor.id]
            toggle = settings.providers.get(descriptor.id)
            timeout = (
                toggle.timeout_seconds
                if toggle is not None and toggle.timeout_seconds is not None
                else settings.provider_timeout_seconds
            )
            members.append(
                PanelMember(
                    descriptor=descriptor,
                    provider=self._analyst_factory(descriptor, declaration.host),
                    mandatory=descriptor.id in mandatory,
                    timeout_seconds=timeout,
                )
            )
        return members
