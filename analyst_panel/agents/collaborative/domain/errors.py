from __future__ import annotations

from collections.abc import Sequence


class AnalysisPipelineError(Exception):
    """Base class for failures that end a collaborative analysis run."""

    error_code = "CONSENSUS_PIPELINE_FAILED"

    def __init__(self, message: str, *, phase: str) -> None:
        super().__init__(message)
        self.message = message
        self.phase = phase

    def to_payload(self) -> dict[str, object]:
        return {
            "error_code": self.error_code,
            "phase": self.phase,
            "message": self.message,
        }


class ConfigurationError(AnalysisPipelineError):
    error_code = "CONSENSUS_CONFIGURATION_INVALID"

    def __init__(self, message: str) -> None:
        super().__init__(message, phase="idle")


class InsufficientQuorum(AnalysisPipelineError):
    error_code = "CONSENSUS_INSUFFICIENT_QUORUM"

    def __init__(
        self,
        message: str,
        *,
        success_count: int,
        quorum: int,
        failed_provider_ids: Sequence[str] = (),
        skipped_provider_ids: Sequence[str] = (),
        missing_mandatory_ids: Sequence[str] = (),
    ) -> None:
        super().__init__(message, phase="quorum_check")
        self.success_count = success_count
        self.quorum = quorum
        self.failed_provider_ids = list(failed_provider_ids)
        self.skipped_provider_ids = list(skipped_provider_ids)
        self.missing_mandatory_ids = list(missing_mandatory_ids)

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        payload.update(
            {
                "success_count": self.success_count,
                "quorum": self.quorum,
                "failed_provider_ids": self.failed_provider_ids,
                "skipped_provider_ids": self.skipped_provider_ids,
                "missing_mandatory_ids": self.missing_mandatory_ids,
            }
        )
        return payload


class SynthesisFailure(AnalysisPipelineError):
    error_code = "CONSENSUS_SYNTHESIS_FAILED"

    def __init__(self, message: str) -> None:
        super().__init__(message, phase="synthesis")


# Non-fatal kinds. These stay inside their failure domain and surface as
# progress messages and outcome records.


class RateLimited(Exception):
    def __init__(self, provider_id: str, reason: str) -> None:
        super().__init__(f"{provider_id}: {reason}")
        self.provider_id = provider_id
        self.reason = reason


class ProviderFailure(Exception):
    def __init__(self, provider_id: str, detail: str) -> None:
        super().__init__(f"{provider_id}: {detail}")
        self.provider_id = provider_id
        self.detail = detail


class ContextFailure(Exception):
    pass
