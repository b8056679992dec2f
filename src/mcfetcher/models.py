"""Pydantic v2 models for configuration input and run output."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# --- Policy configuration models ---


class RawKindPolicy(BaseModel):
    """One ``gvk`` entry exactly as written in the configuration file.

    Patterns are still strings here; ``policy.load_policies`` compiles them.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    keep_labels: list[str] = Field(default_factory=list, alias="keep-labels")
    keep_annotations: list[str] = Field(default_factory=list, alias="keep-annotations")
    keep_paths: list[str] = Field(default_factory=list, alias="keep-paths")
    ignore_paths: list[str] = Field(default_factory=list, alias="ignore-paths")
    ignore_names: list[str] = Field(default_factory=list, alias="ignore-names")
    path_value_filters: list[str] = Field(default_factory=list, alias="path-value-filters")
    keep_deleted: bool = Field(default=False, alias="keep-deleted")


# --- Run output models ---


class PairFailure(BaseModel):
    """A (context, kind) pair that was abandoned."""

    context: str
    kind: str
    error: str


class FetchSummary(BaseModel):
    """Totals for one orchestrator run."""

    contexts: int
    kinds: int
    fetched: int = 0
    cached: int = 0
    records_written: int = 0
    failures: list[PairFailure] = Field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def exit_code(self) -> int:
        return 1 if self.failures else 0
