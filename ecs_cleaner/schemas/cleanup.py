"""Cleanup run configuration schema."""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CleanupConfig(BaseModel):
    """
    Immutable operational parameters for one cleanup run.

    Built once from the command line and handed to the pipeline entry point.
    Verbosity flags only change what is reported, never what is done.
    """

    model_config = ConfigDict(frozen=True)

    apply: bool = Field(default=False, description="Deregister for real (False = dry run)")
    cutoff: int = Field(
        default=5, ge=0, description="Most-recent unused revisions to keep per family"
    )
    parallel: int = Field(default=10, ge=1, description="Number of deregistration workers")
    region: str | None = Field(default=None, description="AWS region (None = settings default)")
    profile: str | None = Field(default=None, description="AWS named profile")
    verbose: bool = False
    debug: bool = False
    quiet: bool = False

    @model_validator(mode="before")
    @classmethod
    def debug_implies_verbose(cls, data):
        """Debug output is a superset of verbose output."""
        if isinstance(data, dict) and data.get("debug"):
            data = {**data, "verbose": True}
        return data

    @model_validator(mode="after")
    def validate_verbosity(self) -> "CleanupConfig":
        """Quiet cannot be combined with verbose or debug."""
        if self.quiet and (self.verbose or self.debug):
            raise ValueError("Can't set quiet flag alongside verbose or debug flags.")
        return self
