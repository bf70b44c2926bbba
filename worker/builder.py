"""
Job envelope construction
"""
from typing import Dict, List, Mapping

from cortex.models import (
    AccessGrant,
    JobDescription,
    JobEnvelope,
    MediaAsset,
    OutputFormat,
    StorageLocator,
)

# Output formats whose uploads must carry a fixed content type
OUTPUT_CONTENT_TYPES = {
    OutputFormat.JSON: "application/json",
}


class JobBuilder:
    """
    Builds the speech-to-text job envelope for one media asset.

    The builder only depends on its configuration and the grants passed to
    build(), so identical inputs always produce equal envelopes.
    """

    def __init__(
        self,
        bucket: str,
        asset: MediaAsset,
        output_keys: Mapping[OutputFormat, str],
        project_service_id: str,
    ):
        missing = [fmt.value for fmt in OutputFormat if fmt not in output_keys]
        if missing:
            raise ValueError(f"Missing output keys for: {', '.join(missing)}")

        self.bucket = bucket
        self.asset = asset
        self.output_keys = {fmt: output_keys[fmt] for fmt in OutputFormat}
        self.project_service_id = project_service_id

    def input_locator(self) -> StorageLocator:
        return StorageLocator(bucket=self.bucket, key=self.asset.name)

    def output_locators(self) -> Dict[OutputFormat, StorageLocator]:
        return {
            fmt: StorageLocator(bucket=self.bucket, key=key)
            for fmt, key in self.output_keys.items()
        }

    def all_keys(self) -> List[str]:
        """Input key followed by every output key."""
        return [self.asset.name, *self.output_keys.values()]

    def build(
        self,
        input_grant: AccessGrant,
        output_grants: Mapping[OutputFormat, AccessGrant],
    ) -> JobEnvelope:
        outputs = self.output_locators()
        job = JobDescription(
            input_file=self.input_locator().with_grant(input_grant),
            outputs={fmt: outputs[fmt].with_grant(output_grants[fmt]) for fmt in OutputFormat},
        )
        return JobEnvelope(
            project_service_id=self.project_service_id,
            quantity=self.asset.duration,
            job=job,
        )
