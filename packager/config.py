"""Packager configuration.

Centralised, typed configuration for the deployment package assembler. All
settings use Pydantic v2 models so they can be validated at construction time
and serialised to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class PackagerConfig(BaseModel):
    """Global packager configuration.

    Holds the product identity stamped into every generated package together
    with the knobs that shape licensing and compression.  Instances are
    typically created once at process start and passed to the assembler.
    """

    product_name: str = Field(default="ObelixIA", min_length=1)
    product_slug: str = Field(
        default="obelixia", min_length=1, description="Filename prefix for artifacts"
    )
    product_version: str = Field(default="8.0.0", min_length=1)
    support_email: str = Field(default="soporte@obelixia.com")
    evaluation_days: int = Field(
        default=30, ge=1, description="Validity of synthesized evaluation licenses"
    )
    evaluation_key_prefix: str = Field(default="EVAL", min_length=1)
    compression_level: int = Field(
        default=6, ge=0, le=9, description="zlib level used for archive entries"
    )

    @property
    def version_label(self) -> str:
        """Human-readable product version, e.g. ``ObelixIA v8.0.0``."""
        return f"{self.product_name} v{self.product_version}"

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file.  Parent directories are created.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "PackagerConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "PackagerConfig":
        """Build a ``PackagerConfig`` from environment variables.

        Recognised variables (all optional):
            PACKAGER_PRODUCT_NAME, PACKAGER_PRODUCT_SLUG,
            PACKAGER_PRODUCT_VERSION, PACKAGER_SUPPORT_EMAIL,
            PACKAGER_EVALUATION_DAYS, PACKAGER_COMPRESSION_LEVEL.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("PACKAGER_PRODUCT_NAME"):
            kwargs["product_name"] = os.environ["PACKAGER_PRODUCT_NAME"]
        if os.environ.get("PACKAGER_PRODUCT_SLUG"):
            kwargs["product_slug"] = os.environ["PACKAGER_PRODUCT_SLUG"]
        if os.environ.get("PACKAGER_PRODUCT_VERSION"):
            kwargs["product_version"] = os.environ["PACKAGER_PRODUCT_VERSION"]
        if os.environ.get("PACKAGER_SUPPORT_EMAIL"):
            kwargs["support_email"] = os.environ["PACKAGER_SUPPORT_EMAIL"]
        if os.environ.get("PACKAGER_EVALUATION_DAYS"):
            kwargs["evaluation_days"] = int(os.environ["PACKAGER_EVALUATION_DAYS"])
        if os.environ.get("PACKAGER_COMPRESSION_LEVEL"):
            kwargs["compression_level"] = int(os.environ["PACKAGER_COMPRESSION_LEVEL"])
        return cls(**kwargs)
