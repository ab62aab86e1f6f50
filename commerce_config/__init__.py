"""
commerce_config -- single public entrypoint for pipeline configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    directly.  Returns a frozen ``PipelineConfig``.

Architecture position:
    Configuration -- sits above ``commerce_kernel`` and ``commerce_engines``
    and below ``commerce_modules``.  The kernel MUST NEVER import from
    ``commerce_config``; the modules pass concrete values (tax policy,
    number prefixes, timeouts) into kernel services.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``ValueError`` / ``KeyError`` -- schema or structural errors.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``pipeline_config_loaded`` log entry with the config id, version and
    SHA-256 checksum, tying stored amounts back to the configuration that
    produced them.
"""

from __future__ import annotations

from pathlib import Path

from commerce_config.loader import load_pipeline_config
from commerce_config.schema import (
    BottleneckRuleDef,
    InventorySyncDef,
    NumberingDef,
    PipelineConfig,
    SideDefaults,
    SourcingDef,
    TaxPolicyDef,
)
from commerce_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "pipeline.yaml"


def get_active_config(config_path: Path | None = None) -> PipelineConfig:
    """The ONLY public configuration entrypoint.

    Contract:
        All runtime configuration flows through this function.  Packs are
        not cached; callers hold the returned object for as long as they
        need it.

    Args:
        config_path: Override path to a pipeline YAML file.  Defaults to
            commerce_config/defaults/pipeline.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a value fails validation.
        KeyError: If a required key is missing.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_pipeline_config(path)

    _logger.info(
        "pipeline_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
            "tax_rate": str(config.tax.rate),
            "currency": config.tax.currency,
            "bottleneck_rule_count": len(config.bottleneck_rules),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "DEFAULT_CONFIG_PATH",
    "PipelineConfig",
    "TaxPolicyDef",
    "NumberingDef",
    "SideDefaults",
    "BottleneckRuleDef",
    "SourcingDef",
    "InventorySyncDef",
]
