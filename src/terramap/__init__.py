"""
terramap: Terraform definitions from discovered AWS resources.

terramap takes resources found by an AWS inventory scan and maps each one to
the Terraform resource that would manage it, together with the variables,
outputs and import blocks needed to adopt the existing infrastructure.
Secrets found during discovery are never written into resource attributes;
they become sensitive input variables instead.

Key Components:
    - DiscoveredResource: One resource as reported by discovery
    - MapperRegistry: Lookup from AWS resource kind to mapper
    - MappingContext: Run-scoped state shared by mappers (references, variables)
    - TerraformGenerator: Runs a batch through the registry
    - GenerationResult: Resources, variables, outputs, imports and warnings

Environment Variables:
    TERRAMAP_DEFAULT_REGION: Region used when a record has none (default: us-east-1)
    TERRAMAP_ACCOUNT_ID: Account used to build candidate ARNs (optional)
    TERRAMAP_GENERATE_IMPORT_BLOCKS: Emit import blocks (default: true)
    TERRAMAP_SENSITIVE_VAR_PREFIX: Prefix for externalized secrets (default: sensitive_)
    TERRAMAP_LOG_LEVEL: Logging level (default: INFO)

Usage:
    from terramap import TerraformGenerator

    result = TerraformGenerator().generate(resources)

Version: 0.1.0
License: MIT
"""

from terramap.generator import TerraformGenerator
from terramap.models import DiscoveredResource, GenerationResult

__version__ = "0.1.0"

__all__ = [
    "DiscoveredResource",
    "GenerationResult",
    "TerraformGenerator",
    "__version__",
]
