"""Code materialization: prompt, generate, parse and write project files."""

from .client import GenerationClient
from .models import BuildResult, BuildSpecification, ParsedFile, WrittenFile
from .parser import parse_generated_files
from .pipeline import MaterializationPipeline

__all__ = [
    "BuildResult",
    "BuildSpecification",
    "GenerationClient",
    "MaterializationPipeline",
    "parse_generated_files",
    "ParsedFile",
    "WrittenFile",
]
