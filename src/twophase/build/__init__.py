"""
Build pipeline components for twophase.

This package provides the incremental two-phase build:
- Source resolution (explicit files and directory/pattern file sets)
- Intermediate target naming
- Timestamp staleness checks
- Compile and link stages
- Pipeline orchestration
"""

from .build_context import BuildParams, Mode, Parameter, Toolchain
from .compile_stage import CompileResult, CompileStage
from .errors import ConfigurationError, PipelineError, ResolutionError, ToolInvocationError
from .link_stage import LinkResult, LinkStage
from .orchestrator import PipelineOrchestrator, PipelineResult, PipelineState
from .process_invoker import ProcessInvoker
from .source_resolver import (
    DescriptorList,
    FileDescriptor,
    FileSetDescriptor,
    GlobScanner,
    ResolvedPathSet,
    SourceResolver,
)
from .staleness import is_out_of_date, is_stale
from .target_names import derive_target

__all__ = [
    "BuildParams",
    "CompileResult",
    "CompileStage",
    "ConfigurationError",
    "DescriptorList",
    "FileDescriptor",
    "FileSetDescriptor",
    "GlobScanner",
    "LinkResult",
    "LinkStage",
    "Mode",
    "Parameter",
    "PipelineError",
    "PipelineOrchestrator",
    "PipelineResult",
    "PipelineState",
    "ProcessInvoker",
    "ResolutionError",
    "ResolvedPathSet",
    "SourceResolver",
    "Toolchain",
    "ToolInvocationError",
    "derive_target",
    "is_out_of_date",
    "is_stale",
]
