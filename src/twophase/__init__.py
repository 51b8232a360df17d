"""twophase - incremental compile/link orchestration for two-phase toolchains."""

__version__ = "0.3.0"
