"""
SafeDrop: invalid deallocation detection for Rust

A path-sensitive, flow-sensitive, field-sensitive alias analysis over
Rust MIR that reports use-after-free and double free caused by manual
memory interventions (explicit drops, raw-pointer ownership
reconstruction), with cached interprocedural summaries.

The library is organized into:
- mir: MIR data model (types, instructions, bodies)
- mir.frontends: JSON MIR dump reader
- mir.specs: models of Rust standard library functions
- mir.analyzers: graph construction, cycle contraction, traversal engine
- mir.scanner: whole-program driver and reports
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
