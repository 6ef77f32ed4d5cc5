"""
condor - A chunked video encoding orchestrator

This package splits a source clip into scenes and encodes them in parallel:
- Detects scene boundaries with zone overrides
- Searches a per-scene quantizer for a target quality score
- Encodes scenes across a bounded worker pool
- Concatenates the encoded scenes into the final output
- Reports progress for every stage and scene

Every stage works on a single shared aggregate that can be saved
and resumed between stages.
"""

__version__ = "0.1.0"
