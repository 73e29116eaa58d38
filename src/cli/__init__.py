"""Command-line interface for docflux.

- ``python -m src.cli refine FILE``   -- write refined markdown
- ``python -m src.cli chunk FILE``    -- write chunk files plus ``manifest.json``
- ``python -m src.cli process FILE``  -- refine, chunk, evaluate; adds ``quality.json``
- ``python -m src.cli evaluate FILE`` -- compare chunking strategies

argparse is used for parsing.  Provider imports are deferred inside the
wiring functions so commands that need no LLM start quickly.
"""
