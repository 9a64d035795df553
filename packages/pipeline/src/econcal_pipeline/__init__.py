"""
econcal_pipeline — Import workers for the econcal economic calendar.

Architecture:
  sources/     — one module per provider (FRED, BLS, ECB, IMF, World Bank,
                 CME, FMP, Finnhub, Trading Economics)
  transforms/  — event normalization, validation, outlier screening, dedupe
  loaders/     — record store access and the release reconciler
  pipelines/   — import orchestrators built on the ImportRun state machine
  utils/       — structlog configuration, exponential-backoff retry decorator

Quick start:
    import asyncio
    from econcal_pipeline.pipelines.historical import import_fred
    result = asyncio.run(import_fred(["UNRATE"]))

CLI:
    econcal import fred --series UNRATE --start 2020-01-01
    econcal import cme --months 2
    econcal import upcoming --days 14
    econcal catalog bls
"""

__version__ = "0.1.0"
