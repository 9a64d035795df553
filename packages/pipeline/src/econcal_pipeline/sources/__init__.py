"""
econcal_pipeline.sources — provider adapters.

Historical observations:
  FredSource        — FRED series/observations JSON API
  BlsSource         — BLS timeseries v2 API (POST, batched series)
  EcbSource         — ECB data portal SDMX JSON
  ImfSource         — IMF IFS/WEO SDMX JSON
  WorldBankSource   — World Bank v2 indicator API

Scheduled releases:
  CmeCalendarSource               — CME Group economic calendar (HTML)
  TradingEconomicsPageSource      — tradingeconomics.com/calendar (HTML fallback)
  FmpCalendarSource               — Financial Modeling Prep economic calendar
  FinnhubCalendarSource           — Finnhub economic calendar
  TradingEconomicsCalendarSource  — Trading Economics calendar API
"""

from econcal_pipeline.sources.bls import BlsSource
from econcal_pipeline.sources.cme import CmeCalendarSource, TradingEconomicsPageSource
from econcal_pipeline.sources.ecb import EcbSource
from econcal_pipeline.sources.finnhub import FinnhubCalendarSource
from econcal_pipeline.sources.fmp import FmpCalendarSource
from econcal_pipeline.sources.fred import FredSource
from econcal_pipeline.sources.imf import ImfSource
from econcal_pipeline.sources.tradingeconomics import TradingEconomicsCalendarSource
from econcal_pipeline.sources.worldbank import WorldBankSource

__all__ = [
    "BlsSource",
    "CmeCalendarSource",
    "EcbSource",
    "FinnhubCalendarSource",
    "FmpCalendarSource",
    "FredSource",
    "ImfSource",
    "TradingEconomicsCalendarSource",
    "TradingEconomicsPageSource",
    "WorldBankSource",
]
