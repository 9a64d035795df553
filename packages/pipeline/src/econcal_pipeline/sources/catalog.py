"""
sources/catalog.py — Configured series for every bulk-history provider.

The catalog is a closed union of frozen dataclasses, one variant per provider:

  FredSeries          — FRED series id (16 US series)
  BlsSeries           — BLS series id (16 US series, monthly)
  EcbSeries           — ECB SDW "{dataflow}.{series key}" (11 euro-area series)
  ImfIndicator        — IMF WEO indicator code (15 indicators x 39 countries)
  WorldBankIndicator  — World Bank WDI code (16 indicators x 39 countries)

Consumers dispatch with a `match` on the variant; indicator_for() and
describe_entry() are the two such dispatchers used by pipelines and the CLI.

Usage:
    from econcal_pipeline.sources.catalog import FRED_SERIES, indicator_for

    entry = FRED_SERIES["UNRATE"]
    indicator = indicator_for(entry)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, assert_never

from econcal_shared.models import Indicator

# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FredSeries:
    series_id: str
    name: str
    category: str
    country_code: str = "US"


@dataclass(frozen=True)
class BlsSeries:
    series_id: str
    name: str
    category: str
    country_code: str = "US"
    frequency: str = "Monthly"


@dataclass(frozen=True)
class EcbSeries:
    series_key: str               # "FM.D.U2.EUR.4F.KR.MRR_FR.LEV"
    name: str
    category: str
    country_code: str
    frequency: str

    @property
    def dataflow(self) -> str:
        return self.series_key.split(".", 1)[0]

    @property
    def key(self) -> str:
        return self.series_key.split(".", 1)[1]


@dataclass(frozen=True)
class ImfIndicator:
    code: str
    name: str
    category: str
    frequency: str = "Annual"


@dataclass(frozen=True)
class WorldBankIndicator:
    code: str
    name: str
    category: str
    frequency: str = "Annual"


CatalogEntry = FredSeries | BlsSeries | EcbSeries | ImfIndicator | WorldBankIndicator
Provider = Literal["fred", "bls", "ecb", "imf", "world-bank"]

# ---------------------------------------------------------------------------
# Source attribution
# ---------------------------------------------------------------------------

FRED_SOURCE_NAME = "Federal Reserve Economic Data (FRED)"
BLS_SOURCE_NAME = "Bureau of Labor Statistics (BLS)"
ECB_SOURCE_NAME = "European Central Bank (ECB SDW)"
IMF_SOURCE_NAME = "IMF World Economic Outlook"
WORLD_BANK_SOURCE_NAME = "World Bank Open Data"

# ---------------------------------------------------------------------------
# FRED
# ---------------------------------------------------------------------------

FRED_SERIES: dict[str, FredSeries] = {
    s.series_id: s
    for s in (
        FredSeries("GDPC1", "Real GDP", "GDP"),
        FredSeries("A191RL1Q225SBEA", "Real GDP Growth Rate", "GDP"),
        FredSeries("CPIAUCSL", "Consumer Price Index (CPI)", "Inflation"),
        FredSeries("PPIACO", "Producer Price Index (PPI)", "Inflation"),
        FredSeries("CPILFESL", "Core CPI (Less Food and Energy)", "Inflation"),
        FredSeries("UNRATE", "Unemployment Rate", "Employment"),
        FredSeries("PAYEMS", "Non-Farm Payrolls", "Employment"),
        FredSeries("ICSA", "Initial Jobless Claims", "Employment"),
        FredSeries("FEDFUNDS", "Federal Funds Rate", "Interest Rates"),
        FredSeries("DGS10", "10-Year Treasury Rate", "Interest Rates"),
        FredSeries("DGS2", "2-Year Treasury Rate", "Interest Rates"),
        FredSeries("UMCSENT", "Consumer Sentiment Index", "Consumer"),
        FredSeries("RSXFS", "Retail Sales", "Consumer"),
        FredSeries("HOUST", "Housing Starts", "Housing"),
        FredSeries("PERMIT", "Building Permits", "Housing"),
        FredSeries("INDPRO", "Industrial Production Index", "Manufacturing"),
    )
}

# ---------------------------------------------------------------------------
# BLS
# ---------------------------------------------------------------------------

BLS_SERIES: dict[str, BlsSeries] = {
    s.series_id: s
    for s in (
        # Current Population Survey
        BlsSeries("LNS14000000", "Unemployment Rate", "Employment"),
        BlsSeries("LNS11000000", "Labor Force Participation Rate", "Employment"),
        BlsSeries("LNS13000000", "Employment Level", "Employment"),
        BlsSeries("LNS14000006", "Unemployment Rate - Black or African American", "Employment"),
        BlsSeries("LNS14000009", "Unemployment Rate - Hispanic or Latino", "Employment"),
        # Consumer / producer prices
        BlsSeries("CUUR0000SA0", "CPI All Items", "Inflation"),
        BlsSeries("CUUR0000SA0L1E", "CPI Core (Less Food and Energy)", "Inflation"),
        BlsSeries("CUUR0000SAF1", "CPI Food", "Inflation"),
        BlsSeries("CUUR0000SETA01", "CPI New Vehicles", "Inflation"),
        BlsSeries("CUUR0000SAH1", "CPI Shelter", "Inflation"),
        BlsSeries("CUUR0000SETB01", "CPI Gasoline", "Inflation"),
        BlsSeries("WPUFD4", "PPI Final Demand", "Inflation"),
        BlsSeries("WPSFD4131", "PPI Final Demand Less Foods and Energy", "Inflation"),
        # Current Employment Statistics
        BlsSeries("CES0000000001", "Total Nonfarm Employment", "Employment"),
        BlsSeries("CES0500000003", "Average Hourly Earnings (Private)", "Employment"),
        BlsSeries("CES0500000002", "Average Weekly Hours (Private)", "Employment"),
    )
}

# ---------------------------------------------------------------------------
# ECB
# ---------------------------------------------------------------------------

ECB_SERIES: dict[str, EcbSeries] = {
    s.series_key: s
    for s in (
        EcbSeries("FM.D.U2.EUR.4F.KR.MRR_FR.LEV", "ECB Main Refinancing Rate", "Interest Rates", "EU", "Daily"),
        EcbSeries("FM.D.U2.EUR.4F.KR.DFR.LEV", "ECB Deposit Facility Rate", "Interest Rates", "EU", "Daily"),
        EcbSeries("ICP.M.U2.N.000000.4.ANR", "Eurozone HICP Inflation (YoY)", "Inflation", "EU", "Monthly"),
        EcbSeries("ICP.M.U2.N.XEF000.4.ANR", "Eurozone Core HICP Inflation (YoY)", "Inflation", "EU", "Monthly"),
        EcbSeries("MNA.Q.Y.I9.W2.S1.S1.B.B1GQ._Z._Z._Z.EUR.LR.GY", "Eurozone GDP Growth (QoQ)", "GDP", "EU", "Quarterly"),
        EcbSeries("STS.M.I9.S.UNEH.RTT000.4.000", "Eurozone Unemployment Rate", "Employment", "EU", "Monthly"),
        EcbSeries("BSI.M.U2.N.V.M30.X.I.U2.2300.Z01.A", "Eurozone M3 Money Supply (YoY)", "Monetary", "EU", "Monthly"),
        EcbSeries("ICP.M.DE.N.000000.4.ANR", "Germany HICP Inflation (YoY)", "Inflation", "DE", "Monthly"),
        EcbSeries("ICP.M.FR.N.000000.4.ANR", "France HICP Inflation (YoY)", "Inflation", "FR", "Monthly"),
        EcbSeries("ICP.M.IT.N.000000.4.ANR", "Italy HICP Inflation (YoY)", "Inflation", "IT", "Monthly"),
        EcbSeries("ICP.M.ES.N.000000.4.ANR", "Spain HICP Inflation (YoY)", "Inflation", "ES", "Monthly"),
    )
}

# ---------------------------------------------------------------------------
# IMF World Economic Outlook
# ---------------------------------------------------------------------------

IMF_INDICATORS: dict[str, ImfIndicator] = {
    i.code: i
    for i in (
        ImfIndicator("NGDP_RPCH", "Real GDP Growth Rate (%)", "GDP"),
        ImfIndicator("NGDPD", "GDP (Current Prices, USD Billions)", "GDP"),
        ImfIndicator("NGDPDPC", "GDP Per Capita (Current Prices, USD)", "GDP"),
        ImfIndicator("PPPGDP", "GDP (PPP, International Dollars Billions)", "GDP"),
        ImfIndicator("PCPIPCH", "Inflation Rate (CPI, % Change)", "Inflation"),
        ImfIndicator("PCPIEPCH", "Inflation Rate (End of Period, %)", "Inflation"),
        ImfIndicator("LUR", "Unemployment Rate (%)", "Employment"),
        ImfIndicator("LE", "Employment (Millions)", "Employment"),
        ImfIndicator("BCA_NGDPD", "Current Account Balance (% of GDP)", "Trade"),
        ImfIndicator("BCA", "Current Account Balance (USD Billions)", "Trade"),
        ImfIndicator("GGXWDG_NGDP", "Government Gross Debt (% of GDP)", "Government"),
        ImfIndicator("GGXCNL_NGDP", "Government Net Lending/Borrowing (% of GDP)", "Government"),
        ImfIndicator("NID_NGDP", "Total Investment (% of GDP)", "Investment"),
        ImfIndicator("NGSD_NGDP", "Gross National Savings (% of GDP)", "Investment"),
        ImfIndicator("LP", "Population (Millions)", "Demographics"),
    )
}

_MAJOR_ECONOMIES: dict[str, str] = {
    "US": "United States",
    "GB": "United Kingdom",
    "DE": "Germany",
    "JP": "Japan",
    "FR": "France",
    "IT": "Italy",
    "CA": "Canada",
    "CN": "China",
    "IN": "India",
    "BR": "Brazil",
    "RU": "Russian Federation",
    "AU": "Australia",
    "KR": "Korea, Rep.",
    "MX": "Mexico",
    "ID": "Indonesia",
    "NL": "Netherlands",
    "SA": "Saudi Arabia",
    "CH": "Switzerland",
    "ES": "Spain",
    "TR": "Turkey",
    "AT": "Austria",
    "BE": "Belgium",
    "IE": "Ireland",
    "PT": "Portugal",
    "GR": "Greece",
    "SG": "Singapore",
    "HK": "Hong Kong SAR",
    "NZ": "New Zealand",
    "TH": "Thailand",
    "MY": "Malaysia",
    "AR": "Argentina",
    "CL": "Chile",
    "CO": "Colombia",
    "ZA": "South Africa",
    "AE": "United Arab Emirates",
    "IL": "Israel",
    "PL": "Poland",
    "SE": "Sweden",
    "NO": "Norway",
}

IMF_COUNTRIES: dict[str, str] = dict(_MAJOR_ECONOMIES)

# ---------------------------------------------------------------------------
# World Bank
# ---------------------------------------------------------------------------

WORLD_BANK_INDICATORS: dict[str, WorldBankIndicator] = {
    i.code: i
    for i in (
        WorldBankIndicator("NY.GDP.MKTP.CD", "GDP (Current USD)", "GDP"),
        WorldBankIndicator("NY.GDP.MKTP.KD.ZG", "GDP Growth Rate (%)", "GDP"),
        WorldBankIndicator("NY.GDP.PCAP.CD", "GDP Per Capita (Current USD)", "GDP"),
        WorldBankIndicator("FP.CPI.TOTL.ZG", "Inflation Rate (CPI, %)", "Inflation"),
        WorldBankIndicator("FP.CPI.TOTL", "Consumer Price Index", "Inflation"),
        WorldBankIndicator("SL.UEM.TOTL.ZS", "Unemployment Rate (%)", "Employment"),
        WorldBankIndicator("SL.TLF.CACT.ZS", "Labor Force Participation Rate (%)", "Employment"),
        WorldBankIndicator("NE.EXP.GNFS.ZS", "Exports of Goods and Services (% of GDP)", "Trade"),
        WorldBankIndicator("NE.IMP.GNFS.ZS", "Imports of Goods and Services (% of GDP)", "Trade"),
        WorldBankIndicator("BN.CAB.XOKA.CD", "Current Account Balance (Current USD)", "Trade"),
        WorldBankIndicator("BX.KLT.DINV.CD.WD", "Foreign Direct Investment (Net Inflows, USD)", "Finance"),
        WorldBankIndicator("FR.INR.RINR", "Real Interest Rate (%)", "Interest Rates"),
        WorldBankIndicator("GC.DOD.TOTL.GD.ZS", "Central Government Debt (% of GDP)", "Government"),
        WorldBankIndicator("GC.REV.XGRT.GD.ZS", "Government Revenue (% of GDP)", "Government"),
        WorldBankIndicator("SP.POP.TOTL", "Total Population", "Demographics"),
        WorldBankIndicator("SP.POP.GROW", "Population Growth Rate (%)", "Demographics"),
    )
}

WORLD_BANK_COUNTRIES: dict[str, str] = {
    **_MAJOR_ECONOMIES,
    "HK": "Hong Kong SAR, China",
}

# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def catalog_for(provider: Provider) -> list[CatalogEntry]:
    match provider:
        case "fred":
            return list(FRED_SERIES.values())
        case "bls":
            return list(BLS_SERIES.values())
        case "ecb":
            return list(ECB_SERIES.values())
        case "imf":
            return list(IMF_INDICATORS.values())
        case "world-bank":
            return list(WORLD_BANK_INDICATORS.values())
        case _:
            raise ValueError(f"Unknown provider: {provider}")


def describe_entry(entry: CatalogEntry) -> str:
    """One-line listing used by `econcal catalog`."""
    match entry:
        case FredSeries(series_id=sid, name=name, category=cat):
            return f"{sid:<18} {name} [{cat}]"
        case BlsSeries(series_id=sid, name=name, category=cat, frequency=freq):
            return f"{sid:<18} {name} [{cat}, {freq}]"
        case EcbSeries(series_key=key, name=name, category=cat, country_code=cc):
            return f"{key:<46} {name} [{cat}, {cc}]"
        case ImfIndicator(code=code, name=name, category=cat):
            return f"{code:<18} {name} [{cat}, {len(IMF_COUNTRIES)} countries]"
        case WorldBankIndicator(code=code, name=name, category=cat):
            return f"{code:<18} {name} [{cat}, {len(WORLD_BANK_COUNTRIES)} countries]"
        case _:
            assert_never(entry)


def indicator_for(
    entry: CatalogEntry,
    country_code: str | None = None,
    country_name: str | None = None,
) -> Indicator:
    """
    Build the Indicator row a catalog entry maps to.

    IMF and World Bank entries are per country, so the country is required
    and folded into the indicator name ("Unemployment Rate (%) (Germany)").
    """
    match entry:
        case FredSeries():
            return Indicator(
                name=entry.name,
                country_code=entry.country_code,
                category=entry.category,
                source_name=FRED_SOURCE_NAME,
                source_url=f"https://fred.stlouisfed.org/series/{entry.series_id}",
            )
        case BlsSeries():
            return Indicator(
                name=entry.name,
                country_code=entry.country_code,
                category=entry.category,
                source_name=BLS_SOURCE_NAME,
                source_url=f"https://www.bls.gov/data/#{entry.series_id}",
            )
        case EcbSeries():
            return Indicator(
                name=entry.name,
                country_code=entry.country_code,
                category=entry.category,
                source_name=ECB_SOURCE_NAME,
                source_url=f"https://sdw.ecb.europa.eu/browse.do?node={entry.dataflow}",
            )
        case ImfIndicator():
            if country_code is None:
                raise ValueError("IMF indicators need a country")
            name = country_name or IMF_COUNTRIES.get(country_code, country_code)
            return Indicator(
                name=f"{entry.name} ({name})",
                country_code=country_code,
                category=entry.category,
                source_name=IMF_SOURCE_NAME,
                source_url=(
                    "https://www.imf.org/external/datamapper/"
                    f"{entry.code}@WEO/{country_code}"
                ),
            )
        case WorldBankIndicator():
            if country_code is None:
                raise ValueError("World Bank indicators need a country")
            name = country_name or WORLD_BANK_COUNTRIES.get(country_code, country_code)
            return Indicator(
                name=f"{entry.name} ({name})",
                country_code=country_code,
                category=entry.category,
                source_name=WORLD_BANK_SOURCE_NAME,
                source_url=(
                    f"https://data.worldbank.org/indicator/{entry.code}"
                    f"?locations={country_code}"
                ),
            )
        case _:
            assert_never(entry)
