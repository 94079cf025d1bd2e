"""
Export Service
Serialize analytics results into downloadable reports.

Formats:
    - CSV  — Excel/pandas compatible
    - JSON — For programmatic access

Series results (time series, decomposition, forecast, ranking) export
one row per point; scalar results (statistics, comparison) export
flattened metric/value rows.

Pure functions: nothing here mutates state.
"""

import csv
import io
import json
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Tuple, Union

from core.errors import UnsupportedFormat

from .models import (
    ComparisonResult,
    PredictionResult,
    RankingResult,
    SeasonalDecomposition,
    StatisticsResult,
    TimeSeriesSlice,
)


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv",
}

ExportableResult = Union[
    StatisticsResult,
    SeasonalDecomposition,
    PredictionResult,
    RankingResult,
    ComparisonResult,
    TimeSeriesSlice,
]


def parse_format(fmt: Union[str, ExportFormat]) -> ExportFormat:
    """
    Raises:
        UnsupportedFormat: anything other than json or csv
    """
    if isinstance(fmt, ExportFormat):
        return fmt
    try:
        return ExportFormat(str(fmt).strip().lower())
    except ValueError:
        raise UnsupportedFormat(
            f"Unsupported export format '{fmt}'; use one of {[f.value for f in ExportFormat]}",
            format=str(fmt)
        ) from None


def export_filename(kind: str, subject: str, fmt: ExportFormat) -> str:
    return f"{kind}_{subject}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.{fmt.value}"


# =============================================================================
# CSV layouts
# =============================================================================

def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def flatten(d: dict, prefix: str = "") -> List[Tuple[str, Any]]:
    """Nested dict -> [(a_b_c, value)]"""
    rows = []
    for k, v in d.items():
        key = f"{prefix}{k}" if prefix else k
        if isinstance(v, dict):
            rows.extend(flatten(v, f"{key}_"))
        else:
            rows.append((key, v))
    return rows


def _rows(result: ExportableResult) -> Tuple[List[str], Iterable[list]]:
    if isinstance(result, TimeSeriesSlice):
        return (
            ["timestamp", "price", "volume"],
            zip(result.timestamps, result.prices, result.volumes),
        )

    if isinstance(result, SeasonalDecomposition):
        return (
            ["timestamp", "observed", "trend", "seasonal", "residual", "edge"],
            zip(result.timestamps, result.observed, result.trend,
                result.seasonal, result.residual, result.edge_mask),
        )

    if isinstance(result, PredictionResult):
        return (
            ["timestamp", "forecast", "confidence_low", "confidence_high"],
            (
                (p.timestamp, p.value, lo, hi)
                for p, lo, hi in zip(result.forecast, result.confidence_low, result.confidence_high)
            ),
        )

    if isinstance(result, RankingResult):
        return (
            ["rank", "asset_id", "score", "latest_price", "trend_slope", "volatility", "liquidity_depth"],
            (
                (e.rank, e.asset_id, e.score, e.metrics.latest_price, e.metrics.trend_slope,
                 e.metrics.volatility, e.metrics.liquidity_depth)
                for e in result.entries
            ),
        )

    # Scalar results
    return ["metric", "value"], flatten(result.to_dict())


def to_csv(result: ExportableResult) -> str:
    header, rows = _rows(result)
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(header)
    for row in rows:
        writer.writerow([_cell(v) for v in row])
    return output.getvalue()


def to_json(result: ExportableResult) -> str:
    return json.dumps(result.to_dict(), indent=2, default=str)


# =============================================================================
# Entry point
# =============================================================================

def export_result(result: ExportableResult, fmt: Union[str, ExportFormat]) -> bytes:
    """
    Serialize a result.

    Args:
        result: Any analytics result type
        fmt: "json" or "csv"

    Returns:
        UTF-8 encoded report

    Raises:
        UnsupportedFormat: unknown format
    """
    fmt = parse_format(fmt)
    if not hasattr(result, "to_dict"):
        raise UnsupportedFormat(
            f"Cannot export {type(result).__name__}",
            result_type=type(result).__name__
        )
    if fmt == ExportFormat.JSON:
        return to_json(result).encode("utf-8")
    return to_csv(result).encode("utf-8")
