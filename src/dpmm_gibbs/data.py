"""
Observation loading utilities for DPMM Gibbs.

Supports:
- CSV/TSV files with one numeric value column
- NumPy arrays (.npy)
- Per-study 2x2 count tables (meta-analysis), reduced to log odds ratios

Example CSV format for a trial meta-analysis:
    study,events_treatment,n_treatment,events_control,n_control
    1,2,357,1,176
    2,4,391,1,207
    ...
"""
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Optional

TABLE_COLUMNS = ('events_treatment', 'n_treatment', 'events_control', 'n_control')


def _validate(values: np.ndarray, source) -> np.ndarray:
    values = np.asarray(values, dtype=np.float64)
    if values.ndim != 1:
        raise ValueError(f"Observations must be 1-D, got shape {values.shape} from {source}")
    if values.size == 0:
        raise ValueError(f"No observations found in {source}")
    if not np.all(np.isfinite(values)):
        raise ValueError(f"Observations in {source} contain missing or non-finite values")
    return values


def load_observations(filepath, column: Optional[str] = None,
                      delimiter: str = ',') -> np.ndarray:
    """Load a 1-D array of observation values.

    Args:
        filepath: Path to a .csv/.tsv/.txt or .npy file
        column: Value column for delimited files. Defaults to the only
            numeric column.
        delimiter: Column delimiter for delimited files

    Returns:
        [N] float64 array
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Observation file not found: {filepath}")

    if filepath.suffix == '.npy':
        return _validate(np.load(filepath), filepath)

    df = pd.read_csv(filepath, sep=delimiter)
    if column is None:
        numeric = df.select_dtypes(include='number').columns
        if len(numeric) != 1:
            raise ValueError(
                f"{filepath} has {len(numeric)} numeric columns {list(numeric)}; "
                f"pass column= to choose one"
            )
        column = numeric[0]
    elif column not in df.columns:
        raise ValueError(f"Column '{column}' not found in {filepath}")

    return _validate(df[column].to_numpy(dtype=np.float64), filepath)


def log_odds_ratios(table: pd.DataFrame, correction: float = 0.5) -> np.ndarray:
    """Per-study log odds ratio of treatment vs control.

    A continuity correction is added to every cell of a study that has a
    zero cell.

    Args:
        table: DataFrame with columns events_treatment, n_treatment,
            events_control, n_control
        correction: Added to each cell of zero-cell studies

    Returns:
        [S] array of log odds ratios
    """
    missing = [c for c in TABLE_COLUMNS if c not in table.columns]
    if missing:
        raise ValueError(f"Count table is missing columns: {missing}")

    a = table['events_treatment'].to_numpy(dtype=np.float64)
    b = table['n_treatment'].to_numpy(dtype=np.float64) - a
    c = table['events_control'].to_numpy(dtype=np.float64)
    d = table['n_control'].to_numpy(dtype=np.float64) - c
    if np.any(np.stack([a, b, c, d]) < 0):
        raise ValueError("Event counts cannot exceed group sizes")

    zero_cell = (a == 0) | (b == 0) | (c == 0) | (d == 0)
    shift = np.where(zero_cell, correction, 0.0)
    a, b, c, d = a + shift, b + shift, c + shift, d + shift
    with np.errstate(divide='ignore'):
        return _validate(np.log(a * d) - np.log(b * c), 'count table')
