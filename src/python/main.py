#!/usr/bin/env python3
"""
===============================================================================
QTSTATS - COMMAND LINE ENTRY POINT
===============================================================================
Pointwise geometric mean or median of a sample of quaternion time series.

Each input CSV file holds one QTS with the columns time, w, x, y, z. All
files must share the same number of rows (grid points).

USAGE:
    python main.py mean   a.csv b.csv c.csv --output mean.csv
    python main.py median data/*.csv --output median.csv --jobs 4
    python main.py mean   data/*.csv --output mean.csv --plot mean.png
    python main.py median data/*.csv --output median.csv \\
        --config config/aggregation_config.yaml --log-level DEBUG

CONFIGURATION:
    An optional YAML file with an ``aggregation`` section holding per-
    statistic ``tolerance``, ``max_iterations`` and ``n_jobs``. Missing keys
    fall back to the defaults in qtstats.core.constants. ``--jobs`` on the
    command line overrides ``n_jobs``.

DEPENDENCIES:
    numpy, scipy, pandas, matplotlib, pyyaml

===============================================================================
"""

import sys
import argparse
import logging
import time
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import yaml

# ---------------------------------------------------------------------------
# Path setup: make the package importable without installation
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from qtstats.core.constants import (
    MEAN_MAX_ITERATIONS, MEAN_TOLERANCE, MEDIAN_MAX_ITERATIONS,
    MEDIAN_TOLERANCE
)
from qtstats.series.aggregate import mean_series, median_series
from qtstats.series.qts import as_qts
from qtstats.series.sample import QTSSample

logger = logging.getLogger('QTSTATS_MAIN')

DEFAULT_CONFIG = {
    'aggregation': {
        'mean': {
            'tolerance': MEAN_TOLERANCE,
            'max_iterations': MEAN_MAX_ITERATIONS,
            'n_jobs': 1,
        },
        'median': {
            'tolerance': MEDIAN_TOLERANCE,
            'max_iterations': MEDIAN_MAX_ITERATIONS,
            'n_jobs': 1,
        },
    },
}

STATISTICS = {
    'mean': mean_series,
    'median': median_series,
}


def setup_logging(level: str = 'INFO') -> None:
    """Configure root logging to stdout."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def load_config(config_path: Optional[str] = None) -> Dict:
    """
    Load aggregation settings from a YAML file, on top of the defaults.

    Args:
        config_path: Path to a YAML config. None returns the defaults.

    Returns:
        Dictionary with an 'aggregation' section for 'mean' and 'median'.

    Raises:
        ValueError: If the file, its 'aggregation' section or a statistic's
            settings are not mappings.
        yaml.YAMLError: If the file is not valid YAML.
    """
    config = {
        'aggregation': {
            stat: dict(settings)
            for stat, settings in DEFAULT_CONFIG['aggregation'].items()
        }
    }
    if config_path is None:
        return config

    logger.info("Loading configuration from: %s", config_path)
    with open(config_path, 'r') as f:
        user_config = yaml.safe_load(f) or {}
    if not isinstance(user_config, dict):
        raise ValueError(f"Config file {config_path} must hold a mapping")

    sections = user_config.get('aggregation') or {}
    if not isinstance(sections, dict):
        raise ValueError("Config section 'aggregation' must be a mapping")

    for stat, settings in sections.items():
        if stat not in config['aggregation']:
            logger.warning("Ignoring unknown statistic '%s' in config", stat)
            continue
        if settings is None:
            continue
        if not isinstance(settings, dict):
            raise ValueError(
                f"Config settings for '{stat}' must be a mapping, "
                f"got {type(settings).__name__}"
            )
        config['aggregation'][stat].update(settings)
    return config


def read_sample(paths: List[str]) -> QTSSample:
    """Read one QTS per CSV file."""
    sample = QTSSample()
    for path in paths:
        logger.info("Reading QTS from %s", path)
        sample.append(as_qts(pd.read_csv(path)))
    return sample


def run(statistic: str, inputs: List[str], output: str,
        config: Dict, n_jobs: Optional[int] = None,
        plot_path: Optional[str] = None) -> pd.DataFrame:
    """
    Aggregate the input files and write the result to ``output``.

    Returns:
        The aggregated QTS.
    """
    settings = dict(config['aggregation'][statistic])
    if n_jobs is not None:
        settings['n_jobs'] = n_jobs

    sample = read_sample(inputs)

    t_start = time.time()
    result = STATISTICS[statistic](
        sample,
        tolerance=float(settings['tolerance']),
        max_iterations=int(settings['max_iterations']),
        n_jobs=int(settings['n_jobs']),
    )
    logger.info("Geometric %s computed in %.2f s", statistic,
                time.time() - t_start)

    out_path = Path(output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    result.to_csv(out_path, index=False)
    logger.info("Wrote %d grid points to %s", len(result), out_path)

    if plot_path is not None:
        from qtstats.visualization.plots import plot_qts_sample
        plot_qts_sample(sample, aggregate=result,
                        aggregate_label=f'geometric {statistic}',
                        filepath=plot_path)
        logger.info("Saved plot to %s", plot_path)

    return result


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point. Parses command line arguments and runs the requested
    aggregation.

    Returns:
        Process exit status (0 on success, 1 on invalid input).
    """
    parser = argparse.ArgumentParser(
        description='Pointwise geometric mean / median of quaternion time series',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py mean a.csv b.csv --output mean.csv
  python main.py median data/*.csv --output median.csv --jobs 4
        """
    )
    parser.add_argument('statistic', choices=sorted(STATISTICS),
                        help='Statistic to compute at each grid point')
    parser.add_argument('inputs', nargs='+',
                        help='CSV files, one QTS each (time,w,x,y,z)')
    parser.add_argument('--output', '-o', required=True,
                        help='Output CSV path for the aggregated QTS')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to aggregation config YAML')
    parser.add_argument('--jobs', type=int, default=None,
                        help='Worker processes (overrides the config)')
    parser.add_argument('--plot', type=str, default=None,
                        help='Also save a plot of the sample and result')
    parser.add_argument('--log-level', type=str, default='INFO',
                        help='Logging level (default: INFO)')

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = load_config(args.config)
        run(args.statistic, args.inputs, args.output, config,
            n_jobs=args.jobs, plot_path=args.plot)
    except (ValueError, TypeError, OSError, yaml.YAMLError) as e:
        logger.error("Aggregation failed: %s", e)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
