"""
Sequential runner for the full DIA analysis.

prep -> missingness -> imputation -> long form -> statistics, and
imputation -> clustering. A clustering failure is reported and the run
finishes without clusters; imputation failures abort the run.
"""

from .clustering import cluster_dia
from .exceptions import DegenerateClusterRequestError
from .imputation import impute_dia
from .missingness import missing_dia
from .prep import prep_dia
from .reshape import long_dia
from .statistics import stat_dia
from .utils import _load_config, read_report


def report_skipped(data):
    """
    Print, per stage, which keys or columns were skipped and why.

    Returns
    -------
    dict
        Stage name -> list of {'key' or 'column', 'reason'} entries.
    """
    stats_skipped = data.get('stats_skipped', {})
    report = {
        'prep': [
            {'key': name, 'reason': 'missing NrOfPeptide/ProteinQuant partner'}
            for name in data.get('metadata', {}).get('unpaired_samples', [])
        ],
        'long': data.get('long_skipped', []),
        'replicate_tests': stats_skipped.get('replicate_tests', []),
        'entity_tests': stats_skipped.get('entity_tests', []),
        'clustering': data.get('cluster_skipped', []),
    }

    print("\n" + "="*80)
    print("SKIPPED KEYS BY STAGE")
    print("="*80)
    for stage, items in report.items():
        print(f"\n{stage}: {len(items)} skipped")
        for item in items[:10]:
            label = item.get('key', item.get('column'))
            print(f"  - {label}: {item['reason']}")
        if len(items) > 10:
            print(f"  ... and {len(items) - 10} more")
    print("="*80 + "\n")

    return report


def run_dia(config_path):
    """
    Run the whole analysis from a YAML configuration file.

    Parameters
    ----------
    config_path : str
        Path to YAML configuration; data_paths.input_file must point to the
        tab-delimited report.

    Returns
    -------
    dict
        Final data dictionary. Contains 'clusters' unless clustering failed,
        in which case 'cluster_error' holds the reason.

    Example
    -------
    >>> data = run_dia('config/experiment.yaml')
    >>> data['entity_tests'].query('significant')
    """
    config = _load_config(config_path)
    input_file = config['data_paths']['input_file']
    if not input_file:
        raise ValueError("Config has no data_paths.input_file")

    print(f"\nLoading report...")
    report = read_report(input_file)

    data = prep_dia(report, config)
    data = missing_dia(data)
    data = impute_dia(data)

    data = long_dia(data)
    data = stat_dia(data)

    try:
        data = cluster_dia(data)
    except DegenerateClusterRequestError as e:
        print(f"\nWarning: clustering aborted: {e}")
        data = dict(data)
        data['cluster_error'] = str(e)

    data['skipped'] = report_skipped(data)
    return data
