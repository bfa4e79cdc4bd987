"""
DIA Proteomics Exploratory Analysis
===================================

A reusable Python package for exploring DIA protein quantification data
across vehicle and treat conditions, cell lines and replicates.

Main Functions
--------------
prep_dia()      - Expand protein groups, remove duplicates and decoys
qc_dia()        - Per-sample missingness and intensity summary
drop_samples()  - Remove problematic samples after QC
missing_dia()   - Profile missingness and bucket columns
impute_dia()    - MICE / predictive mean matching imputation
long_dia()      - Reshape sample columns into long form
stat_dia()      - Group summaries, t-tests and Wilcoxon tests
cluster_dia()   - Hierarchical + k-means clustering, PCA projection
run_dia()       - Run every step from a YAML config
save_data()     - Save analysis data for later
load_data()     - Load saved analysis data

Example Workflow
----------------
>>> from diaprot import read_report, prep_dia, missing_dia, impute_dia
>>> from diaprot import long_dia, stat_dia, cluster_dia
>>>
>>> data = prep_dia(read_report('data/dia_report.tsv'), 'config/experiment.yaml')
>>> data = missing_dia(data)
>>> data = impute_dia(data)
>>> data = stat_dia(long_dia(data))
>>> data = cluster_dia(data)
"""

from .prep import prep_dia
from .qc import qc_dia, drop_samples
from .missingness import missing_dia
from .imputation import impute_dia
from .reshape import long_dia, SampleColumn, parse_sample_column
from .statistics import stat_dia
from .clustering import cluster_dia
from .pipeline import run_dia, report_skipped
from .utils import read_report, save_data, load_data
from .exceptions import (
    DiaprotError,
    NoObservedDataError,
    InsufficientDonorsError,
    InsufficientSampleSizeError,
    DegenerateClusterRequestError,
    ColumnPatternMismatchError,
)


__version__ = "0.1.0"

__all__ = [
    'prep_dia',
    'qc_dia',
    'drop_samples',
    'missing_dia',
    'impute_dia',
    'long_dia',
    'stat_dia',
    'cluster_dia',
    'run_dia',
    'report_skipped',
    'read_report',
    'save_data',
    'load_data',
    'SampleColumn',
    'parse_sample_column',
    'DiaprotError',
    'NoObservedDataError',
    'InsufficientDonorsError',
    'InsufficientSampleSizeError',
    'DegenerateClusterRequestError',
    'ColumnPatternMismatchError',
]
