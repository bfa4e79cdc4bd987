"""
Error types raised by the DIA analysis pipeline.

Stage-local failures (InsufficientSampleSizeError) are caught per grouping
key by the stage that raises them. Data-completeness failures abort the
imputation stage.
"""


class DiaprotError(Exception):
    """Base class for all pipeline errors."""


class NoObservedDataError(DiaprotError):
    """A column selected for imputation has no observed values."""

    def __init__(self, column):
        self.column = column
        super().__init__(f"Column '{column}' has no observed values to impute from")


class InsufficientDonorsError(DiaprotError):
    """Imputation could not find any fully-observed donor rows."""

    def __init__(self, columns):
        self.columns = list(columns)
        super().__init__(
            f"No row is fully observed across {len(self.columns)} selected columns"
        )


class InsufficientSampleSizeError(DiaprotError):
    """A test group has fewer than 2 observations on one side."""

    def __init__(self, key, n_vehicle, n_treat, min_size=2):
        self.key = key
        self.n_vehicle = n_vehicle
        self.n_treat = n_treat
        super().__init__(
            f"{key}: need >= {min_size} values per side, "
            f"got vehicle={n_vehicle}, treat={n_treat}"
        )


class DegenerateClusterRequestError(DiaprotError):
    """More clusters were requested than there are distinct entities."""

    def __init__(self, n_clusters, n_entities):
        self.n_clusters = n_clusters
        self.n_entities = n_entities
        super().__init__(
            f"Requested {n_clusters} clusters but only {n_entities} distinct entities"
        )


class ColumnPatternMismatchError(DiaprotError):
    """A column name does not follow {CellLine}.{condition}.{replicate}_{metric}."""

    def __init__(self, column):
        self.column = column
        super().__init__(f"Column '{column}' does not match the sample column pattern")
