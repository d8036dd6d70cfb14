"""Shared test fixtures for H2ONet tests. No H2O cluster is started."""

from unittest.mock import MagicMock

import matplotlib
matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest


class FakeFrame:
    """Stand-in for an H2OFrame backed by a pandas DataFrame."""

    def __init__(self, df, factor_columns=None):
        self.df = df.reset_index(drop=True)
        self.factor_columns = set(factor_columns or [])

    @property
    def columns(self):
        return list(self.df.columns)

    @property
    def nrows(self):
        return len(self.df)

    @property
    def ncols(self):
        return len(self.df.columns)

    def __getitem__(self, key):
        cols = key if isinstance(key, list) else [key]
        return FakeFrame(self.df[cols].copy(), self.factor_columns & set(cols))

    def __setitem__(self, key, value):
        self.df[key] = value.df.iloc[:, 0].to_numpy()
        if value.factor_columns:
            self.factor_columns.add(key)

    def asfactor(self):
        return FakeFrame(self.df.copy(), set(self.df.columns))

    def as_data_frame(self, use_pandas=True):
        return self.df.copy()

    def cbind(self, other):
        return FakeFrame(pd.concat([self.df, other.df], axis=1), self.factor_columns | other.factor_columns)

    def split_frame(self, ratios, seed=None):
        cut = int(len(self.df) * ratios[0])
        return [FakeFrame(self.df.iloc[:cut].copy()), FakeFrame(self.df.iloc[cut:].copy())]


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


@pytest.fixture
def mnist_frame():
    """A 6-row frame with 784 pixel columns and the label column C785."""
    rng = np.random.RandomState(0)
    pixels = rng.randint(0, 256, size=(6, 784))
    df = pd.DataFrame(pixels, columns=[f"C{i}" for i in range(1, 785)])
    df["C785"] = [0, 1, 2, 3, 4, 5]
    return FakeFrame(df)


@pytest.fixture
def history():
    """Scoring history of a classifier scored three times with a validation frame."""
    return pd.DataFrame({
        "timestamp": ["t0", "t1", "t2"],
        "duration": [" 0.000 sec", " 2.100 sec", " 4.300 sec"],
        "epochs": [0.0, 1.0, 2.0],
        "training_classification_error": [0.3, 0.2, 0.25],
        "validation_classification_error": [0.35, 0.22, 0.21],
        "training_logloss": [1.2, 0.6, 0.5],
    })


@pytest.fixture
def history_with_epoch_zero():
    """Scoring history as the cluster reports it: the epoch-0 row has no metrics yet."""
    nan = float("nan")
    return pd.DataFrame({
        "duration": [" 0.000 sec", " 1.000 sec", " 2.000 sec"],
        "epochs": [0.0, 1.0, 2.0],
        "training_classification_error": [nan, 0.2, 0.1],
    })


@pytest.fixture
def fake_estimator_cls(history):
    """Mock estimator class whose instances return the history fixture."""
    cls = MagicMock(name="EstimatorClass")
    instance = cls.return_value
    instance.model_id = "dl_model"
    instance.score_history.return_value = history
    return cls
