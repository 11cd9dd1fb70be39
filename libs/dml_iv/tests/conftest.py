"""Shared test fixtures for the partialling library.

The fixtures provide small synthetic designs and a configuration whose
grids have the default shapes (6 linear, 16 forest, 1 boosted record) but
far fewer trees and boosting rounds, so the full pipeline runs in seconds.
"""

import numpy as np
import pandas as pd
import pytest
import scipy.sparse as sp

from dml_iv.core.candidates import CandidateRecord, DiagnosticsTable, ModelFamily
from dml_iv.core.config import PartiallingConfig


@pytest.fixture
def random_state():
    """Provide a consistent random state for reproducible tests."""
    return 42


@pytest.fixture
def fast_config():
    """Partialling configuration with reduced but same-shaped grids."""
    return PartiallingConfig(
        random_state=180911,
        n_folds=5,
        enet_cv_folds=5,
        enet_n_penalties=20,
        rf_n_trees=[5, 10, 20, 40],
        xgb_max_rounds=200,
        xgb_cv_folds=3,
        xgb_early_stopping_rounds=10,
    )


@pytest.fixture
def linear_data(random_state):
    """N=100 rows, P=5 controls, y = 2 * x1 + noise."""
    rng = np.random.default_rng(random_state)
    x = rng.normal(size=(100, 5))
    y = 2.0 * x[:, 0] + rng.normal(scale=0.5, size=100)
    return y, x


@pytest.fixture
def sparse_linear_data(linear_data):
    """The linear design as a CSR matrix."""
    y, x = linear_data
    return y, sp.csr_matrix(x)


@pytest.fixture
def linear_table():
    """Small frozen table whose winner is a fixed-penalty elastic net."""
    records = [
        CandidateRecord(
            family=ModelFamily.LINEAR,
            label="Elastic Net (alpha=0.6)",
            mse=0.30,
            penalty=0.01,
            mixing=0.6,
        ),
        CandidateRecord(
            family=ModelFamily.FOREST,
            label="Random Forest (no. 1/16)",
            mse=0.45,
            mtry=2,
            n_trees=10,
        ),
        CandidateRecord(
            family=ModelFamily.BOOSTED,
            label="Extreme Gradient Boosting",
            mse=0.50,
            n_rounds=20,
            learning_rate=0.3,
            max_depth=2,
            gamma=0.0,
            subsample=0.75,
            colsample_bytree=0.8,
        ),
    ]
    return DiagnosticsTable(records).freeze()


@pytest.fixture
def survey_frame(random_state):
    """Survey-like sample with fixed effects, polynomials and country trends."""
    rng = np.random.default_rng(random_state)
    n = 240
    countries = np.array([11, 12, 13])
    country = rng.choice(countries, size=n)
    chbyear = rng.integers(1930, 1950, size=n)
    normchbyear = rng.integers(-12, 13, size=n)
    agemonth = rng.integers(600, 900, size=n).astype(float)
    yrseduc = rng.integers(6, 18, size=n).astype(float)
    compschool = (normchbyear > 0).astype(float)

    frame = pd.DataFrame(
        {
            "country": country,
            "chbyear": chbyear,
            "sex": rng.integers(1, 3, size=n),
            "chsex": rng.integers(1, 3, size=n),
            "int_year": rng.choice([2004, 2006, 2011], size=n),
            "agemonth": agemonth,
            "yrseduc": yrseduc,
            "normchbyear": normchbyear,
            "t_compschool": compschool,
            "w_ch": rng.uniform(0.5, 1.5, size=n),
        }
    )
    frame["chyrseduc"] = 8 + compschool + 0.3 * yrseduc + rng.normal(size=n)
    frame["eurodcat"] = 4 - 0.2 * frame["chyrseduc"] + rng.normal(size=n)

    for position, code in enumerate(countries, start=1):
        in_country = (country == code).astype(float)
        frame[f"trend1cntry_{position}"] = in_country * normchbyear
        frame[f"trend2cntry_{position}"] = in_country * normchbyear**2

    # A few incomplete rows, dropped during preparation
    frame.loc[[3, 17], "yrseduc"] = np.nan
    return frame
