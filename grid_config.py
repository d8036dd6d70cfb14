# Hyperparameter grid for the H2ONet deep learning grid search
# Every entry is a list of values to try; the grid runs inside the H2O cluster

hyper_params = {
    # Architecture parameters
    'hidden': [
        [32, 32],
        [32, 16, 8],
        [100],
    ],
    'activation': ['Rectifier', 'Tanh'],

    # Regularization parameters
    'l1': [1e-4, 1e-3],
    'input_dropout_ratio': [0.0, 0.05],
}

# Random search: sample combinations until one of the stopping conditions is hit
search_criteria = {
    'strategy': 'RandomDiscrete',
    'max_models': 10,
    'max_runtime_secs': 360,
    'seed': 1234567,
    'stopping_rounds': 5,          # Stop when the best 5 models stop improving...
    'stopping_metric': 'logloss',
    'stopping_tolerance': 1e-2,    # ...by more than 1%
}

# Full grid: train every combination
cartesian_criteria = {
    'strategy': 'Cartesian'
}

# Fixed parameters shared by every model in the grid
base_params = {
    'epochs': 1,                   # Keep grid models short; retrain the winner longer
    'score_validation_samples': 10000,
    'score_duty_cycle': 0.025,     # Spend at most 2.5% of the time scoring
    'max_w2': 10,                  # Bound the squared weights per unit
    'stopping_rounds': 2,
    'stopping_metric': 'misclassification',
    'stopping_tolerance': 1e-2,
}
