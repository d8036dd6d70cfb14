#%% H2ONet Shared Functions Module
"""
Shared functions for the H2ONet walkthroughs.
Contains everything used by both the M10 (MNIST classifier) and AE (autoencoder) scripts:
cluster session, data loading, network configuration, training, grid search,
evaluation, deep features, anomaly scoring and plotting.
All model fitting runs inside the H2O cluster; these functions only configure and call it.
"""

import math
import time
import numpy as np
import matplotlib.pyplot as plt
import h2o
import wandb
from sklearn.metrics import confusion_matrix
from h2o.estimators.deeplearning import H2ODeepLearningEstimator, H2OAutoEncoderEstimator
from h2o.estimators.random_forest import H2ORandomForestEstimator
from h2o.grid.grid_search import H2OGridSearch

# Dataset Configuration
MNIST_TRAIN_URL = "https://h2o-public-test-data.s3.amazonaws.com/bigdata/laptop/mnist/train.csv.gz"
MNIST_TEST_URL = "https://h2o-public-test-data.s3.amazonaws.com/bigdata/laptop/mnist/test.csv.gz"
IMAGE_SIDE = 28                         # MNIST: 28x28 pixels
NUM_PIXELS = IMAGE_SIDE * IMAGE_SIDE    # 784 pixel columns C1..C784
LABEL_COLUMN = "C785"                   # Digit label is the last column
NUM_CLASSES = 10                        # Digits 0-9

# Friendly names → H2O parameter values
ACTIVATIONS = {'relu': 'Rectifier', 'tanh': 'Tanh', 'maxout': 'Maxout', 'elu': 'ExpRectifier'}
WEIGHT_INITS = {'adaptive': 'UniformAdaptive', 'uniform': 'Uniform', 'normal': 'Normal'}
LOSSES = {'auto': 'Automatic', 'cross_entropy': 'CrossEntropy', 'mse': 'Quadratic', 'mae': 'Absolute', 'huber': 'Huber'}
OPTIMIZERS = ('adadelta', 'sgd')


# ====================== Cluster session ======================

def init_cluster(nthreads=-1, max_mem_size=None):
    """Start (or connect to) an H2O cluster. nthreads=-1 uses all available cores."""
    print("Connecting to H2O cluster...")
    h2o.init(nthreads=nthreads, max_mem_size=max_mem_size)
    h2o.cluster().show_status()


def shutdown_cluster():
    h2o.cluster().shutdown(prompt=False)


# ====================== Data ======================

def cast_to_factor(frame, column):
    """Cast a column's semantic type to categorical (in place) and return the frame"""
    if column not in frame.columns:
        raise ValueError(f"Unknown column: {column}")
    frame[column] = frame[column].asfactor()
    return frame


def predictor_columns(frame, y, ignore=None):
    """All columns except the response (and any ignored columns), in frame order"""
    ignore = set(ignore or [])
    return [c for c in frame.columns if c != y and c not in ignore]


def load_mnist(train_path=MNIST_TRAIN_URL, test_path=MNIST_TEST_URL, label_column=LABEL_COLUMN):
    """
    Import the MNIST train/test files into the cluster.

    Args:
        train_path: Path or URL of the training CSV
        test_path: Path or URL of the test CSV
        label_column: Name of the label column (cast to categorical in both frames)
    Returns:
        train, test: H2OFrames
        x: Predictor column names
        y: Response column name
    """
    print("Loading MNIST dataset...")
    train = h2o.import_file(train_path)
    test = h2o.import_file(test_path)

    # Classification needs a categorical response, not a numeric one
    cast_to_factor(train, label_column)
    cast_to_factor(test, label_column)

    x = predictor_columns(train, label_column)

    print(f"Successfully loaded!")
    print(f"Training samples: {train.nrows:,}")
    print(f"Test samples: {test.nrows:,}")
    print(f"Predictors: {len(x)}, response: {label_column}")
    return train, test, x, label_column


def split_frame(frame, ratios=(0.8,), seed=None):
    """Split a frame into len(ratios) + 1 parts using the cluster's splitter"""
    if sum(ratios) >= 1.0:
        raise ValueError(f"Split ratios must sum to less than 1, got {list(ratios)}")
    return frame.split_frame(ratios=list(ratios), seed=seed)


def frame_to_numpy(frame, columns=None):
    """Pull a frame (or some of its columns) into a local float array"""
    if columns is not None:
        frame = frame[columns]
    return frame.as_data_frame(use_pandas=True).to_numpy(dtype=float)


def _column_values(frame, column):
    return frame[column].as_data_frame(use_pandas=True).iloc[:, 0].to_numpy()


def _labels(values):
    # Factor levels come back as ints or strings depending on the column; compare as text
    values = np.asarray(values)
    if np.issubdtype(values.dtype, np.floating) and np.all(np.mod(values, 1) == 0):
        values = values.astype(int)
    return values.astype(str)


# ====================== Network configuration ======================

class H2ONetBase:
    """Base class holding the network configuration shared by all walkthroughs"""

    def __init__(self, hidden_units, activation='relu', dropout_p=None, input_dropout=0.0,
                 weights_init='adaptive', loss='cross_entropy', optimizer='adadelta',
                 learning_rate=0.005, momentum=0.0, l1_coeff=0.0, l2_coeff=0.0,
                 epochs=10, autoencoder=False, seed=None, sparse=False):
        """
        Initialize the network configuration. Nothing is sent to the cluster until build().

        Args:
            hidden_units: List of hidden layer sizes [layer1, layer2, ...]
            activation: Activation function ('relu', 'tanh', 'maxout', 'elu')
            dropout_p: List of dropout ratios for each hidden layer (None = no dropout)
            input_dropout: Dropout ratio for the input layer
            weights_init: Weight initialization ('adaptive', 'uniform', 'normal')
            loss: Loss function ('auto', 'cross_entropy', 'mse', 'mae', 'huber')
            optimizer: 'adadelta' (adaptive learning rate) or 'sgd' (fixed rate + momentum)
            learning_rate: Learning rate, only used by 'sgd'
            momentum: Momentum, only used by 'sgd'
            l1_coeff: L1 regularization coefficient
            l2_coeff: L2 regularization coefficient (weight decay)
            epochs: Number of passes over the training data
            autoencoder: Train an unsupervised autoencoder instead of a classifier
            seed: Random seed passed to the cluster
            sparse: Enable sparse data handling (useful for mostly-zero pixels)
        """
        hidden_units = list(hidden_units)
        if not hidden_units:
            raise ValueError("hidden_units must contain at least one layer")
        if any(int(u) != u or u <= 0 for u in hidden_units):
            raise ValueError(f"hidden_units must be positive integers, got {hidden_units}")

        num_hidden = len(hidden_units)
        if dropout_p is not None:
            if len(dropout_p) != num_hidden:
                raise ValueError(f"dropout_p must have {num_hidden} values (one per hidden layer)")
            for p in dropout_p:
                if not 0.0 <= p < 1.0:
                    raise ValueError(f"Dropout ratios must be in [0, 1), got {p}")
            dropout_p = list(dropout_p)
        else:
            dropout_p = [0.0] * num_hidden  # No dropout by default

        if not 0.0 <= input_dropout < 1.0:
            raise ValueError(f"input_dropout must be in [0, 1), got {input_dropout}")
        if activation not in ACTIVATIONS:
            raise ValueError(f"Unknown activation: {activation}")
        if weights_init not in WEIGHT_INITS:
            raise ValueError(f"Unknown weights_init: {weights_init}")
        if loss not in LOSSES:
            raise ValueError(f"Unknown loss function: {loss}")
        if optimizer not in OPTIMIZERS:
            raise ValueError(f"Unknown optimizer: {optimizer}")
        if epochs <= 0:
            raise ValueError(f"epochs must be positive, got {epochs}")
        if l1_coeff < 0 or l2_coeff < 0:
            raise ValueError("Regularization coefficients must be non-negative")

        self.hidden_units = hidden_units
        self.activation = activation
        self.dropout_p = dropout_p
        self.input_dropout = input_dropout
        self.weights_init = weights_init
        self.loss = loss
        self.optimizer = optimizer
        self.learning_rate = learning_rate
        self.momentum = momentum
        self.l1_coeff = l1_coeff
        self.l2_coeff = l2_coeff
        self.epochs = epochs
        self.autoencoder = autoencoder
        self.seed = seed
        self.sparse = sparse


    @property
    def uses_dropout(self):
        return any(p > 0.0 for p in self.dropout_p)


    def estimator_params(self, **overrides):
        """Translate the configuration into H2O deep learning parameters"""
        activation = ACTIVATIONS[self.activation]
        if self.uses_dropout:
            activation += 'WithDropout'  # H2O only honours hidden_dropout_ratios with a *WithDropout activation

        params = {
            'hidden': list(self.hidden_units),
            'activation': activation,
            'input_dropout_ratio': self.input_dropout,
            'initial_weight_distribution': WEIGHT_INITS[self.weights_init],
            'loss': 'Quadratic' if self.autoencoder else LOSSES[self.loss],
            'l1': self.l1_coeff,
            'l2': self.l2_coeff,
            'epochs': self.epochs,
            'sparse': self.sparse,
        }
        if self.uses_dropout:
            params['hidden_dropout_ratios'] = list(self.dropout_p)

        if self.optimizer == 'adadelta':
            params['adaptive_rate'] = True
        else:
            params['adaptive_rate'] = False
            params['rate'] = self.learning_rate
            params['momentum_start'] = self.momentum
            params['momentum_stable'] = self.momentum

        if self.autoencoder:
            params['ignore_const_cols'] = False  # Keep blank border pixels so reconstructions stay 784 wide
        else:
            params['variable_importances'] = True
        if self.seed is not None:
            params['seed'] = self.seed

        params.update(overrides)
        return params


    def build(self, **overrides):
        """Create an (untrained) estimator for this configuration"""
        estimator_cls = H2OAutoEncoderEstimator if self.autoencoder else H2ODeepLearningEstimator
        return estimator_cls(**self.estimator_params(**overrides))


    def describe(self):
        print(f"\nNetwork Architecture:")
        print(f"   Type: {'autoencoder' if self.autoencoder else 'classifier'}")
        print(f"   Hidden layers: {self.hidden_units}")
        print(f"   Activation: {self.activation}")
        print(f"   Weight init: {self.weights_init}")
        print(f"Training Configuration:")
        print(f"   Optimizer: {self.optimizer}")
        if self.optimizer == 'sgd':
            print(f"   Learning rate: {self.learning_rate}")
            print(f"   Momentum: {self.momentum}")
        print(f"   Epochs: {self.epochs}")
        print(f"   Loss function: {'mse' if self.autoencoder else self.loss}")
        print(f"   L1 coefficient: {self.l1_coeff}")
        print(f"   L2 coefficient: {self.l2_coeff}")
        print(f"   Input dropout: {self.input_dropout}")
        print(f"   Dropout probabilities: {self.dropout_p}")


# ====================== Training ======================

def _error_column(history, prefix):
    """Pick the error column a scoring history reports for training/validation"""
    for name in ('classification_error', 'rmse'):
        column = f"{prefix}_{name}"
        if column in history.columns:
            return column
    return None


def print_scoring_history(history):
    """Print the cluster's scoring history as an epoch table"""
    train_col = _error_column(history, 'training')
    valid_col = _error_column(history, 'validation')

    print("-" * 70)
    print(f"{'Epochs':<10} {'Train Err':<12} {'Valid Err':<12} {'Gain':<10} {'Time'}")
    print("-" * 70)

    previous = None
    for _, row in history.iterrows():
        train_err = row[train_col] if train_col else float('nan')
        valid_err = row[valid_col] if valid_col else float('nan')

        # Gain = how much the training error dropped since the last scoring event
        if previous is None or np.isnan(previous) or np.isnan(train_err):
            gain_str = "baseline"
        else:
            gain = previous - train_err
            if gain > 0:
                gain_str = f"+{gain:.4f}"
            elif gain < 0:
                gain_str = f"{gain:.4f}"  # Already has negative sign
            else:
                gain_str = " 0.0000"
        if not np.isnan(train_err):
            previous = train_err  # The epoch-0 row has no metrics yet

        epochs_str = f"{row.get('epochs', 0.0):.2f}"
        train_str = f"{train_err:.4f}"
        valid_str = f"{valid_err:.4f}" if valid_col else "-"
        time_str = str(row.get('duration', '')).strip()
        print(f"{epochs_str:<10} {train_str:<12} {valid_str:<12} {gain_str:<10} {time_str}")

    print("-" * 70)


def training_accuracies(history):
    """Training accuracy (%) per scoring event, from the classification error column"""
    if 'training_classification_error' not in history.columns:
        return []
    return [float((1.0 - err) * 100) for err in history['training_classification_error'] if not np.isnan(err)]


def _log_history_to_wandb(history):
    numeric = history.select_dtypes(include='number')
    for _, row in numeric.iterrows():
        wandb.log({name: float(value) for name, value in row.items() if not np.isnan(value)})


def _fit(estimator, train_kwargs, use_wandb=False, wandb_project=None, wandb_config=None, wandb_mode="online"):
    """Run estimator.train on the cluster, report the scoring history and timing"""
    # Initialize W&B if enabled
    if use_wandb and wandb_project:
        wandb.init(project=wandb_project, config=wandb_config, mode=wandb_mode)

    start_total = time.time()
    estimator.train(**train_kwargs)
    total_time = time.time() - start_total

    history = estimator.score_history()
    print_scoring_history(history)
    print(f"Model id: {estimator.model_id}")
    print(f"Total training time: {total_time:.1f}sec")
    print("-" * 70)

    if use_wandb and wandb_project:
        _log_history_to_wandb(history)

    # Don't finish W&B here - let evaluate_model do it after logging test metrics
    return estimator


def train(net, x, y, training_frame, validation_frame=None, nfolds=0, stopping_rounds=0,
          stopping_metric='AUTO', stopping_tolerance=1e-3, model_id=None, use_wandb=False,
          wandb_project=None, wandb_config=None, wandb_mode="online", **overrides):
    """
    Train an MLP classifier on the cluster.

    Args:
        net: H2ONetBase configuration (must not be an autoencoder)
        x, y: Predictor column names and response column name
        training_frame: H2OFrame to train on
        validation_frame: Optional H2OFrame scored during training (used by early stopping)
        nfolds: Number of cross-validation folds (0 = no cross-validation)
        stopping_rounds: Early stopping patience in scoring events (0 = disabled)
        stopping_metric: Metric watched by early stopping ('AUTO', 'logloss', 'misclassification', ...)
        stopping_tolerance: Relative improvement below which training stops
        model_id: Optional name for the model in the cluster
        use_wandb: Whether to use Weights & Biases logging
        wandb_project: W&B project name
        wandb_config: Dictionary of hyperparameters to log to W&B
        wandb_mode: W&B mode - "online", "offline", or "disabled"
        **overrides: Extra H2O deep learning parameters
    Returns:
        The trained model
    """
    if net.autoencoder:
        raise ValueError("Autoencoder configurations are trained with train_autoencoder()")
    if nfolds != 0 and nfolds < 2:
        raise ValueError(f"nfolds must be 0 or at least 2, got {nfolds}")

    params = dict(
        stopping_rounds=stopping_rounds,
        stopping_metric=stopping_metric,
        stopping_tolerance=stopping_tolerance,
    )
    if nfolds:
        params['nfolds'] = nfolds
    if model_id is not None:
        params['model_id'] = model_id
    params.update(overrides)

    estimator = net.build(**params)
    train_kwargs = dict(x=x, y=y, training_frame=training_frame)
    if validation_frame is not None:
        train_kwargs['validation_frame'] = validation_frame

    return _fit(estimator, train_kwargs, use_wandb, wandb_project, wandb_config, wandb_mode)


def continue_training(model, net, x, y, training_frame, epochs, validation_frame=None, model_id=None, **kwargs):
    """
    Resume training from a checkpoint. `epochs` is the total, so it must exceed what
    the checkpointed model has already done. The configuration must match the original.
    """
    previous = model.actual_params['epochs']
    if epochs <= previous:
        raise ValueError(f"epochs ({epochs}) must exceed the checkpoint's epochs ({previous})")
    print(f"Continuing {model.model_id} from {previous} to {epochs} epochs...")
    return train(net, x, y, training_frame, validation_frame=validation_frame, model_id=model_id,
                 checkpoint=model.model_id, epochs=epochs, **kwargs)


def cross_validation_summary(model):
    """Print and return the cross-validation metrics summary of a model trained with nfolds"""
    nfolds = model.actual_params.get('nfolds') or 0
    if nfolds < 2:
        raise ValueError(f"Model {model.model_id} was trained without cross-validation")
    summary = model.cross_validation_metrics_summary()
    print(f"\n=========== {nfolds}-fold Cross-Validation ===========")
    print(summary)
    return summary


def variable_importances(model, top_n=10):
    varimp = model.varimp(use_pandas=True)
    if varimp is None:
        raise ValueError(f"Model {model.model_id} has no variable importances")
    return varimp.head(top_n)


def save_model(model, directory):
    path = h2o.save_model(model=model, path=directory, force=True)
    print(f"Saved {model.model_id} to {path}")
    return path


def load_model(path):
    return h2o.load_model(path)


# ====================== Grid search ======================

def validate_hyper_params(hyper_params):
    """Check a hyperparameter grid and return the number of combinations it spans"""
    if not hyper_params:
        raise ValueError("hyper_params must define at least one parameter")
    combinations = 1
    for name, values in hyper_params.items():
        if not isinstance(values, (list, tuple)) or len(values) == 0:
            raise ValueError(f"hyper_params['{name}'] must be a non-empty list of values")
        combinations *= len(values)
    return combinations


def _model_metric(model, metric, valid):
    return float(getattr(model, metric)(valid=valid))


def grid_table(grid, param_names, metric, valid=True):
    """One row per grid model: model id, hyperparameter values, metric"""
    rows = []
    for model in grid.models:
        rows.append([model.model_id]
                    + [model.actual_params.get(name) for name in param_names]
                    + [_model_metric(model, metric, valid)])
    return rows


def grid_search(net, x, y, training_frame, hyper_params, validation_frame=None, search_criteria=None,
                grid_id='dl_grid', sort_by='logloss', decreasing=False, use_wandb=False,
                wandb_project=None, wandb_config=None, wandb_mode="online", **overrides):
    """
    Run a hyperparameter grid search on the cluster.

    Args:
        net: H2ONetBase configuration for the base model (grid values override it)
        x, y: Predictor column names and response column name
        training_frame: H2OFrame to train on
        hyper_params: Dict of parameter name → list of values to try
        validation_frame: Optional H2OFrame used to score and rank the models
        search_criteria: None / Cartesian for the full grid, or a RandomDiscrete dict
        grid_id: Name of the grid in the cluster
        sort_by: Metric used to rank the models
        decreasing: Sort order (False = lower is better, e.g. logloss)
        use_wandb: Whether to log the results table to W&B
        **overrides: Extra H2O deep learning parameters for the base model
    Returns:
        The grid, sorted by `sort_by`
    """
    combinations = validate_hyper_params(hyper_params)
    strategy = (search_criteria or {}).get('strategy', 'Cartesian')
    print(f"Grid '{grid_id}': {combinations} combinations ({strategy})")

    grid = H2OGridSearch(model=net.build(**overrides), hyper_params=hyper_params,
                         grid_id=grid_id, search_criteria=search_criteria)
    train_kwargs = dict(x=x, y=y, training_frame=training_frame)
    if validation_frame is not None:
        train_kwargs['validation_frame'] = validation_frame

    start_total = time.time()
    grid.train(**train_kwargs)
    total_time = time.time() - start_total

    sorted_grid = grid.get_grid(sort_by=sort_by, decreasing=decreasing)

    param_names = list(hyper_params.keys())
    rows = grid_table(sorted_grid, param_names, sort_by, valid=validation_frame is not None)
    columns = ['model_id'] + param_names + [sort_by]

    print("-" * 70)
    print("  ".join(f"{c:<16}" for c in columns))
    print("-" * 70)
    for row in rows:
        print("  ".join(f"{str(v):<16}" for v in row[:-1]) + f"  {row[-1]:.5f}")
    print("-" * 70)
    print(f"Models trained: {len(rows)}")
    print(f"Total grid time: {total_time:.1f}sec")

    if use_wandb and wandb_project:
        wandb.init(project=wandb_project, config=wandb_config, mode=wandb_mode)
        wandb.log({"grid": wandb.Table(columns=columns, data=[[str(v) for v in r[:-1]] + [r[-1]] for r in rows])})
        wandb.finish()

    return sorted_grid


def best_model(grid):
    if not grid.models:
        raise ValueError("Grid contains no models")
    return grid.models[0]


# ====================== Evaluation ======================

def evaluate_model(model, test, y, train_accuracies=None, use_wandb=False):
    """
    Evaluate model performance on a test frame and print results

    Args:
        model: Trained classifier
        test: Test H2OFrame (must contain the response column)
        y: Response column name
        train_accuracies: Optional list of training accuracies (%) from training
        use_wandb: Whether to log test metrics to W&B
    Returns:
        y_pred, y_true: Predicted and true labels (as strings)
        test_accuracy: Fraction of correct predictions
        test_logloss: Multinomial logloss on the test frame
    """
    perf = model.model_performance(test_data=test)
    predictions = model.predict(test)

    y_pred = _labels(_column_values(predictions, 'predict'))
    y_true = _labels(_column_values(test, y))
    test_accuracy = float(np.mean(y_pred == y_true))
    test_logloss = float(perf.logloss())
    test_mse = float(perf.mse())

    print(f"\n================== Final Results ==================")
    print(f"Test Accuracy: {test_accuracy * 100:.2f}%")
    print(f"Test Logloss: {test_logloss:.4f}")
    print(f"Test MSE: {test_mse:.4f}")
    if train_accuracies:
        print(f"Training Accuracy Improvement: {(train_accuracies[-1] - train_accuracies[0]):.1f}% points")
        print(f"Final Training Accuracy: {train_accuracies[-1]:.2f}%")

    # Log test metrics to W&B if enabled and run is still active
    if use_wandb and wandb.run is not None:
        wandb.log({
            "test_accuracy": test_accuracy * 100,
            "test_logloss": test_logloss,
            "test_mse": test_mse
        })
        wandb.finish(quiet=False)

    return y_pred, y_true, test_accuracy, test_logloss


def plot_scoring_history(history, metric='classification_error', figsize=(10, 5), save_path=None, show=True):
    """Plot training (and validation, when scored) `metric` against epochs"""
    train_col = f"training_{metric}"
    valid_col = f"validation_{metric}"
    if train_col not in history.columns:
        raise ValueError(f"Scoring history has no column {train_col}")

    fig, ax = plt.subplots(figsize=figsize)
    ax.plot(history['epochs'], history[train_col], marker='o', label='Training')
    if valid_col in history.columns:
        ax.plot(history['epochs'], history[valid_col], marker='o', label='Validation')
    ax.set_xlabel("Epochs")
    ax.set_ylabel(metric.replace('_', ' ').capitalize())
    ax.set_title(f"Scoring history: {metric}")
    ax.grid(True)
    ax.legend()
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150)
    if show:
        plt.show()
    return fig


def plot_confusion_matrix(y_true, y_pred, class_names=None, normalize=False, figsize=(10, 8), save_path=None, show=True):
    """Draw the confusion matrix of predicted vs true labels. Returns the figure and the matrix."""
    y_true = _labels(y_true)
    y_pred = _labels(y_pred)
    if class_names is None:
        class_names = sorted(set(y_true) | set(y_pred))
    labels = [str(c) for c in class_names]

    cm = confusion_matrix(y_true, y_pred, labels=labels).astype(float)
    if normalize:
        row_sums = cm.sum(axis=1, keepdims=True)
        cm = np.divide(cm, row_sums, out=np.zeros_like(cm), where=row_sums > 0)

    fig, ax = plt.subplots(figsize=figsize)
    im = ax.imshow(cm, cmap='Blues')
    fig.colorbar(im, ax=ax)
    ax.set_xticks(range(len(labels)))
    ax.set_yticks(range(len(labels)))
    ax.set_xticklabels(labels)
    ax.set_yticklabels(labels)
    ax.set_xlabel("Predicted")
    ax.set_ylabel("True")
    ax.set_title("Confusion matrix" + (" (normalized)" if normalize else ""))

    threshold = cm.max() / 2.0 if cm.size else 0.0
    for i in range(cm.shape[0]):
        for j in range(cm.shape[1]):
            text = f"{cm[i, j]:.2f}" if normalize else f"{int(cm[i, j])}"
            ax.text(j, i, text, ha='center', va='center', fontsize=7,
                    color='white' if cm[i, j] > threshold else 'black')
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150)
    if show:
        plt.show()
    return fig, cm


# ====================== Autoencoder & deep features ======================

def train_autoencoder(net, x, training_frame, validation_frame=None, model_id=None, use_wandb=False,
                      wandb_project=None, wandb_config=None, wandb_mode="online", **overrides):
    """Train an unsupervised autoencoder on the predictor columns (no response)"""
    if not net.autoencoder:
        raise ValueError("train_autoencoder() needs a configuration with autoencoder=True")
    if model_id is not None:
        overrides['model_id'] = model_id

    estimator = net.build(**overrides)
    train_kwargs = dict(x=x, training_frame=training_frame)
    if validation_frame is not None:
        train_kwargs['validation_frame'] = validation_frame

    return _fit(estimator, train_kwargs, use_wandb, wandb_project, wandb_config, wandb_mode)


def train_pretrained(net, autoencoder, x, y, training_frame, validation_frame=None, **kwargs):
    """Train a classifier whose weights start from a trained autoencoder (unsupervised pretraining)"""
    ae_hidden = list(autoencoder.actual_params['hidden'])
    if list(net.hidden_units) != ae_hidden:
        raise ValueError(f"hidden_units {net.hidden_units} must match the autoencoder's {ae_hidden}")
    # The input layer must match the autoencoder's, so keep the same constant columns
    kwargs.setdefault('ignore_const_cols', autoencoder.actual_params.get('ignore_const_cols', False))
    return train(net, x, y, training_frame, validation_frame=validation_frame,
                 pretrained_autoencoder=autoencoder.model_id, **kwargs)


def extract_features(autoencoder, frame, layer):
    """
    Extract the activations of one hidden layer (0-based) as a new frame.
    Columns are named DF.L<layer+1>.C1, DF.L<layer+1>.C2, ...
    """
    num_hidden = len(autoencoder.actual_params['hidden'])
    if not 0 <= layer < num_hidden:
        raise ValueError(f"layer must be in [0, {num_hidden - 1}], got {layer}")
    return autoencoder.deepfeatures(frame, layer)


def reconstruction_error(autoencoder, frame):
    """Per-row reconstruction MSE of an autoencoder, as a 1-D array"""
    errors = autoencoder.anomaly(frame, per_feature=False)
    return frame_to_numpy(errors).ravel()


def reconstruct(autoencoder, frame):
    return autoencoder.predict(frame)


def train_on_features(features, labels, y, ntrees=50, max_depth=20, seed=None, model_id=None):
    """
    Train a secondary random forest on a reduced feature space.

    Args:
        features: Frame of deep features (one row per sample)
        labels: Frame holding the response column for the same rows
        y: Response column name
        ntrees, max_depth: Forest size
    Returns:
        The trained forest
    """
    if y not in labels.columns:
        raise ValueError(f"Unknown column: {y}")
    if features.nrows != labels.nrows:
        raise ValueError(f"features has {features.nrows} rows but labels has {labels.nrows}")

    x = list(features.columns)
    data = features.cbind(labels[y])

    params = dict(ntrees=ntrees, max_depth=max_depth)
    if seed is not None:
        params['seed'] = seed
    if model_id is not None:
        params['model_id'] = model_id
    forest = H2ORandomForestEstimator(**params)

    start = time.time()
    forest.train(x=x, y=y, training_frame=data)
    print(f"Random forest on {len(x)} deep features trained in {time.time() - start:.1f}sec")
    return forest


# ====================== Digit plots ======================

def grid_side(n):
    """Side of the smallest square grid that holds n tiles"""
    if n <= 0:
        raise ValueError(f"Need at least one image, got {n}")
    return math.ceil(math.sqrt(n))


def order_by_error(rec_error, rows):
    """
    Row indices at the requested ranks of ascending reconstruction error.

    Args:
        rec_error: Reconstruction error per row
        rows: Slice, range or list of 0-based ranks (0 = lowest error).
              Slice bounds may be negative but must lie within [-N, N].
    """
    rec_error = np.asarray(rec_error, dtype=float).ravel()
    order = np.argsort(rec_error, kind='stable')
    if isinstance(rows, slice):
        for bound in (rows.start, rows.stop):
            if bound is not None and not -len(order) <= bound <= len(order):
                raise ValueError(f"Slice bound {bound} is outside [-{len(order)}, {len(order)}]")
        return order[rows]

    ranks = np.asarray(list(rows), dtype=int)
    if ranks.size and (ranks.min() < 0 or ranks.max() >= len(order)):
        raise ValueError(f"Ranks must be in [0, {len(order) - 1}]")
    return order[ranks]


def error_bands(n, size=25):
    """Rank ranges of the `size` lowest, median and highest reconstruction errors"""
    if n < size:
        raise ValueError(f"Need at least {size} rows, got {n}")
    start = n // 2 - size // 2
    return {
        'good': range(0, size),
        'median': range(start, start + size),
        'bad': range(n - size, n),
    }


def plot_digit(images, rec_error, figsize=None, cmap='gray_r', save_path=None, show=True):
    """
    Tile images into a square grid, each titled with its reconstruction error.

    Args:
        images: (N, 784) pixel rows
        rec_error: N reconstruction errors, in the same order as images
    Returns:
        The figure
    """
    images = np.asarray(images, dtype=float)
    rec_error = np.asarray(rec_error, dtype=float).ravel()
    if images.ndim != 2 or images.shape[1] != NUM_PIXELS:
        raise ValueError(f"images must have shape (N, {NUM_PIXELS}), got {images.shape}")
    if len(images) != len(rec_error):
        raise ValueError(f"Got {len(images)} images but {len(rec_error)} errors")

    side = grid_side(len(images))
    if figsize is None:
        figsize = (1.6 * side, 1.6 * side)
    fig, axes = plt.subplots(side, side, figsize=figsize, squeeze=False)

    for i, ax in enumerate(axes.ravel()):
        if i < len(images):
            ax.imshow(images[i].reshape(IMAGE_SIDE, IMAGE_SIDE), cmap=cmap)
            ax.set_title(f"rec_error: {round(float(rec_error[i]), 4)}", fontsize=7)
            ax.set_xticks([])
            ax.set_yticks([])
        else:
            ax.axis('off')  # Unused tile
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150)
    if show:
        plt.show()
    return fig


def plot_digits(data, rec_error, rows, **kwargs):
    """Plot the rows at the given ranks of ascending reconstruction error"""
    data = np.asarray(data, dtype=float)
    rec_error = np.asarray(rec_error, dtype=float).ravel()
    if len(data) != len(rec_error):
        raise ValueError(f"Got {len(data)} rows but {len(rec_error)} errors")
    row_idx = order_by_error(rec_error, rows)
    return plot_digit(data[row_idx], rec_error[row_idx], **kwargs)
