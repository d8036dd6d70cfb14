"""Tests for H2ONetBase configuration and its translation to H2O parameters."""

from unittest.mock import MagicMock

import pytest

import H2ONet
from H2ONet import H2ONetBase


class TestEstimatorParams:
    def test_defaults_map_to_h2o_names(self):
        params = H2ONetBase([32, 32]).estimator_params()
        assert params["hidden"] == [32, 32]
        assert params["activation"] == "Rectifier"
        assert params["loss"] == "CrossEntropy"
        assert params["initial_weight_distribution"] == "UniformAdaptive"
        assert params["adaptive_rate"] is True
        assert params["variable_importances"] is True
        assert "hidden_dropout_ratios" not in params
        assert "seed" not in params

    def test_dropout_switches_activation(self):
        params = H2ONetBase([32, 16], activation="tanh", dropout_p=[0.5, 0.0]).estimator_params()
        assert params["activation"] == "TanhWithDropout"
        assert params["hidden_dropout_ratios"] == [0.5, 0.0]

    def test_all_zero_dropout_keeps_plain_activation(self):
        params = H2ONetBase([32, 16], dropout_p=[0.0, 0.0]).estimator_params()
        assert params["activation"] == "Rectifier"
        assert "hidden_dropout_ratios" not in params

    def test_sgd_sends_fixed_rate_and_momentum(self):
        net = H2ONetBase([10], optimizer="sgd", learning_rate=0.01, momentum=0.9)
        params = net.estimator_params()
        assert params["adaptive_rate"] is False
        assert params["rate"] == 0.01
        assert params["momentum_start"] == 0.9
        assert params["momentum_stable"] == 0.9

    def test_autoencoder_uses_quadratic_loss(self):
        params = H2ONetBase([50], loss="mae", autoencoder=True).estimator_params()
        assert params["loss"] == "Quadratic"
        assert "variable_importances" not in params
        assert params["ignore_const_cols"] is False

    def test_classifier_leaves_constant_columns_default(self):
        assert "ignore_const_cols" not in H2ONetBase([32]).estimator_params()

    def test_regularization_and_seed(self):
        params = H2ONetBase([8], l1_coeff=1e-5, l2_coeff=1e-4, input_dropout=0.2, seed=7, sparse=True).estimator_params()
        assert params["l1"] == 1e-5
        assert params["l2"] == 1e-4
        assert params["input_dropout_ratio"] == 0.2
        assert params["seed"] == 7
        assert params["sparse"] is True

    def test_overrides_win(self):
        params = H2ONetBase([8], epochs=10).estimator_params(epochs=3, model_id="m")
        assert params["epochs"] == 3
        assert params["model_id"] == "m"


class TestValidation:
    @pytest.mark.parametrize("kwargs", [
        dict(hidden_units=[]),
        dict(hidden_units=[32, 0]),
        dict(hidden_units=[32, -4]),
        dict(hidden_units=[32], dropout_p=[0.1, 0.1]),
        dict(hidden_units=[32], dropout_p=[1.0]),
        dict(hidden_units=[32], input_dropout=-0.1),
        dict(hidden_units=[32], activation="softplus"),
        dict(hidden_units=[32], weights_init="he"),
        dict(hidden_units=[32], loss="hinge"),
        dict(hidden_units=[32], optimizer="adam"),
        dict(hidden_units=[32], epochs=0),
        dict(hidden_units=[32], l1_coeff=-1e-5),
    ])
    def test_invalid_configurations_raise(self, kwargs):
        with pytest.raises(ValueError):
            H2ONetBase(**kwargs)

    def test_dropout_length_message(self):
        with pytest.raises(ValueError, match="dropout_p must have 2 values"):
            H2ONetBase([32, 32], dropout_p=[0.1])


class TestBuild:
    def test_classifier_uses_deep_learning_estimator(self, monkeypatch):
        dl_cls = MagicMock()
        ae_cls = MagicMock()
        monkeypatch.setattr(H2ONet, "H2ODeepLearningEstimator", dl_cls)
        monkeypatch.setattr(H2ONet, "H2OAutoEncoderEstimator", ae_cls)

        H2ONetBase([16], epochs=2).build(model_id="clf")

        dl_cls.assert_called_once()
        ae_cls.assert_not_called()
        assert dl_cls.call_args.kwargs["model_id"] == "clf"
        assert dl_cls.call_args.kwargs["epochs"] == 2

    def test_autoencoder_uses_autoencoder_estimator(self, monkeypatch):
        dl_cls = MagicMock()
        ae_cls = MagicMock()
        monkeypatch.setattr(H2ONet, "H2ODeepLearningEstimator", dl_cls)
        monkeypatch.setattr(H2ONet, "H2OAutoEncoderEstimator", ae_cls)

        H2ONetBase([50], activation="tanh", autoencoder=True).build()

        ae_cls.assert_called_once()
        dl_cls.assert_not_called()
        assert ae_cls.call_args.kwargs["activation"] == "Tanh"

    def test_real_autoencoder_keeps_constant_columns(self):
        estimator = H2ONetBase([50], autoencoder=True, sparse=True).build()
        assert estimator.ignore_const_cols is False

    def test_describe_prints_configuration(self, capsys):
        H2ONetBase([32, 32], optimizer="sgd", learning_rate=0.01).describe()
        out = capsys.readouterr().out
        assert "Hidden layers: [32, 32]" in out
        assert "Learning rate: 0.01" in out
