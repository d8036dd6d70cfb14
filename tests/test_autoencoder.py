"""Tests for autoencoder training, deep features, anomaly scores and the secondary forest."""

from unittest.mock import MagicMock

import numpy as np
import pandas as pd
import pytest

import H2ONet
from H2ONet import H2ONetBase
from conftest import FakeFrame


@pytest.fixture
def autoencoder():
    ae = MagicMock(model_id="ae_mnist", actual_params={"hidden": [64, 32, 64]})
    return ae


class TestTrainAutoencoder:
    def test_trains_without_response(self, monkeypatch, fake_estimator_cls, mnist_frame):
        monkeypatch.setattr(H2ONet, "H2OAutoEncoderEstimator", fake_estimator_cls)
        net = H2ONetBase([50], activation="tanh", autoencoder=True, epochs=3)

        model = H2ONet.train_autoencoder(net, ["C1", "C2"], mnist_frame, model_id="ae")

        params = fake_estimator_cls.call_args.kwargs
        assert params["model_id"] == "ae"
        assert params["loss"] == "Quadratic"
        assert params["activation"] == "Tanh"
        model.train.assert_called_once_with(x=["C1", "C2"], training_frame=mnist_frame)

    def test_requires_autoencoder_config(self, mnist_frame):
        with pytest.raises(ValueError):
            H2ONet.train_autoencoder(H2ONetBase([50]), ["C1"], mnist_frame)


class TestPretraining:
    def test_passes_pretrained_autoencoder(self, monkeypatch, fake_estimator_cls, autoencoder, mnist_frame):
        monkeypatch.setattr(H2ONet, "H2ODeepLearningEstimator", fake_estimator_cls)
        net = H2ONetBase([64, 32, 64], activation="tanh")

        H2ONet.train_pretrained(net, autoencoder, ["C1"], "C785", mnist_frame)

        assert fake_estimator_cls.call_args.kwargs["pretrained_autoencoder"] == "ae_mnist"
        assert fake_estimator_cls.call_args.kwargs["ignore_const_cols"] is False

    def test_layout_must_match(self, autoencoder, mnist_frame):
        with pytest.raises(ValueError, match="must match"):
            H2ONet.train_pretrained(H2ONetBase([64, 32]), autoencoder, ["C1"], "C785", mnist_frame)


class TestDeepFeatures:
    def test_extracts_requested_layer(self, autoencoder, mnist_frame):
        H2ONet.extract_features(autoencoder, mnist_frame, layer=1)
        autoencoder.deepfeatures.assert_called_once_with(mnist_frame, 1)

    @pytest.mark.parametrize("layer", [-1, 3])
    def test_layer_out_of_range(self, autoencoder, mnist_frame, layer):
        with pytest.raises(ValueError, match="layer must be in"):
            H2ONet.extract_features(autoencoder, mnist_frame, layer)


class TestReconstructionError:
    def test_returns_flat_array(self, autoencoder, mnist_frame):
        autoencoder.anomaly.return_value = FakeFrame(pd.DataFrame({"Reconstruction.MSE": [0.1, 0.02, 0.3]}))

        errors = H2ONet.reconstruction_error(autoencoder, mnist_frame)

        autoencoder.anomaly.assert_called_once_with(mnist_frame, per_feature=False)
        assert errors.shape == (3,)
        np.testing.assert_allclose(errors, [0.1, 0.02, 0.3])

    def test_reconstruct_uses_predict(self, autoencoder, mnist_frame):
        assert H2ONet.reconstruct(autoencoder, mnist_frame) is autoencoder.predict.return_value


class TestTrainOnFeatures:
    def test_binds_labels_and_trains_forest(self, monkeypatch, mnist_frame):
        forest_cls = MagicMock()
        monkeypatch.setattr(H2ONet, "H2ORandomForestEstimator", forest_cls)
        features = FakeFrame(pd.DataFrame({"DF.L1.C1": np.arange(6.0), "DF.L1.C2": np.ones(6)}))

        forest = H2ONet.train_on_features(features, mnist_frame, "C785", ntrees=10, max_depth=5, seed=1)

        assert forest_cls.call_args.kwargs == {"ntrees": 10, "max_depth": 5, "seed": 1}
        kwargs = forest.train.call_args.kwargs
        assert kwargs["x"] == ["DF.L1.C1", "DF.L1.C2"]
        assert kwargs["y"] == "C785"
        assert kwargs["training_frame"].columns == ["DF.L1.C1", "DF.L1.C2", "C785"]

    def test_unknown_response(self, mnist_frame):
        features = FakeFrame(pd.DataFrame({"DF.L1.C1": np.arange(6.0)}))
        with pytest.raises(ValueError, match="Unknown column"):
            H2ONet.train_on_features(features, mnist_frame, "label")

    def test_row_count_mismatch(self, mnist_frame):
        features = FakeFrame(pd.DataFrame({"DF.L1.C1": np.arange(4.0)}))
        with pytest.raises(ValueError, match="rows"):
            H2ONet.train_on_features(features, mnist_frame, "C785")
