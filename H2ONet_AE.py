#%%########### 1. Import Required Libraries and Configuration ##############

import warnings
import numpy as np
from H2ONet import (H2ONetBase, init_cluster, shutdown_cluster, load_mnist, train_autoencoder,
                    train_pretrained, extract_features, train_on_features, reconstruction_error,
                    reconstruct, evaluate_model, frame_to_numpy, error_bands, plot_digits,
                    training_accuracies, NUM_PIXELS)
warnings.filterwarnings("ignore", category=UserWarning)  # h2o warns about every dropped constant column

# Cluster Configuration
nthreads = -1
max_mem_size = "4G"

# Autoencoder Configuration
ae_hidden_units = [50]     # Bottleneck layer(s); 784 → 50 → 784
ae_activation = 'tanh'     # Bounded activation keeps reconstructions stable
ae_epochs = 5
ae_l1_coeff = 1e-4         # Sparse activations
feature_layer = 0          # Hidden layer (0-based) used as the reduced feature space

# Pretrained Classifier Configuration
clf_epochs = 5

# Secondary Model Configuration
ntrees = 50
max_depth = 20

# Anomaly Plot Configuration
band_size = 25             # Digits per plot (5x5 grid)
seed = 42

# WandB Configuration
use_wandb = False
wandb_project = "h2onet-mnist-ae"
wandb_mode = "online"
wandb_config = {
    "num_features": NUM_PIXELS,
    "hidden_units": ae_hidden_units,
    "activation": ae_activation,
    "num_epochs": ae_epochs,
    "l1_coeff": ae_l1_coeff,
    "dataset": "MNIST",
    "framework": "H2O"
}




#%%######################### 2. Load MNIST Data ############################

init_cluster(nthreads=nthreads, max_mem_size=max_mem_size)
train_frame, test, x, y = load_mnist()




#%%####################### 3. Train the Autoencoder ########################

class H2ONet_AE(H2ONetBase):
    """MNIST autoencoder configuration using shared base functionality"""
    pass

ae_net = H2ONet_AE(ae_hidden_units, ae_activation, l1_coeff=ae_l1_coeff, epochs=ae_epochs,
                   autoencoder=True, seed=seed, sparse=True)
ae_net.describe()

# Unsupervised: the labels are never shown to the autoencoder
ae_model = train_autoencoder(
    ae_net, x, train_frame,
    model_id="ae_mnist",
    use_wandb=use_wandb,
    wandb_project=wandb_project,
    wandb_config=wandb_config,
    wandb_mode=wandb_mode
)




#%%################# 4. Deep Features + Secondary Model ####################

# 784 pixels → 50 learned features
train_features = extract_features(ae_model, train_frame, layer=feature_layer)
test_features = extract_features(ae_model, test, layer=feature_layer)
print(f"Deep feature columns: {train_features.ncols} (was {len(x)} pixels)")

forest = train_on_features(train_features, train_frame, y, ntrees=ntrees, max_depth=max_depth,
                           seed=seed, model_id="drf_deep_features")
evaluate_model(forest, test_features.cbind(test[y]), y)




#%%################ 5. Classifier Pretrained by Autoencoder ################

clf_net = H2ONet_AE(ae_hidden_units, ae_activation, epochs=clf_epochs, seed=seed, sparse=True)
clf_model = train_pretrained(clf_net, ae_model, x, y, train_frame, model_id="dl_mnist_pretrained")
evaluate_model(clf_model, test, y, training_accuracies(clf_model.score_history()), use_wandb=use_wandb)




#%%####################### 6. Anomaly Detection ############################

# Per-row reconstruction MSE on the unseen test digits
test_rec_error = reconstruction_error(ae_model, test)
test_rec = frame_to_numpy(reconstruct(ae_model, test))
test_pixels = frame_to_numpy(test, columns=x)

print(f"\nReconstruction error: min {test_rec_error.min():.4f}, "
      f"median {np.median(test_rec_error):.4f}, "
      f"max {test_rec_error.max():.4f}")

bands = error_bands(len(test_rec_error), size=band_size)




#%%################ 7. Plot Good / Median / Bad Digits #####################

# Reconstructions: the autoencoder's view of the digits
for name, rows in bands.items():
    plot_digits(test_rec, test_rec_error, rows, save_path=None)  # e.g. f'rec_{name}.png'

# Actual test digits: the worst ones are the outliers
for name, rows in bands.items():
    plot_digits(test_pixels, test_rec_error, rows, save_path=None)  # e.g. f'test_{name}.png'

shutdown_cluster()
