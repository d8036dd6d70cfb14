#%%########### 1. Import Required Libraries and Configuration ##############

import warnings
from H2ONet import (H2ONetBase, init_cluster, shutdown_cluster, load_mnist, split_frame, train,
                    continue_training, cross_validation_summary, variable_importances, training_accuracies,
                    grid_search, best_model, evaluate_model, plot_scoring_history, plot_confusion_matrix,
                    save_model, load_model, NUM_PIXELS, NUM_CLASSES)
import grid_config
warnings.filterwarnings("ignore", category=UserWarning)  # h2o warns about every dropped constant column

# Cluster Configuration
nthreads = -1              # -1 = use all cores
max_mem_size = "4G"        # Heap of the local H2O node

# Architecture Configuration
hidden_units = [32, 32, 32]    # Units per hidden layer [layer1, layer2, ...]
activation = 'relu'            # Activation function: 'relu', 'tanh', 'maxout', 'elu'
dropout_p = [0.1, 0.1, 0.1]    # Dropout ratios per hidden layer; 0.0 = no dropout
input_dropout = 0.2            # Dropout on the 784 pixel inputs
weights_init = 'adaptive'      # Weight initialization: 'adaptive', 'uniform', 'normal'

# Training Configuration
num_epochs = 10            # Passes over the training data
optimizer = 'adadelta'     # Optimizer: 'adadelta' (adaptive rate) or 'sgd'
loss = 'cross_entropy'     # Loss function: 'cross_entropy', 'mse', 'mae', 'huber'
l1_coeff = 1e-5            # L1 regularization coefficient
l2_coeff = 0.0             # L2 regularization coefficient (weight_decay)
sparse = True              # Most MNIST pixels are zero
seed = 42

# Early Stopping Configuration
stopping_rounds = 3                     # Scoring events without improvement before stopping
stopping_metric = 'misclassification'   # Metric watched by early stopping
stopping_tolerance = 1e-2               # Minimum relative improvement

# Cross-Validation Configuration
nfolds = 3

# WandB Configuration
use_wandb = False                        # Enable W&B logging
wandb_project = "h2onet-mnist"           # Your W&B project name
wandb_mode = "online"                    # W&B mode: "online", "offline", or "disabled"
wandb_config = {
    # Architecture
    "num_features": NUM_PIXELS,
    "hidden_units": hidden_units,
    "num_classes": NUM_CLASSES,
    "activation": activation,
    "weights_init": weights_init,

    # Training
    "optimizer": optimizer,
    "num_epochs": num_epochs,
    "loss": loss,
    "l1_coeff": l1_coeff,
    "l2_coeff": l2_coeff,
    "dropout_p": dropout_p,
    "input_dropout": input_dropout,
    "stopping_rounds": stopping_rounds,
    "stopping_metric": stopping_metric,

    # Metadata
    "dataset": "MNIST",
    "framework": "H2O"
}




#%%######################### 2. Load MNIST Data ############################

init_cluster(nthreads=nthreads, max_mem_size=max_mem_size)

train_full, test, x, y = load_mnist()

# Hold out 20% of the training data for validation (early stopping, grid ranking)
train_frame, valid_frame = split_frame(train_full, ratios=(0.8,), seed=seed)
print(f"Training rows: {train_frame.nrows:,}")
print(f"Validation rows: {valid_frame.nrows:,}")




#%%################ 3. Initialize MNIST Neural Network #####################

# Create MNIST-specific network class
class H2ONet_M10(H2ONetBase):
    """MNIST-specific network configuration using shared base functionality"""
    pass

# Initialize network
net = H2ONet_M10(hidden_units, activation, dropout_p, input_dropout, weights_init, loss, optimizer,
                 l1_coeff=l1_coeff, l2_coeff=l2_coeff, epochs=num_epochs, seed=seed, sparse=sparse)
net.describe()




#%%###################### 4. Train with Early Stopping ######################

model = train(
    net, x, y, train_frame, valid_frame,
    stopping_rounds=stopping_rounds,
    stopping_metric=stopping_metric,
    stopping_tolerance=stopping_tolerance,
    model_id="dl_mnist",
    use_wandb=use_wandb,
    wandb_project=wandb_project,
    wandb_config=wandb_config,
    wandb_mode=wandb_mode
)

history = model.score_history()
train_accuracies = training_accuracies(history)

plot_scoring_history(
    history,
    metric='classification_error',
    figsize=(10, 5),
    save_path=None  # Set to a path like 'mnist_scoring.png' to save
)




#%%########################## 5. Evaluate Model ############################

y_pred, y_true, test_accuracy, test_logloss = evaluate_model(
    model, test, y, train_accuracies, use_wandb=use_wandb
)

plot_confusion_matrix(
    y_true=y_true,
    y_pred=y_pred,
    class_names=[str(d) for d in range(NUM_CLASSES)],
    normalize=False,
    figsize=(10, 8),
    save_path=None  # Set to a path like 'mnist_confusion.png' to save
)

print("\nTop 10 pixels by importance:")
print(variable_importances(model, top_n=10))




#%%######################## 6. Cross-Validation ###########################

# Cross-validation uses the whole training frame; no separate validation frame
cv_net = H2ONet_M10(hidden_units, activation, dropout_p, input_dropout, weights_init, loss, optimizer,
                    l1_coeff=l1_coeff, epochs=1, seed=seed, sparse=sparse)
cv_model = train(cv_net, x, y, train_full, nfolds=nfolds, model_id="dl_mnist_cv")
cross_validation_summary(cv_model)




#%%###################### 7. Continue from Checkpoint ######################

# Same configuration, more epochs: training resumes where dl_mnist stopped
model_continued = continue_training(
    model, net, x, y, train_frame,
    epochs=num_epochs * 2,
    validation_frame=valid_frame,
    model_id="dl_mnist_continued",
    stopping_rounds=stopping_rounds,
    stopping_metric=stopping_metric,
    stopping_tolerance=stopping_tolerance
)
evaluate_model(model_continued, test, y, training_accuracies(model_continued.score_history()))




#%%######################### 8. Grid Search ###############################

# Base model without hidden dropout: the grid picks plain activations
grid_net = H2ONet_M10([32, 32], activation, None, 0.0, weights_init, loss, optimizer, seed=seed, sparse=sparse)

grid = grid_search(
    grid_net, x, y, train_frame, grid_config.hyper_params,
    validation_frame=valid_frame,
    search_criteria=grid_config.search_criteria,
    grid_id="dl_mnist_grid",
    sort_by='logloss',
    decreasing=False,
    use_wandb=use_wandb,
    wandb_project=wandb_project,
    wandb_config=grid_config.hyper_params,
    wandb_mode=wandb_mode,
    **grid_config.base_params
)

best = best_model(grid)
print(f"\nBest model: {best.model_id}")
print(f"   Hidden layers: {best.actual_params['hidden']}")
print(f"   Activation: {best.actual_params['activation']}")
print(f"   L1: {best.actual_params['l1']}")
print(f"   Input dropout: {best.actual_params['input_dropout_ratio']}")
evaluate_model(best, test, y)




#%%####################### 9. Save and Reload Model ########################

model_path = save_model(model, "./models")
reloaded = load_model(model_path)
evaluate_model(reloaded, test, y)

shutdown_cluster()
