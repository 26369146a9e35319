"""ScalarGrad: a scalar-value reverse-mode autograd engine."""

import logging

from .engine import (
    Node, Op, leaf, constant, add, mul, power, exp, tanh, relu, neg, sub, div,
    topological_sort, backward, draw_graph, write_dot,
)
from .nn import Activation, Module, Neuron, Layer, MLP, sum_squared_error, mse_loss, SGD
from .config import TrainingConfig
from .train import TrainingResult, gradient_descent

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "Node",
    "Op",
    "leaf",
    "constant",
    "add",
    "mul",
    "power",
    "exp",
    "tanh",
    "relu",
    "neg",
    "sub",
    "div",
    "topological_sort",
    "backward",
    "draw_graph",
    "write_dot",
    "Activation",
    "Module",
    "Neuron",
    "Layer",
    "MLP",
    "sum_squared_error",
    "mse_loss",
    "SGD",
    "TrainingConfig",
    "TrainingResult",
    "gradient_descent",
]
