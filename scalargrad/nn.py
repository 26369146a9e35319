"""
Neural Network Module
=====================

Feed-forward building blocks composed from engine Nodes.

This module provides:
- Activation: the nonlinearity a neuron applies to its weighted sum
- Module: Base class for all neural network components
- Neuron: A single neuron with weights, bias, and activation
- Layer: A collection of neurons (fully connected layer)
- MLP: Multi-layer perceptron (stack of layers)
- Loss functions and a plain SGD optimizer

Activations are always passed in explicitly; nothing here falls back to a
process-wide default.
"""

from __future__ import annotations

import enum
from typing import List, Optional, Sequence, Union

import numpy as np

from .engine import Node, NodeLike, constant


class Activation(enum.Enum):
    """Nonlinearity applied to a neuron's pre-activation."""

    TANH = 'tanh'
    RELU = 'relu'
    LINEAR = 'linear'

    def apply(self, x: Node) -> Node:
        if self is Activation.TANH:
            return x.tanh()
        if self is Activation.RELU:
            return x.relu()
        return x


class Module:
    """
    Base class for all neural network modules.

    Provides:
    - parameters(): collect all trainable Node objects
    - zero_grad(): reset gradients of those parameters
    """

    def parameters(self) -> List[Node]:
        """
        Return all trainable parameters in this module.

        Override this in subclasses to return the module's parameters.
        """
        return []

    def zero_grad(self) -> None:
        """Reset gradients of all parameters to zero."""
        for p in self.parameters():
            p.grad = 0.0

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def _default_rng(rng: Optional[np.random.Generator]) -> np.random.Generator:
    return rng if rng is not None else np.random.default_rng()


class Neuron(Module):
    """
    A single artificial neuron.

    Computes: output = activation(sum(w_i * x_i) + b)

    Weights and bias start uniformly distributed in [-1, 1).

    Attributes:
        w: List of weight Nodes
        b: Bias Node
        activation: Nonlinearity applied to the weighted sum

    Example:
        >>> n = Neuron(3, Activation.TANH)
        >>> out = n([1.0, 2.0, 3.0])
    """

    def __init__(
        self,
        nin: int,
        activation: Activation,
        rng: Optional[np.random.Generator] = None
    ) -> None:
        """
        Initialize a neuron.

        Args:
            nin: Number of inputs to this neuron.
            activation: Nonlinearity to apply.
            rng: Source of the initial weights. A fresh unseeded generator
                is used when omitted.
        """
        rng = _default_rng(rng)
        self.w: List[Node] = [
            Node(rng.uniform(-1.0, 1.0), label=f'w{i}')
            for i in range(nin)
        ]
        self.b: Node = Node(rng.uniform(-1.0, 1.0), label='b')
        self.activation: Activation = Activation(activation)

    def __call__(self, x: Sequence[NodeLike]) -> Node:
        """
        Forward pass: compute neuron output.

        Args:
            x: Inputs (Nodes or numbers).

        Raises:
            ValueError: If input length doesn't match weight count.
        """
        if len(x) != len(self.w):
            raise ValueError(
                f"Expected {len(self.w)} inputs, got {len(x)}"
            )

        act = self.b
        for wi, xi in zip(self.w, x):
            act = act + wi * constant(xi)

        return self.activation.apply(act)

    def parameters(self) -> List[Node]:
        """Return weights and bias."""
        return self.w + [self.b]

    def __repr__(self) -> str:
        return f"Neuron({len(self.w)}, {self.activation.value})"


class Layer(Module):
    """
    A fully connected layer of neurons.

    Every neuron receives the same input, so a layer with ``nout`` neurons
    maps ``nin`` inputs to ``nout`` outputs.
    """

    def __init__(
        self,
        nin: int,
        nout: int,
        activation: Activation,
        rng: Optional[np.random.Generator] = None
    ) -> None:
        rng = _default_rng(rng)
        self.neurons: List[Neuron] = [
            Neuron(nin, activation, rng=rng)
            for _ in range(nout)
        ]

    def __call__(self, x: Sequence[NodeLike]) -> List[Node]:
        return [n(x) for n in self.neurons]

    def parameters(self) -> List[Node]:
        return [p for n in self.neurons for p in n.parameters()]

    def __repr__(self) -> str:
        return f"Layer({len(self.neurons[0].w)} -> {len(self.neurons)})"


class MLP(Module):
    """
    Multi-Layer Perceptron: a stack of fully connected layers.

    Architecture:
        Input -> Hidden1 -> ... -> HiddenN -> Output

    Hidden layers use ``activation``. The output layer uses
    ``output_activation``, or ``activation`` as well when that is None.

    Example:
        >>> # 3 inputs -> 4 hidden -> 4 hidden -> 1 output, tanh throughout
        >>> model = MLP(3, [4, 4, 1], Activation.TANH)
        >>> out = model([1.0, 2.0, 3.0])  # Single output Node
    """

    def __init__(
        self,
        nin: int,
        nouts: Sequence[int],
        activation: Activation,
        output_activation: Optional[Activation] = None,
        rng: Optional[np.random.Generator] = None
    ) -> None:
        """
        Initialize an MLP.

        Args:
            nin: Number of input features.
            nouts: Layer sizes. Last element is output size.
            activation: Nonlinearity of the hidden layers.
            output_activation: Nonlinearity of the output layer.
            rng: Source of the initial weights.
        """
        if len(nouts) == 0:
            raise ValueError("MLP needs at least one layer size")
        if nin < 1 or any(size < 1 for size in nouts):
            raise ValueError(f"layer sizes must be positive: {[nin] + list(nouts)}")

        rng = _default_rng(rng)
        if output_activation is None:
            output_activation = activation

        sizes = [nin] + list(nouts)
        self.layers: List[Layer] = []
        for i in range(len(nouts)):
            is_output = (i == len(nouts) - 1)
            self.layers.append(
                Layer(
                    sizes[i],
                    sizes[i + 1],
                    output_activation if is_output else activation,
                    rng=rng
                )
            )

    def forward(self, x: Sequence[NodeLike]) -> List[Node]:
        """Run all layers and return every output Node."""
        for layer in self.layers:
            x = layer(x)
        return x

    def __call__(self, x: Sequence[NodeLike]) -> Union[Node, List[Node]]:
        """Forward pass; a single output is returned unwrapped."""
        out = self.forward(x)
        return out[0] if len(out) == 1 else out

    def parameters(self) -> List[Node]:
        return [p for layer in self.layers for p in layer.parameters()]

    def __repr__(self) -> str:
        layer_strs = [str(layer) for layer in self.layers]
        return f"MLP([{', '.join(layer_strs)}])"


# =============================================================================
# Loss Functions
# =============================================================================

def _check_lengths(predictions: Sequence[Node], targets: Sequence[float]) -> None:
    if len(predictions) != len(targets):
        raise ValueError(
            f"Got {len(predictions)} predictions for {len(targets)} targets"
        )
    if not predictions:
        raise ValueError("Loss needs at least one prediction")


def sum_squared_error(
    predictions: Sequence[Node],
    targets: Sequence[NodeLike]
) -> Node:
    """
    Sum of squared errors: sum((target_i - pred_i)^2)

    Args:
        predictions: Model outputs.
        targets: Ground truth values.

    Returns:
        Scalar Node representing the loss.
    """
    _check_lengths(predictions, targets)
    total = constant(0.0)
    for pred, target in zip(predictions, targets):
        total = total + (target - pred) ** 2
    return total


def mse_loss(
    predictions: Sequence[Node],
    targets: Sequence[NodeLike]
) -> Node:
    """
    Mean Squared Error loss.

    MSE = (1/n) * sum((pred_i - target_i)^2)
    """
    return sum_squared_error(predictions, targets) / len(predictions)


# =============================================================================
# Optimizers
# =============================================================================

class SGD:
    """
    Stochastic Gradient Descent optimizer.

    Updates parameters: p = p - lr * p.grad

    Attributes:
        params: List of parameters to optimize.
        lr: Learning rate.
    """

    def __init__(self, params: List[Node], lr: float = 0.01) -> None:
        self.params = params
        self.lr = lr

    def step(self) -> None:
        """Move every parameter against its gradient. Call after backward()."""
        for p in self.params:
            p.assign(p.value - self.lr * p.grad)

    def zero_grad(self) -> None:
        """Reset all gradients to zero."""
        for p in self.params:
            p.grad = 0.0
