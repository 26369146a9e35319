"""
Unit Tests: Network Composition
===============================

Neurons, layers, MLPs, losses and the SGD optimizer.

Run with: pytest tests/test_nn.py -v
"""

import math

import numpy as np
import pytest

from scalargrad import (
    Node, Activation, Module, Neuron, Layer, MLP, sum_squared_error, mse_loss, SGD,
)


def assert_close(actual: float, expected: float, tol: float = 1e-9) -> None:
    diff = abs(actual - expected)
    assert diff < tol, f"Values differ: {actual} vs {expected} (diff={diff})"


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(0)


class TestActivation:

    def test_apply(self) -> None:
        x = Node(-0.5)
        assert_close(Activation.TANH.apply(x).value, math.tanh(-0.5))
        assert Activation.RELU.apply(x).value == 0.0
        assert Activation.LINEAR.apply(x) is x

    def test_from_string(self) -> None:
        assert Activation('relu') is Activation.RELU


class TestNeuron:

    def test_creation(self, rng) -> None:
        n = Neuron(3, Activation.TANH, rng=rng)
        assert len(n.w) == 3
        assert all(-1.0 <= p.value < 1.0 for p in n.parameters())
        assert repr(n) == "Neuron(3, tanh)"

    def test_seeded_weights_are_reproducible(self) -> None:
        n1 = Neuron(4, Activation.RELU, rng=np.random.default_rng(7))
        n2 = Neuron(4, Activation.RELU, rng=np.random.default_rng(7))
        assert [p.value for p in n1.parameters()] == [p.value for p in n2.parameters()]

    def test_linear_forward(self, rng) -> None:
        n = Neuron(2, Activation.LINEAR, rng=rng)
        n.w[0].assign(1.0)
        n.w[1].assign(2.0)
        n.b.assign(0.5)

        out = n([Node(1.0), 1.0])
        # 1*1 + 2*1 + 0.5 = 3.5
        assert out.value == 3.5

    def test_tanh_forward_and_backward(self, rng) -> None:
        n = Neuron(2, Activation.TANH, rng=rng)
        n.w[0].assign(0.5)
        n.w[1].assign(-1.0)
        n.b.assign(0.25)
        x = [Node(2.0), Node(1.0)]

        out = n(x)
        out.backward()

        pre = 0.5 * 2.0 - 1.0 * 1.0 + 0.25
        dpre = 1 - math.tanh(pre) ** 2
        assert_close(out.value, math.tanh(pre))
        assert_close(n.w[0].grad, dpre * 2.0)
        assert_close(n.w[1].grad, dpre * 1.0)
        assert_close(n.b.grad, dpre)
        assert_close(x[0].grad, dpre * 0.5)

    def test_parameters(self, rng) -> None:
        n = Neuron(3, Activation.RELU, rng=rng)
        assert len(n.parameters()) == 4  # 3 weights + 1 bias

    def test_input_mismatch(self, rng) -> None:
        n = Neuron(3, Activation.RELU, rng=rng)
        with pytest.raises(ValueError):
            n([Node(1.0), Node(2.0)])


class TestLayer:

    def test_forward(self, rng) -> None:
        layer = Layer(2, 3, Activation.TANH, rng=rng)
        out = layer([1.0, 1.0])
        assert len(out) == 3
        assert all(isinstance(o, Node) for o in out)

    def test_parameters(self, rng) -> None:
        layer = Layer(2, 3, Activation.TANH, rng=rng)
        # 3 neurons * (2 weights + 1 bias)
        assert len(layer.parameters()) == 9
        assert repr(layer) == "Layer(2 -> 3)"


class TestMLP:

    def test_creation(self, rng) -> None:
        mlp = MLP(3, [4, 4, 1], Activation.TANH, rng=rng)
        assert len(mlp.layers) == 3

    def test_output_activation_defaults_to_hidden(self, rng) -> None:
        mlp = MLP(3, [4, 1], Activation.TANH, rng=rng)
        assert all(n.activation is Activation.TANH
                   for layer in mlp.layers for n in layer.neurons)

    def test_output_activation_override(self, rng) -> None:
        mlp = MLP(3, [4, 2], Activation.RELU, output_activation=Activation.LINEAR, rng=rng)
        assert mlp.layers[0].neurons[0].activation is Activation.RELU
        assert mlp.layers[-1].neurons[0].activation is Activation.LINEAR

    def test_single_output_unwrapped(self, rng) -> None:
        mlp = MLP(2, [4, 1], Activation.TANH, rng=rng)
        assert isinstance(mlp([1.0, 2.0]), Node)
        assert len(mlp.forward([1.0, 2.0])) == 1

    def test_multiple_outputs(self, rng) -> None:
        mlp = MLP(2, [4, 3], Activation.TANH, rng=rng)
        out = mlp([1.0, 2.0])
        assert isinstance(out, list)
        assert len(out) == 3

    def test_parameters(self, rng) -> None:
        mlp = MLP(2, [3, 1], Activation.TANH, rng=rng)
        # Layer 1: 3 * (2 + 1) = 9, Layer 2: 1 * (3 + 1) = 4
        assert len(mlp.parameters()) == 13

    def test_backward_reaches_parameters(self, rng) -> None:
        mlp = MLP(2, [3, 1], Activation.TANH, rng=rng)
        out = mlp([Node(1.0), Node(2.0)])
        out.backward()
        assert any(p.grad != 0.0 for p in mlp.parameters())

    def test_zero_grad(self, rng) -> None:
        mlp = MLP(2, [3, 1], Activation.TANH, rng=rng)
        mlp([1.0, 2.0]).backward()
        mlp.zero_grad()
        assert all(p.grad == 0.0 for p in mlp.parameters())

    def test_no_layers_raises(self) -> None:
        with pytest.raises(ValueError):
            MLP(2, [], Activation.TANH)

    @pytest.mark.parametrize("nin, nouts", [(3, [0]), (3, [4, 0, 1]), (0, [2])])
    def test_non_positive_sizes_raise(self, nin, nouts) -> None:
        with pytest.raises(ValueError):
            MLP(nin, nouts, Activation.TANH)

    def test_repr(self, rng) -> None:
        assert repr(MLP(2, [3, 1], Activation.TANH, rng=rng)) == \
            "MLP([Layer(2 -> 3), Layer(3 -> 1)])"

    def test_base_module_has_no_parameters(self) -> None:
        assert Module().parameters() == []


class TestLosses:

    def test_sum_squared_error(self) -> None:
        preds = [Node(0.0), Node(0.0), Node(0.0)]
        loss = sum_squared_error(preds, [1.0, 2.0, 3.0])
        assert loss.value == 14.0

    def test_sum_squared_error_gradient(self) -> None:
        p = Node(0.5)
        loss = sum_squared_error([p], [2.0])
        loss.backward()
        # d/dp (2 - p)^2 = -2 (2 - p)
        assert loss.value == 2.25
        assert p.grad == -3.0

    def test_mse_loss(self) -> None:
        preds = [Node(1.0), Node(2.0), Node(3.0)]
        assert mse_loss(preds, [1.0, 2.0, 3.0]).value == 0.0

        preds = [Node(0.0), Node(0.0), Node(0.0)]
        assert_close(mse_loss(preds, [1.0, 2.0, 3.0]).value, 14 / 3)

    def test_length_mismatch(self) -> None:
        with pytest.raises(ValueError):
            sum_squared_error([Node(1.0)], [1.0, 2.0])
        with pytest.raises(ValueError):
            mse_loss([], [])


class TestSGD:

    def test_step(self) -> None:
        w = Node(1.0)
        w.grad = 0.1
        SGD([w], lr=0.1).step()
        # w = w - lr * grad = 1.0 - 0.1 * 0.1
        assert_close(w.value, 0.99)

    def test_zero_grad(self) -> None:
        w = Node(1.0)
        w.grad = 3.0
        SGD([w]).zero_grad()
        assert w.grad == 0.0

    def test_step_refuses_derived_nodes(self) -> None:
        derived = Node(1.0) * 2
        derived.grad = 1.0
        with pytest.raises(ValueError):
            SGD([derived]).step()
