"""
Gradient-descent training loop.

Builds an MLP sized from the data, then repeats forward, loss, backward and
SGD update until the loss falls below the configured tolerance or the
iteration budget runs out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from numbers import Real
from typing import List, Sequence, Union

import numpy as np

from .config import TrainingConfig
from .engine import Node
from .nn import MLP, SGD, sum_squared_error

logger = logging.getLogger(__name__)

Target = Union[float, Sequence[float]]


@dataclass
class TrainingResult:
    """Outcome of a training run."""

    model: MLP
    losses: List[float] = field(default_factory=list)
    converged: bool = False

    @property
    def final_loss(self) -> float:
        return self.losses[-1]


def _as_rows(targets: Sequence[Target]) -> List[List[float]]:
    return [
        [float(t)] if isinstance(t, (Real, np.number)) else [float(v) for v in t]
        for t in targets
    ]


def _check_data(inputs: Sequence[Sequence[float]], targets: List[List[float]]) -> None:
    if len(inputs) == 0:
        raise ValueError("training needs at least one sample")
    if len(inputs) != len(targets):
        raise ValueError(
            f"Got {len(inputs)} input rows for {len(targets)} targets"
        )
    for name, rows in (("input", inputs), ("target", targets)):
        widths = {len(row) for row in rows}
        if len(widths) != 1:
            raise ValueError(f"{name} rows have inconsistent sizes: {sorted(widths)}")
        if 0 in widths:
            raise ValueError(f"{name} rows must not be empty")


def total_loss(model: MLP, inputs: Sequence[Sequence[float]], targets: List[List[float]]) -> Node:
    """Sum of squared errors over every sample and every output."""
    predictions: List[Node] = []
    expected: List[float] = []
    for x, y in zip(inputs, targets):
        predictions.extend(model.forward(x))
        expected.extend(y)
    return sum_squared_error(predictions, expected)


def gradient_descent(
    inputs: Sequence[Sequence[float]],
    targets: Sequence[Target],
    config: TrainingConfig
) -> TrainingResult:
    """
    Train an MLP on ``inputs`` -> ``targets`` with full-batch gradient descent.

    Args:
        inputs: One feature row per sample.
        targets: One target per sample, either a number (single output) or
            a row of numbers.
        config: Network shape and optimization settings.

    Returns:
        TrainingResult with the trained model, the loss of every evaluated
        iteration, and whether the tolerance was reached.

    Raises:
        ValueError: If the data is empty or inconsistently shaped.
    """
    rows = _as_rows(targets)
    _check_data(inputs, rows)

    sizes = list(config.hidden_sizes) + [len(rows[0])]
    model = MLP(
        len(inputs[0]),
        sizes,
        config.activation,
        output_activation=config.output_activation,
        rng=np.random.default_rng(config.seed)
    )
    optimizer = SGD(model.parameters(), lr=config.learning_rate)
    result = TrainingResult(model=model)
    logger.info("training %r on %d samples", model, len(inputs))

    for iteration in range(config.max_iterations):
        loss = total_loss(model, inputs, rows)
        result.losses.append(loss.value)
        logger.info("iteration %d loss %.6f", iteration, loss.value)

        if loss.value < config.tolerance:
            result.converged = True
            logger.info("tolerance %g reached after %d iterations",
                        config.tolerance, iteration)
            break

        loss.backward()
        optimizer.step()
    else:
        logger.info("stopped after %d iterations, loss %.6f",
                    config.max_iterations, result.final_loss)

    return result
