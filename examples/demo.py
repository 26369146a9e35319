#!/usr/bin/env python3
"""
ScalarGrad Demo: Gradients and a Tiny Training Run
==================================================

1. Differentiate a small expression and print its computation graph
2. Export that graph as Graphviz DOT
3. Fit a 3 -> 4 -> 4 -> 1 tanh network to four labelled points
4. Plot the loss curve

Run: python examples/demo.py
"""

import logging
from pathlib import Path
from typing import List

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from scalargrad import Activation, Node, TrainingConfig, draw_graph, gradient_descent, write_dot

logger = logging.getLogger("demo")

OUTPUT_DIR = Path('.')

XS = [[2.0, 3.0, -1.0], [3.0, -1.0, 0.5], [0.5, 1.0, 1.0], [1.0, 1.0, -1.0]]
YS = [1.0, -1.0, -1.0, 1.0]


def plot_loss_curve(losses: List[float], path: Path) -> None:
    plt.figure(figsize=(10, 6))
    plt.plot(losses, 'b-', linewidth=2)
    plt.xlabel('Iteration')
    plt.ylabel('Sum of squared errors')
    plt.title('Training Loss Curve')
    plt.grid(True, alpha=0.3)
    plt.tight_layout()
    plt.savefig(path, dpi=150)
    plt.close()
    logger.info("saved loss curve to %s", path)


def demo_gradient_computation() -> None:
    # out = tanh(x*y + x) at x=2, y=3
    x = Node(2.0, label='x')
    y = Node(3.0, label='y')
    z = x * y
    z.label = 'z'
    w = z + x
    w.label = 'w'
    out = w.tanh()
    out.label = 'out'
    out.backward()

    logger.info("out = tanh(x*y + x) = %.6f", out.value)
    logger.info("d(out)/dx = %.6f, d(out)/dy = %.6f", x.grad, y.grad)
    logger.info("\n%s", draw_graph(out, format='text'))
    write_dot(out, OUTPUT_DIR / 'graph.dot')


def demo_training() -> None:
    config = TrainingConfig(
        hidden_sizes=[4, 4],
        activation=Activation.TANH,
        learning_rate=0.05,
        tolerance=1e-3,
        max_iterations=200,
        seed=42,
    )
    result = gradient_descent(XS, YS, config)

    for x, target in zip(XS, YS):
        logger.info("input %s target %+.1f prediction %+.4f",
                    x, target, result.model(x).value)
    plot_loss_curve(result.losses, OUTPUT_DIR / 'loss_curve.png')


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    demo_gradient_computation()
    demo_training()


if __name__ == "__main__":
    main()
