"""
scalargrad training configuration.

Everything the training loop needs to know is set here and passed in
explicitly.
"""

from dataclasses import dataclass
from typing import List, Optional

from .nn import Activation


@dataclass
class TrainingConfig:
    """Configuration for ``train.gradient_descent``."""

    # Network shape (input and output sizes come from the data)
    hidden_sizes: List[int]
    activation: Activation
    output_activation: Optional[Activation] = None

    # Optimization
    learning_rate: float = 0.01
    tolerance: float = 1e-3  # stop once the loss drops below this
    max_iterations: int = 100

    # Weight initialization; None draws fresh entropy
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        self.activation = Activation(self.activation)
        if self.output_activation is not None:
            self.output_activation = Activation(self.output_activation)
        if any(size < 1 for size in self.hidden_sizes):
            raise ValueError(f"hidden layer sizes must be positive: {self.hidden_sizes}")
        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")
        if self.tolerance < 0:
            raise ValueError(f"tolerance must be non-negative, got {self.tolerance}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
