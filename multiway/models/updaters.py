"""
Gradient updaters for the gradient-based NTF update modes.

An updater is a small configuration object; ``instantiate(shape)`` creates
the per-parameter state that turns gradients into update steps. The factor
is then moved by ``-step`` and clipped at zero by the caller.
"""

from dataclasses import dataclass

import numpy as np


@dataclass
class Sgd:
    """
    Plain gradient descent.

    Parameters
    ----------
    learning_rate : float, default=0.01
        Step size
    """

    learning_rate: float = 0.01

    def __post_init__(self):
        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be > 0, got {self.learning_rate}")

    def instantiate(self, shape) -> "_SgdState":
        return _SgdState(self.learning_rate)


class _SgdState:
    def __init__(self, learning_rate: float):
        self.learning_rate = learning_rate

    def step(self, gradient: np.ndarray) -> np.ndarray:
        return self.learning_rate * gradient


@dataclass
class Adam:
    """
    Adam updater with bias-corrected step size.

    Parameters
    ----------
    learning_rate : float, default=1e-3
    beta1 : float, default=0.9
        Decay of the first moment estimate
    beta2 : float, default=0.999
        Decay of the second moment estimate
    epsilon : float, default=1e-8

    References:
    - Kingma & Ba (2015), "Adam: A Method for Stochastic Optimization"
    """

    learning_rate: float = 1e-3
    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-8

    def __post_init__(self):
        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be > 0, got {self.learning_rate}")
        for name in ("beta1", "beta2"):
            value = getattr(self, name)
            if not 0.0 <= value < 1.0:
                raise ValueError(f"{name} must be in [0, 1), got {value}")

    def instantiate(self, shape) -> "_AdamState":
        return _AdamState(self, shape)


class _AdamState:
    def __init__(self, config: Adam, shape):
        self.config = config
        self.m = np.zeros(shape)
        self.v = np.zeros(shape)
        self.t = 0

    def step(self, gradient: np.ndarray) -> np.ndarray:
        c = self.config
        self.t += 1
        self.m = c.beta1 * self.m + (1.0 - c.beta1) * gradient
        self.v = c.beta2 * self.v + (1.0 - c.beta2) * gradient ** 2
        alpha_t = c.learning_rate * np.sqrt(1.0 - c.beta2 ** self.t) / (1.0 - c.beta1 ** self.t)
        return alpha_t * self.m / (np.sqrt(self.v) + c.epsilon)
