"""
Benchmark for PARAFAC and NTF build performance.

Measures:
- PARAFAC build time vs. tensor size
- PARAFAC build time vs. number of components
- NTF sweep time per update mode

Usage:
    python benchmarks/benchmark_parafac.py
"""

import time

import numpy as np

from multiway import NTF, PARAFAC, Adam, NTFConfig, PARAFACConfig


def benchmark_size_scaling() -> None:
    """Benchmark PARAFAC build time vs. tensor size."""
    print("=" * 70)
    print("BENCHMARK 1: PARAFAC Build Time vs. Tensor Size")
    print("=" * 70)

    config = PARAFACConfig(max_iter=100)
    print(f"\n{'Shape':>18} {'Build Time (s)':>15} {'Iter/s':>10}")
    print("-" * 45)

    for n in (10, 20, 40, 80):
        shape = (n, n, n // 2)
        X = np.random.randn(*shape)
        model = PARAFAC(num_components=3, config=config)

        start = time.perf_counter()
        model.build(X)
        elapsed = time.perf_counter() - start

        iterations = len(model.loss_history[0])
        print(f"{str(shape):>18} {elapsed:>15.4f} {iterations / elapsed:>10.1f}")


def benchmark_component_scaling() -> None:
    """Benchmark PARAFAC build time vs. number of components."""
    print("\n" + "=" * 70)
    print("BENCHMARK 2: PARAFAC Build Time vs. Components")
    print("=" * 70)

    X = np.random.randn(30, 25, 20)
    print(f"\n{'F':>5} {'Build Time (s)':>15} {'Final Loss':>14}")
    print("-" * 36)

    for F in (1, 2, 4, 8):
        model = PARAFAC(num_components=F, config=PARAFACConfig(max_iter=100))
        start = time.perf_counter()
        model.build(X)
        elapsed = time.perf_counter() - start
        print(f"{F:>5} {elapsed:>15.4f} {model.best_loss:>14.4e}")


def benchmark_ntf_update_modes() -> None:
    """Benchmark NTF sweep time per update mode."""
    print("\n" + "=" * 70)
    print("BENCHMARK 3: NTF Sweep Time per Update Mode")
    print("=" * 70)

    G = np.abs(np.random.randn(30, 20, 10))
    configs = {
        "normalized": NTFConfig(max_iter=200),
        "step (sgd)": NTFConfig(update_type="step", max_iter=200),
        "iteration (adam)": NTFConfig(
            update_type="iteration", updater=Adam(learning_rate=0.01), max_iter=200
        ),
    }

    # Compile the multiplicative kernel before timing
    NTF(num_components=2, config=NTFConfig(max_iter=1)).build(G)

    print(f"\n{'Mode':>18} {'ms/sweep':>10} {'Final Loss':>14}")
    print("-" * 45)
    for name, config in configs.items():
        model = NTF(num_components=4, config=config)
        start = time.perf_counter()
        model.build(G)
        elapsed = time.perf_counter() - start
        sweeps = len(model.loss_history)
        print(f"{name:>18} {1000 * elapsed / sweeps:>10.3f} {model.loss_history[-1]:>14.4e}")


if __name__ == "__main__":
    np.random.seed(42)
    benchmark_size_scaling()
    benchmark_component_scaling()
    benchmark_ntf_update_modes()
