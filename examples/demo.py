"""
Demo: decomposition and calibration of simulated fluorescence landscapes.

Simulates excitation-emission matrices (EEM) of mixtures of three
fluorophores, then:
1. Recovers the pure spectra with PARAFAC
2. Calibrates the concentration of the first fluorophore with N-PLS
3. Compares with unfolded PLS2 and a non-negative NTF decomposition

Usage:
    python examples/demo.py
"""

import numpy as np

from multiway import NTF, PARAFAC, PLS2, MultiLinearPLS, NTFConfig, PARAFACConfig


def gaussian_band(axis: np.ndarray, center: float, width: float) -> np.ndarray:
    return np.exp(-0.5 * ((axis - center) / width) ** 2)


def simulate_eem(n_samples: int = 40, noise: float = 0.01, seed: int = 0):
    """Concentrations (I, 3) and EEM tensor (I, emission, excitation)."""
    rng = np.random.default_rng(seed)
    emission = np.linspace(300, 500, 60)
    excitation = np.linspace(240, 340, 20)

    B = np.column_stack([gaussian_band(emission, c, 18) for c in (340, 400, 450)])
    C = np.column_stack([gaussian_band(excitation, c, 12) for c in (270, 300, 320)])
    A = rng.uniform(0.0, 1.0, size=(n_samples, 3))

    X = np.einsum("if,jf,kf->ijk", A, B, C)
    X += noise * rng.standard_normal(X.shape)
    return A, X


def congruence(u: np.ndarray, v: np.ndarray) -> float:
    return float(abs(u @ v) / (np.linalg.norm(u) * np.linalg.norm(v)))


def main() -> None:
    A_true, X = simulate_eem()
    X_train, X_test = X[:30], X[30:]
    y_train, y_test = A_true[:30, 0], A_true[30:, 0]

    print("=" * 60)
    print("PARAFAC")
    print("=" * 60)
    parafac = PARAFAC(num_components=3, config=PARAFACConfig(tol=1e-10))
    msg = parafac.build(X)
    if msg is not None:
        raise RuntimeError(msg)
    A = parafac.loading_matrices["A"]
    for f in range(3):
        best = max(congruence(A[:, g], A_true[:, f]) for g in range(3))
        print(f"Fluorophore {f}: best score congruence {best:.4f}")
    print(f"Final loss: {parafac.best_loss:.4e}")

    print("\n" + "=" * 60)
    print("Calibration (RMSEP on 10 test samples)")
    print("=" * 60)
    for name, model in [
        ("N-PLS", MultiLinearPLS(num_components=3)),
        ("PLS2 (unfolded)", PLS2(num_components=3)),
    ]:
        msg = model.build(X_train, y_train)
        if msg is not None:
            raise RuntimeError(msg)
        rmsep = np.sqrt(np.mean((model.predict(X_test)[:, 0] - y_test) ** 2))
        print(f"{name:>16}: {rmsep:.4f}")

    print("\n" + "=" * 60)
    print("NTF")
    print("=" * 60)
    ntf = NTF(num_components=3, config=NTFConfig(max_iter=500, tol=1e-8))
    msg = ntf.build(np.clip(X, 0.0, None))
    if msg is not None:
        raise RuntimeError(msg)
    print(f"Sweeps: {len(ntf.loss_history)}, final loss: {ntf.loss_history[-1]:.4e}")


if __name__ == "__main__":
    main()
