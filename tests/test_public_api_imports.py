def test_public_imports() -> None:
    # A lightweight contract test: keep the most common imports stable.
    import fgtkde

    assert hasattr(fgtkde, "__version__")

    from fgtkde import FGTKde, fgt_kde  # noqa: F401
    from fgtkde.benchmark import bench_fgt  # noqa: F401
