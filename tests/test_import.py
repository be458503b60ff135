"""Basic import tests to verify package structure."""


def test_import_tokensim():
    """Verify main package imports."""
    import tokensim
    assert tokensim.__version__ == "0.1.0"


def test_import_core():
    """Verify core module structure exists."""
    from tokensim import core
    assert hasattr(core, "__doc__")
    assert hasattr(core, "Simulation")


def test_import_analysis():
    """Verify analysis module structure exists."""
    from tokensim import analysis
    assert hasattr(analysis, "__doc__")


def test_import_viz():
    """Verify viz module structure exists."""
    import matplotlib
    matplotlib.use("Agg")
    from tokensim import viz
    assert hasattr(viz, "__doc__")


def test_import_log():
    from tokensim import log
    assert log.LOGGER_NAME == "tokensim"
