"""Pytest fixtures for RNADiff tests."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(scope="session")
def test_data(tmp_path_factory) -> dict:
    """Generate the synthetic experiment once per session."""
    from tests.generate_test_data import generate_test_counts

    d = tmp_path_factory.mktemp("rnadiff_test")
    return generate_test_counts(d)


@pytest.fixture
def counts_file(test_data) -> Path:
    return test_data["counts"]


@pytest.fixture
def design_file(test_data) -> Path:
    return test_data["design"]


@pytest.fixture(scope="session")
def pipeline_run(test_data, tmp_path_factory):
    """Run the full pipeline once and share its outputs."""
    from rnadiff.config import RNADiffConfig
    from rnadiff.pipeline import run_pipeline

    out = tmp_path_factory.mktemp("rnadiff_run")
    cfg = RNADiffConfig(output_dir=out, threads=1, reference_level="control")
    result = run_pipeline(test_data["counts"], test_data["design"], cfg=cfg)
    return cfg, result


@pytest.fixture(scope="session")
def model_inputs(test_data):
    """Aligned, low-count-filtered counts and design for direct model fits."""
    from rnadiff.config import RNADiffConfig
    from rnadiff.filtering import filter_low_counts
    from rnadiff.io import align_samples, read_counts, read_design

    counts = read_counts(test_data["counts"])
    design = read_design(test_data["design"], "condition")
    counts, design = align_samples(counts, design)
    counts, _ = filter_low_counts(counts, RNADiffConfig(threads=1))
    return counts, design
