"""Tests for project path resolution."""

import importlib

import hiv_mortality.paths as paths_module
from hiv_mortality.paths import CommonPaths


class TestImport:
    """Test cases for import-time behaviour."""

    def test_import_creates_no_directories(self, tmp_path, monkeypatch):
        """Should resolve directories against the working directory without creating them."""
        monkeypatch.chdir(tmp_path)
        try:
            reloaded = importlib.reload(paths_module)

            assert reloaded.DATA_DIR == tmp_path / "data"
            assert reloaded.OUTPUT_DIR == tmp_path / "output"
            assert list(tmp_path.iterdir()) == []
        finally:
            monkeypatch.undo()
            importlib.reload(paths_module)

    def test_validate_data_files(self, raw_data_dir, tmp_path):
        assert paths_module.validate_data_files(raw_data_dir)
        assert not paths_module.validate_data_files(tmp_path / "empty")


class TestCommonPaths:
    """Test cases for the file layout."""

    def test_redirected_directories(self, tmp_path):
        """Should place every file under the directory given for its stage."""
        layout = CommonPaths(data_dir=tmp_path / "in", output_dir=tmp_path / "out",
                             figures_dir=str(tmp_path / "fig"))

        assert layout.deaths == tmp_path / "in" / "final_hiv_deaths.csv"
        assert layout.gdp == tmp_path / "in" / "final_gdp_per_capita.csv"
        assert layout.population == tmp_path / "in" / "final_population_total.csv"
        assert layout.coefficients("linear_a") == tmp_path / "out" / "coefficients_linear_a.csv"
        assert layout.model_summary.parent == tmp_path / "out"
        assert layout.mortality_trends == tmp_path / "fig" / "mortality_trends.pdf"
        assert layout.maindata == paths_module.INTERMEDIATE_DIR / "maindata.csv"

    def test_writers_use_layout(self, regression_df, tmp_path):
        """Should write figures where the layout says they live."""
        from hiv_mortality.plot import plot_mortality_histograms, plot_mortality_trends

        layout = CommonPaths(figures_dir=tmp_path)
        outputs = plot_mortality_histograms(regression_df, tmp_path)
        trends = plot_mortality_trends(regression_df, tmp_path)

        assert outputs == {'raw': layout.mortality_histogram, 'log': layout.log_mortality_histogram}
        assert trends == layout.mortality_trends
        assert all(path.exists() for path in [*outputs.values(), trends])
