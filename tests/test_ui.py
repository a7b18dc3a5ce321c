"""Tests for shotgrade.ui module."""

from PIL import Image
from rich.console import Console
from rich.progress import MofNCompleteColumn, Progress, TimeRemainingColumn

from shotgrade.analyze import analyze_pixels, failed_analysis
from shotgrade.ui import create_progress, results_table


class TestCreateProgress:
    def test_returns_progress(self):
        assert isinstance(create_progress(), Progress)

    def test_custom_console(self):
        console = Console(file=None, quiet=True)
        progress = create_progress(console)
        assert progress.console is console

    def test_batch_columns(self):
        progress = create_progress()
        assert any(isinstance(c, MofNCompleteColumn) for c in progress.columns)
        assert any(isinstance(c, TimeRemainingColumn) for c in progress.columns)

    def test_transient(self):
        assert create_progress(transient=True).live.transient
        assert not create_progress().live.transient


class TestResultsTable:
    def test_ranked_rows(self):
        good = analyze_pixels(Image.new("RGB", (40, 30), (120, 120, 120)), key="good.jpg")
        bad = failed_analysis("bad.jpg", "decode error")
        table = results_table([bad, good])
        assert table.row_count == 2

    def test_top(self):
        results = [failed_analysis(f"{i}.jpg", "x") for i in range(5)]
        assert results_table(results, top=3).row_count == 3

    def test_renders(self):
        console = Console(record=True, width=120)
        console.print(results_table([failed_analysis("a.jpg", "oops")]))
        assert "a.jpg" in console.export_text()

    def test_failed_images_last(self):
        good = analyze_pixels(Image.new("RGB", (40, 30), (5, 5, 5)), key="good.jpg")
        console = Console(record=True, width=160)
        console.print(results_table([failed_analysis("bad.jpg", "oops"), good]))
        text = console.export_text()
        assert text.index("good.jpg") < text.index("bad.jpg")
