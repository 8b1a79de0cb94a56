import pytest
from unittest.mock import MagicMock, patch
from src.utils.plotting import plot_engine_curves, plot_power_curve_lut


@pytest.fixture
def mock_plt():
    plt = MagicMock()
    fig, ax1, ax2 = MagicMock(), MagicMock(), MagicMock()
    plt.subplots.return_value = (fig, ax1)
    ax1.twinx.return_value = ax2
    ax1.get_legend_handles_labels.return_value = ([], [])
    ax2.get_legend_handles_labels.return_value = ([], [])
    with patch('src.utils.plotting._ensure_matplotlib', return_value=plt):
        yield plt, fig, ax1, ax2


def test_plot_engine_curves(mock_plt):
    plt, fig, ax1, ax2 = mock_plt

    plot_engine_curves((1000, 2000), (200.0, 250.0), (20.9, 52.4), title="Test V8")

    plt.subplots.assert_called_once()
    torque_args = ax1.plot.call_args[0]
    assert torque_args[0] == [1000, 2000]
    assert torque_args[1] == [200.0, 250.0]
    power_args = ax2.plot.call_args[0]
    assert power_args[1] == [20.9, 52.4]
    assert "Test V8" in ax1.set_title.call_args[0][0]
    plt.show.assert_called_once()


def test_plot_engine_curves_to_file(mock_plt, tmp_path):
    plt, fig, ax1, ax2 = mock_plt
    output = str(tmp_path / "curves.png")

    plot_engine_curves([1000], [200.0], [20.9], output_path=output)

    fig.savefig.assert_called_once_with(output)
    plt.close.assert_called_once_with(fig)
    plt.show.assert_not_called()


def test_plot_power_curve_lut(mock_plt):
    plt, fig, ax, _ = mock_plt

    plot_power_curve_lut([(1000, 243.0), (2000, 243.0)], engine_pairs=[(1000, 286.0), (2000, 286.0)])

    assert ax.plot.call_count == 2
    wheel_args = ax.plot.call_args_list[0][0]
    assert wheel_args == ([1000, 2000], [243.0, 243.0])
    engine_args = ax.plot.call_args_list[1][0]
    assert engine_args[1] == [286.0, 286.0]


def test_empty_input_draws_nothing(mock_plt):
    plt = mock_plt[0]
    plot_engine_curves([], [], [])
    plot_power_curve_lut([])
    plt.subplots.assert_not_called()


def test_plot_missing_matplotlib():
    with patch('src.utils.plotting._ensure_matplotlib', side_effect=ImportError("No mpl")):
        with pytest.raises(ImportError):
            plot_power_curve_lut([(1000, 243.0)])
