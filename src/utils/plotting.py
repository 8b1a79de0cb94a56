import logging
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

def _ensure_matplotlib():
    """
    Attempts to import matplotlib. Raises ImportError if not found.
    """
    try:
        import matplotlib.pyplot as plt
        return plt
    except ImportError:
        logger.error("Matplotlib not found.")
        raise ImportError("matplotlib is required for plotting.\nInstall it with: pip install matplotlib")

def plot_engine_curves(rpm: Sequence[float], torque: Sequence[float], power_kw: Sequence[float],
                       title: str = "Engine", output_path: Optional[str] = None):
    """
    Plots Torque (Nm) and Power (kW) vs RPM on twin y axes.
    Saves to output_path when given, otherwise shows the figure.
    """
    if not rpm:
        logger.warning("No curve data to plot")
        return

    plt = _ensure_matplotlib()

    fig, ax1 = plt.subplots(figsize=(10, 6))
    ax2 = ax1.twinx()

    ax1.plot(list(rpm), list(torque), marker='o', label='Torque', linewidth=2, markersize=4, color='#1f77b4')
    ax2.plot(list(rpm), list(power_kw), marker='s', label='Power', linewidth=2, markersize=4,
             linestyle='--', color='#ff7f0e')

    ax1.set_xlabel('RPM', fontsize=12)
    ax1.set_ylabel('Torque (Nm)', fontsize=12, color='tab:blue')
    ax1.tick_params(axis='y', labelcolor='tab:blue')
    ax2.set_ylabel('Power (kW)', fontsize=12, color='tab:orange')
    ax2.tick_params(axis='y', labelcolor='tab:orange')

    ax1.set_title(f'Torque & Power vs RPM - {title}', fontsize=14)
    ax1.grid(True, alpha=0.3)

    # Combine legends from both axes
    lines1, labels1 = ax1.get_legend_handles_labels()
    lines2, labels2 = ax2.get_legend_handles_labels()
    ax1.legend(lines1 + lines2, labels1 + labels2, loc='best')

    plt.tight_layout()
    _finish(plt, fig, output_path)

def plot_power_curve_lut(pairs: List[Tuple[float, float]], engine_pairs: Optional[List[Tuple[float, float]]] = None,
                         title: str = "power.lut", output_path: Optional[str] = None):
    """
    Plots the wheel torque lut a swap writes, optionally against the engine torque it came from.
    """
    if not pairs:
        logger.warning("No lut data to plot")
        return

    plt = _ensure_matplotlib()

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.plot([p[0] for p in pairs], [p[1] for p in pairs], marker='o', label='Wheel torque',
            linewidth=2, markersize=4)
    if engine_pairs:
        ax.plot([p[0] for p in engine_pairs], [p[1] for p in engine_pairs], marker='s',
                label='Engine torque', linewidth=2, markersize=4, linestyle='--')

    ax.set_xlabel('RPM', fontsize=12)
    ax.set_ylabel('Torque (Nm)', fontsize=12)
    ax.set_title(f'Torque lut - {title}', fontsize=14)
    ax.grid(True, alpha=0.3)
    ax.legend()
    plt.tight_layout()
    _finish(plt, fig, output_path)

def _finish(plt, fig, output_path: Optional[str]):
    if output_path:
        fig.savefig(output_path)
        plt.close(fig)
        logger.info("Saved plot to %s", output_path)
    else:
        plt.show()
