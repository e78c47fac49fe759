"""
Plotting Utilities for QTS Samples
Time histories of the four quaternion components of every series in a
sample, with optional highlighting and an aggregate (mean/median) overlay.
"""

import os

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for saving
import matplotlib.pyplot as plt

from qtstats.core.constants import QUATERNION_COLUMNS, TIME_COLUMN
from qtstats.series.qts import as_qts
from qtstats.series.sample import as_qts_sample


# ---------------------------------------------------------------------------
# PlotStyle -- shared styling helpers
# ---------------------------------------------------------------------------

class PlotStyle:
    """Centralised styling and figure management for QTS plots."""

    COLORS = {
        'primary': '#2E86AB',      # Steel blue
        'aggregate': '#3B1F2B',    # Dark purple
        'muted': '#90A4AE',        # Blue grey
    }

    # Colour sequence for highlighted series
    PALETTE = ['#2E86AB', '#F18F01', '#2E7D32', '#C73E1D', '#7B1FA2', '#00838F']

    @staticmethod
    def setup_style():
        """Set matplotlib rcParams for the package's figures."""
        plt.rcParams.update({
            'font.family': 'sans-serif',
            'font.size': 10,
            'axes.labelsize': 11,
            'axes.titlesize': 13,
            'axes.titleweight': 'bold',
            'figure.facecolor': 'white',
            'axes.grid': True,
            'axes.axisbelow': True,
            'axes.spines.top': False,
            'axes.spines.right': False,
            'grid.color': '#E0E0E0',
            'grid.linewidth': 0.5,
            'lines.linewidth': 1.2,
        })

    @staticmethod
    def save_figure(fig, filepath, dpi=150):
        """Save *fig* to *filepath*, creating directories as needed."""
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        fig.savefig(filepath, dpi=dpi, bbox_inches='tight',
                    facecolor='white', edgecolor='none')
        plt.close(fig)


# ---------------------------------------------------------------------------
# Standalone plotting functions
# ---------------------------------------------------------------------------

def plot_qts_sample(sample, highlighted=None, memberships=None, aggregate=None,
                    aggregate_label='aggregate', title='Quaternion Time Series',
                    filepath=None):
    """One panel per quaternion component, every series against time.

    Parameters
    ----------
    sample : QTSSample or list of QTS
    highlighted : sequence of bool, optional
        One flag per series; flagged series are drawn in colour and the
        others faded. By default every series is drawn in colour.
    memberships : sequence, optional
        One group label per series (e.g. cluster assignments). Series are
        then coloured by group instead of individually, with one legend
        entry per group.
    aggregate : pd.DataFrame, optional
        A QTS (e.g. the pointwise mean) drawn on top in a thick dark line.
    aggregate_label : str
    title : str
    filepath : str, optional
        If given, the figure is saved there and closed.

    Returns
    -------
    matplotlib.figure.Figure

    Raises
    ------
    ValueError
        If ``highlighted`` or ``memberships`` does not have one entry per
        series.
    """
    sample = as_qts_sample(sample)
    if highlighted is None:
        highlighted = np.ones(len(sample), dtype=bool)
    highlighted = np.asarray(highlighted, dtype=bool)
    if highlighted.shape[0] != len(sample):
        raise ValueError(
            f"highlighted has {highlighted.shape[0]} entries for a sample of "
            f"{len(sample)} QTS"
        )

    if memberships is None:
        colours = [PlotStyle.PALETTE[k % len(PlotStyle.PALETTE)]
                   for k in range(len(sample))]
        labels = [None] * len(sample)
    else:
        memberships = list(memberships)
        if len(memberships) != len(sample):
            raise ValueError(
                f"memberships has {len(memberships)} entries for a sample of "
                f"{len(sample)} QTS"
            )
        groups = list(dict.fromkeys(memberships))
        group_colour = {g: PlotStyle.PALETTE[i % len(PlotStyle.PALETTE)]
                        for i, g in enumerate(groups)}
        colours = [group_colour[g] for g in memberships]
        # Label only the first series of each group
        labels = [str(g) if memberships.index(g) == k else None
                  for k, g in enumerate(memberships)]

    PlotStyle.setup_style()
    fig, axes = plt.subplots(len(QUATERNION_COLUMNS), 1, sharex=True,
                             figsize=(10, 8))

    for ax, col in zip(axes, QUATERNION_COLUMNS):
        for qts, flag, colour, label in zip(sample, highlighted, colours,
                                            labels):
            if flag:
                ax.plot(qts[TIME_COLUMN], qts[col], color=colour, alpha=0.9,
                        label=label)
            else:
                ax.plot(qts[TIME_COLUMN], qts[col],
                        color=PlotStyle.COLORS['muted'], alpha=0.25)
        if aggregate is not None:
            agg = as_qts(aggregate)
            ax.plot(agg[TIME_COLUMN], agg[col], linewidth=2.5,
                    color=PlotStyle.COLORS['aggregate'], label=aggregate_label)
        ax.set_ylabel(col)

    axes[0].set_title(title)
    axes[-1].set_xlabel('Time')
    if aggregate is not None or memberships is not None:
        axes[0].legend(loc='upper right')
    fig.tight_layout()

    if filepath is not None:
        PlotStyle.save_figure(fig, filepath)
    return fig
