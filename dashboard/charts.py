"""
Dashboard - Plotly Charts.

Plotly implementation of the ChartRenderer: one line-and-marker
trace per series, each on its own subplot, dark theme.
"""

import json
import logging
from typing import Any, Dict, List

import plotly.graph_objects as go
from plotly.subplots import make_subplots

from .presentation import DARK_THEME, ChartRenderer, GridLayout, SeriesData

logger = logging.getLogger(__name__)


class PlotlyChartRenderer(ChartRenderer):
    """Renders the smoothed dataset as a Plotly subplot grid."""

    def build_plotly_figure(self, series: List[SeriesData], grid: GridLayout) -> go.Figure:
        """Build the Figure object (used directly by the Streamlit front end)."""
        fig = make_subplots(
            rows=grid.rows,
            cols=grid.cols,
            horizontal_spacing=0.06 if grid.cols > 1 else 0.0,
        )

        for index, data in enumerate(series):
            row, col = grid.position(index)
            fig.add_trace(
                go.Scatter(
                    x=data.timestamps,
                    y=data.values,
                    name=data.key,
                    mode="lines+markers",
                    line=dict(width=2),
                    marker=dict(size=4),
                ),
                row=row,
                col=col,
            )
            fig.update_xaxes(
                title_text="Time",
                gridcolor=DARK_THEME["gridcolor"],
                color=DARK_THEME["font_color"],
                row=row,
                col=col,
            )
            fig.update_yaxes(
                title_text=f"{data.key} Sentiment",
                gridcolor=DARK_THEME["gridcolor"],
                color=DARK_THEME["font_color"],
                row=row,
                col=col,
            )

        fig.update_layout(
            paper_bgcolor=DARK_THEME["paper_bgcolor"],
            plot_bgcolor=DARK_THEME["plot_bgcolor"],
            font=dict(color=DARK_THEME["font_color"]),
            margin=dict(t=80, r=50, b=100, l=50),
            showlegend=False,
            height=grid.height,
        )
        return fig

    def _build_figure(self, series: List[SeriesData], grid: GridLayout) -> Dict[str, Any]:
        fig = self.build_plotly_figure(series, grid)
        logger.debug(f"Rendered {len(series)} series on a {grid.rows}x{grid.cols} grid")
        # Round-trip through plotly's encoder so timestamps become strings
        return json.loads(fig.to_json())
