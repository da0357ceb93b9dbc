"""
plot_debug.py
=============
Matplotlib sanity-check plot for the warp-lane galaxy generator.

Shows:
  • Disk boundary circle
  • Core boundary (systems inside are classed "core" for lane ranges)
  • Warp lanes (optional; use --no_lanes for large galaxies)
  • Systems coloured by class, degree, or a uniform colour; fixed systems
    ringed and labelled
  • Anomalies marked by category

Usage
-----
    # Default: use ./output/, colour by class, show lanes
    python plot_debug.py

    # Colour systems by lane count
    python plot_debug.py --color_by degree

    # Save to PNG instead of opening an interactive window
    python plot_debug.py --save galaxy.png

    # Point at a different output directory
    python plot_debug.py --out_dir my_run --no_lanes
"""

from __future__ import annotations

import argparse
import json
import os

import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
from matplotlib.collections import LineCollection
import pandas as pd


_CLASS_COLORS = {"origin": "#ffdd44", "core": "#66bbff", "rim": "#aa77ff"}

_ANOMALY_STYLE = {
    "nebula":    ("o", "#ff5577"),
    "blackhole": ("X", "#dddddd"),
    "wormhole":  ("D", "#44ffcc"),
    "artifact":  ("*", "#ffaa33"),
    "resource":  ("s", "#88dd44"),
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="plot_debug.py",
        description="Debug visualisation for the warp-lane galaxy generator.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--out_dir", default="output",
                   help="Directory containing systems.csv, lanes.csv and anomalies.csv.")
    p.add_argument("--save", default=None, metavar="FILE",
                   help="Save figure to FILE (png/pdf/svg) instead of displaying.")
    p.add_argument("--no_lanes", action="store_true",
                   help="Skip drawing lanes.")
    p.add_argument("--no_anomalies", action="store_true",
                   help="Skip drawing anomalies.")
    p.add_argument("--color_by", choices=["class", "degree", "none"], default="class",
                   help="System colouring scheme.")
    p.add_argument("--node_size", type=float, default=6.0,
                   help="Scatter marker size.")
    p.add_argument("--node_color", default="#aaccff",
                   help="Uniform system colour used when --color_by none.")
    p.add_argument("--lane_alpha", type=float, default=0.45,
                   help="Lane line alpha (0=invisible, 1=solid).")
    p.add_argument("--lane_color", default="#2244aa",
                   help="Lane line colour.")
    p.add_argument("--lane_width", type=float, default=0.5,
                   help="Lane line width in points.")
    return p


def _load_params(out_dir: str) -> dict:
    params_path = os.path.join(out_dir, "params.json")
    if not os.path.exists(params_path):
        return {}
    with open(params_path, encoding="utf-8") as f:
        return json.load(f)


def draw_galaxy(args: argparse.Namespace) -> plt.Figure:
    """Load the CSV files in ``args.out_dir`` and draw the galaxy.

    Returns
    -------
    matplotlib Figure
    """
    systems_path = os.path.join(args.out_dir, "systems.csv")
    if not os.path.exists(systems_path):
        raise FileNotFoundError(
            f"systems.csv not found in '{args.out_dir}'.  Run run_generate.py first."
        )
    systems = pd.read_csv(systems_path)
    lanes_path = os.path.join(args.out_dir, "lanes.csv")
    lanes = pd.read_csv(lanes_path) if os.path.exists(lanes_path) else pd.DataFrame()
    anomalies_path = os.path.join(args.out_dir, "anomalies.csv")
    anomalies = (pd.read_csv(anomalies_path)
                 if os.path.exists(anomalies_path) else pd.DataFrame())

    params = _load_params(args.out_dir)
    radius = float(params.get("radius", systems["r"].max() if len(systems) else 1.0))
    core_fraction = float(
        params.get("connectivity", {}).get("core_radius_fraction", 0.6)
    )

    # ── Figure setup ─────────────────────────────────────────────────────
    fig, ax = plt.subplots(figsize=(10, 10))
    ax.set_aspect("equal", adjustable="datalim")
    BG = "#09090f"
    ax.set_facecolor(BG)
    fig.patch.set_facecolor(BG)

    extent = max(radius, float(systems["r"].max()) if len(systems) else 0.0)
    margin = extent * 1.08
    ax.set_xlim(-margin, margin)
    ax.set_ylim(-margin, margin)
    ax.autoscale(False)

    # ── Disk and core boundaries ─────────────────────────────────────────
    ax.add_patch(plt.Circle((0, 0), radius, fill=False, edgecolor="#3a3a5c",
                            linewidth=1.0, linestyle="--", zorder=2))
    ax.add_patch(plt.Circle((0, 0), radius * core_fraction, fill=False,
                            edgecolor="#335566", linewidth=0.8, linestyle=":", zorder=2))

    # ── Lanes ─────────────────────────────────────────────────────────────
    if not args.no_lanes and len(lanes) > 0:
        xy = systems[["x", "y"]].values
        segs = [[xy[s], xy[t]] for s, t in
                zip(lanes["source_idx"].values, lanes["target_idx"].values)]
        ax.add_collection(LineCollection(segs, colors=args.lane_color,
                                         linewidths=args.lane_width,
                                         alpha=args.lane_alpha, zorder=5))

    # ── Systems ───────────────────────────────────────────────────────────
    sc = None
    if args.color_by == "class":
        colors = [_CLASS_COLORS.get(c, args.node_color) for c in systems["system_class"]]
        ax.scatter(systems["x"], systems["y"], c=colors, s=args.node_size,
                   linewidths=0, zorder=6)
    elif args.color_by == "degree":
        sc = ax.scatter(systems["x"], systems["y"], c=systems["degree"], cmap="viridis",
                        s=args.node_size, linewidths=0, zorder=6)
        cbar = plt.colorbar(sc, ax=ax, pad=0.01, fraction=0.03, shrink=0.85)
        cbar.set_label("Lanes", color="white", fontsize=9)
        cbar.ax.yaxis.set_tick_params(color="white", labelsize=7)
        plt.setp(plt.getp(cbar.ax.axes, "yticklabels"), color="white")
        ax.set_xlim(-margin, margin)
        ax.set_ylim(-margin, margin)
    else:
        ax.scatter(systems["x"], systems["y"], c=args.node_color, s=args.node_size,
                   linewidths=0, zorder=6)

    fixed = systems[systems["is_fixed"].astype(bool)]
    if len(fixed) > 0:
        ax.scatter(fixed["x"], fixed["y"], s=args.node_size * 8, facecolors="none",
                   edgecolors="#ffff00", linewidths=1.2, zorder=9)
        for row in fixed.itertuples(index=False):
            ax.annotate(row.name, (row.x, row.y), xytext=(4, 4),
                        textcoords="offset points", color="#ffffaa", fontsize=7, zorder=10)

    # ── Anomalies ─────────────────────────────────────────────────────────
    if not args.no_anomalies and len(anomalies) > 0:
        for category, group in anomalies.groupby("category"):
            marker, color = _ANOMALY_STYLE.get(category, ("o", "#ffffff"))
            ax.scatter(group["x"], group["y"], marker=marker, c=color,
                       s=args.node_size * 5, linewidths=0, alpha=0.8, zorder=7,
                       label=category)

    # ── Decorations ───────────────────────────────────────────────────────
    title = (
        f"Galaxy  |  seed {params.get('seed', '?')}  |  "
        f"{len(systems):,} systems  |  {len(lanes):,} lanes  |  "
        f"{len(anomalies):,} anomalies"
    )
    ax.set_title(title, color="white", fontsize=11, pad=10)
    for spine in ax.spines.values():
        spine.set_edgecolor("#2a2a3a")
    ax.tick_params(colors="#555566", labelsize=7)

    handles = [
        mpatches.Patch(facecolor="#3a3a5c", label=f"Disk (r={radius:g})"),
        mpatches.Patch(facecolor="#335566", label=f"Core (r={radius * core_fraction:g})"),
    ]
    if args.color_by == "class":
        handles += [mpatches.Patch(facecolor=c, label=name)
                    for name, c in _CLASS_COLORS.items()]
    if not args.no_lanes:
        handles.append(mpatches.Patch(facecolor=args.lane_color, label="Warp lanes"))
    handles += [h for h in ax.get_legend_handles_labels()[0]]
    ax.legend(handles=handles, loc="upper right", fontsize=8, facecolor="#111122",
              edgecolor="#333355", labelcolor="white")

    return fig


def main() -> None:
    parser = build_parser()
    args   = parser.parse_args()

    fig = draw_galaxy(args)
    if args.save:
        fig.savefig(args.save, dpi=150, bbox_inches="tight", facecolor=fig.get_facecolor())
        print(f"Saved figure to {args.save}")
    else:
        plt.show()


if __name__ == "__main__":
    main()
