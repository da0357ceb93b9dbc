"""
run_generate.py
===============
CLI entrypoint for the warp-lane galaxy generator.

All parameters are optional; unspecified parameters fall back to the standard
preset (500 LY disk, 400 systems, 25 anomalies, the seven fixed systems).

Quick start
-----------
    python run_generate.py

With custom parameters::

    python run_generate.py \\
        --radius 500 \\
        --systems 400 \\
        --anomalies 25 \\
        --max_distance 10 \\
        --decay 0.8 \\
        --seed 1111111111 \\
        --out_dir output

Then visualise the result::

    python plot_debug.py --out_dir output
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
from typing import List, Optional

import networkx as nx
import numpy as np
import structlog

from galaxy_model import ConnectivityConfig, Galaxy, GalaxyConfig, StarvationPolicy
from galaxygen import STANDARD_FIXED_SYSTEMS, generate, summarize
from lane_graph import count_components


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="run_generate.py",
        description=(
            "Procedural warp-lane galaxy generator.\n"
            "Produces systems.csv, lanes.csv, anomalies.csv, params.json and "
            "(optionally) graph.gexf in OUT_DIR."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # ── Galaxy size ───────────────────────────────────────────────────────
    p.add_argument("--radius", type=float, default=500.0, metavar="R",
                   help="Disk radius in light-years.")
    p.add_argument("--systems", type=int, default=400, metavar="N",
                   help="Target number of star systems (fixed systems included).")
    p.add_argument("--anomalies", type=int, default=25, metavar="N",
                   help="Number of anomalies to scatter.")
    p.add_argument("--min_distance", type=float, default=2.5, metavar="D",
                   help="Minimum separation between system sites.")
    p.add_argument("--no_fixed", action="store_true",
                   help="Skip the seven standard fixed systems.")

    # ── Connectivity ──────────────────────────────────────────────────────
    p.add_argument("--min_connections", type=int, default=1, metavar="N",
                   help="Lower bound of each system's lane target.")
    p.add_argument("--max_connections", type=int, default=8, metavar="N",
                   help="Upper bound of each system's lane target (+2 for core).")
    p.add_argument("--max_distance", type=float, default=10.0, metavar="D",
                   help="Connectivity distance; base lane range is "
                        "max(1.5 × this, 0.25 × radius).")
    p.add_argument("--decay", type=float, default=0.8, metavar="F",
                   help="Distance decay factor in the lane acceptance probability.")
    p.add_argument("--flat", action="store_true",
                   help="Disable tiered (origin/core/rim) connectivity.")
    p.add_argument("--neighbors", type=int, default=6, metavar="K",
                   help="Nearest neighbors considered per site.")

    # ── Sampling ──────────────────────────────────────────────────────────
    p.add_argument("--site_starvation", choices=[e.value for e in StarvationPolicy],
                   default=StarvationPolicy.DROP.value,
                   help="What to do when a site cannot be placed.")
    p.add_argument("--anomaly_starvation", choices=[e.value for e in StarvationPolicy],
                   default=StarvationPolicy.ACCEPT.value,
                   help="What to do when an anomaly cannot be placed.")

    # ── Reproducibility ───────────────────────────────────────────────────
    p.add_argument("--seed", type=int, default=1111111111, metavar="S",
                   help="Random seed for reproducible output.")

    # ── Output ────────────────────────────────────────────────────────────
    p.add_argument("--out_dir", type=str, default="output", metavar="DIR",
                   help="Directory to write output files (created if absent).")
    p.add_argument("--no_gexf", action="store_true",
                   help="Skip GEXF export.")
    p.add_argument("--log_level", default="INFO",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                   help="Generator log level.")
    p.add_argument("--log_format", default="console", choices=["console", "json"],
                   help="Generator log renderer.")

    return p


def configure_logging(level: str = "INFO", fmt: str = "console") -> None:
    renderer = (structlog.processors.JSONRenderer() if fmt == "json"
                else structlog.dev.ConsoleRenderer(colors=False))
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
    )


def config_from_args(args: argparse.Namespace) -> GalaxyConfig:
    return GalaxyConfig(
        seed               = args.seed,
        radius             = args.radius,
        star_system_count  = args.systems,
        anomaly_count      = args.anomalies,
        min_distance       = args.min_distance,
        connectivity       = ConnectivityConfig(
            min_connections         = args.min_connections,
            max_connections         = args.max_connections,
            max_distance            = args.max_distance,
            distance_decay_factor   = args.decay,
            use_tiered_connectivity = not args.flat,
            neighbor_count          = args.neighbors,
        ),
        fixed_systems      = () if args.no_fixed else STANDARD_FIXED_SYSTEMS,
        site_starvation    = StarvationPolicy(args.site_starvation),
        anomaly_starvation = StarvationPolicy(args.anomaly_starvation),
    )


# ---------------------------------------------------------------------------
# Acceptance checks
# ---------------------------------------------------------------------------

def print_checks(galaxy: Galaxy) -> bool:
    """Print acceptance test results to stdout; True when all pass."""
    cfg = galaxy.config
    sep = "─" * 52
    all_ok = True

    print(f"\n{sep}")
    print("  ACCEPTANCE TESTS")
    print(sep)

    n = len(galaxy.systems)
    print(f"  Systems    : {n:>6,}  (target {cfg.star_system_count:,})")

    generated_r = [s.r for s in galaxy.systems if not s.is_fixed]
    if generated_r:
        ok = max(generated_r) <= cfg.radius + 1e-6
        all_ok &= ok
        print(f"  Max r      : {max(generated_r):>9.3f}  <= {cfg.radius}  "
              f"{'✓' if ok else '✗ FAIL'}")

    components = count_components(galaxy.systems, galaxy.lanes)
    ok = components == 1
    all_ok &= ok
    print(f"  Components : {components:>6}  {'✓' if ok else '✗ FAIL'}")

    pairs = {frozenset((lane.source, lane.target)) for lane in galaxy.lanes}
    ok = len(pairs) == len(galaxy.lanes) and all(len(p) == 2 for p in pairs)
    all_ok &= ok
    print(f"  Lanes      : {len(galaxy.lanes):>6,}  unique, no self-loops  "
          f"{'✓' if ok else '✗ FAIL'}")

    if n > 0:
        deg = np.array([len(s.connections) for s in galaxy.systems])
        print(f"\n  Degree distribution:")
        print(f"    min={deg.min()}  median={np.median(deg):.1f}  "
              f"max={deg.max()}  avg={deg.mean():.3f}")

    print(f"  Anomalies  : {len(galaxy.anomalies):>6,}  (target {cfg.anomaly_count:,})")
    print(sep + "\n")
    return all_ok


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

def write_gexf(galaxy: Galaxy, path: str) -> None:
    """Export a GEXF file for Gephi."""
    G = nx.Graph()
    for s in galaxy.systems:
        G.add_node(
            s.id,
            label=s.name,
            x=float(s.x),
            y=float(s.y),
            system_class=s.system_class.value,
            is_fixed=bool(s.is_fixed),
            population=int(s.population),
        )
    for lane in galaxy.lanes:
        G.add_edge(
            lane.source,
            lane.target,
            distance=float(lane.distance),
            travel_time=int(lane.travel_time),
            weight=1.0 / max(lane.distance, 1e-9),
        )
    nx.write_gexf(G, path)


def write_outputs(galaxy: Galaxy, out_dir: str, gexf: bool = True) -> List[str]:
    """Write CSV tables, params.json and optionally graph.gexf; return paths."""
    os.makedirs(out_dir, exist_ok=True)
    systems_df, lanes_df, anomalies_df = galaxy.to_frames()

    paths = []
    for name, df in (("systems.csv", systems_df), ("lanes.csv", lanes_df),
                     ("anomalies.csv", anomalies_df)):
        path = os.path.join(out_dir, name)
        df.to_csv(path, index=False)
        paths.append(path)

    # Persist generation parameters so plot_debug.py can read them automatically
    params_path = os.path.join(out_dir, "params.json")
    with open(params_path, "w", encoding="utf-8") as f:
        json.dump(galaxy.config.to_dict(), f, indent=2, ensure_ascii=False)
    paths.append(params_path)

    if gexf:
        gexf_path = os.path.join(out_dir, "graph.gexf")
        write_gexf(galaxy, gexf_path)
        paths.append(gexf_path)
    return paths


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args   = parser.parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    cfg = config_from_args(args)

    # Print config so the user can confirm parameters before waiting
    print("Configuration")
    print("─" * 40)
    for field in dataclasses.fields(cfg):
        if field.name in ("connectivity", "fixed_systems"):
            continue
        value = getattr(cfg, field.name)
        print(f"  {field.name:<22} = {getattr(value, 'value', value)}")
    print(f"  {'fixed_systems':<22} = {len(cfg.fixed_systems)}")
    print()

    galaxy = generate(cfg)
    ok = print_checks(galaxy)
    for key, value in summarize(galaxy).items():
        print(f"  {key:<20} {value}")

    for path in write_outputs(galaxy, args.out_dir, gexf=not args.no_gexf):
        print(f"Wrote {path}")

    print(
        f"\nNext steps:\n"
        f"  • Debug plot : python plot_debug.py --out_dir {args.out_dir}\n"
        f"  • Gephi      : import {args.out_dir}/graph.gexf"
    )
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
