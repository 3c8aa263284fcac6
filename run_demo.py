# run_demo.py
from __future__ import annotations

import argparse
import dataclasses
import logging
import time

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for saving figures
import matplotlib.pyplot as plt
import numpy as np

from config import GeoConfig
from errors import NetworkFatal
from geo_primitives import geometry_rings
from retail_scanner import RetailScanner
from synthetic_geo import build_geo_dataset, validate_dataset
from tabular_io import OutputManager, features_to_dataframe

TALUK_COLORS = ['#667eea', '#f2994a', '#56ab2f', '#eb3349', '#4facfe', '#764ba2', '#f2c94c', '#a8e063']


def print_layer_counts(dataset):
    print("\n=== Generated Layers ===")
    for name, collection in dataset.collections().items():
        print(f"{name:<10} {len(collection):>5}")


def print_taluk_table(dataset):
    print("\n=== Taluks ===")
    df = features_to_dataframe(dataset.taluks.features)
    if df.empty:
        print("No taluks generated")
        return
    cols = ["geocode", "name", "district", "population", "distanceToCityKm", "nearestRailway"]
    print(df[cols].to_string(index=False, float_format=lambda x: f"{x:.1f}"))

    villages = features_to_dataframe(dataset.villages.features)
    if not villages.empty:
        print("\nVillages per taluk (curated / sampled):")
        counts = villages.groupby(["taluk", "placement"]).size().unstack(fill_value=0)
        print(counts.to_string())


def print_generation_notes(dataset, problems):
    print("\n=== Generation Notes ===")
    shortfall = dataset.report.get("placement_shortfall", {})
    if shortfall:
        for taluk, missing in shortfall.items():
            print(f"Taluk {taluk}: {missing} villages short of target")
    else:
        print("All taluks reached their village target")
    outside = dataset.report.get("curated_outside_taluk", {})
    for taluk, names in outside.items():
        print(f"Taluk {taluk}: curated villages outside the taluk boundary: {', '.join(names)}")
    skipped = dataset.report.get("skipped_cells", [])
    if skipped:
        print(f"Pincode cells skipped: {', '.join(skipped)}")
    if dataset.report.get("tessellation_error"):
        print(f"Pincode layer empty: {dataset.report['tessellation_error']}")

    if problems:
        print(f"\n⚠️ {len(problems)} validation problem(s):")
        for p in problems[:20]:
            print(f"  - {p}")
    else:
        print("✓ Validation passed: rings, geocodes, ids, containment")


def plot_layers(dataset, stores=None, path="bengaluru_layers.png"):
    """Static overview: pincode cells, taluk polygons, village centres, stores."""
    print("\n=== Generating Layer Plot ===")
    fig, ax = plt.subplots(figsize=(10, 11))

    for f in dataset.pincodes:
        for ring in geometry_rings(f.geometry):
            xy = np.asarray(ring)
            ax.plot(xy[:, 0], xy[:, 1], color='#bbbbbb', linewidth=0.5)

    for i, f in enumerate(dataset.taluks):
        color = TALUK_COLORS[i % len(TALUK_COLORS)]
        for ring in geometry_rings(f.geometry):
            xy = np.asarray(ring)
            ax.fill(xy[:, 0], xy[:, 1], color=color, alpha=0.25)
            ax.plot(xy[:, 0], xy[:, 1], color=color, linewidth=1.5)
        ax.annotate(f.properties['name'], (f.properties['longitude'], f.properties['latitude']),
                    ha='center', fontsize=8, weight='bold')

    if len(dataset.villages):
        lng = [f.properties['longitude'] for f in dataset.villages]
        lat = [f.properties['latitude'] for f in dataset.villages]
        ax.scatter(lng, lat, s=4, color='black', label='Villages')

    if stores:
        ax.scatter([s.geometry['coordinates'][0] for s in stores],
                   [s.geometry['coordinates'][1] for s in stores],
                   s=6, color='red', label='Stores')

    ax.set_title('Bengaluru Urban & Rural: taluks, pincodes, villages')
    ax.set_xlabel('Longitude')
    ax.set_ylabel('Latitude')
    ax.set_aspect('equal')
    ax.legend(loc='lower left')
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    print(f"✓ Saved {path}")


def run_scan(dataset, cfg, taluk_name):
    taluk = next((t for t in dataset.taluks if t.properties['name'] == taluk_name), None)
    if taluk is None:
        print(f"Unknown taluk: {taluk_name}")
        return []

    def on_progress(pct, message):
        print(f"  [{pct:>3}%] {message}")

    print("\n" + "="*70)
    print(f"RETAIL SCAN: {taluk_name}")
    print("="*70)
    scanner = RetailScanner(cfg=cfg)
    try:
        stores = scanner.scan_regions([taluk], on_progress=on_progress)
    except NetworkFatal as e:
        print(f"❌ {e}")
        return list(e.partial)

    df = features_to_dataframe(stores)
    if not df.empty:
        print(df.groupby("category").size().sort_values(ascending=False).to_string())
    return stores


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Generate the Bengaluru geo dataset and export it.")
    p.add_argument("--seed", type=int, default=7)
    p.add_argument("--villages", type=int, default=None, help="villages per taluk")
    p.add_argument("--distance-model", choices=["planar", "haversine"], default="planar")
    p.add_argument("--output-dir", default="outputs")
    p.add_argument("--scan-taluk", default=None, help="run a live retail scan over one taluk")
    p.add_argument("--plot", default="bengaluru_layers.png")
    p.add_argument("--no-export", action="store_true")
    p.add_argument("-d", "--dashboard", action="store_true", help="launch the streamlit dashboard afterwards")
    p.add_argument("-v", "--verbose", action="store_true")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    start_time = time.time()

    cfg = GeoConfig(distance_model=args.distance_model)
    if args.villages is not None:
        cfg = dataclasses.replace(cfg, village_target_per_taluk=args.villages)

    print("\n" + "="*70)
    print("BENGALURU URBAN & RURAL: SYNTHETIC GEO DATASET")
    print("="*70)

    dataset = build_geo_dataset(seed=args.seed, cfg=cfg)
    problems = validate_dataset(dataset)

    print_layer_counts(dataset)
    print_taluk_table(dataset)
    print_generation_notes(dataset, problems)

    stores = run_scan(dataset, cfg, args.scan_taluk) if args.scan_taluk else []

    plot_layers(dataset, stores, args.plot)

    if not args.no_export:
        output_mgr = OutputManager(args.output_dir)
        output_dir = output_mgr.export_all(
            dataset,
            cfg,
            stores=stores,
            problems=problems,
            execution_time_sec=time.time() - start_time,
        )
        print(f"\n✅ Results exported to: {output_dir}")
        print(f"   📄 Quick view: {output_dir / 'SUMMARY.txt'}")

    print("\n" + "="*70)
    print("GENERATION COMPLETE!")
    print("="*70)
    return args


if __name__ == "__main__":
    import subprocess
    import sys
    from pathlib import Path

    args = main()

    if args.dashboard:
        print("\n🚀 Launching Streamlit dashboard...")
        print("   Dashboard will open at: http://localhost:8501")
        dashboard_file = Path(__file__).parent / "dashboard.py"
        try:
            subprocess.Popen([sys.executable, "-m", "streamlit", "run", str(dashboard_file)])
        except OSError as e:
            print(f"❌ Error launching dashboard: {e}")
            print("   You can manually launch it with: streamlit run dashboard.py")
    else:
        print("\n💡 To launch the dashboard, run:")
        print("   streamlit run dashboard.py")
        print("   OR")
        print("   python run_demo.py --dashboard")
