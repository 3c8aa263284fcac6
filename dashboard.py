"""
Bengaluru Geo Dashboard
Interactive Streamlit dashboard: administrative layers, region inspector,
retail scan with filters, CSV / JSON import and export.
"""

import dataclasses

import streamlit as st
import plotly.graph_objects as go
import plotly.express as px
import pandas as pd

from config import GeoConfig
from errors import ImportParseError, NetworkFatal
from geo_primitives import geometry_bounds
from retail_scanner import CATEGORY_NAMES, RetailScanner, filter_stores
from synthetic_geo import build_geo_dataset
from tabular_io import (
    export_filename,
    feature_export_filename,
    features_to_csv,
    features_to_dataframe,
    features_to_json,
    import_document,
)

st.set_page_config(
    page_title="Bengaluru Geo Dashboard",
    page_icon="🗺️",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main-header {
        font-size: 2.6rem;
        font-weight: bold;
        background: linear-gradient(90deg, #667eea 0%, #764ba2 100%);
        -webkit-background-clip: text;
        -webkit-text-fill-color: transparent;
        text-align: center;
        padding: 1rem 0;
    }
</style>
""", unsafe_allow_html=True)

LAYERS = {
    "Districts": "districts",
    "Taluks": "taluks",
    "Villages": "villages",
    "Pincodes": "pincodes",
}
MAP_CENTER = {"lat": 12.98, "lon": 77.60}

INSPECTOR_FIELDS = [
    ("Population", "population", "{:,.0f}"),
    ("Literacy", "literacyRate", "{:.1f}%"),
    ("Area", "areaSqKm", "{:.1f} km²"),
    ("To city", "distanceToCityKm", "{:.1f} km"),
    ("To airport", "distanceToAirportKm", "{:.1f} km"),
    ("To railway", "distanceToRailwayKm", "{:.1f} km"),
]


def create_layer_map(collection, stores, selected_id=None):
    """Choropleth of one layer (coloured by population) with store markers on top"""
    features = list(collection)
    fig = go.Figure()

    if features:
        df = features_to_dataframe(features)
        df["feature_id"] = [f.id for f in features]
        color = "population" if "population" in df.columns else None
        fig = px.choropleth_map(
            df,
            geojson=collection.to_geojson(),
            locations="feature_id",
            featureidkey="id",
            color=color,
            color_continuous_scale="Viridis",
            hover_name="name",
            hover_data={"geocode": True, "feature_id": False},
            opacity=0.45,
            center=MAP_CENTER,
            zoom=8.5,
            map_style="carto-positron",
        )

        if selected_id is not None:
            selected = collection.by_id(selected_id)
            if selected is not None:
                fig.add_trace(go.Scattermap(
                    lat=[selected.properties.get("latitude")],
                    lon=[selected.properties.get("longitude")],
                    mode="markers",
                    marker=dict(size=16, color="red"),
                    name=selected.properties.get("name", selected.id),
                ))

    if stores:
        fig.add_trace(go.Scattermap(
            lat=[s.geometry["coordinates"][1] for s in stores],
            lon=[s.geometry["coordinates"][0] for s in stores],
            mode="markers",
            marker=dict(size=7, color="#eb3349"),
            text=[f"{s.properties['name']} ({s.properties['category']}, ★{s.properties['rating']})" for s in stores],
            hoverinfo="text",
            name="Stores",
        ))

    fig.update_layout(
        height=620,
        margin=dict(l=0, r=0, t=0, b=0),
        map=dict(style="carto-positron", center=MAP_CENTER, zoom=8.5),
        showlegend=False,
    )
    return fig


def display_inspector(feature):
    props = feature.properties
    st.markdown(f"#### {props.get('name')}  `{props.get('geocode')}`")
    st.caption(props.get("description", props.get("type", "")))

    cols = st.columns(3)
    shown = [(label, key, fmt) for label, key, fmt in INSPECTOR_FIELDS if props.get(key) is not None]
    for i, (label, key, fmt) in enumerate(shown):
        cols[i % 3].metric(label, fmt.format(props[key]))

    if props.get("nearestRailway"):
        st.write("**Nearest railway:**", props["nearestRailway"])
    if props.get("keyMarkets"):
        st.write("**Key markets:**", ", ".join(props["keyMarkets"]))

    with st.expander("All attributes"):
        st.json(props)

    st.download_button(
        "⬇️ Download this region (CSV)",
        features_to_csv([feature]),
        file_name=feature_export_filename(feature),
        mime="text/csv",
    )


def run_scan(scanner, regions, scan_all):
    """Run the scan and leave its outcome in session_state; it is shown after the rerun."""
    status = st.empty()
    bar = st.progress(0)

    def on_progress(pct, message):
        bar.progress(min(int(pct), 100))
        status.write(message)

    st.session_state.pop("scan_error", None)
    try:
        if scan_all:
            stores = scanner.scan_regions(regions, on_progress=on_progress)
        else:
            lng_min, lat_min, lng_max, lat_max = geometry_bounds(regions[0].geometry)
            stores = scanner.scan_bounding_box(lat_min, lng_min, lat_max, lng_max, on_progress=on_progress)
    except NetworkFatal as exc:
        st.session_state["scan_error"] = {"message": str(exc), "kept": len(exc.partial)}
        st.session_state["scan_message"] = None
        return list(exc.partial)

    st.session_state["scan_message"] = f"✅ Found {len(stores)} stores"
    return stores


def display_scan_status():
    error = st.session_state.get("scan_error")
    if error:
        st.error(f"❌ {error['message']}")
        if error["kept"]:
            st.warning(f"Keeping {error['kept']} stores found before the failure.")
        st.info("🔁 Press **Scan stores** again to retry.")
    elif st.session_state.get("scan_message"):
        st.success(st.session_state["scan_message"])


def main():
    st.markdown('<div class="main-header">🗺️ Bengaluru Urban & Rural Geo Dashboard</div>', unsafe_allow_html=True)
    st.markdown("---")

    with st.sidebar:
        st.markdown("### ⚙️ Dataset")
        seed = st.number_input("Random seed", 0, 10_000, 7)
        target = st.slider("Villages per taluk", 5, 60, 35)
        distance_model = st.selectbox("Distance model", ["planar", "haversine"])
        regenerate = st.button("🔄 Regenerate", use_container_width=True)

        st.markdown("### 🗂️ Layer")
        layer_label = st.radio("Show layer", list(LAYERS), index=1)

    cfg = dataclasses.replace(GeoConfig(), village_target_per_taluk=target, distance_model=distance_model)
    if regenerate or "dataset" not in st.session_state:
        with st.spinner("Generating dataset..."):
            st.session_state["dataset"] = build_geo_dataset(seed=int(seed), cfg=cfg)
            st.session_state["cfg"] = cfg
            st.session_state.setdefault("stores", [])

    dataset = st.session_state["dataset"]
    cfg = st.session_state["cfg"]
    stores = st.session_state.get("stores", [])
    layer = LAYERS[layer_label]
    collection = dataset.collections()[layer]

    # --- KPIs ---
    cols = st.columns(5)
    for col, (name, coll) in zip(cols, dataset.collections().items()):
        col.metric(name.title(), len(coll))
    cols[4].metric("Stores", len(stores))

    # --- Store filters ---
    with st.sidebar:
        st.markdown("### 🛍️ Store filters")
        categories = st.multiselect("Categories", CATEGORY_NAMES)
        min_rating = st.slider("Minimum rating", 0.0, 5.0, 0.0, 0.1)
        text = st.text_input("Search stores")
    visible_stores = filter_stores(stores, categories, min_rating, text)

    # --- Map + inspector ---
    names = {f"{f.properties.get('name')} ({f.geocode})": f.id for f in collection}
    col_map, col_info = st.columns([3, 2])
    with col_info:
        st.markdown(f"### 🔎 {layer_label}")
        choice = st.selectbox("Region", ["(none)"] + list(names))
        selected_id = names.get(choice)
        if selected_id:
            display_inspector(collection.by_id(selected_id))

        st.markdown("### 🛒 Retail scan")
        display_scan_status()
        scan_all = st.checkbox(f"Scan all {len(collection)} {layer_label.lower()} (slow, many requests)")
        if st.button("Scan stores", disabled=not (selected_id or scan_all)):
            regions = list(collection) if scan_all else [collection.by_id(selected_id)]
            st.session_state["stores"] = run_scan(RetailScanner(cfg=cfg), regions, scan_all)
            st.rerun()

    with col_map:
        st.plotly_chart(create_layer_map(collection, visible_stores, selected_id), use_container_width=True)

    st.markdown("---")

    # --- Tables, export, import ---
    tab_layer, tab_stores, tab_io = st.tabs(["📋 Layer table", "🛍️ Stores", "📁 Import / Export"])
    with tab_layer:
        st.dataframe(features_to_dataframe(collection.features), use_container_width=True, hide_index=True)

    with tab_stores:
        if visible_stores:
            df = features_to_dataframe(visible_stores)
            st.dataframe(
                df[[c for c in ["name", "category", "rating", "userRatingsTotal", "vicinity", "phone"] if c in df.columns]],
                use_container_width=True,
                hide_index=True,
            )
            st.bar_chart(pd.Series([s.properties["category"] for s in visible_stores]).value_counts())
        else:
            st.info("ℹ️ No stores yet. Select a region and run a scan.")

    with tab_io:
        c1, c2, c3 = st.columns(3)
        c1.download_button(f"⬇️ {layer_label} CSV", features_to_csv(collection.features),
                           file_name=export_filename(layer), mime="text/csv")
        c2.download_button(f"⬇️ {layer_label} JSON", features_to_json(collection.features),
                           file_name=export_filename(layer).replace(".csv", ".json"), mime="application/json")
        c3.download_button("⬇️ Full dataset CSV", features_to_csv(dataset.all_features()),
                           file_name=export_filename("full"), mime="text/csv")
        if stores:
            st.download_button("⬇️ Stores CSV", features_to_csv(visible_stores),
                               file_name=export_filename("stores"), mime="text/csv")

        uploaded = st.file_uploader("Merge attributes from CSV / JSON (matched on geocode)", type=["csv", "json"])
        if uploaded is not None and st.button("Apply import"):
            try:
                new_dataset, updated = import_document(dataset, uploaded.getvalue().decode("utf-8-sig"), uploaded.name)
            except (ImportParseError, UnicodeDecodeError) as exc:
                st.error(f"❌ Import failed, nothing was changed: {exc}")
            else:
                st.session_state["dataset"] = new_dataset
                st.success(f"✅ Updated {updated} features")


if __name__ == "__main__":
    main()
