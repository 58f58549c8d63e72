#!/usr/bin/env python3
"""
Streamlit UI for the ID Card Generator
"""

import io
import tempfile
import time
import zipfile
from pathlib import Path

import streamlit as st

from config import MAX_INDIVIDUAL_DOWNLOADS, PREVIEW_WIDTH, ZIP_SPOOL_MAX_BYTES
from utils import remove_temp_file, safe_filename, store_upload

# Startup timing (logged to stdout for Streamlit Cloud logs)
_UI_T0 = time.perf_counter()
def _ui_log(msg: str) -> None:
    print(f"[ui] +{time.perf_counter() - _UI_T0:.3f}s {msg}", flush=True)

_ui_log("ui.py start")

st.set_page_config(
    page_title="ID Card Generator",
    page_icon="🪪",
    layout="centered"
)

st.markdown(
    """
<style>
  button, input, textarea, select {
    border-radius: 10px !important;
  }
  .main .block-container {
    max-width: 980px;
    padding-top: 1rem;
    padding-bottom: 2.5rem;
  }
</style>
""",
    unsafe_allow_html=True,
)

st.markdown("## ID Card Generator")
st.caption("Physically sized identity cards with auto-fitted text, previewed live and exported at print resolution.")
_ui_log("rendered header")

# Initialize session state
if "members_df" not in st.session_state:
    st.session_state.members_df = None
if "asset_paths" not in st.session_state:
    st.session_state.asset_paths = {}
if "asset_keys" not in st.session_state:
    st.session_state.asset_keys = {}
if "export" not in st.session_state:
    # {"image": bytes, "pdf": bytes, "filename": str, "mime": str, "info": str}
    st.session_state.export = None
if "generated_items" not in st.session_state:
    st.session_state.generated_items = []
if "generated_zip" not in st.session_state:
    st.session_state.generated_zip = None


# --- Card options ---
with st.sidebar:
    st.markdown("### Card")
    orientation = st.selectbox("Orientation", ["landscape", "portrait"])
    variant = st.selectbox("Design", ["standard", "exact"], help="'exact' is the tall 1.42 design")
    side = st.radio("Side", ["front", "back"], horizontal=True)
    stamp_mode = st.selectbox("Stamp placement", ["overlap", "above", "below"])
    photo_side = st.radio("Photo column", ["left", "right"], horizontal=True, disabled=orientation != "landscape" or variant == "exact")

    st.markdown("### Export")
    dpi = st.number_input("DPI", min_value=72, max_value=1200, value=600, step=50)
    wallet = st.checkbox("Pad to wallet card (CR80)", value=False)
    fit_mode = st.selectbox("Fit", ["pad", "cover", "stretch"], disabled=not wallet)
    fmt = st.selectbox("Format", ["jpg", "png"])
    quality = st.slider("JPEG quality", 0.5, 1.0, 1.0, 0.05, disabled=fmt != "jpg")
    show_bands = st.checkbox("Show band sizes", value=False)
_ui_log("rendered sidebar")

# --- Assets ---
with st.expander("Images", expanded=False):
    for kind in ("logo", "photo", "stamp", "signature"):
        up = st.file_uploader(kind.capitalize(), type=["png", "jpg", "jpeg", "webp"], key=f"up_{kind}")
        store_upload(st.session_state.asset_paths, st.session_state.asset_keys, kind, up)

# --- Member data ---
source = st.radio("Member data", ["Single card", "Upload CSV/Excel"], horizontal=True)
row = {}
if source == "Upload CSV/Excel":
    data_file = st.file_uploader("Members file", type=["csv", "xlsx", "xls"])
    if data_file is not None and st.button("📂 Load members"):
        from data_loaders import load_members_dataframe

        suffix = Path(data_file.name).suffix
        with tempfile.NamedTemporaryFile(prefix="members_", delete=False, suffix=suffix) as tmp:
            tmp.write(data_file.getvalue())
        try:
            st.session_state.members_df = load_members_dataframe(tmp.name)
            stats = st.session_state.members_df.attrs.get("load_stats", {})
            st.success(f"Loaded **{stats.get('loaded_rows', 0)}** of {stats.get('source_rows', 0)} rows.")
            _ui_log(f"loaded members: {stats}")
        except (ValueError, ImportError, OSError) as e:
            st.error(f"Could not load members: {e}")
        finally:
            remove_temp_file(tmp.name)
    df = st.session_state.members_df
    if df is not None and len(df):
        labels = [f"{r['Name']} ({r['ID_Number']})" for r in df.to_dict("records")]
        idx = st.selectbox("Preview member", range(len(labels)), format_func=lambda i: labels[i])
        row = df.to_dict("records")[idx]
else:
    c1, c2 = st.columns([1, 1])
    with c1:
        row["Name"] = st.text_input("Name", "Ravi Kumar")
        row["Designation"] = st.text_input("Designation", "District Coordinator")
        row["Cell"] = st.text_input("Cell", "Anti Corruption Cell")
        row["Zone"] = st.text_input("Zone", "")
    with c2:
        row["ID_Number"] = st.text_input("ID No", "CRC-000123")
        row["Mobile"] = st.text_input("Contact No", "+91 90000 00000")
        row["Valid_Upto"] = st.text_input("Valid Upto", "31-12-2027")
        row["Issue_Date"] = st.text_input("Issue Date", "")


def _build(member: dict, card_side: str):
    from app import AssetLoader, member_assets, member_fields
    from bands import CardSpec
    from card_template import AssetRefs, CardTemplate
    from compositor import StampSpec

    spec = CardSpec(
        dpi=float(dpi),
        orientation=orientation,
        variant=variant,
        fit_mode=fit_mode,
        pad_to_wallet=wallet,
    )
    paths = st.session_state.asset_paths
    defaults = AssetRefs(logo=paths.get("logo"), photo=paths.get("photo"), stamp=paths.get("stamp"), signature=paths.get("signature"))
    bands_seen = []
    template = CardTemplate(
        spec=spec,
        fields=member_fields(member),
        assets=member_assets(member, defaults),
        stamp=StampSpec(mode=stamp_mode),
        side=card_side,
        photo_side=photo_side,
        on_bands=bands_seen.extend,
    )
    return template, AssetLoader(), bands_seen


def _export(member: dict, card_side: str) -> dict:
    from card_export import ExportRenderer, ExportRequest, export_info

    template, loader, _ = _build(member, card_side)
    request = ExportRequest.from_spec(template.spec, fmt=fmt, quality=float(quality))
    renderer = ExportRenderer(template, loader)
    artifact = renderer.capture(request)
    return {
        "image": artifact.data,
        "pdf": artifact.to_pdf_bytes(),
        "filename": safe_filename(f"{member.get('Name', '')} {member.get('ID_Number', '')} {card_side}", ext=artifact.extension),
        "mime": artifact.mime_type,
        "info": export_info(request, artifact.geometry),
    }


# --- Preview ---
if row.get("Name"):
    from card_render import render_template

    template, loader, bands_seen = _build(row, side)
    preview = render_template(template, PREVIEW_WIDTH, loader=loader)
    buf = io.BytesIO()
    preview.save(buf, format="PNG")
    st.image(buf.getvalue(), width=PREVIEW_WIDTH)
    if show_bands:
        st.caption(" · ".join(f"{b.name}: {b.px}px ({b.inches:.3f}in)" for b in bands_seen))
    _ui_log("rendered preview")

    if st.button("🚀 Export card", type="primary", use_container_width=True):
        with st.spinner("Rendering export..."):
            try:
                st.session_state.export = _export(row, side)
            except Exception as e:
                st.error(f"Export failed: {e}")
                import traceback
                st.code(traceback.format_exc())

    ex = st.session_state.export
    if ex is not None:
        st.caption(ex["info"])
        d1, d2 = st.columns([1, 1])
        with d1:
            st.download_button("⬇️ Download image", data=ex["image"], file_name=ex["filename"], mime=ex["mime"], key="dl_img")
        with d2:
            st.download_button(
                "⬇️ Download PDF",
                data=ex["pdf"],
                file_name=str(Path(ex["filename"]).with_suffix(".pdf")),
                mime="application/pdf",
                key="dl_pdf",
            )
else:
    st.info("Enter member details or load a members file to preview a card.")

# --- Batch ---
df = st.session_state.members_df
if source == "Upload CSV/Excel" and df is not None and len(df):
    st.markdown("---")
    st.caption(
        f"Batch export: up to **{MAX_INDIVIDUAL_DOWNLOADS}** members → individual downloads. "
        f"More than **{MAX_INDIVIDUAL_DOWNLOADS}** → one ZIP download."
    )
    if st.button("📦 Export all members", use_container_width=True):
        members = df.to_dict("records")
        total = len(members)
        progress_bar = st.progress(0)
        status_text = st.empty()
        st.session_state.generated_items = []
        st.session_state.generated_zip = None
        failed = 0
        exports = []
        for i, member in enumerate(members):
            try:
                exports.append(_export(member, side))
            except Exception as e:
                failed += 1
                _ui_log(f"export failed for {member.get('Name')}: {e}")
                continue
            progress_bar.progress((i + 1) / total)
            status_text.text(f"Prepared {i + 1}/{total}: {member.get('Name')}")
        progress_bar.empty()
        status_text.empty()

        if len(exports) > MAX_INDIVIDUAL_DOWNLOADS:
            # Spooled temp file so large ZIPs spill to disk instead of RAM
            zip_buf = tempfile.SpooledTemporaryFile(max_size=ZIP_SPOOL_MAX_BYTES)
            with zipfile.ZipFile(zip_buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for ex in exports:
                    zf.writestr(ex["filename"], ex["image"])
            zip_buf.seek(0)
            st.session_state.generated_zip = {"zip_bytes": zip_buf.read(), "zip_name": "id_cards.zip", "count": len(exports)}
        else:
            st.session_state.generated_items = exports
        if failed:
            st.warning(f"Skipped {failed} member(s) whose card failed to export.")

    z = st.session_state.generated_zip
    if z is not None:
        st.download_button(
            f"⬇️ Download ZIP ({z['count']} cards)",
            data=z["zip_bytes"],
            file_name=z["zip_name"],
            mime="application/zip",
            key="dl_zip",
        )
    for idx, it in enumerate(st.session_state.generated_items):
        st.download_button(
            f"⬇️ {it['filename']}",
            data=it["image"],
            file_name=it["filename"],
            mime=it["mime"],
            key=f"dl_list_{idx}_{it['filename']}",
        )

st.markdown("---")
_ui_log("ui.py end")
